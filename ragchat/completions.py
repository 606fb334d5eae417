"""OpenAI chat completion service."""

from collections.abc import Sequence

from openai import OpenAI, OpenAIError

from .config import config
from .errors import GenerationFailedError
from .models import Turn

logger = config.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant for a document question-answering chat. "
    "Answer clearly and concisely."
)


class CompletionService:
    """Turns a prompt plus prior conversation into a model completion."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the CompletionService.

        Args:
            api_key: OpenAI API key. If None, reads OPENAI_API_KEY.
            model: Chat model name. If None, uses config.CHAT_MODEL.
            timeout: Per-request timeout in seconds. If None, uses
                config.OPENAI_TIMEOUT.
        """
        default_headers = config.get_api_headers()
        self.client = OpenAI(
            api_key=api_key or config.get_openai_api_key(),
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
            timeout=timeout if timeout is not None else config.OPENAI_TIMEOUT,
            max_retries=config.OPENAI_MAX_RETRIES,
        )
        self.model = model or config.CHAT_MODEL

    @staticmethod
    def build_messages(prompt: str, transcript: Sequence[Turn]) -> list[dict[str, str]]:
        """Render the transcript as chat messages followed by the prompt.

        Returns:
            Messages in the OpenAI chat format.
        """
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        messages.extend(
            {"role": turn.role.value, "content": turn.content} for turn in transcript
        )
        messages.append({"role": "user", "content": prompt})
        return messages

    def complete(
        self,
        prompt: str,
        transcript: Sequence[Turn] = (),
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Return the model's answer to ``prompt`` given the prior transcript.

        Returns:
            The stripped completion text.

        Raises:
            GenerationFailedError: If the API call fails, times out, or the
                model returns no content.
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(prompt, transcript),
                max_tokens=max_tokens or config.CHAT_MAX_TOKENS,
                temperature=(
                    config.CHAT_TEMPERATURE if temperature is None else temperature
                ),
            )
        except OpenAIError as exc:
            logger.exception("Error generating completion")
            msg = f"Chat model '{self.model}' is unavailable: {exc}"
            raise GenerationFailedError(msg) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            msg = f"Chat model '{self.model}' returned an empty completion"
            raise GenerationFailedError(msg)
        return content.strip()
