"""Prompt assembly and answer generation."""

from collections.abc import Sequence
from dataclasses import dataclass

from .completions import CompletionService
from .config import config
from .models import Citation, Turn

logger = config.get_logger(__name__)

CONTEXT_START = "=== BEGIN CONTEXT ==="
CONTEXT_END = "=== END CONTEXT ==="
QUERY_REWRITE_TURNS = 3


@dataclass(frozen=True)
class GenerationResult:
    """Answer text plus exactly the citations that were shown to the model."""

    answer_text: str
    used_citations: tuple[Citation, ...]


class Generator:
    """Builds prompts from question, context and transcript, then completes them."""

    def __init__(
        self,
        completion_service: CompletionService,
        max_context_chars: int | None = None,
    ) -> None:
        """Initialize the Generator.

        Args:
            completion_service: Completion capability used for answers.
            max_context_chars: Budget for the summed citation text in one
                prompt. If None, uses config.MAX_CONTEXT_CHARS.
        """
        self.completion_service = completion_service
        self.max_context_chars = (
            max_context_chars
            if max_context_chars is not None
            else config.MAX_CONTEXT_CHARS
        )

    def select_citations(self, citations: Sequence[Citation]) -> list[Citation]:
        """Take citations in relevance order until the context budget is spent.

        The most relevant citation is always kept, even if it alone exceeds
        the budget.

        Returns:
            The leading citations that fit.
        """
        ordered = sorted(citations, key=lambda c: c.relevance_score, reverse=True)
        selected: list[Citation] = []
        used = 0
        for citation in ordered:
            size = len(citation.text)
            if selected and used + size > self.max_context_chars:
                break
            selected.append(citation)
            used += size
        return selected

    @staticmethod
    def build_context_block(citations: Sequence[Citation]) -> str:
        """Render citations as a delimited context block.

        Returns:
            str: The block, most relevant citation first.
        """
        sections = [CONTEXT_START]
        for i, citation in enumerate(citations):
            location = citation.filename
            if citation.page_number is not None:
                location += f", page {citation.page_number}"
            sections.append(
                f"[Source {i + 1}] {location} "
                f"(relevance: {citation.relevance_score:.4f})\n"
                f"{citation.text}"
            )
        sections.append(CONTEXT_END)
        return "\n\n".join(sections)

    def build_prompt(self, question: str, citations: Sequence[Citation]) -> str:
        """Build the user prompt for one question.

        The prior conversation is sent separately as chat messages, so the
        prompt only carries the context block (when there is one) and the
        question.

        Returns:
            str: The constructed prompt.
        """
        if not citations:
            return (
                "Answer the question using your general knowledge and the "
                "conversation so far. If you are unsure, say so.\n\n"
                f"Question: {question}"
            )

        return (
            "Answer the question using the document context below and the "
            "conversation so far.\n\n"
            f"{self.build_context_block(citations)}\n\n"
            "Use the following guidelines:\n"
            "1. Base your answer on the document sections in the context block\n"
            "2. If the context does not contain the answer, say that the uploaded "
            "documents do not cover it before adding anything else\n"
            "3. Mention the source file when you rely on a specific section\n"
            "4. Keep continuity with earlier questions in the conversation\n\n"
            f"Question: {question}"
        )

    def generate(
        self,
        question: str,
        citations: Sequence[Citation],
        transcript: Sequence[Turn],
        use_rag: bool,  # noqa: FBT001
    ) -> GenerationResult:
        """Produce an answer for ``question``.

        Returns:
            The answer and the citations that were placed in the prompt.
        """
        used = self.select_citations(citations) if use_rag else []
        prompt = self.build_prompt(question, used)

        logger.info(
            "Generating answer with %d context passages and %d transcript turns",
            len(used),
            len(transcript),
        )
        answer = self.completion_service.complete(prompt, transcript)
        return GenerationResult(answer_text=answer, used_citations=tuple(used))

    def rewrite_query(self, question: str, transcript: Sequence[Turn]) -> str:
        """Generate a standalone query from conversation context for better retrieval.

        Returns:
            str: The standalone question, or the original question when there
                is no transcript.
        """
        if not transcript:
            return question

        context = "".join(
            f"{turn.role.value.capitalize()}: {turn.content}\n"
            for turn in transcript[-QUERY_REWRITE_TURNS:]
        )
        prompt = (
            "Given the following conversation history and a follow-up question, "
            "rewrite the follow-up question as a standalone question that can be "
            "understood without the conversation context.\n\n"
            f"Conversation History:\n{context}\n"
            f"Follow-up Question: {question}\n\n"
            "Standalone Question:"
        )

        standalone_query = self.completion_service.complete(
            prompt,
            max_tokens=config.QUERY_REWRITE_MAX_TOKENS,
            temperature=config.QUERY_REWRITE_TEMPERATURE,
        )
        logger.info("Generated standalone query: %s", standalone_query)
        return standalone_query
