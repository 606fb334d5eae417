"""Embedding capability backed by the OpenAI embeddings API."""

import numpy as np
from openai import OpenAI, OpenAIError

from .config import config
from .errors import EmbeddingUnavailableError

logger = config.get_logger(__name__)


class EmbeddingService:
    """Turns chunk and query text into float32 embedding vectors."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Build the OpenAI client used for embedding requests.

        Args:
            api_key: OpenAI API key. If None, config.get_openai_api_key().
            model: Embedding model. If None, config.EMBEDDING_MODEL.
            timeout: Per-request timeout in seconds. If None, uses
                config.OPENAI_TIMEOUT.
        """
        api_key = api_key or config.get_openai_api_key()
        default_headers = config.get_api_headers()
        self.client = OpenAI(
            api_key=api_key,
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
            timeout=timeout if timeout is not None else config.OPENAI_TIMEOUT,
            max_retries=config.OPENAI_MAX_RETRIES,
        )
        self.model = model or config.EMBEDDING_MODEL

    def get_embedding(self, text: str) -> np.ndarray:
        """Embed one query or passage.

        Returns:
            np.ndarray: A 1-D float32 vector.

        Raises:
            EmbeddingUnavailableError: If the API call fails, times out, or
                returns no vector.
        """
        try:
            response = self.client.embeddings.create(
                model=self.model,
                input=text,
            )
        except OpenAIError as exc:
            logger.exception("Query embedding request failed")
            msg = f"Embedding model '{self.model}' is unavailable: {exc}"
            raise EmbeddingUnavailableError(msg) from exc

        if not response.data:
            msg = f"Embedding API returned no vectors for model '{self.model}'"
            raise EmbeddingUnavailableError(msg)
        return np.asarray(response.data[0].embedding, dtype=np.float32)

    def get_embeddings_batch(
        self,
        texts: list[str],
        batch_size: int | None = None,
    ) -> list[np.ndarray]:
        """Embed many texts, sending at most ``batch_size`` per request.

        Args:
            texts: Chunk texts in document order.
            batch_size: Texts per request. If None, uses
                config.EMBEDDING_BATCH_SIZE.

        Returns:
            list[np.ndarray]: One vector per input text, in input order.

        Raises:
            EmbeddingUnavailableError: If any batch fails, or the API returns
                a different number of vectors than requested.
        """
        batch_size = batch_size or config.EMBEDDING_BATCH_SIZE
        embeddings: list[np.ndarray] = []

        for i in range(0, len(texts), batch_size):
            batch_texts = texts[i : i + batch_size]
            try:
                response = self.client.embeddings.create(
                    model=self.model,
                    input=batch_texts,
                )
            except OpenAIError as exc:
                logger.exception(
                    "Embedding request failed for batch %d", i // batch_size + 1
                )
                msg = f"Embedding model '{self.model}' is unavailable: {exc}"
                raise EmbeddingUnavailableError(msg) from exc

            if len(response.data) != len(batch_texts):
                msg = (
                    f"Embedding API returned {len(response.data)} vectors "
                    f"for {len(batch_texts)} inputs"
                )
                raise EmbeddingUnavailableError(msg)

            embeddings.extend(
                np.asarray(data.embedding, dtype=np.float32) for data in response.data
            )
            logger.info("Generated embeddings for batch %d", i // batch_size + 1)

        return embeddings
