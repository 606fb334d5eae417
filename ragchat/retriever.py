"""Similarity retrieval of citable passages."""

from .config import config
from .document_store import DocumentStore
from .embeddings import EmbeddingService
from .models import Citation
from .vector_store import VectorIndex

logger = config.get_logger(__name__)


class Retriever:
    """Embeds a query and returns ranked citations above a relevance floor."""

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_index: VectorIndex,
        document_store: DocumentStore,
    ) -> None:
        self.embedding_service = embedding_service
        self.vector_index = vector_index
        self.document_store = document_store

    def retrieve(
        self,
        query: str,
        top_k: int | None = None,
        min_score: float | None = None,
    ) -> list[Citation]:
        """Retrieve the passages most similar to ``query``.

        Args:
            query: Natural-language query text.
            top_k: Maximum number of candidates fetched from the index. If
                None, uses config.RETRIEVAL_TOP_K.
            min_score: Relevance floor; hits scoring below it are dropped. If
                None, uses config.RETRIEVAL_MIN_SCORE.

        Returns:
            Citations in the index's ranking order. Hits whose chunk or
            document has been removed in the meantime are left out.
        """
        top_k = top_k if top_k is not None else config.RETRIEVAL_TOP_K
        min_score = min_score if min_score is not None else config.RETRIEVAL_MIN_SCORE

        query_embedding = self.embedding_service.get_embedding(query)
        hits = self.vector_index.search(query_embedding, top_k)

        citations: list[Citation] = []
        for hit in hits:
            if hit.score < min_score:
                continue
            resolved = self.document_store.resolve(hit.chunk_id)
            if resolved is None:
                logger.debug("Dropping hit %s for a removed document", hit.chunk_id)
                continue
            chunk, document = resolved
            citations.append(
                Citation(
                    chunk_id=chunk.id,
                    document_id=document.id,
                    filename=document.filename,
                    text=chunk.text,
                    relevance_score=hit.score,
                    page_number=chunk.page_number,
                )
            )

        logger.info(
            "Retrieved %d of %d candidates (min_score=%.3f)",
            len(citations),
            len(hits),
            min_score,
        )
        return citations
