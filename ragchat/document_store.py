"""In-memory registry of ingested documents and their chunks.

Contents live for the lifetime of the process and are lost on restart. A
persistent implementation only needs to honour the same methods.
"""

import threading
from collections.abc import Sequence

from .config import config
from .models import Chunk, Document

logger = config.get_logger(__name__)


class DocumentStore:
    """Source of truth for document metadata and chunk text."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: dict[str, Document] = {}
        self._chunks: dict[str, Chunk] = {}
        self._document_chunks: dict[str, tuple[str, ...]] = {}

    def add(self, document: Document, chunks: Sequence[Chunk]) -> None:
        """Record a document together with all of its chunks.

        Raises:
            ValueError: If the document id is taken, the chunk count does not
                match, or a chunk belongs to another document.
        """
        if document.chunk_count != len(chunks):
            msg = (
                f"Document {document.id} declares {document.chunk_count} chunks "
                f"but {len(chunks)} were supplied"
            )
            raise ValueError(msg)
        if any(chunk.document_id != document.id for chunk in chunks):
            msg = f"All chunks must belong to document {document.id}"
            raise ValueError(msg)

        with self._lock:
            if document.id in self._documents:
                msg = f"Document {document.id} is already stored"
                raise ValueError(msg)
            self._documents[document.id] = document
            self._chunks.update((chunk.id, chunk) for chunk in chunks)
            self._document_chunks[document.id] = tuple(chunk.id for chunk in chunks)

        logger.info(
            "Stored document %s (%s, %d chunks)",
            document.id,
            document.filename,
            document.chunk_count,
        )

    def get_document(self, document_id: str) -> Document | None:
        with self._lock:
            return self._documents.get(document_id)

    def get_chunk(self, chunk_id: str) -> Chunk | None:
        with self._lock:
            return self._chunks.get(chunk_id)

    def resolve(self, chunk_id: str) -> tuple[Chunk, Document] | None:
        """Look up a chunk and its owning document in one consistent read.

        Returns:
            The pair, or None if either has been removed.
        """
        with self._lock:
            chunk = self._chunks.get(chunk_id)
            if chunk is None:
                return None
            document = self._documents.get(chunk.document_id)
            if document is None:
                return None
            return chunk, document

    def list_documents(self) -> list[Document]:
        """Return documents in ingestion order."""  # noqa: DOC201
        with self._lock:
            return list(self._documents.values())

    def remove(self, document_id: str) -> Document | None:
        """Forget a document and its chunks.

        Returns:
            The removed document, or None if it was not stored.
        """
        with self._lock:
            document = self._documents.pop(document_id, None)
            for chunk_id in self._document_chunks.pop(document_id, ()):
                self._chunks.pop(chunk_id, None)
        if document is not None:
            logger.info("Removed document %s (%s)", document_id, document.filename)
        return document

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()
            self._chunks.clear()
            self._document_chunks.clear()

    @property
    def document_count(self) -> int:
        with self._lock:
            return len(self._documents)

    @property
    def chunk_count(self) -> int:
        with self._lock:
            return len(self._chunks)
