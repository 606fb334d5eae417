"""FAISS-backed in-memory vector index."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import faiss
import numpy as np

from ragchat.config import config
from ragchat.vector_store.base import (
    DOCUMENT_ID_KEY,
    ReadWriteLock,
    SearchHit,
    VectorIndex,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ragchat.vector_store.base import IndexEntry

logger = config.get_logger(__name__)


class FaissVectorIndex(VectorIndex):
    """Vector index using a FAISS inner-product index over unit vectors.

    Each vector gets a monotonically increasing int64 id, so id order is
    insertion order. A readers-writer lock lets searches run concurrently
    while inserts and deletes mutate the FAISS index exclusively.
    """

    backend = "faiss"

    def __init__(self, raw_top_k_multiplier: int = 2) -> None:
        """Configure FAISS-backed vector index.

        Args:
            raw_top_k_multiplier: How many candidates to fetch per requested
                result before tie-breaking.
        """
        self.raw_top_k_multiplier = max(1, raw_top_k_multiplier)
        self._lock = ReadWriteLock()
        self.index: faiss.IndexIDMap | None = None
        self._next_id = 0
        self._chunk_ids: dict[int, str] = {}
        self._metadata: dict[int, Mapping[str, Any]] = {}
        self._document_vectors: dict[str, list[int]] = {}

    @property
    def dimension(self) -> int | None:
        index = self.index
        return None if index is None else int(index.d)

    def __len__(self) -> int:
        return len(self._chunk_ids)

    def document_ids(self) -> set[str]:
        with self._lock.read():
            return set(self._document_vectors)

    def _init_index(self, dimension: int) -> None:
        """Initialize FAISS index for the first batch."""
        base_index = faiss.IndexFlatIP(dimension)
        self.index = faiss.IndexIDMap(base_index)
        logger.info("Initialized FAISS IndexIDMap with dimension %d", dimension)

    def insert_batch(self, entries: Iterable[IndexEntry]) -> int:
        """Add vectors to the FAISS index.

        Returns:
            Number of vectors added.

        Raises:
            RuntimeError: If the FAISS index cannot store provided ids.
        """
        with self._lock.write():
            prepared, vectors = self._prepare(
                entries, self.dimension, self._chunk_ids.values()
            )
            if vectors is None:
                logger.warning("No embeddings added to FAISS index")
                return 0

            if self.index is None:
                self._init_index(vectors.shape[1])

            ids_array = np.arange(
                self._next_id, self._next_id + len(prepared), dtype=np.int64
            )
            try:
                self.index.add_with_ids(vectors, ids_array)  # pyright: ignore[reportCallIssue]  # FAISS stubs may not reflect add_with_ids signature
            except RuntimeError:
                logger.exception(
                    "FAISS index does not support add_with_ids; "
                    "ensure IndexIDMap is used."
                )
                raise

            for vector_id, entry in zip(ids_array.tolist(), prepared, strict=True):
                self._chunk_ids[vector_id] = entry.chunk_id
                self._metadata[vector_id] = entry.metadata
                document_id = str(entry.metadata[DOCUMENT_ID_KEY])
                self._document_vectors.setdefault(document_id, []).append(vector_id)
            self._next_id += len(prepared)

        logger.info("Added %d vectors to FAISS index", len(prepared))
        return len(prepared)

    def _raw_search(
        self, index: faiss.IndexIDMap, query: np.ndarray, raw_k: int
    ) -> tuple[np.ndarray, np.ndarray]:
        scores, vector_ids = index.search(query.reshape(1, -1), raw_k)  # pyright: ignore[reportCallIssue]
        return scores[0], vector_ids[0]

    def search(self, query_vector: np.ndarray, k: int) -> list[SearchHit]:
        """Search similar chunks using FAISS index.

        Returns:
            Ranked list of hits, ties broken by insertion order.
        """
        self._check_k(k)
        with self._lock.read():
            index = self.index
            if index is None or index.ntotal == 0:
                return []

            query = self._prepare_query(query_vector, int(index.d))

            total = int(index.ntotal)
            k = min(k, total)
            raw_k = min(total, max(k, self.raw_top_k_multiplier * k))
            scores, vector_ids = self._raw_search(index, query, raw_k)

            # FAISS picks arbitrarily among tied scores at the cut-off; widen
            # the search so every tied candidate can compete on insertion order
            if raw_k < total and scores[raw_k - 1] == scores[k - 1]:
                scores, vector_ids = self._raw_search(index, query, total)

            ranked = sorted(
                (
                    (float(score), int(vector_id))
                    for score, vector_id in zip(scores, vector_ids, strict=True)
                    if int(vector_id) != -1  # faiss returns -1 for empty results
                ),
                key=lambda pair: (-pair[0], pair[1]),
            )
            return [
                SearchHit(
                    chunk_id=self._chunk_ids[vector_id],
                    score=score,
                    metadata=self._metadata[vector_id],
                )
                for score, vector_id in ranked[:k]
            ]

    def delete(self, document_id: str) -> int:
        with self._lock.write():
            vector_ids = self._document_vectors.pop(document_id, [])
            if not vector_ids or self.index is None:
                return 0

            self.index.remove_ids(np.asarray(vector_ids, dtype=np.int64))
            for vector_id in vector_ids:
                del self._chunk_ids[vector_id]
                del self._metadata[vector_id]

        logger.info(
            "Removed %d vectors for document %s from FAISS index",
            len(vector_ids),
            document_id,
        )
        return len(vector_ids)

    def reset(self) -> None:
        with self._lock.write():
            self.index = None
            self._chunk_ids.clear()
            self._metadata.clear()
            self._document_vectors.clear()
        logger.info("FAISS index reset")
