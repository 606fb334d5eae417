"""Brute-force in-memory vector index built on numpy."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from ragchat.config import config
from ragchat.vector_store.base import DOCUMENT_ID_KEY, SearchHit, VectorIndex

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ragchat.vector_store.base import IndexEntry

logger = config.get_logger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    """Immutable view of the index; replaced wholesale on every write."""

    dimension: int | None
    matrix: np.ndarray
    chunk_ids: tuple[str, ...]
    metadata: tuple[Mapping[str, Any], ...]
    sequence: np.ndarray


def _empty_snapshot(dimension: int | None = None) -> _Snapshot:
    return _Snapshot(
        dimension=dimension,
        matrix=np.empty((0, dimension or 0), dtype=np.float32),
        chunk_ids=(),
        metadata=(),
        sequence=np.empty(0, dtype=np.int64),
    )


class NumpyVectorIndex(VectorIndex):
    """Vector index holding normalised embeddings in a single numpy matrix.

    Writers build a new snapshot under a lock and publish it with one
    reference assignment, so searches never wait and always see a complete
    pre- or post-write state.
    """

    backend = "numpy"

    def __init__(self) -> None:
        self._write_lock = threading.Lock()
        self._snapshot = _empty_snapshot()
        self._next_sequence = 0

    @property
    def dimension(self) -> int | None:
        return self._snapshot.dimension

    def __len__(self) -> int:
        return len(self._snapshot.chunk_ids)

    def document_ids(self) -> set[str]:
        return {str(meta[DOCUMENT_ID_KEY]) for meta in self._snapshot.metadata}

    def insert_batch(self, entries: Iterable[IndexEntry]) -> int:
        with self._write_lock:
            current = self._snapshot
            prepared, vectors = self._prepare(
                entries, current.dimension, current.chunk_ids
            )
            if vectors is None:
                return 0

            count = len(prepared)
            sequence = np.arange(
                self._next_sequence, self._next_sequence + count, dtype=np.int64
            )
            matrix = (
                vectors if current.matrix.size == 0
                else np.vstack([current.matrix, vectors])
            )
            self._snapshot = _Snapshot(
                dimension=vectors.shape[1],
                matrix=matrix,
                chunk_ids=current.chunk_ids + tuple(e.chunk_id for e in prepared),
                metadata=current.metadata + tuple(e.metadata for e in prepared),
                sequence=np.concatenate([current.sequence, sequence]),
            )
            self._next_sequence += count

        logger.info("Added %d vectors to numpy index", count)
        return count

    def search(self, query_vector: np.ndarray, k: int) -> list[SearchHit]:
        self._check_k(k)
        snapshot = self._snapshot
        if not snapshot.chunk_ids:
            return []

        query = self._prepare_query(query_vector, snapshot.matrix.shape[1])
        scores = snapshot.matrix @ query
        # lexsort sorts by the last key first: descending score, then sequence
        order = np.lexsort((snapshot.sequence, -scores))[:k]
        return [
            SearchHit(
                chunk_id=snapshot.chunk_ids[i],
                score=float(scores[i]),
                metadata=snapshot.metadata[i],
            )
            for i in order
        ]

    def delete(self, document_id: str) -> int:
        with self._write_lock:
            current = self._snapshot
            keep = np.array(
                [meta[DOCUMENT_ID_KEY] != document_id for meta in current.metadata],
                dtype=bool,
            )
            removed = int(keep.size - keep.sum())
            if removed == 0:
                return 0

            self._snapshot = _Snapshot(
                dimension=current.dimension,
                matrix=current.matrix[keep],
                chunk_ids=tuple(
                    cid for cid, kept in zip(current.chunk_ids, keep, strict=True)
                    if kept
                ),
                metadata=tuple(
                    meta for meta, kept in zip(current.metadata, keep, strict=True)
                    if kept
                ),
                sequence=current.sequence[keep],
            )

        logger.info("Removed %d vectors for document %s", removed, document_id)
        return removed

    def reset(self) -> None:
        with self._write_lock:
            self._snapshot = _empty_snapshot()
        logger.info("Numpy vector index reset")
