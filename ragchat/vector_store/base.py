"""Shared types and helpers for vector index backends."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from ragchat.config import config
from ragchat.errors import DimensionMismatchError

logger = config.get_logger(__name__)

DOCUMENT_ID_KEY = "document_id"


@dataclass(frozen=True)
class IndexEntry:
    """A vector to store, bound to one chunk."""

    chunk_id: str
    vector: np.ndarray
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchHit:
    """A single similarity search result."""

    chunk_id: str
    score: float
    metadata: Mapping[str, Any]

    @property
    def document_id(self) -> str:
        return str(self.metadata[DOCUMENT_ID_KEY])


def normalize_vector(vector: np.ndarray) -> np.ndarray:
    """Return a float32 unit vector; zero vectors are returned unchanged.

    Returns:
        The L2-normalised 1-D vector.

    Raises:
        ValueError: If the input is not a non-empty 1-D vector.
    """
    array = np.asarray(vector, dtype=np.float32).reshape(-1)
    if array.size == 0:
        msg = "Cannot index an empty embedding"
        raise ValueError(msg)
    norm = float(np.linalg.norm(array))
    if norm == 0.0:
        return array
    return array / norm


class ReadWriteLock:
    """Many concurrent readers or one exclusive writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class VectorIndex(ABC):
    """Stores (vector, chunk id, metadata) triples and answers k-NN queries.

    Similarity is cosine: vectors are normalised on the way in and scored by
    inner product. Results are ordered by descending score with ties broken
    by insertion order. The first insert fixes the dimensionality until
    ``reset``.
    """

    backend: str = "abstract"

    @property
    @abstractmethod
    def dimension(self) -> int | None:
        """Established dimensionality, or None before the first insert."""

    @abstractmethod
    def insert_batch(self, entries: Iterable[IndexEntry]) -> int:
        """Store all entries or none of them; return how many were added."""

    @abstractmethod
    def search(self, query_vector: np.ndarray, k: int) -> list[SearchHit]:
        """Return at most ``k`` hits ordered by descending similarity."""

    @abstractmethod
    def delete(self, document_id: str) -> int:
        """Remove every vector belonging to a document; return the count."""

    @abstractmethod
    def reset(self) -> None:
        """Drop all vectors and forget the established dimensionality."""

    @abstractmethod
    def document_ids(self) -> set[str]:
        """Documents that currently own at least one vector."""

    @abstractmethod
    def __len__(self) -> int: ...

    def insert(
        self,
        chunk_id: str,
        vector: np.ndarray,
        metadata: Mapping[str, Any],
    ) -> None:
        """Store a single vector."""
        self.insert_batch([IndexEntry(chunk_id, vector, metadata)])

    @staticmethod
    def _check_k(k: int) -> None:
        if k < 1:
            msg = f"k must be at least 1, got {k}"
            raise ValueError(msg)

    @staticmethod
    def _prepare(
        entries: Iterable[IndexEntry],
        dimension: int | None,
        existing_ids: Iterable[str] = (),
    ) -> tuple[list[IndexEntry], np.ndarray | None]:
        """Validate a batch before any of it is stored.

        Returns:
            The entries with copied metadata, and their normalised vectors
            stacked into a matrix (None for an empty batch).

        Raises:
            DimensionMismatchError: If a vector disagrees with the index or
                with the rest of the batch.
            ValueError: If metadata lacks a document id or a chunk id is
                already present.
        """
        seen = set(existing_ids)
        prepared: list[IndexEntry] = []
        vectors: list[np.ndarray] = []
        for entry in entries:
            if DOCUMENT_ID_KEY not in entry.metadata:
                msg = f"Metadata for chunk '{entry.chunk_id}' lacks '{DOCUMENT_ID_KEY}'"
                raise ValueError(msg)
            if entry.chunk_id in seen:
                msg = f"Chunk '{entry.chunk_id}' is already indexed"
                raise ValueError(msg)
            seen.add(entry.chunk_id)

            vector = normalize_vector(entry.vector)
            if dimension is None:
                dimension = vector.shape[0]
            elif vector.shape[0] != dimension:
                raise DimensionMismatchError(dimension, vector.shape[0])

            vectors.append(vector)
            prepared.append(IndexEntry(entry.chunk_id, vector, dict(entry.metadata)))

        if not vectors:
            return prepared, None
        return prepared, np.vstack(vectors).astype(np.float32)

    @staticmethod
    def _prepare_query(query_vector: np.ndarray, dimension: int) -> np.ndarray:
        """Normalise a query and check it against the searched vectors."""
        query = normalize_vector(query_vector)
        if query.shape[0] != dimension:
            raise DimensionMismatchError(dimension, query.shape[0])
        return query
