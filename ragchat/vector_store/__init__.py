"""Vector index backends and factory."""

from __future__ import annotations

from typing import Literal

from ragchat.config import config

from .base import IndexEntry, SearchHit, VectorIndex
from .faiss_store import FaissVectorIndex
from .numpy_store import NumpyVectorIndex

VectorBackend = Literal["faiss", "numpy"]


def get_vector_index(
    backend: VectorBackend | str | None = None,
    *,
    raw_top_k_multiplier: int | None = None,
) -> VectorIndex:
    """Return a configured, empty vector index.

    Raises:
        ValueError: If an unsupported backend is requested.
    """
    backend_value = (backend or config.VECTOR_BACKEND).lower()

    if backend_value == "faiss":
        return FaissVectorIndex(
            raw_top_k_multiplier=(
                raw_top_k_multiplier
                if raw_top_k_multiplier is not None
                else config.VECTOR_RAW_TOP_K_MULTIPLIER
            ),
        )

    if backend_value == "numpy":
        return NumpyVectorIndex()

    msg = f"Unsupported vector store backend: {backend}"
    raise ValueError(msg)


__all__ = [
    "FaissVectorIndex",
    "IndexEntry",
    "NumpyVectorIndex",
    "SearchHit",
    "VectorBackend",
    "VectorIndex",
    "get_vector_index",
]
