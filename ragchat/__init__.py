"""RAGChat - retrieval-augmented question answering over uploaded documents."""

from .completions import CompletionService
from .conversation import SessionManager
from .document_processing import DocumentLoader, ExtractedText, TextChunker
from .document_store import DocumentStore
from .embeddings import EmbeddingService
from .errors import (
    CorruptDocumentError,
    DimensionMismatchError,
    EmbeddingUnavailableError,
    GenerationFailedError,
    RAGError,
    RetrievalFailedError,
    UnknownSessionError,
    UnsupportedFormatError,
)
from .generator import GenerationResult, Generator
from .models import (
    Chunk,
    Citation,
    Document,
    KnowledgeBaseStats,
    Role,
    SourceFormat,
    Turn,
    new_session_id,
)
from .pipeline import AnswerState, IngestState, RAGPipeline
from .retriever import Retriever
from .vector_store import (
    FaissVectorIndex,
    NumpyVectorIndex,
    VectorIndex,
    get_vector_index,
)

__all__ = [
    "AnswerState",
    "Chunk",
    "Citation",
    "CompletionService",
    "CorruptDocumentError",
    "DimensionMismatchError",
    "Document",
    "DocumentLoader",
    "DocumentStore",
    "EmbeddingService",
    "EmbeddingUnavailableError",
    "ExtractedText",
    "FaissVectorIndex",
    "GenerationFailedError",
    "GenerationResult",
    "Generator",
    "IngestState",
    "KnowledgeBaseStats",
    "NumpyVectorIndex",
    "RAGError",
    "RAGPipeline",
    "RetrievalFailedError",
    "Retriever",
    "Role",
    "SessionManager",
    "SourceFormat",
    "TextChunker",
    "Turn",
    "UnknownSessionError",
    "UnsupportedFormatError",
    "VectorIndex",
    "get_vector_index",
    "new_session_id",
]
