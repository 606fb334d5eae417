"""Test configuration and fixtures for RAGChat tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Mock capabilities (embeddings and completions)
- OpenAI API response factories
- Chunker, index and store fixtures
- Sample data factories
- Pipeline fixtures
"""

import hashlib
import io
import re
import zipfile
from collections.abc import Sequence
from unittest.mock import Mock, patch

import numpy as np
import pytest

from ragchat import (
    Chunk,
    Citation,
    CompletionService,
    Document,
    DocumentStore,
    EmbeddingService,
    GenerationFailedError,
    RAGPipeline,
    SessionManager,
    SourceFormat,
    TextChunker,
    Turn,
    get_vector_index,
)
from ragchat.models import utc_now

TOKEN_RE = re.compile(r"[a-z0-9]+")


class TestConstants:
    """Centralized test constants to avoid repetition across test files."""

    # API Configuration
    TEST_API_KEY = "test-key"
    TEST_OPENAI_MODEL = "text-embedding-3-small"
    TEST_CHAT_MODEL = "gpt-test"
    DEFAULT_EMBEDDING_DIMENSION = 64

    # Text Chunking Configuration
    SMALL_CHUNK_SIZE = 100
    SMALL_CHUNK_OVERLAP = 20
    DEFAULT_CHUNK_SIZE = 500
    DEFAULT_CHUNK_OVERLAP = 100

    VECTOR_BACKENDS = ("faiss", "numpy")


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Produces bag-of-words vectors by hashing each lowercase token into a
    fixed number of buckets, so texts that share words score higher and all
    scores are non-negative. Results are deterministic across runs.
    """

    def __init__(
        self, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> None:
        self.dimension = dimension
        self.batch_calls: list[list[str]] = []
        self.queries: list[str] = []
        self.error: Exception | None = None

    def _vector(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dimension, dtype=np.float32)
        for token in TOKEN_RE.findall(text.lower()):
            bucket = int.from_bytes(
                hashlib.sha256(token.encode("utf-8")).digest()[:4], byteorder="big"
            )
            vector[bucket % self.dimension] += 1.0
        return vector

    def get_embedding(self, text: str) -> np.ndarray:
        self.queries.append(text)
        if self.error is not None:
            raise self.error
        return self._vector(text)

    def get_embeddings_batch(
        self,
        texts: list[str],
        batch_size: int | None = None,  # noqa: ARG002
    ) -> list[np.ndarray]:
        self.batch_calls.append(list(texts))
        if self.error is not None:
            raise self.error
        return [self._vector(text) for text in texts]


class MockCompletionService:
    """Scripted completion capability that records every prompt it receives."""

    def __init__(self, answers: Sequence[str] = ()) -> None:
        self.answers = list(answers)
        self.calls: list[dict] = []
        self.error: Exception | None = None

    def complete(
        self,
        prompt: str,
        transcript: Sequence[Turn] = (),
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        self.calls.append({
            "prompt": prompt,
            "transcript": list(transcript),
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if self.error is not None:
            raise self.error
        if self.answers:
            return self.answers.pop(0)
        return f"Answer {len(self.calls)}"

    @property
    def last_prompt(self) -> str:
        return self.calls[-1]["prompt"]


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response.

    Args:
        embeddings: List of embedding vectors to return.

    Returns:
        Mock object representing OpenAI embeddings API response.
    """
    mock_response = Mock()
    mock_response.data = [Mock(embedding=emb) for emb in embeddings]
    return mock_response


def create_mock_chat_response(content: str | None) -> Mock:
    """Create a mock OpenAI chat completion response.

    Args:
        content: The content for the chat completion response.

    Returns:
        Mock object representing OpenAI chat completion response.
    """
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content=content))]
    return mock_response


def make_citation(
    text: str,
    score: float,
    filename: str = "doc.txt",
    page_number: int | None = None,
) -> Citation:
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:8]
    return Citation(
        chunk_id=f"doc-{digest}:0",
        document_id=f"doc-{digest}",
        filename=filename,
        text=text,
        relevance_score=score,
        page_number=page_number,
    )


def make_document(
    texts: Sequence[str], document_id: str = "doc1", filename: str = "doc1.txt"
) -> tuple[Document, list[Chunk]]:
    chunks = [
        Chunk(
            id=Chunk.make_id(document_id, i),
            document_id=document_id,
            text=text,
            position=i,
        )
        for i, text in enumerate(texts)
    ]
    document = Document(
        id=document_id,
        filename=filename,
        source_format=SourceFormat.TEXT,
        ingested_at=utc_now(),
        chunk_count=len(chunks),
    )
    return document, chunks


def make_broken_office_package() -> bytes:
    """Build a zip archive whose content-types part is not well-formed XML."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("[Content_Types].xml", "<not xml")
    return buffer.getvalue()


@pytest.fixture
def openai_embeddings_api_mock():
    """Patch OpenAI embeddings.create and hand back the mock."""
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


@pytest.fixture
def embedding_service_factory():
    """Factory for creating EmbeddingService instances with different configurations."""

    def _create_service(api_key=None, model=None):  # noqa: ANN202
        api_key = api_key or TestConstants.TEST_API_KEY
        if model is not None:
            return EmbeddingService(api_key=api_key, model=model)
        return EmbeddingService(api_key=api_key)

    return _create_service


@pytest.fixture
def embedding_service(embedding_service_factory):
    """Default EmbeddingService with test API key for most tests."""
    return embedding_service_factory(model=TestConstants.TEST_OPENAI_MODEL)


@pytest.fixture
def completion_service():
    """CompletionService with a test key and model."""
    return CompletionService(
        api_key=TestConstants.TEST_API_KEY, model=TestConstants.TEST_CHAT_MODEL
    )


@pytest.fixture
def text_chunker_factory():
    """Factory fixture that creates ``TextChunker`` instances on demand."""
    presets: dict[str, tuple[int, int]] = {
        "small": (
            TestConstants.SMALL_CHUNK_SIZE,
            TestConstants.SMALL_CHUNK_OVERLAP,
        ),
        "default": (
            TestConstants.DEFAULT_CHUNK_SIZE,
            TestConstants.DEFAULT_CHUNK_OVERLAP,
        ),
    }

    def _create_chunker(name: str = "default") -> TextChunker:
        try:
            chunk_size, overlap = presets[name]
        except KeyError as exc:
            msg = f"Unknown text chunker preset: {name}"
            raise ValueError(msg) from exc
        return TextChunker(chunk_size=chunk_size, overlap=overlap)

    return _create_chunker


@pytest.fixture
def mock_embedding_service():
    return MockEmbeddingService()


@pytest.fixture
def mock_completion_service():
    return MockCompletionService()


@pytest.fixture(params=TestConstants.VECTOR_BACKENDS)
def vector_index(request):
    """An empty vector index for each supported backend."""
    return get_vector_index(request.param)


@pytest.fixture
def document_store():
    return DocumentStore()


@pytest.fixture
def session_manager():
    return SessionManager()


@pytest.fixture
def sample_citations():
    """Citations in descending relevance order."""
    return [
        make_citation(
            "Machine learning is a subset of artificial intelligence.",
            0.8,
            filename="ml_doc.pdf",
            page_number=2,
        ),
        make_citation(
            "Deep learning uses neural networks with multiple layers.",
            0.7,
            filename="dl_doc.pdf",
        ),
        make_citation(
            "Natural language processing enables machines to understand text.",
            0.6,
            filename="nlp_doc.txt",
        ),
    ]


@pytest.fixture
def rag_pipeline_factory(mock_embedding_service, mock_completion_service):
    """Factory for RAGPipeline instances wired to the mock capabilities."""

    def _create_pipeline(
        vector_backend: str = "numpy",
        chunk_size: int = 200,
        overlap: int = 50,
        **kwargs,
    ) -> RAGPipeline:
        return RAGPipeline(
            chunk_size=chunk_size,
            overlap=overlap,
            vector_backend=vector_backend,
            embedding_service=mock_embedding_service,
            completion_service=mock_completion_service,
            **kwargs,
        )

    return _create_pipeline


@pytest.fixture
def rag_pipeline(rag_pipeline_factory):
    return rag_pipeline_factory()


@pytest.fixture
def failing_completion_service():
    service = MockCompletionService()
    service.error = GenerationFailedError("model offline")
    return service
