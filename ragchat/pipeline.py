"""Main RAG pipeline orchestrating ingestion and question answering."""

import enum
import threading
import uuid
from pathlib import Path, PurePath

from .completions import CompletionService
from .config import config
from .conversation import SessionManager
from .document_processing import DocumentLoader, TextChunker
from .document_store import DocumentStore
from .embeddings import EmbeddingService
from .errors import (
    CorruptDocumentError,
    EmbeddingUnavailableError,
    RAGError,
    RetrievalFailedError,
    UnknownSessionError,
)
from .generator import Generator
from .models import (
    Citation,
    Document,
    KnowledgeBaseStats,
    Role,
    SourceFormat,
    Turn,
    utc_now,
)
from .retriever import Retriever
from .vector_store import IndexEntry, VectorIndex, get_vector_index

logger = config.get_logger(__name__)


class AnswerState(enum.Enum):
    """Steps of an ``answer`` request."""

    RETRIEVING = "retrieving"
    GENERATING = "generating"
    RECORDING = "recording"
    DONE = "done"
    FAILED = "failed"


class IngestState(enum.Enum):
    """Steps of an ``ingest`` request."""

    PARSING = "parsing"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    INDEXING = "indexing"
    DONE = "done"
    FAILED = "failed"


class RAGPipeline:
    """Main RAG pipeline: Load -> Split -> Embed -> Store, then Retrieve -> Generate.

    Knowledge-base writes (indexing a document, resetting) are serialised by
    one lock; searches never take it. Session history is isolated per session
    id by the SessionManager.
    """

    def __init__(  # noqa: PLR0913
        self,
        openai_api_key: str | None = None,
        chunk_size: int | None = None,
        overlap: int | None = None,
        vector_backend: str | None = None,
        *,
        embedding_service: EmbeddingService | None = None,
        completion_service: CompletionService | None = None,
        vector_index: VectorIndex | None = None,
        document_store: DocumentStore | None = None,
        session_manager: SessionManager | None = None,
        top_k: int | None = None,
        min_score: float | None = None,
        history_max_turns: int | None = None,
        query_rewrite: bool | None = None,
    ) -> None:
        """Initialize RAG pipeline.

        Args:
            openai_api_key: OpenAI API key for the default services.
            chunk_size: Size of text chunks. If None, uses config.CHUNK_SIZE.
            overlap: Overlap between chunks. If None, uses config.CHUNK_OVERLAP.
            vector_backend: Which vector index backend to use ("faiss" |
                "numpy"). Defaults to config.VECTOR_BACKEND.
            embedding_service: Embedding capability; built from the API key
                when omitted.
            completion_service: Completion capability; built from the API key
                when omitted.
            vector_index: Pre-built vector index, overriding vector_backend.
            document_store: Document registry; a fresh one when omitted.
            session_manager: Session history; a fresh one when omitted.
            top_k: Passages fetched per question. If None, uses
                config.RETRIEVAL_TOP_K.
            min_score: Relevance floor. If None, uses config.RETRIEVAL_MIN_SCORE.
            history_max_turns: Transcript window sent to the model. If None,
                uses config.HISTORY_MAX_TURNS.
            query_rewrite: Rewrite follow-up questions before retrieval. If
                None, uses config.QUERY_REWRITE_ENABLED.
        """
        if chunk_size is None:
            chunk_size = config.CHUNK_SIZE
        if overlap is None:
            overlap = config.CHUNK_OVERLAP

        self.chunker = TextChunker(chunk_size=chunk_size, overlap=overlap)
        self.embedding_service = embedding_service or EmbeddingService(
            api_key=openai_api_key
        )
        completion_service = completion_service or CompletionService(
            api_key=openai_api_key
        )
        self.vector_index = vector_index or get_vector_index(vector_backend)
        self.document_store = document_store or DocumentStore()
        self.session_manager = session_manager or SessionManager()
        self.retriever = Retriever(
            self.embedding_service, self.vector_index, self.document_store
        )
        self.generator = Generator(completion_service)

        self.top_k = top_k if top_k is not None else config.RETRIEVAL_TOP_K
        self.min_score = (
            min_score if min_score is not None else config.RETRIEVAL_MIN_SCORE
        )
        self.history_max_turns = (
            history_max_turns
            if history_max_turns is not None
            else config.HISTORY_MAX_TURNS
        )
        self.query_rewrite = (
            query_rewrite if query_rewrite is not None else config.QUERY_REWRITE_ENABLED
        )

        self._kb_lock = threading.Lock()
        logger.info("Using %s vector index", self.vector_index.backend)

    # Ingestion

    def ingest(self, filename: str, raw_bytes: bytes) -> Document:
        """Process a document through the complete ingestion pipeline.

        The document is indexed completely or not at all; failures and
        interruptions roll back anything already written.

        Returns:
            The recorded Document.

        Raises:
            CorruptDocumentError: If the document holds no extractable text.
        """
        filename = PurePath(filename).name
        document_id = uuid.uuid4().hex
        state = IngestState.PARSING
        logger.info("Starting ingestion of %s as %s", filename, document_id)

        try:
            source_format = SourceFormat.from_filename(filename)
            extracted = DocumentLoader.extract(raw_bytes, source_format)

            state = IngestState.CHUNKING
            chunks = self.chunker.chunk_document(
                extracted.text, document_id, extracted.page_starts
            )
            if not chunks:
                msg = f"{filename} contains no extractable text"
                raise CorruptDocumentError(msg)

            state = IngestState.EMBEDDING
            embeddings = self.embedding_service.get_embeddings_batch(
                [chunk.text for chunk in chunks]
            )
            if len(embeddings) != len(chunks):
                msg = f"Expected {len(chunks)} embeddings, got {len(embeddings)}"
                raise EmbeddingUnavailableError(msg)

            state = IngestState.INDEXING
            document = Document(
                id=document_id,
                filename=filename,
                source_format=source_format,
                ingested_at=utc_now(),
                chunk_count=len(chunks),
            )
            entries = [
                IndexEntry(
                    chunk_id=chunk.id,
                    vector=embedding,
                    metadata={"document_id": document_id, "position": chunk.position},
                )
                for chunk, embedding in zip(chunks, embeddings, strict=True)
            ]
            with self._kb_lock:
                try:
                    self.vector_index.insert_batch(entries)
                    self.document_store.add(document, chunks)
                except BaseException:
                    self._purge_document(document_id)
                    raise
        except RAGError as exc:
            logger.error(  # noqa: TRY400
                "Ingestion of %s: %s -> %s: %s (%s)",
                filename,
                state.value,
                IngestState.FAILED.value,
                exc,
                exc.kind,
            )
            raise

        logger.info(
            "Document %s ingested: %d chunks (%s)",
            filename,
            document.chunk_count,
            IngestState.DONE.value,
        )
        return document

    def ingest_file(self, file_path: Path) -> Document:
        """Read a document from disk and ingest it.

        Returns:
            The recorded Document.
        """
        return self.ingest(file_path.name, file_path.read_bytes())

    def _purge_document(self, document_id: str) -> None:
        self.document_store.remove(document_id)
        self.vector_index.delete(document_id)
        logger.warning("Rolled back partially indexed document %s", document_id)

    # Question answering

    def _retrieve(self, question: str, transcript: list[Turn]) -> list[Citation]:
        query = question
        if self.query_rewrite and transcript:
            query = self.generator.rewrite_query(question, transcript)
        return self.retriever.retrieve(query, self.top_k, self.min_score)

    def answer(
        self,
        question: str,
        session_id: str,
        use_rag: bool = True,  # noqa: FBT001, FBT002
    ) -> Turn:
        """Answer a question with optional retrieval and record the exchange.

        Returns:
            The assistant Turn, carrying the citations used as context.

        Raises:
            ValueError: If the question is empty.
            RetrievalFailedError: If context retrieval fails while use_rag is on.
        """
        if not question.strip():
            msg = "Question must not be empty"
            raise ValueError(msg)

        user_turn = Turn(role=Role.USER, content=question)
        transcript = self.session_manager.get_transcript(
            session_id, self.history_max_turns
        )
        citations: list[Citation] = []
        state = AnswerState.GENERATING

        try:
            if use_rag:
                state = AnswerState.RETRIEVING
                try:
                    citations = self._retrieve(question, transcript)
                except RAGError as exc:
                    msg = f"Could not retrieve context: {exc}"
                    raise RetrievalFailedError(msg) from exc

            state = AnswerState.GENERATING
            result = self.generator.generate(question, citations, transcript, use_rag)

            state = AnswerState.RECORDING
            assistant_turn = Turn(
                role=Role.ASSISTANT,
                content=result.answer_text,
                citations=result.used_citations,
            )
            self.session_manager.append_turns(session_id, [user_turn, assistant_turn])
        except RAGError as exc:
            logger.error(  # noqa: TRY400
                "Answer for session %s: %s -> %s (%s): %s",
                session_id,
                state.value,
                AnswerState.FAILED.value,
                exc.kind,
                exc,
            )
            raise

        logger.info(
            "Answered in session %s with %d citations (%s)",
            session_id,
            len(assistant_turn.citations),
            AnswerState.DONE.value,
        )
        for i, citation in enumerate(assistant_turn.citations):
            logger.debug(
                "  Context %d: %s (score: %.4f)",
                i + 1,
                citation.filename,
                citation.relevance_score,
            )
        return assistant_turn

    # Session and knowledge-base management

    def get_transcript(self, session_id: str) -> list[Turn]:
        """Return the full transcript of a session.

        Returns:
            Turns oldest first.

        Raises:
            UnknownSessionError: If the session has no turns.
        """
        turns = self.session_manager.get_transcript(session_id)
        if not turns:
            raise UnknownSessionError(session_id)
        return turns

    def clear_session(self, session_id: str) -> None:
        self.session_manager.clear(session_id)

    def list_documents(self) -> list[Document]:
        return self.document_store.list_documents()

    def reset_knowledge_base(self) -> None:
        """Remove every document and vector; safe to call repeatedly."""
        with self._kb_lock:
            self.document_store.clear()
            self.vector_index.reset()
        logger.info("Knowledge base reset")

    def get_stats(self) -> KnowledgeBaseStats:
        return KnowledgeBaseStats(
            document_count=self.document_store.document_count,
            chunk_count=self.document_store.chunk_count,
            session_count=len(self.session_manager),
        )
