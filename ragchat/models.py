"""Data models for the RAG application."""

import datetime
import enum
import uuid
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any

from .errors import UnsupportedFormatError


def utc_now() -> datetime.datetime:
    """Return the current time as a timezone-aware UTC datetime."""  # noqa: DOC201
    return datetime.datetime.now(tz=datetime.UTC)


def new_session_id() -> str:
    """Generate an opaque server-side session id."""  # noqa: DOC201
    return f"session_{uuid.uuid4().hex}"


class SourceFormat(enum.Enum):
    """Document formats accepted for ingestion."""

    TEXT = "plain-text"
    PDF = "pdf"
    WORD = "word"
    SLIDES = "slide-deck"
    SPREADSHEET = "spreadsheet"

    @classmethod
    def from_filename(cls, filename: str) -> "SourceFormat":
        """Resolve the source format from a file name's extension.

        Returns:
            The matching SourceFormat.

        Raises:
            UnsupportedFormatError: If the extension is not supported.
        """
        suffix = PurePath(filename).suffix.lower()
        try:
            return _EXTENSIONS[suffix]
        except KeyError:
            allowed = ", ".join(sorted(_EXTENSIONS))
            msg = f"Unsupported file type: '{suffix or filename}'. Allowed: {allowed}"
            raise UnsupportedFormatError(msg) from None


_EXTENSIONS: dict[str, SourceFormat] = {
    ".txt": SourceFormat.TEXT,
    ".md": SourceFormat.TEXT,
    ".pdf": SourceFormat.PDF,
    ".docx": SourceFormat.WORD,
    ".pptx": SourceFormat.SLIDES,
    ".xlsx": SourceFormat.SPREADSHEET,
}


class Role(enum.Enum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Document:
    """An ingested document; immutable once recorded."""

    id: str
    filename: str
    source_format: SourceFormat
    ingested_at: datetime.datetime
    chunk_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_id": self.id,
            "filename": self.filename,
            "source_format": self.source_format.value,
            "ingested_at": self.ingested_at.isoformat(),
            "chunk_count": self.chunk_count,
        }


@dataclass(frozen=True)
class Chunk:
    """Represents a chunk of text from a document."""

    id: str
    document_id: str
    text: str
    position: int
    page_number: int | None = None
    start_char: int = 0
    end_char: int = 0

    @staticmethod
    def make_id(document_id: str, position: int) -> str:
        return f"{document_id}:{position}"


@dataclass(frozen=True)
class Citation:
    """A retrieved chunk plus its source metadata, attached to an answer."""

    chunk_id: str
    document_id: str
    filename: str
    text: str
    relevance_score: float
    page_number: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.text,
            "filename": self.filename,
            "page": self.page_number,
            "relevance_score": self.relevance_score,
        }


@dataclass(frozen=True)
class Turn:
    """Represents a single message in a conversation session."""

    role: Role
    content: str
    timestamp: datetime.datetime = field(default_factory=utc_now)
    citations: tuple[Citation, ...] = ()

    def __post_init__(self) -> None:
        if self.citations and self.role is not Role.ASSISTANT:
            msg = "Only assistant turns may carry citations"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "sources": [citation.to_dict() for citation in self.citations],
        }


@dataclass(frozen=True)
class KnowledgeBaseStats:
    """Counters reported by ``RAGPipeline.get_stats``."""

    document_count: int
    chunk_count: int
    session_count: int
