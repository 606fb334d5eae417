"""Error taxonomy surfaced by the RAG core.

Every error carries a ``kind`` string so a presentation layer can tell, for
example, "no documents matched" apart from "the model is unavailable" without
parsing messages.
"""


class RAGError(Exception):
    """Base class for all errors raised by the RAG core."""

    kind = "RAGError"


class DimensionMismatchError(RAGError, ValueError):
    """An embedding's length differs from the index dimensionality."""

    kind = "DimensionMismatch"

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension {actual} does not match index dimension {expected}"
        )


class EmbeddingUnavailableError(RAGError):
    """The embedding capability failed or timed out."""

    kind = "EmbeddingUnavailable"


class GenerationFailedError(RAGError):
    """The completion capability failed, timed out, or returned nothing."""

    kind = "GenerationFailed"


class RetrievalFailedError(RAGError):
    """Context retrieval for a question could not be completed."""

    kind = "RetrievalFailed"


class UnsupportedFormatError(RAGError, ValueError):
    """The uploaded file type is not one of the supported source formats."""

    kind = "UnsupportedFormat"


class CorruptDocumentError(RAGError):
    """The document could not be parsed or holds no extractable text."""

    kind = "CorruptDocument"


class UnknownSessionError(RAGError, KeyError):
    """A transcript was requested for a session without any turns."""

    kind = "UnknownSession"

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"No conversation turns recorded for session '{session_id}'")

    def __str__(self) -> str:
        return str(self.args[0])
