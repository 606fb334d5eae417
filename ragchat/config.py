"""Configuration management for the RAGChat core."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)

SUPPORTED_VECTOR_BACKENDS = ("faiss", "numpy")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Application configuration loaded from environment variables."""

    # OpenAI Configuration
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Read OPENAI_API_KEY from the environment on each call.

        Returns:
            The key, or an empty string when OPENAI_API_KEY is unset.
        """
        return os.getenv("OPENAI_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")
    OPENAI_TIMEOUT: float = float(os.getenv("OPENAI_TIMEOUT", "30"))
    OPENAI_MAX_RETRIES: int = int(os.getenv("OPENAI_MAX_RETRIES", "2"))

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Ingestion Configuration
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "1000"))
    CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "200"))
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_BATCH_SIZE: int = int(os.getenv("EMBEDDING_BATCH_SIZE", "100"))

    # Chat Model Configuration
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gpt-4.1-nano-2025-04-14")
    CHAT_MAX_TOKENS: int = int(os.getenv("CHAT_MAX_TOKENS", "500"))
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.7"))

    # Query Rewriting Configuration
    QUERY_REWRITE_ENABLED: bool = _env_flag("QUERY_REWRITE_ENABLED")
    QUERY_REWRITE_MAX_TOKENS: int = int(os.getenv("QUERY_REWRITE_MAX_TOKENS", "150"))
    QUERY_REWRITE_TEMPERATURE: float = float(
        os.getenv("QUERY_REWRITE_TEMPERATURE", "0.1")
    )

    # Vector Index Configuration
    VECTOR_BACKEND: str = os.getenv("VECTOR_BACKEND", "faiss").lower()
    VECTOR_RAW_TOP_K_MULTIPLIER: int = int(
        os.getenv("VECTOR_RAW_TOP_K_MULTIPLIER", "2")
    )

    # Retrieval and Prompt Budget Configuration
    RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", "5"))
    RETRIEVAL_MIN_SCORE: float = float(os.getenv("RETRIEVAL_MIN_SCORE", "0.0"))
    HISTORY_MAX_TURNS: int = int(os.getenv("HISTORY_MAX_TURNS", "10"))
    MAX_CONTEXT_CHARS: int = int(os.getenv("MAX_CONTEXT_CHARS", "6000"))

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "RAGChat/1.0")
    API_TEST_HEADER_NAME: str | None = os.getenv(
        "API_TEST_HEADER_NAME",
        "X-RAGChat-Test-Token",
    )
    API_TEST_HEADER_VALUE: str | None = os.getenv(
        "API_TEST_HEADER_VALUE",
        "allow",
    )

    @classmethod
    def validate(cls) -> None:
        """Fail fast on settings the pipeline cannot run with.

        Raises:
            ValueError: If OPENAI_API_KEY is not set, the chunk geometry is
                inconsistent, or the vector backend is unknown.
        """
        if not cls.get_openai_api_key():
            msg = (
                "OPENAI_API_KEY is required. Please set it in .env file or environment."
            )
            raise ValueError(msg)

        if not 0 <= cls.CHUNK_OVERLAP < cls.CHUNK_SIZE:
            msg = (
                f"CHUNK_OVERLAP ({cls.CHUNK_OVERLAP}) must be non-negative and "
                f"smaller than CHUNK_SIZE ({cls.CHUNK_SIZE})."
            )
            raise ValueError(msg)

        if cls.VECTOR_BACKEND not in SUPPORTED_VECTOR_BACKENDS:
            msg = (
                f"VECTOR_BACKEND must be one of {', '.join(SUPPORTED_VECTOR_BACKENDS)}"
                f", got '{cls.VECTOR_BACKEND}'."
            )
            raise ValueError(msg)

    @classmethod
    def is_development(cls) -> bool:
        """True when ENVIRONMENT is 'development' (case-insensitive)."""  # noqa: DOC201
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_production(cls) -> bool:
        """True when ENVIRONMENT is 'production' (case-insensitive)."""  # noqa: DOC201
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def setup_logging(cls) -> None:
        """Configure root logging once, at process start.

        Unknown level names fall back to INFO for the application and WARNING
        for the OpenAI client libraries.
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        # The OpenAI client logs every request through httpx
        third_party_level = getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        for name in ("openai", "httpx"):
            logging.getLogger(name).setLevel(third_party_level)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Return the module logger for `name`."""  # noqa: DOC201
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Headers sent with every OpenAI request.

        Returns:
            The user agent plus the optional test header, when configured.
        """
        headers: dict[str, str] = {}

        if cls.API_USER_AGENT:
            headers["User-Agent"] = cls.API_USER_AGENT

        if cls.API_TEST_HEADER_NAME and cls.API_TEST_HEADER_VALUE:
            headers[cls.API_TEST_HEADER_NAME] = cls.API_TEST_HEADER_VALUE

        return headers


config = Config()
