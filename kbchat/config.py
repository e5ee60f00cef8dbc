"""Configuration management for KBChat."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from .exceptions import ConfigError

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)

PLACEHOLDER_PREFIXES = ("your-", "your_", "sk-your")
SUPPORTED_BACKENDS = ("memory", "faiss", "chroma", "pinecone", "lancedb")


def is_placeholder(value: str | None) -> bool:
    """Check whether a credential is empty or an obvious template value.

    Returns:
        True if the value is missing or looks like a placeholder.
    """
    if not value or not value.strip():
        return True
    return value.strip().lower().startswith(PLACEHOLDER_PREFIXES)


class Config:
    """Application configuration loaded from environment variables."""

    # OpenAI Configuration
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Get OpenAI API key from environment variables.

        Returns:
            OpenAI API key from environment or empty string if not set.
        """
        return os.getenv("OPENAI_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    KNOWLEDGE_BASE_DIR: Path = Path(os.getenv("KNOWLEDGE_BASE_DIR", "knowledge-base"))

    # Chunking Configuration
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "1000"))
    CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "200"))

    # Embedding Configuration
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_DIMENSION: int = int(os.getenv("EMBEDDING_DIMENSION", "1536"))
    EMBEDDING_BATCH_SIZE: int = int(os.getenv("EMBEDDING_BATCH_SIZE", "100"))
    EMBEDDING_BATCH_PAUSE: float = float(os.getenv("EMBEDDING_BATCH_PAUSE", "0.1"))

    # Chat Model Configuration
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gpt-4o-mini")
    CHAT_MAX_TOKENS: int = int(os.getenv("CHAT_MAX_TOKENS", "1000"))
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.7"))

    # Conversation Configuration
    HISTORY_MAX_TURNS: int = int(os.getenv("HISTORY_MAX_TURNS", "20"))
    RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", "4"))

    # Vector Store Configuration
    VECTOR_BACKEND: str = os.getenv("VECTOR_BACKEND", "memory").lower()
    COLLECTION_NAME: str = os.getenv("COLLECTION_NAME", "rag-documents")
    FAISS_DIR: Path = Path(os.getenv("FAISS_DIR", "data/faiss"))

    CHROMA_HOST: str = os.getenv("CHROMA_HOST", "localhost")
    CHROMA_PORT: int = int(os.getenv("CHROMA_PORT", "8000"))
    CHROMA_SSL: bool = os.getenv("CHROMA_SSL", "false").lower() in {"1", "true", "yes"}

    @classmethod
    def get_pinecone_api_key(cls) -> str:
        """Get Pinecone API key from environment variables.

        Returns:
            Pinecone API key or empty string if not set.
        """
        return os.getenv("PINECONE_API_KEY", "")

    PINECONE_CLOUD: str = os.getenv("PINECONE_CLOUD", "aws")
    PINECONE_REGION: str = os.getenv("PINECONE_REGION", "us-east-1")

    LANCEDB_URI: str = os.getenv("LANCEDB_URI", "data/lancedb")
    LANCEDB_REGION: str = os.getenv("LANCEDB_REGION", "us-east-1")

    @classmethod
    def get_lancedb_api_key(cls) -> str:
        """Get LanceDB Cloud API key from environment variables.

        Returns:
            LanceDB API key or empty string if not set.
        """
        return os.getenv("LANCEDB_API_KEY", "")

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "KBChat/1.0")

    @classmethod
    def validate(cls, backend: str | None = None) -> None:
        """Validate required configuration values.

        Args:
            backend: Vector backend to validate credentials for. Defaults to
                VECTOR_BACKEND.

        Raises:
            ConfigError: If a required credential is missing or a placeholder,
                or the backend is unknown.
        """
        if is_placeholder(cls.get_openai_api_key()):
            msg = (
                "OPENAI_API_KEY is required. Please set it in .env file or environment."
            )
            raise ConfigError("OPENAI_API_KEY", msg)

        backend = (backend or cls.VECTOR_BACKEND).lower()
        if backend not in SUPPORTED_BACKENDS:
            msg = (
                f"Unsupported vector store backend: {backend}. "
                f"Choose one of: {', '.join(SUPPORTED_BACKENDS)}"
            )
            raise ConfigError("VECTOR_BACKEND", msg)

        if backend == "pinecone" and is_placeholder(cls.get_pinecone_api_key()):
            msg = "PINECONE_API_KEY is required for the pinecone backend."
            raise ConfigError("PINECONE_API_KEY", msg)

        if (
            backend == "lancedb"
            and cls.is_remote_lancedb()
            and is_placeholder(cls.get_lancedb_api_key())
        ):
            msg = "LANCEDB_API_KEY is required for LanceDB Cloud URIs (db://...)."
            raise ConfigError("LANCEDB_API_KEY", msg)

    @classmethod
    def is_remote_lancedb(cls) -> bool:
        """Check if LANCEDB_URI points at LanceDB Cloud.

        Returns:
            True for db:// URIs.
        """
        return cls.LANCEDB_URI.startswith("db://")

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment.

        Returns:
            True if environment is development.
        """
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment.

        Returns:
            True if environment is production.
        """
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def setup_logging(cls) -> None:
        """Setup basic logging configuration.

        Configure logging once at application startup with:
        - Console output for all levels
        - Simple, readable format
        - Configurable level via environment variable
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        # HTTP clients used by the SDKs share the OpenAI level
        third_party_level = getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        for name in ("openai", "httpx"):
            logging.getLogger(name).setLevel(third_party_level)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger with the specified name.

        Args:
            name: Logger name (typically __name__)

        Returns:
            Logger instance
        """
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Build default headers for outbound OpenAI calls.

        Returns:
            Mapping of header names to values used on outbound HTTP requests.
        """
        headers: dict[str, str] = {}

        if cls.API_USER_AGENT:
            headers["User-Agent"] = cls.API_USER_AGENT

        return headers


config = Config()
