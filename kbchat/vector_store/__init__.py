"""Vector store adapters and factory."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from kbchat.config import SUPPORTED_BACKENDS, config
from kbchat.exceptions import ConfigError

from .base import VectorStore
from .faiss_store import FaissVectorStore
from .memory_store import InMemoryVectorStore

if TYPE_CHECKING:
    from pathlib import Path

VectorBackend = Literal["memory", "faiss", "chroma", "pinecone", "lancedb"]


def get_vector_store(  # noqa: PLR0911
    backend: str | None = None,
    *,
    directory: Path | None = None,
    client: Any = None,
) -> VectorStore:
    """Return an unopened vector store for the requested backend.

    Remote backend modules are imported lazily so only the SDK of the chosen
    backend has to load.

    Args:
        backend: Backend name. Defaults to config.VECTOR_BACKEND.
        directory: Data folder for the faiss backend. Defaults to
            config.FAISS_DIR.
        client: Pre-built SDK client or connection for remote backends.

    Returns:
        A store ready for ``initialize``.

    Raises:
        ConfigError: If an unsupported backend is requested.
    """
    name = (backend if backend is not None else config.VECTOR_BACKEND).lower()

    if name == "memory":
        return InMemoryVectorStore()

    if name == "faiss":
        return FaissVectorStore(
            directory=directory if directory is not None else config.FAISS_DIR
        )

    if name == "chroma":
        from .chroma_store import ChromaVectorStore  # noqa: PLC0415

        return ChromaVectorStore(
            host=config.CHROMA_HOST,
            port=config.CHROMA_PORT,
            ssl=config.CHROMA_SSL,
            client=client,
        )

    if name == "pinecone":
        from .pinecone_store import PineconeVectorStore  # noqa: PLC0415

        return PineconeVectorStore(
            api_key=config.get_pinecone_api_key(),
            cloud=config.PINECONE_CLOUD,
            region=config.PINECONE_REGION,
            client=client,
        )

    if name == "lancedb":
        from .lancedb_store import LanceDBVectorStore  # noqa: PLC0415

        return LanceDBVectorStore(
            uri=config.LANCEDB_URI,
            api_key=config.get_lancedb_api_key() or None,
            region=config.LANCEDB_REGION,
            connection=client,
        )

    msg = (
        f"Unsupported vector store backend: {backend}. "
        f"Choose one of: {', '.join(SUPPORTED_BACKENDS)}"
    )
    raise ConfigError("VECTOR_BACKEND", msg)


__all__ = [
    "FaissVectorStore",
    "InMemoryVectorStore",
    "VectorBackend",
    "VectorStore",
    "get_vector_store",
]
