"""KBChat - terminal RAG chatbot over a folder of documents."""

from .chatbot import APOLOGY, RAGChatbot
from .completion import CompletionStreamer
from .conversation import ConversationManager
from .document_processing import DocumentLoader, KnowledgeBaseIngestor, TextChunker
from .embeddings import EmbeddingService
from .exceptions import (
    CompletionError,
    ConfigError,
    EmbeddingError,
    IngestionWarning,
    KBChatError,
    SchemaError,
    VectorStoreConnectionError,
)
from .models import (
    Chunk,
    ConversationTurn,
    Document,
    EmbeddedChunk,
    Prompt,
    RetrievalResult,
    StoredRecord,
)
from .pipeline import RAGPipeline
from .vector_store import VectorStore, get_vector_store

__all__ = [
    "APOLOGY",
    "Chunk",
    "CompletionError",
    "CompletionStreamer",
    "ConfigError",
    "ConversationManager",
    "ConversationTurn",
    "Document",
    "DocumentLoader",
    "EmbeddedChunk",
    "EmbeddingError",
    "EmbeddingService",
    "IngestionWarning",
    "KBChatError",
    "KnowledgeBaseIngestor",
    "Prompt",
    "RAGChatbot",
    "RAGPipeline",
    "RetrievalResult",
    "SchemaError",
    "StoredRecord",
    "TextChunker",
    "VectorStore",
    "VectorStoreConnectionError",
    "get_vector_store",
]
