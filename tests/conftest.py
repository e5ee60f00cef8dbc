"""Test configuration and fixtures for KBChat tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Mock services and API responses
- EmbeddingService and CompletionStreamer fixtures
- Text processing fixtures
- Vector store fixtures
- Knowledge-base and pipeline factories
"""

import hashlib
from pathlib import Path
from unittest.mock import Mock, patch

import numpy as np
import pytest
from openai import OpenAIError

from kbchat import (
    Chunk,
    CompletionStreamer,
    ConversationManager,
    EmbeddedChunk,
    EmbeddingService,
    KnowledgeBaseIngestor,
    RAGChatbot,
    RAGPipeline,
    StoredRecord,
    TextChunker,
)
from kbchat.vector_store import FaissVectorStore, InMemoryVectorStore


class TestConstants:
    """Centralized test constants to avoid repetition across test files.

    All test constants are defined here to maintain consistency across
    the test suite and make it easy to update values globally.
    """

    # API Configuration
    TEST_API_KEY = "test-key"
    TEST_OPENAI_MODEL = "text-embedding-3-small"
    TEST_CHAT_MODEL = "gpt-4o-mini"
    DEFAULT_EMBEDDING_DIMENSION = 64
    COLLECTION_NAME = "test-documents"

    # Text Chunking Configuration
    SMALL_CHUNK_SIZE = 100
    SMALL_CHUNK_OVERLAP = 20
    DEFAULT_CHUNK_SIZE = 500
    DEFAULT_CHUNK_OVERLAP = 100


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Generates deterministic embeddings based on text content hash,
    ensuring consistent test results across runs.
    """

    def __init__(
        self, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> None:
        """Initialize mock embedding service.

        Args:
            dimension: Dimensionality of generated embeddings.
        """
        self.dimension = dimension
        self.batch_calls: list[list[str]] = []

    def get_embedding(self, text: str) -> np.ndarray:
        """Generate deterministic mock embedding based on text hash."""
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return (embedding / np.linalg.norm(embedding)).astype(np.float32)

    def get_embeddings_batch(
        self,
        texts: list[str],
        batch_size: int = 100,  # noqa: ARG002
    ) -> list[np.ndarray]:
        """Generate batch of mock embeddings."""
        self.batch_calls.append(list(texts))
        return [self.get_embedding(text) for text in texts]


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


def create_stream_chunk(content: str | None) -> Mock:
    """Create one mock chat-completion stream chunk.

    Args:
        content: Delta content carried by the chunk.

    Returns:
        Mock object shaped like a ``ChatCompletionChunk``.
    """
    return Mock(choices=[Mock(delta=Mock(content=content))])


class FakeStream:
    """Iterable stand-in for an OpenAI ``Stream`` that records closing."""

    def __init__(self, contents: list[str | None], error: Exception | None = None):
        self._chunks = [create_stream_chunk(content) for content in contents]
        self._error = error
        self.closed = False

    def __iter__(self):
        yield from self._chunks
        if self._error is not None:
            raise self._error

    def prepend_empty_chunk(self) -> None:
        """Add a leading chunk with no choices, as sent with usage stats."""
        self._chunks.insert(0, Mock(choices=[]))

    def close(self) -> None:
        self.closed = True


class FakeStreamer:
    """CompletionStreamer double yielding canned fragments."""

    def __init__(
        self,
        fragments: list[str] | None = None,
        error: Exception | None = None,
        model: str = TestConstants.TEST_CHAT_MODEL,
    ) -> None:
        self.fragments = fragments if fragments is not None else ["Test ", "response"]
        self.error = error
        self.model = model
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def stream_completion(self, system_prompt: str, user_message: str):
        self.calls.append((system_prompt, user_message))
        try:
            yield from self.fragments
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


@pytest.fixture
def openai_embeddings_api_mock():
    """Base fixture that patches OpenAI embeddings.create method.

    This is the foundation fixture that others can build upon.
    Returns the mock object directly without any pre-configuration.
    """
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


@pytest.fixture
def openai_embeddings_factory(openai_embeddings_api_mock):
    """Factory for creating OpenAI embeddings API mocks with different scenarios."""

    def _create_mock(  # noqa: ANN202
        scenario="single_success",
        embeddings=None,
        error_message="API Error",
    ):
        """Create a mock based on scenario type.

        Args:
            scenario: Type of mock ('single_success', 'batch_success', 'error',
                'multiple_batches')
            embeddings: Custom embeddings to return, or None for defaults
            error_message: Custom error message for error scenarios
        """
        openai_embeddings_api_mock.reset_mock()
        openai_embeddings_api_mock.side_effect = None
        openai_embeddings_api_mock.return_value = None

        if scenario == "single_success":
            mock_embedding = embeddings or [0.1, 0.2, 0.3, 0.4, 0.5]
            openai_embeddings_api_mock.return_value = create_mock_openai_response([
                mock_embedding
            ])
        elif scenario == "batch_success":
            mock_embeddings = embeddings or [
                [0.1, 0.2, 0.3],
                [0.4, 0.5, 0.6],
                [0.7, 0.8, 0.9],
            ]
            openai_embeddings_api_mock.return_value = create_mock_openai_response(
                mock_embeddings
            )
        elif scenario == "error":
            openai_embeddings_api_mock.side_effect = OpenAIError(error_message)
        elif scenario == "multiple_batches":
            openai_embeddings_api_mock.side_effect = [
                create_mock_openai_response([[0.1, 0.2], [0.3, 0.4]]),
                create_mock_openai_response([[0.5, 0.6], [0.7, 0.8]]),
            ]

        return openai_embeddings_api_mock

    return _create_mock


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
    return embedding_service_factory()


@pytest.fixture
def completion_streamer():
    """CompletionStreamer with a test API key and pinned model settings."""
    return CompletionStreamer(
        api_key=TestConstants.TEST_API_KEY,
        model=TestConstants.TEST_CHAT_MODEL,
        temperature=0.7,
        max_tokens=1000,
    )


@pytest.fixture
def fake_stream_factory():
    """Factory for FakeStream objects returned by a patched ``create``."""
    return FakeStream


@pytest.fixture
def fake_streamer_factory():
    """Factory for FakeStreamer doubles injected into RAGChatbot."""
    return FakeStreamer


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

    def _create_chunker(
        name: str = "default",
        *,
        chunk_size: int | None = None,
        overlap: int | None = None,
    ) -> TextChunker:
        preset_chunk_size, preset_overlap = presets[name]
        return TextChunker(
            chunk_size=preset_chunk_size if chunk_size is None else chunk_size,
            overlap=preset_overlap if overlap is None else overlap,
        )

    return _create_chunker


@pytest.fixture
def text_chunker_small(text_chunker_factory):
    """Text chunker configured for small chunks (100/20)."""
    return text_chunker_factory("small")


@pytest.fixture
def text_chunker_default(text_chunker_factory):
    """Text chunker configured with default settings (500/100)."""
    return text_chunker_factory("default")


@pytest.fixture(scope="session")
def mock_embedding_service():
    """Pre-configured MockEmbeddingService for consistent test embeddings."""
    return MockEmbeddingService()


@pytest.fixture
def mock_embeddings(mock_embedding_service):
    """Factory function to create mock embeddings using the service."""

    def _create_mock_embedding(text: str) -> np.ndarray:
        return mock_embedding_service.get_embedding(text)

    return _create_mock_embedding


@pytest.fixture
def sample_records(mock_embeddings):
    """Stored records with hash-seeded embeddings across two categories."""
    texts = [
        ("ml", "Machine learning is a subset of artificial intelligence."),
        ("ml", "Neural networks are computational models inspired by the brain."),
        ("ml", "Deep learning uses multiple layers to learn complex patterns."),
        ("data", "Supervised learning uses labeled training data."),
        ("data", "Unsupervised learning finds patterns in unlabeled data."),
    ]
    records = []
    for i, (category, text) in enumerate(texts):
        chunk = Chunk(
            id=f"doc{i // 3}-{i:05d}",
            text=text,
            category=category,
            source_path=f"{category}/doc_{i // 3}.md",
            sequence_index=i,
            start_char=0,
            end_char=len(text),
        )
        records.append(
            StoredRecord.from_embedded_chunk(
                EmbeddedChunk(chunk=chunk, vector=mock_embeddings(text))
            )
        )
    return records


@pytest.fixture
def memory_store():
    """Opened in-memory vector store."""
    return InMemoryVectorStore().initialize(
        TestConstants.COLLECTION_NAME, TestConstants.DEFAULT_EMBEDDING_DIMENSION
    )


@pytest.fixture
def temp_faiss_store(tmp_path):
    """Opened FAISS vector store backed by temporary files."""
    return FaissVectorStore(directory=tmp_path / "faiss").initialize(
        TestConstants.COLLECTION_NAME, TestConstants.DEFAULT_EMBEDDING_DIMENSION
    )


@pytest.fixture
def knowledge_base_factory(tmp_path):
    """Factory writing ``{"category/file.md": text}`` into a temp knowledge base."""

    def _create_knowledge_base(files: dict[str, str]) -> Path:
        root = tmp_path / "knowledge-base"
        root.mkdir(exist_ok=True)
        for relative_path, text in files.items():
            path = root / relative_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return root

    return _create_knowledge_base


@pytest.fixture
def sky_knowledge_base(knowledge_base_factory):
    """Single-document knowledge base stating the colour of the sky."""
    return knowledge_base_factory({"facts/sky.md": "The sky is blue."})


@pytest.fixture
def rag_pipeline_factory():
    """Factory for RAGPipeline instances over a memory store and mock embeddings."""

    def _create_pipeline(
        root: Path,
        *,
        vector_store=None,
        embedding_service=None,
        chunk_size: int = 200,
        overlap: int = 50,
        batch_size: int = 100,
    ) -> RAGPipeline:
        return RAGPipeline(
            embedding_service=embedding_service or MockEmbeddingService(),
            vector_store=vector_store or InMemoryVectorStore(),
            ingestor=KnowledgeBaseIngestor(root=root),
            chunker=TextChunker(chunk_size=chunk_size, overlap=overlap),
            collection_name=TestConstants.COLLECTION_NAME,
            batch_size=batch_size,
            batch_pause=0.0,
        )

    return _create_pipeline


@pytest.fixture
def chatbot_factory(rag_pipeline_factory):
    """Factory for an initialized RAGChatbot with a fake streamer."""

    def _create_chatbot(
        root: Path,
        streamer: FakeStreamer | None = None,
        *,
        initialize: bool = True,
        max_turns: int = 20,
    ) -> RAGChatbot:
        pipeline = rag_pipeline_factory(root)
        if initialize:
            pipeline.initialize()
        return RAGChatbot(
            pipeline,
            conversation=ConversationManager(max_turns=max_turns),
            streamer=streamer or FakeStreamer(),
            top_k=4,
        )

    return _create_chatbot
