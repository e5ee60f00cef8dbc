"""Main RAG pipeline orchestrating ingestion, storage and retrieval."""

import time
from collections.abc import Callable

from .config import config
from .document_processing import KnowledgeBaseIngestor, TextChunker
from .embeddings import EmbeddingService
from .exceptions import VectorStoreConnectionError
from .models import EmbeddedChunk, RetrievalResult, StoredRecord
from .vector_store import VectorStore, get_vector_store

logger = config.get_logger(__name__)


class RAGPipeline:
    """Main RAG pipeline: Load -> Split -> Embed -> Store, then Retrieve."""

    def __init__(  # noqa: PLR0913,PLR0917
        self,
        embedding_service: EmbeddingService | None = None,
        vector_store: VectorStore | None = None,
        ingestor: KnowledgeBaseIngestor | None = None,
        chunker: TextChunker | None = None,
        collection_name: str | None = None,
        batch_size: int | None = None,
        batch_pause: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize RAG pipeline with its collaborators.

        Args:
            embedding_service: Embedder. If None, built from config.
            vector_store: Unopened vector store. If None, uses
                get_vector_store() with config.VECTOR_BACKEND.
            ingestor: Knowledge-base reader. If None, reads
                config.KNOWLEDGE_BASE_DIR.
            chunker: Text splitter. If None, uses config.CHUNK_SIZE and
                config.CHUNK_OVERLAP.
            collection_name: Collection to open. If None, uses
                config.COLLECTION_NAME.
            batch_size: Chunks per embedding call. If None, uses
                config.EMBEDDING_BATCH_SIZE.
            batch_pause: Seconds to wait between batches. If None, uses
                config.EMBEDDING_BATCH_PAUSE.
            sleep: Sleep function used for the pause between batches.
        """
        self.embedding_service = embedding_service or EmbeddingService()
        self.vector_store = vector_store or get_vector_store()
        self.ingestor = ingestor or KnowledgeBaseIngestor()
        self.chunker = chunker or TextChunker(
            chunk_size=config.CHUNK_SIZE, overlap=config.CHUNK_OVERLAP
        )
        self.collection_name = collection_name or config.COLLECTION_NAME
        self.batch_size = batch_size or config.EMBEDDING_BATCH_SIZE
        self.batch_pause = (
            batch_pause if batch_pause is not None else config.EMBEDDING_BATCH_PAUSE
        )
        self._sleep = sleep
        logger.info("Using %s vector storage", self.vector_store.backend)

    def initialize(self) -> int:
        """Open the collection, building the knowledge base if it is empty.

        Returns:
            Number of records in the collection.

        Raises:
            VectorStoreConnectionError: If the backend is unreachable.
            SchemaError: If the collection has a different dimension.
            EmbeddingError: If embedding fails during the initial build.
        """
        self.vector_store.initialize(
            self.collection_name, self.embedding_service.dimension
        )
        existing = self.vector_store.count()
        if existing > 0:
            logger.info(
                "Using existing collection '%s' with %d documents",
                self.collection_name,
                existing,
            )
            return existing

        logger.info("Collection is empty. Building knowledge base...")
        self.build_knowledge_base()
        return self.vector_store.count()

    def build_knowledge_base(self) -> int:
        """Ingest, chunk, embed and store the whole knowledge base.

        Returns:
            Number of chunks stored.

        Raises:
            EmbeddingError: If an embedding batch fails.
        """
        start_time = time.perf_counter()
        documents = self.ingestor.load_documents()
        chunks = self.chunker.chunk_documents(documents)
        if not chunks:
            logger.warning("No documents to add to vector store")
            return 0

        total_batches = (len(chunks) + self.batch_size - 1) // self.batch_size
        logger.info(
            "Adding %d chunks in %d batches of up to %d",
            len(chunks),
            total_batches,
            self.batch_size,
        )
        for batch_number, i in enumerate(range(0, len(chunks), self.batch_size), 1):
            batch = chunks[i : i + self.batch_size]
            vectors = self.embedding_service.get_embeddings_batch(
                [chunk.text for chunk in batch], batch_size=len(batch)
            )
            records = [
                StoredRecord.from_embedded_chunk(EmbeddedChunk(chunk=chunk, vector=vector))
                for chunk, vector in zip(batch, vectors, strict=True)
            ]
            self.vector_store.upsert_batch(records)
            logger.info("Processed batch %d/%d", batch_number, total_batches)
            if batch_number < total_batches and self.batch_pause > 0:
                self._sleep(self.batch_pause)

        categories = sorted({chunk.category for chunk in chunks})
        logger.info(
            "Stored %d chunks from %d documents (%s) in %.2fs",
            len(chunks),
            len(documents),
            ", ".join(categories),
            time.perf_counter() - start_time,
        )
        return len(chunks)

    def rebuild(self) -> int:
        """Drop every stored record and build the knowledge base again.

        Returns:
            Number of chunks stored.
        """
        logger.info("Rebuilding knowledge base...")
        self.vector_store.delete_all()
        return self.build_knowledge_base()

    def retrieve(self, question: str, top_k: int | None = None) -> list[RetrievalResult]:
        """Embed a question and fetch the nearest chunks.

        Args:
            question: The input question to query.
            top_k: Number of results. If None, uses config.RETRIEVAL_TOP_K.

        Returns:
            Results ordered by decreasing similarity; empty if the store
            cannot be reached.

        Raises:
            EmbeddingError: If the question cannot be embedded.
        """
        limit = top_k if top_k is not None else config.RETRIEVAL_TOP_K
        query_embedding = self.embedding_service.get_embedding(question)
        try:
            results = self.vector_store.query(query_embedding, limit)
        except VectorStoreConnectionError:
            logger.exception("Error searching documents")
            return []
        logger.info("Retrieved %d chunks", len(results))
        return results

    def document_count(self) -> int | None:
        """Return the stored record count.

        Returns:
            The count, or None if it cannot be fetched.
        """
        try:
            return self.vector_store.count()
        except (VectorStoreConnectionError, RuntimeError):
            logger.exception("Error fetching document count")
            return None
