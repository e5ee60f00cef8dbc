"""ChromaDB server-backed vector storage."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import chromadb
from chromadb.errors import NotFoundError

from kbchat.config import config
from kbchat.exceptions import VectorStoreConnectionError
from kbchat.models import RetrievalResult
from kbchat.vector_store.base import VectorStore

if TYPE_CHECKING:
    from collections.abc import Sequence

    import numpy as np

    from kbchat.models import StoredRecord

logger = config.get_logger(__name__)

COLLECTION_METADATA = {
    "hnsw:space": "cosine",
    "description": "RAG chatbot document embeddings",
}


class ChromaVectorStore(VectorStore):
    """Vector storage in a remote Chroma collection using cosine distance."""

    backend = "chroma"

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8000,
        *,
        ssl: bool = False,
        client: Any = None,
    ) -> None:
        """Configure the Chroma connection.

        Args:
            host: Chroma server host.
            port: Chroma server port.
            ssl: Whether to use HTTPS.
            client: Pre-built Chroma client, used instead of connecting.
        """
        super().__init__()
        self.host = host
        self.port = port
        self.ssl = ssl
        self.client = client
        self.collection: Any = None

    def describe(self) -> str:
        """Return the connection target.

        Returns:
            Server URL.
        """
        scheme = "https" if self.ssl else "http"
        return f"{scheme}://{self.host}:{self.port}"

    def _open(self, collection_name: str, dimension: int) -> None:  # noqa: ARG002
        try:
            if self.client is None:
                self.client = chromadb.HttpClient(
                    host=self.host, port=self.port, ssl=self.ssl
                )
            self.client.heartbeat()
        except Exception as e:
            logger.exception("ChromaDB connection failed at %s", self.describe())
            msg = f"Cannot reach ChromaDB at {self.describe()}: {e}"
            raise VectorStoreConnectionError(msg) from e
        logger.info("Connected to ChromaDB at %s", self.describe())

        self._open_collection()
        try:
            stored = self._stored_dimension()
        except Exception as e:
            msg = f"Cannot read ChromaDB collection '{self.collection_name}': {e}"
            raise VectorStoreConnectionError(msg) from e
        self._check_existing_dimension(stored)

    def _open_collection(self) -> None:
        try:
            self.collection = self.client.get_or_create_collection(
                name=self.collection_name,
                metadata=COLLECTION_METADATA,
            )
        except Exception as e:
            logger.exception("Error opening collection '%s'", self.collection_name)
            msg = f"Cannot open ChromaDB collection '{self.collection_name}': {e}"
            raise VectorStoreConnectionError(msg) from e

    def _stored_dimension(self) -> int | None:
        """Peek at one stored embedding to learn the collection's dimension.

        Returns:
            Dimension of a stored vector, or None for an empty collection.
        """
        if self.collection.count() == 0:
            return None
        sample = self.collection.get(limit=1, include=["embeddings"])
        embeddings = sample.get("embeddings")
        if embeddings is None or len(embeddings) == 0:
            return None
        return len(embeddings[0])

    def _get_collection(self) -> Any:
        self._require_open()
        if self.collection is None:
            msg = "Chroma collection not initialized"
            raise RuntimeError(msg)
        return self.collection

    def count(self) -> int:
        """Return the number of stored records.

        Returns:
            Record count.

        Raises:
            VectorStoreConnectionError: If the server cannot be reached.
        """
        collection = self._get_collection()
        try:
            return int(collection.count())
        except Exception as e:
            msg = f"ChromaDB count failed: {e}"
            raise VectorStoreConnectionError(msg) from e

    def upsert_batch(self, records: Sequence[StoredRecord]) -> None:
        """Insert or overwrite records by id.

        Raises:
            VectorStoreConnectionError: If the write fails.
        """
        collection = self._get_collection()
        if not records:
            return
        embeddings = [self._check_dimension(record.vector).tolist() for record in records]
        try:
            collection.upsert(
                ids=[record.id for record in records],
                embeddings=embeddings,
                documents=[record.text for record in records],
                metadatas=[record.metadata() for record in records],
            )
        except Exception as e:
            logger.exception("Error adding documents to ChromaDB")
            msg = f"ChromaDB upsert failed: {e}"
            raise VectorStoreConnectionError(msg) from e
        logger.info("Upserted %d records into ChromaDB", len(records))

    def query(self, vector: np.ndarray, limit: int) -> list[RetrievalResult]:
        """Return up to ``limit`` nearest records.

        Returns:
            Results ordered by decreasing cosine similarity.

        Raises:
            VectorStoreConnectionError: If the search fails.
        """
        collection = self._get_collection()
        query_vector = self._check_dimension(vector).tolist()
        total = self.count()
        if total == 0 or limit <= 0:
            return []

        try:
            response = collection.query(
                query_embeddings=[query_vector],
                n_results=min(limit, total),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as e:
            logger.exception("ChromaDB search failed")
            msg = f"ChromaDB query failed: {e}"
            raise VectorStoreConnectionError(msg) from e

        documents = (response.get("documents") or [[]])[0]
        metadatas = (response.get("metadatas") or [[]])[0]
        distances = (response.get("distances") or [[]])[0]

        results = []
        for text, metadata, distance in zip(documents, metadatas, distances, strict=True):
            metadata = metadata or {}
            results.append(
                RetrievalResult(
                    text=text,
                    category=metadata.get("category", ""),
                    source_path=metadata.get("source_path", ""),
                    score=1.0 - float(distance),
                )
            )
        results.sort(key=lambda result: result.score, reverse=True)
        return results

    def delete_all(self) -> None:
        """Delete and recreate the collection.

        Raises:
            VectorStoreConnectionError: If the server cannot be reached.
        """
        self._require_open()
        try:
            self.client.delete_collection(name=self.collection_name)
            logger.info("Deleted existing collection '%s'", self.collection_name)
        except (NotFoundError, ValueError):
            logger.info("No existing collection '%s' to delete", self.collection_name)
        except Exception as e:
            logger.exception("Error deleting collection '%s'", self.collection_name)
            msg = f"ChromaDB delete failed: {e}"
            raise VectorStoreConnectionError(msg) from e
        self._open_collection()
