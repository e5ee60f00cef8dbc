"""Pinecone serverless index-backed vector storage."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from pinecone import Pinecone, ServerlessSpec
from pinecone.exceptions import NotFoundException

from kbchat.config import config
from kbchat.exceptions import VectorStoreConnectionError
from kbchat.models import RetrievalResult
from kbchat.vector_store.base import VectorStore

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    import numpy as np

    from kbchat.models import StoredRecord

logger = config.get_logger(__name__)

READY_POLL_SECONDS = 5.0


class PineconeVectorStore(VectorStore):
    """Vector storage in a Pinecone serverless index with cosine metric."""

    backend = "pinecone"

    def __init__(  # noqa: PLR0913
        self,
        api_key: str,
        cloud: str = "aws",
        region: str = "us-east-1",
        *,
        client: Any = None,
        poll_interval: float = READY_POLL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Configure the Pinecone connection.

        Args:
            api_key: Pinecone API key.
            cloud: Serverless cloud used when creating the index.
            region: Serverless region used when creating the index.
            client: Pre-built Pinecone client, used instead of connecting.
            poll_interval: Seconds between readiness checks of a new index.
            sleep: Sleep function used while waiting for readiness.
        """
        super().__init__()
        self.api_key = api_key
        self.cloud = cloud
        self.region = region
        self.client = client
        self.poll_interval = poll_interval
        self._sleep = sleep
        self.index: Any = None

    def describe(self) -> str:
        """Return the connection target.

        Returns:
            Serverless cloud and region.
        """
        return f"pinecone serverless ({self.cloud}/{self.region})"

    def _open(self, collection_name: str, dimension: int) -> None:
        try:
            if self.client is None:
                self.client = Pinecone(api_key=self.api_key)
            existing = self.client.list_indexes().names()
        except Exception as e:
            logger.exception("Pinecone connection failed")
            msg = f"Cannot reach Pinecone: {e}"
            raise VectorStoreConnectionError(msg) from e
        logger.info("Connected to Pinecone successfully")

        if collection_name in existing:
            try:
                description = self.client.describe_index(collection_name)
            except Exception as e:
                logger.exception("Error describing index '%s'", collection_name)
                msg = f"Cannot describe Pinecone index '{collection_name}': {e}"
                raise VectorStoreConnectionError(msg) from e
            self._check_existing_dimension(int(description.dimension))
        else:
            self._create_index(collection_name, dimension)

        try:
            self.index = self.client.Index(collection_name)
        except Exception as e:
            msg = f"Cannot open Pinecone index '{collection_name}': {e}"
            raise VectorStoreConnectionError(msg) from e

    def _create_index(self, name: str, dimension: int) -> None:
        """Create a serverless index and wait until it is ready.

        Raises:
            VectorStoreConnectionError: If index creation fails.
        """
        logger.info("Creating Pinecone index: %s...", name)
        try:
            self.client.create_index(
                name=name,
                dimension=dimension,
                metric="cosine",
                spec=ServerlessSpec(cloud=self.cloud, region=self.region),
            )
            logger.info("Waiting for index to be ready...")
            while not self.client.describe_index(name).status["ready"]:
                self._sleep(self.poll_interval)
        except Exception as e:
            logger.exception("Error creating index")
            msg = f"Cannot create Pinecone index '{name}': {e}"
            raise VectorStoreConnectionError(msg) from e
        logger.info("Pinecone index created and ready")

    def _get_index(self) -> Any:
        self._require_open()
        if self.index is None:
            msg = "Pinecone index not initialized"
            raise RuntimeError(msg)
        return self.index

    def count(self) -> int:
        """Return the number of stored vectors.

        Returns:
            Record count.

        Raises:
            VectorStoreConnectionError: If the stats call fails.
        """
        index = self._get_index()
        try:
            stats = index.describe_index_stats()
        except Exception as e:
            msg = f"Pinecone stats failed: {e}"
            raise VectorStoreConnectionError(msg) from e
        return int(stats.total_vector_count or 0)

    def upsert_batch(self, records: Sequence[StoredRecord]) -> None:
        """Insert or overwrite vectors by id.

        Raises:
            VectorStoreConnectionError: If the write fails.
        """
        index = self._get_index()
        if not records:
            return
        vectors = [
            {
                "id": record.id,
                "values": self._check_dimension(record.vector).tolist(),
                "metadata": {"text": record.text, **record.metadata()},
            }
            for record in records
        ]
        try:
            index.upsert(vectors=vectors)
        except Exception as e:
            logger.exception("Error upserting vectors to Pinecone")
            msg = f"Pinecone upsert failed: {e}"
            raise VectorStoreConnectionError(msg) from e
        logger.info("Upserted %d vectors into Pinecone", len(vectors))

    def query(self, vector: np.ndarray, limit: int) -> list[RetrievalResult]:
        """Return up to ``limit`` nearest vectors.

        Returns:
            Results ordered by decreasing cosine similarity.

        Raises:
            VectorStoreConnectionError: If the search fails.
        """
        index = self._get_index()
        query_vector = self._check_dimension(vector).tolist()
        if limit <= 0:
            return []
        try:
            response = index.query(
                vector=query_vector, top_k=limit, include_metadata=True
            )
        except Exception as e:
            logger.exception("Pinecone search failed")
            msg = f"Pinecone query failed: {e}"
            raise VectorStoreConnectionError(msg) from e

        results = []
        for match in response.matches or []:
            metadata = match.metadata or {}
            results.append(
                RetrievalResult(
                    text=metadata.get("text", ""),
                    category=metadata.get("category", ""),
                    source_path=metadata.get("source_path", ""),
                    score=float(match.score),
                )
            )
        return results

    def delete_all(self) -> None:
        """Delete every vector in the index.

        Raises:
            VectorStoreConnectionError: If the delete call fails.
        """
        index = self._get_index()
        try:
            index.delete(delete_all=True)
            logger.info("Deleted all vectors from index '%s'", self.collection_name)
        except NotFoundException:
            logger.info("Index '%s' already empty", self.collection_name)
        except Exception as e:
            msg = f"Pinecone delete failed: {e}"
            raise VectorStoreConnectionError(msg) from e
