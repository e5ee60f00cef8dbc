"""In-process vector storage backed by a numpy matrix."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

import numpy as np

from kbchat.config import config
from kbchat.models import RetrievalResult
from kbchat.vector_store.base import VectorStore

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kbchat.models import StoredRecord

logger = config.get_logger(__name__)


class InMemoryVectorStore(VectorStore):
    """Vector storage held in process memory; nothing survives a restart."""

    backend = "memory"

    def __init__(self) -> None:
        """Initialize an empty store."""
        super().__init__()
        self.records: dict[str, StoredRecord] = {}
        self._ids: list[str] = []
        self.embeddings: np.ndarray | None = None

    def _open(self, collection_name: str, dimension: int) -> None:  # noqa: ARG002
        # A fresh process always starts with an empty collection
        self.records = {}
        self._invalidate()

    def describe(self) -> str:  # noqa: PLR6301
        """Return the connection target.

        Returns:
            Fixed label for process memory.
        """
        return "in-process memory"

    def _invalidate(self) -> None:
        self._ids = []
        self.embeddings = None

    def _rebuild_embeddings_matrix(self) -> None:
        """Stack stored vectors into a single matrix in insertion order."""
        self._ids = list(self.records)
        if not self._ids:
            self.embeddings = None
            return
        self.embeddings = np.vstack([self.records[i].vector for i in self._ids])
        logger.debug("Rebuilt embeddings matrix with %d vectors", len(self._ids))

    @staticmethod
    def cosine_similarity(
        query_embedding: np.ndarray,
        embeddings: np.ndarray,
    ) -> np.ndarray:
        """Calculate cosine similarity between query and stored embeddings.

        Returns:
            np.ndarray: Array of cosine similarity scores
                    between the query and each stored embedding.
        """
        query_norm = np.linalg.norm(query_embedding)
        doc_norms = np.linalg.norm(embeddings, axis=1)
        denominators = doc_norms * query_norm
        denominators[denominators == 0] = 1.0
        return np.dot(embeddings, query_embedding) / denominators

    def count(self) -> int:
        """Return the number of stored records.

        Returns:
            Record count.
        """
        self._require_open()
        return len(self.records)

    def upsert_batch(self, records: Sequence[StoredRecord]) -> None:
        """Insert or overwrite records by id."""
        self._require_open()
        checked = [(record, self._check_dimension(record.vector)) for record in records]
        for record, vector in checked:
            self.records[record.id] = replace(record, vector=vector)
        self._invalidate()
        logger.info("Upserted %d records into memory store", len(checked))

    def query(self, vector: np.ndarray, limit: int) -> list[RetrievalResult]:
        """Return up to ``limit`` most similar records.

        Returns:
            Results ordered by decreasing cosine similarity.
        """
        query_vector = self._check_dimension(vector)
        if not self.records or limit <= 0:
            return []
        if self.embeddings is None:
            self._rebuild_embeddings_matrix()

        similarities = self.cosine_similarity(query_vector, self.embeddings)
        # Stable sort keeps insertion order among equal scores
        top_indices = np.argsort(-similarities, kind="stable")[:limit]

        results = []
        for idx in top_indices:
            record = self.records[self._ids[idx]]
            results.append(
                RetrievalResult(
                    text=record.text,
                    category=record.category,
                    source_path=record.source_path,
                    score=float(similarities[idx]),
                )
            )
        return results

    def delete_all(self) -> None:
        """Drop every record."""
        self._require_open()
        self.records = {}
        self._invalidate()
        logger.info("Cleared memory collection '%s'", self.collection_name)
