"""Backend-independent vector store contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np

from kbchat.config import config
from kbchat.exceptions import SchemaError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kbchat.models import RetrievalResult, StoredRecord

logger = config.get_logger(__name__)


class VectorStore(ABC):
    """Insert-and-query contract shared by every backend.

    Similarity is cosine throughout; results are ordered by decreasing score.
    """

    backend: str = "base"

    def __init__(self) -> None:
        """Set up the unopened state shared by all backends."""
        self.collection_name: str | None = None
        self.dimension: int | None = None
        self.is_connected = False

    def initialize(self, collection_name: str, dimension: int) -> VectorStore:
        """Create the collection if absent, open it if present.

        Returns:
            This store, ready for use.

        Raises:
            VectorStoreConnectionError: If the backend is unreachable.
            SchemaError: If an existing collection has another dimension.
        """
        logger.info(
            "Opening %s collection '%s' (dimension %d) at %s",
            self.backend,
            collection_name,
            dimension,
            self.describe(),
        )
        self.collection_name = collection_name
        self.dimension = dimension
        self._open(collection_name, dimension)
        self.is_connected = True
        return self

    @abstractmethod
    def _open(self, collection_name: str, dimension: int) -> None:
        """Connect and create or open the collection."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored records."""

    @abstractmethod
    def upsert_batch(self, records: Sequence[StoredRecord]) -> None:
        """Insert or overwrite records by id as one backend write."""

    @abstractmethod
    def query(self, vector: np.ndarray, limit: int) -> list[RetrievalResult]:
        """Return up to ``limit`` nearest records by cosine similarity."""

    @abstractmethod
    def delete_all(self) -> None:
        """Empty the collection; an already absent collection is not an error."""

    @abstractmethod
    def describe(self) -> str:
        """Human-readable connection target."""

    def _require_open(self) -> None:
        if self.collection_name is None or self.dimension is None:
            msg = f"{type(self).__name__} used before initialize()"
            raise RuntimeError(msg)

    def _check_dimension(self, vector: np.ndarray) -> np.ndarray:
        """Flatten a vector to float32 and verify its length.

        Returns:
            The vector as a 1-D float32 array.

        Raises:
            SchemaError: If the length differs from the collection dimension.
        """
        self._require_open()
        array = np.asarray(vector, dtype=np.float32).reshape(-1)
        if array.shape[0] != self.dimension:
            msg = (
                f"Vector dimension {array.shape[0]} does not match collection "
                f"'{self.collection_name}' dimension {self.dimension}"
            )
            raise SchemaError(msg)
        return array

    def _check_existing_dimension(self, existing: int | None) -> None:
        """Compare an existing collection's dimension with the requested one.

        Raises:
            SchemaError: If they differ.
        """
        if existing is not None and existing != self.dimension:
            msg = (
                f"Existing {self.backend} collection '{self.collection_name}' has "
                f"dimension {existing}, expected {self.dimension}"
            )
            raise SchemaError(msg)
