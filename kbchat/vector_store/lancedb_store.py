"""LanceDB table-backed vector storage (local directory or LanceDB Cloud)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import lancedb
import pyarrow as pa

from kbchat.config import config
from kbchat.exceptions import VectorStoreConnectionError
from kbchat.models import RetrievalResult
from kbchat.vector_store.base import VectorStore

if TYPE_CHECKING:
    from collections.abc import Sequence

    import numpy as np

    from kbchat.models import StoredRecord

logger = config.get_logger(__name__)


def table_schema(dimension: int) -> pa.Schema:
    """Arrow schema of a knowledge-base table.

    Returns:
        Schema with a fixed-size float32 ``vector`` column.
    """
    return pa.schema([
        pa.field("id", pa.string(), nullable=False),
        pa.field("text", pa.string()),
        pa.field("category", pa.string()),
        pa.field("source_path", pa.string()),
        pa.field("vector", pa.list_(pa.float32(), dimension)),
    ])


class LanceDBVectorStore(VectorStore):
    """Vector storage in a LanceDB table searched by cosine distance."""

    backend = "lancedb"

    def __init__(
        self,
        uri: str = "data/lancedb",
        api_key: str | None = None,
        region: str = "us-east-1",
        *,
        connection: Any = None,
    ) -> None:
        """Configure the LanceDB connection.

        Args:
            uri: Local directory or ``db://`` LanceDB Cloud URI.
            api_key: LanceDB Cloud API key; unused for local directories.
            region: LanceDB Cloud region.
            connection: Pre-built LanceDB connection, used instead of connecting.
        """
        super().__init__()
        self.uri = uri
        self.api_key = api_key
        self.region = region
        self.db = connection
        self.table: Any = None

    def describe(self) -> str:
        """Return the connection target.

        Returns:
            Database URI.
        """
        return self.uri

    def _open(self, collection_name: str, dimension: int) -> None:
        try:
            if self.db is None:
                if self.uri.startswith("db://"):
                    self.db = lancedb.connect(
                        self.uri, api_key=self.api_key, region=self.region
                    )
                else:
                    self.db = lancedb.connect(self.uri)
            table_names = list(self.db.table_names())
        except Exception as e:
            logger.exception("LanceDB connection failed at %s", self.uri)
            msg = f"Cannot reach LanceDB at {self.uri}: {e}"
            raise VectorStoreConnectionError(msg) from e
        logger.info("Connected to LanceDB successfully")

        if collection_name in table_names:
            try:
                self.table = self.db.open_table(collection_name)
                vector_type = self.table.schema.field("vector").type
                rows = self.table.count_rows()
            except Exception as e:
                logger.exception("Error opening table '%s'", collection_name)
                msg = f"Cannot open LanceDB table '{collection_name}': {e}"
                raise VectorStoreConnectionError(msg) from e
            self._check_existing_dimension(getattr(vector_type, "list_size", None))
            logger.info("Loaded existing table with %d documents", rows)
        else:
            self._create_table()

    def _create_table(self) -> None:
        logger.info("Creating LanceDB table %s...", self.collection_name)
        try:
            self.table = self.db.create_table(
                self.collection_name, schema=table_schema(self.dimension)
            )
        except Exception as e:
            logger.exception("Error creating table '%s'", self.collection_name)
            msg = f"Cannot create LanceDB table '{self.collection_name}': {e}"
            raise VectorStoreConnectionError(msg) from e

    def _get_table(self) -> Any:
        self._require_open()
        if self.table is None:
            msg = "LanceDB table not initialized"
            raise RuntimeError(msg)
        return self.table

    def count(self) -> int:
        """Return the number of rows.

        Returns:
            Record count.

        Raises:
            VectorStoreConnectionError: If the count fails.
        """
        table = self._get_table()
        try:
            return int(table.count_rows())
        except Exception as e:
            msg = f"LanceDB count failed: {e}"
            raise VectorStoreConnectionError(msg) from e

    def upsert_batch(self, records: Sequence[StoredRecord]) -> None:
        """Merge records into the table keyed on ``id``.

        Raises:
            VectorStoreConnectionError: If the write fails.
        """
        table = self._get_table()
        if not records:
            return
        rows = [
            {
                "id": record.id,
                "text": record.text,
                "category": record.category,
                "source_path": record.source_path,
                "vector": self._check_dimension(record.vector).tolist(),
            }
            for record in records
        ]
        data = pa.Table.from_pylist(rows, schema=table_schema(self.dimension))
        try:
            (
                table.merge_insert("id")
                .when_matched_update_all()
                .when_not_matched_insert_all()
                .execute(data)
            )
        except Exception as e:
            logger.exception("Error writing rows to LanceDB")
            msg = f"LanceDB upsert failed: {e}"
            raise VectorStoreConnectionError(msg) from e
        logger.info("Upserted %d rows into LanceDB", len(rows))

    def query(self, vector: np.ndarray, limit: int) -> list[RetrievalResult]:
        """Return up to ``limit`` nearest rows.

        Returns:
            Results ordered by decreasing cosine similarity.

        Raises:
            VectorStoreConnectionError: If the search fails.
        """
        table = self._get_table()
        query_vector = self._check_dimension(vector)
        if limit <= 0 or self.count() == 0:
            return []
        try:
            rows = (
                table.search(query_vector, vector_column_name="vector")
                .distance_type("cosine")
                .limit(limit)
                .to_list()
            )
        except Exception as e:
            logger.exception("LanceDB search failed")
            msg = f"LanceDB query failed: {e}"
            raise VectorStoreConnectionError(msg) from e

        return [
            RetrievalResult(
                text=row["text"],
                category=row.get("category") or "",
                source_path=row.get("source_path") or "",
                score=1.0 - float(row["_distance"]),
            )
            for row in rows
        ]

    def delete_all(self) -> None:
        """Drop the table and recreate it empty.

        Raises:
            VectorStoreConnectionError: If the drop or the recreate fails.
        """
        self._require_open()
        try:
            self.db.drop_table(self.collection_name, ignore_missing=True)
        except Exception as e:
            msg = f"LanceDB drop failed: {e}"
            raise VectorStoreConnectionError(msg) from e
        logger.info("Dropped existing table '%s'", self.collection_name)
        self._create_table()
