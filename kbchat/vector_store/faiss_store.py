"""FAISS-backed local vector storage with SQLite metadata."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

import faiss
import numpy as np

from kbchat.config import config
from kbchat.exceptions import SchemaError
from kbchat.models import RetrievalResult
from kbchat.vector_store.base import VectorStore

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kbchat.models import StoredRecord

logger = config.get_logger(__name__)


class FaissVectorStore(VectorStore):
    """Vector storage using a FAISS index on disk and SQLite for metadata.

    Each collection owns ``<directory>/<name>.faiss`` and ``<directory>/<name>.db``.
    Vectors are L2-normalised so inner product equals cosine similarity.
    """

    backend = "faiss"

    def __init__(self, directory: Path = Path("data/faiss")) -> None:
        """Configure FAISS-backed vector store.

        Args:
            directory: Folder holding the index and metadata files.
        """
        super().__init__()
        self.directory = Path(directory)
        self.index: faiss.IndexIDMap2 | None = None

    @property
    def index_path(self) -> Path:
        """Path of the FAISS index file for the open collection."""
        self._require_open()
        return self.directory / f"{self.collection_name}.faiss"

    @property
    def db_path(self) -> Path:
        """Path of the SQLite metadata file for the open collection."""
        self._require_open()
        return self.directory / f"{self.collection_name}.db"

    def describe(self) -> str:
        """Return the connection target.

        Returns:
            Directory holding the collection files.
        """
        return str(self.directory)

    def _open(self, collection_name: str, dimension: int) -> None:  # noqa: ARG002
        self.directory.mkdir(exist_ok=True, parents=True)
        self._create_tables()

        if self.index_path.exists():
            loaded_index = faiss.read_index(str(self.index_path))
            self._check_existing_dimension(loaded_index.d)
            if not isinstance(loaded_index, faiss.IndexIDMap2):
                msg = (
                    f"FAISS index at {self.index_path} is "
                    f"{type(loaded_index).__name__}, expected IndexIDMap2"
                )
                raise SchemaError(msg)
            self.index = loaded_index
            logger.info(
                "Loaded FAISS index from %s with %d vectors",
                self.index_path,
                loaded_index.ntotal,
            )
        else:
            self._init_index(dimension)

    def _init_index(self, dimension: int) -> None:
        """Create an empty index."""
        self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))
        logger.info("Initialized FAISS IndexIDMap2 with dimension %d", dimension)

    def _create_tables(self) -> None:
        """Create the metadata table if it doesn't exist."""
        with sqlite3.connect(str(self.db_path)) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    vector_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    record_id TEXT NOT NULL UNIQUE,
                    text TEXT NOT NULL,
                    category TEXT,
                    source_path TEXT
                )
            """)
            conn.commit()

    @staticmethod
    def _normalize_embedding(embedding: np.ndarray) -> np.ndarray:
        """Normalize embedding for cosine similarity using inner product search.

        Returns:
            Normalized embedding as a (1, d) float32 matrix.
        """
        vector = np.ascontiguousarray(embedding, dtype="float32").reshape(1, -1)
        if np.linalg.norm(vector) > 0:
            faiss.normalize_L2(vector)
        return vector

    def _get_index(self) -> faiss.IndexIDMap2:
        self._require_open()
        if self.index is None:
            msg = "FAISS index not initialized"
            raise RuntimeError(msg)
        return self.index

    def count(self) -> int:
        """Return the number of vectors in the index.

        Returns:
            Record count.
        """
        return int(self._get_index().ntotal)

    def upsert_batch(self, records: Sequence[StoredRecord]) -> None:
        """Insert or overwrite records, then persist the index.

        Raises:
            SchemaError: If a vector has the wrong dimension.
        """
        index = self._get_index()
        if not records:
            return

        vectors = [
            self._normalize_embedding(self._check_dimension(record.vector))
            for record in records
        ]

        replaced_ids: list[int] = []
        vector_ids: list[int] = []
        with sqlite3.connect(str(self.db_path)) as conn:
            cursor = conn.cursor()
            for record in records:
                cursor.execute(
                    "SELECT vector_id FROM records WHERE record_id = ?", (record.id,)
                )
                row = cursor.fetchone()
                if row is not None:
                    vector_id = int(row[0])
                    replaced_ids.append(vector_id)
                    cursor.execute(
                        """
                        UPDATE records SET text = ?, category = ?, source_path = ?
                        WHERE vector_id = ?
                        """,
                        (record.text, record.category, record.source_path, vector_id),
                    )
                else:
                    cursor.execute(
                        """
                        INSERT INTO records (record_id, text, category, source_path)
                        VALUES (?, ?, ?, ?)
                        """,
                        (record.id, record.text, record.category, record.source_path),
                    )
                    if cursor.lastrowid is None:
                        msg = f"Failed to insert metadata for record '{record.id}'"
                        raise RuntimeError(msg)
                    vector_id = int(cursor.lastrowid)
                vector_ids.append(vector_id)
            conn.commit()

        # Later duplicates within the batch win, matching the metadata rows
        latest: dict[int, np.ndarray] = dict(zip(vector_ids, vectors, strict=True))
        if replaced_ids:
            index.remove_ids(np.asarray(sorted(set(replaced_ids)), dtype="int64"))
        index.add_with_ids(
            np.vstack(list(latest.values())).astype("float32"),
            np.asarray(list(latest.keys()), dtype="int64"),
        )
        self.save()
        logger.info(
            "Upserted %d vectors into FAISS index (%d replaced)",
            len(latest),
            len(set(replaced_ids)),
        )

    def query(self, vector: np.ndarray, limit: int) -> list[RetrievalResult]:
        """Search similar records using the FAISS index.

        Returns:
            Ranked list of results.
        """
        index = self._get_index()
        query_vector = self._normalize_embedding(self._check_dimension(vector))
        if index.ntotal == 0 or limit <= 0:
            return []

        scores, vector_ids = index.search(query_vector, min(limit, index.ntotal))

        results: list[RetrievalResult] = []
        with sqlite3.connect(str(self.db_path)) as conn:
            cursor = conn.cursor()
            for score, vector_id in zip(scores[0], vector_ids[0], strict=True):
                if int(vector_id) == -1:  # faiss pads missing results with -1
                    continue
                cursor.execute(
                    "SELECT text, category, source_path FROM records WHERE vector_id = ?",
                    (int(vector_id),),
                )
                row = cursor.fetchone()
                if row is None:
                    logger.warning("No metadata for FAISS vector id %d", vector_id)
                    continue
                text, category, source_path = row
                results.append(
                    RetrievalResult(
                        text=text,
                        category=category,
                        source_path=source_path,
                        score=float(score),
                    )
                )
        return results

    def delete_all(self) -> None:
        """Remove the collection files and start an empty index."""
        self._require_open()
        for path in (self.index_path, self.db_path):
            path.unlink(missing_ok=True)
        self._create_tables()
        self._init_index(self.dimension)
        logger.info("Dropped FAISS collection '%s'", self.collection_name)

    def save(self) -> None:
        """Persist FAISS index to disk."""
        index = self._get_index()
        self.directory.mkdir(exist_ok=True, parents=True)
        faiss.write_index(index, str(self.index_path))
        logger.debug("Saved FAISS index to %s", self.index_path)
