# Code Fingerprint Engine - Structural fingerprints for code similarity search
# Copyright (C) 2025  Jonathan Louis
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Declaration store for code-fingerprint-engine.

Persists DeclarationRecords in SQLite, embeddings as float32 blobs, and
answers nearest-neighbour queries by ranking every stored embedding with
numpy. The store is append-only: ingesting the same file twice keeps
both copies unless the caller asks to replace the file's records.

One connection is shared by all worker threads and guarded by a lock.
"""

import sqlite3
import threading
import time
from pathlib import Path
from typing import Iterable, List, Optional, Union

import numpy as np

from .errors import StorageError
from .models import DeclarationRecord, SearchMatch
from .similarity import METRICS, distances


CACHE_DIR = ".cfe_cache"
STORE_DB = "declarations.db"

_MAX_PARAMS = 500

SCHEMA = """
CREATE TABLE IF NOT EXISTS declarations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_file TEXT NOT NULL,
    start_line INTEGER,
    end_line INTEGER,
    kind TEXT,
    canonical_string TEXT,
    raw_text TEXT,
    embedding BLOB NOT NULL,
    created_at REAL
);

CREATE INDEX IF NOT EXISTS idx_source_file ON declarations(source_file);

CREATE TABLE IF NOT EXISTS store_meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def get_store_path(project_root: Path = None) -> Path:
    """
    Get default path to the store database. Creates .cfe_cache/ if needed.

    Args:
        project_root: Root directory for the store. Defaults to current working directory.
    """
    if project_root is None:
        project_root = Path.cwd()

    cache_dir = project_root / CACHE_DIR
    cache_dir.mkdir(exist_ok=True)

    return cache_dir / STORE_DB


class DeclarationStore:
    """SQLite-backed declaration store with numpy nearest-neighbour search."""

    def __init__(self, db_path: Union[str, Path], metric: str = "cosine"):
        if metric not in METRICS:
            raise ValueError(f"Unknown metric: {metric} (expected one of {', '.join(METRICS)})")

        self.db_path = str(db_path)
        self.metric = metric
        self.dimension: Optional[int] = None
        self._lock = threading.Lock()

        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open store {self.db_path}: {e}") from e

    def __enter__(self) -> "DeclarationStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def create_schema(self, dimension: int, vocabulary_digest: str = "") -> None:
        """
        Ensure tables exist for embeddings of the given dimensionality.

        Idempotent. The first call records the dimension (and vocabulary
        digest); later calls with different values fail, since embeddings
        built from different vocabularies are not comparable.

        Raises:
            StorageError: On database errors or a dimension/vocabulary mismatch
        """
        with self._lock:
            try:
                self._conn.executescript(SCHEMA)
                stored = dict(self._conn.execute("SELECT key, value FROM store_meta").fetchall())

                if "dimension" in stored and int(stored["dimension"]) != dimension:
                    raise StorageError(
                        f"Store {self.db_path} holds {stored['dimension']}-dimensional "
                        f"embeddings, vocabulary has {dimension} terms"
                    )
                if vocabulary_digest and stored.get("vocabulary") not in (None, vocabulary_digest):
                    raise StorageError(
                        f"Store {self.db_path} was built with a different vocabulary "
                        f"({stored['vocabulary']} != {vocabulary_digest})"
                    )

                self._conn.execute(
                    "INSERT OR IGNORE INTO store_meta (key, value) VALUES ('dimension', ?)",
                    (str(dimension),),
                )
                if vocabulary_digest:
                    self._conn.execute(
                        "INSERT OR IGNORE INTO store_meta (key, value) VALUES ('vocabulary', ?)",
                        (vocabulary_digest,),
                    )
                self._conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Cannot create schema: {e}") from e

        self.dimension = dimension

    def drop(self) -> None:
        """Delete all tables. create_schema must be called again before use."""
        with self._lock:
            try:
                self._conn.executescript(
                    "DROP TABLE IF EXISTS declarations; DROP TABLE IF EXISTS store_meta;"
                )
                self._conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Cannot drop tables: {e}") from e
        self.dimension = None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, record: DeclarationRecord) -> int:
        """Insert one record. Returns its id."""
        return self.insert_many([record])[0]

    def insert_many(
        self,
        records: Iterable[DeclarationRecord],
        replace_file: Optional[str] = None,
    ) -> List[int]:
        """
        Insert records in order, in a single transaction.

        Args:
            records: Records to insert
            replace_file: If given, that file's existing records are deleted
                in the same transaction

        Returns:
            Ids of the inserted rows, in input order

        Raises:
            StorageError: On database errors or wrong embedding dimension
        """
        records = list(records)
        for record in records:
            self._check_dimension(record.embedding)

        ids = []
        with self._lock:
            try:
                with self._conn:
                    if replace_file is not None:
                        self._conn.execute(
                            "DELETE FROM declarations WHERE source_file = ?",
                            (replace_file,),
                        )
                    created_at = time.time()
                    for record in records:
                        cursor = self._conn.execute(
                            """
                            INSERT INTO declarations
                            (source_file, start_line, end_line, kind, canonical_string,
                             raw_text, embedding, created_at)
                            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                            """,
                            (record.source_file, record.start_line, record.end_line,
                             record.kind, record.canonical_string, record.raw_text,
                             record.embedding.astype(np.float32).tobytes(), created_at)
                        )
                        ids.append(cursor.lastrowid)
            except sqlite3.Error as e:
                raise StorageError(f"Cannot insert records: {e}") from e

        return ids

    def delete_file(self, source_file: str) -> int:
        """Remove all records of a file. Returns the number removed."""
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(
                        "DELETE FROM declarations WHERE source_file = ?",
                        (source_file,)
                    )
            except sqlite3.Error as e:
                raise StorageError(f"Cannot delete records: {e}") from e
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def count(self) -> int:
        with self._lock:
            try:
                return self._conn.execute("SELECT COUNT(*) FROM declarations").fetchone()[0]
            except sqlite3.Error as e:
                raise StorageError(f"Cannot count records: {e}") from e

    def search(self, embedding: np.ndarray, k: int = 1) -> List[SearchMatch]:
        """
        Find the k stored declarations nearest to an embedding.

        Cosine ties are broken by L2 distance, so an exact copy of the
        query ranks ahead of scaled copies. Remaining ties keep insertion order.

        Returns:
            Matches ordered nearest first

        Raises:
            StorageError: On database errors or wrong embedding dimension
        """
        if k <= 0:
            return []

        query = np.asarray(embedding, dtype=np.float32)
        self._check_dimension(query)

        with self._lock:
            try:
                rows = self._conn.execute(
                    "SELECT id, embedding FROM declarations ORDER BY id"
                ).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Cannot query records: {e}") from e

        if not rows:
            return []

        ids = [row[0] for row in rows]
        matrix = np.vstack([np.frombuffer(row[1], dtype=np.float32) for row in rows])
        if matrix.shape[1] != query.shape[0]:
            raise StorageError(
                f"Stored embeddings have {matrix.shape[1]} dimensions, query has {query.shape[0]}"
            )

        scores = distances(query, matrix, self.metric)
        if self.metric == "cosine":
            # Scaled copies tie on cosine, L2 puts the exact embedding first.
            # Rounded so float32 noise does not split the tie
            l2 = distances(query, matrix, "l2")
            nearest = np.lexsort((l2, np.round(scores, 6)))[:k]
        else:
            nearest = np.argsort(scores, kind="stable")[:k]

        records = self._fetch_records([ids[i] for i in nearest])
        return [
            SearchMatch(record=records[ids[i]], distance=float(scores[i]))
            for i in nearest
        ]

    def query_nearest(self, embedding: np.ndarray, k: int = 1) -> List[str]:
        """Raw texts of the k nearest stored declarations, nearest first."""
        return [m.record.raw_text for m in self.search(embedding, k)]

    def records_for_file(self, source_file: str) -> List[DeclarationRecord]:
        """Stored records of a file, in insertion order."""
        with self._lock:
            try:
                rows = self._conn.execute(
                    "SELECT id FROM declarations WHERE source_file = ? ORDER BY id",
                    (source_file,)
                ).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Cannot query records: {e}") from e

        ids = [row[0] for row in rows]
        records = self._fetch_records(ids)
        return [records[i] for i in ids]

    def stats(self) -> dict:
        """
        Return statistics about the store.

        Returns:
            Dictionary with keys:
            - total_records: Number of stored declarations
            - total_files: Number of distinct source files
            - dimension: Embedding dimension (None before create_schema)
            - size_mb: Database size in megabytes (0 for in-memory stores)
        """
        with self._lock:
            try:
                total_records, total_files = self._conn.execute(
                    "SELECT COUNT(*), COUNT(DISTINCT source_file) FROM declarations"
                ).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"Cannot read stats: {e}") from e

        path = Path(self.db_path)
        size_mb = path.stat().st_size / (1024 * 1024) if path.is_file() else 0.0

        return {
            "total_records": total_records,
            "total_files": total_files,
            "dimension": self.dimension,
            "size_mb": round(size_mb, 2),
        }

    def _fetch_records(self, ids: List[int]) -> dict:
        rows = []
        # Stay under SQLite's bound-parameter limit
        for start in range(0, len(ids), _MAX_PARAMS):
            batch = ids[start:start + _MAX_PARAMS]
            placeholders = ",".join("?" for _ in batch)
            with self._lock:
                try:
                    rows.extend(self._conn.execute(
                        f"""
                        SELECT id, source_file, start_line, end_line, kind,
                               canonical_string, raw_text, embedding
                        FROM declarations WHERE id IN ({placeholders})
                        """,
                        batch
                    ).fetchall())
                except sqlite3.Error as e:
                    raise StorageError(f"Cannot query records: {e}") from e

        return {
            row[0]: DeclarationRecord(
                source_file=row[1],
                start_line=row[2],
                end_line=row[3],
                kind=row[4] or "",
                canonical_string=row[5],
                raw_text=row[6],
                embedding=np.frombuffer(row[7], dtype=np.float32),
                record_id=row[0],
            )
            for row in rows
        }

    def _check_dimension(self, embedding: np.ndarray) -> None:
        if embedding.ndim != 1:
            raise StorageError(f"Embedding must be 1-D, got shape {embedding.shape}")
        if self.dimension is not None and embedding.shape[0] != self.dimension:
            raise StorageError(
                f"Embedding has {embedding.shape[0]} dimensions, store expects {self.dimension}"
            )
