"""Keyed blob persistence for rhyme index snapshots."""

from __future__ import annotations

import os
import queue
import sqlite3
import threading
from contextlib import contextmanager
from typing import Generator, List, Optional, Protocol

from rhyme_index.utils.observability import get_logger


def _ensure_parent_directory(path: str) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)


class BlobStore(Protocol):
    """Opaque ``(collection, key) -> bytes`` map used to persist snapshots."""

    def put(self, collection: str, key: str, blob: bytes) -> None: ...

    def get(self, collection: str, key: str) -> Optional[bytes]: ...


class SQLiteBlobStore:
    """SQLite-backed :class:`BlobStore` with a small connection pool.

    ``db_path`` must name a file; every pooled connection opens it separately.
    """

    def __init__(
        self,
        db_path: str,
        *,
        pool_size: int = 4,
        pool_timeout: float = 5.0,
    ) -> None:
        self.db_path = str(db_path)
        self._pool_size = max(1, int(pool_size))
        self._pool_timeout = max(0.0, float(pool_timeout))
        self._pool: queue.Queue = queue.Queue(maxsize=self._pool_size)
        self._pool_semaphore = threading.BoundedSemaphore(self._pool_size)
        self._logger = get_logger(__name__).bind(
            component="blob_store",
            db_path=self.db_path,
        )
        _ensure_parent_directory(self.db_path)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS blobs (
                    collection TEXT NOT NULL,
                    key TEXT NOT NULL,
                    payload BLOB NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (collection, key)
                )
                """
            )
        self._logger.info(
            "SQLite blob store initialised",
            context={"pool_size": self._pool_size, "pool_timeout": self._pool_timeout},
        )

    def _create_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self.db_path, check_same_thread=False)
        try:
            connection.execute("PRAGMA journal_mode=WAL")
        except sqlite3.Error as exc:
            self._logger.warning(
                "SQLite WAL mode unavailable",
                context={"error": str(exc)},
            )
        return connection

    def _acquire_connection(self) -> sqlite3.Connection:
        if not self._pool_semaphore.acquire(timeout=self._pool_timeout or None):
            self._logger.error(
                "Database connection pool exhausted",
                context={"pool_size": self._pool_size, "timeout": self._pool_timeout},
            )
            raise TimeoutError("Database connection pool exhausted")

        try:
            connection = self._pool.get_nowait()
        except queue.Empty:
            connection = self._create_connection()

        return connection

    def _release_connection(self, connection: sqlite3.Connection) -> None:
        try:
            self._pool.put_nowait(connection)
        except queue.Full:
            connection.close()
        finally:
            self._pool_semaphore.release()

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        connection = self._acquire_connection()
        try:
            yield connection
            if connection.in_transaction:
                connection.commit()
        except Exception as exc:
            if connection.in_transaction:
                connection.rollback()
            self._logger.error(
                "SQLite operation failed",
                context={"error": str(exc)},
            )
            raise
        finally:
            self._release_connection(connection)

    def put(self, collection: str, key: str, blob: bytes) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO blobs (collection, key, payload, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(collection, key)
                DO UPDATE SET payload = excluded.payload, updated_at = excluded.updated_at
                """,
                (collection, key, sqlite3.Binary(bytes(blob))),
            )
        self._logger.debug(
            "Blob stored",
            context={"collection": collection, "key": key, "bytes": len(blob)},
        )

    def get(self, collection: str, key: str) -> Optional[bytes]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload FROM blobs WHERE collection = ? AND key = ?",
                (collection, key),
            ).fetchone()
        if row is None:
            return None
        return bytes(row[0])

    def delete(self, collection: str, key: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM blobs WHERE collection = ? AND key = ?",
                (collection, key),
            )
            return cursor.rowcount > 0

    def keys(self, collection: str) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM blobs WHERE collection = ? ORDER BY key",
                (collection,),
            ).fetchall()
        return [str(row[0]) for row in rows]

    def compact(self) -> None:
        """Reclaim space left behind by replaced snapshots."""

        with self._connect() as conn:
            conn.execute("VACUUM")
        self._logger.info("Blob store compacted")

    def close(self) -> None:
        while True:
            try:
                connection = self._pool.get_nowait()
            except queue.Empty:
                break
            connection.close()


__all__ = ["BlobStore", "SQLiteBlobStore"]
