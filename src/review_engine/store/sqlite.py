from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from ..errors import StorageError


class SQLiteKeyValueStore:
    """SQLite-backed key-value store.

    - 1 操作ごとに接続を開閉し、WAL モードで読み書きの競合を抑える
    - 値は BLOB としてそのまま保存する（シリアライズは上位層の責務）
    - sqlite3.Error は StorageError に包んで送出し、再試行はしない
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._ensure_dirs()
        self._init_db()

    # --- low-level helpers ---
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10.0, isolation_level=None, check_same_thread=False)
        with conn:  # autocommit on PRAGMA
            conn.execute("PRAGMA journal_mode=WAL;")
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StorageError(f"failed to open {self.db_path}: {exc}") from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            raise StorageError(f"sqlite operation failed: {exc}") from exc
        finally:
            conn.close()

    def _ensure_dirs(self) -> None:
        p = Path(self.db_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self) -> None:
        with self._connection() as conn:
            with conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value BLOB NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                    """
                )

    # --- public API ---
    def get(self, key: str) -> bytes | None:
        with self._connection() as conn:
            cur = conn.execute("SELECT value FROM kv WHERE key = ?;", (key,))
            row = cur.fetchone()
        if row is None:
            return None
        return bytes(row[0])

    def set(self, key: str, value: bytes) -> None:
        now = datetime.now(UTC).isoformat()
        with self._connection() as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO kv (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at;
                    """,
                    (key, sqlite3.Binary(value), now),
                )

    def delete(self, key: str) -> None:
        with self._connection() as conn:
            with conn:
                conn.execute("DELETE FROM kv WHERE key = ?;", (key,))
