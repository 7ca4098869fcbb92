"""
Remote Store: per-user, per-dataType document collection in SQLite.

Each document carries the JSON payload, a last-modified timestamp and a
monotonic version counter. Exactly one document exists per
(user_id, data_type), enforced by the primary key.

Usage:
    from productive.store.remote import RemoteStore

    store = RemoteStore("./productive-cloud.db")
    user = store.create_user("ada", "ada@example.com", password_hash, now_iso())
    store.put_document(user["id"], "habits", {"habits": []}, "2026-01-01T00:00:00.000Z")
    store.close()
"""

import json
import logging
import sqlite3
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class Document:
    """One stored dataset."""
    user_id: str
    data_type: str
    data: Any
    last_modified: str  # ISO timestamp
    version: int

    def to_dict(self) -> dict:
        return {
            "dataType": self.data_type,
            "data": self.data,
            "lastModified": self.last_modified,
            "version": self.version,
        }


class DuplicateUser(Exception):
    """Username or email already registered."""


class RemoteStore:
    """SQLite-backed users and dataset documents."""

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()
        logger.info(f"[STORE] Remote store initialized: {db_path}")

    def _create_tables(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                username TEXT NOT NULL UNIQUE,
                email TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL,
                last_login TEXT
            );

            CREATE TABLE IF NOT EXISTS documents (
                user_id TEXT NOT NULL REFERENCES users(id),
                data_type TEXT NOT NULL,
                data TEXT NOT NULL,
                last_modified TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                PRIMARY KEY (user_id, data_type)
            );
        """)
        self._conn.commit()

    def _fetchone(self, sql: str, params: tuple):
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple):
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    # Users

    def create_user(self, username: str, email: str, password_hash: str, created_at: str) -> dict:
        user_id = uuid.uuid4().hex
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT INTO users (id, username, email, password_hash, created_at, last_login) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (user_id, username, email, password_hash, created_at, created_at),
                )
                self._conn.commit()
            except sqlite3.IntegrityError:
                raise DuplicateUser("Username or email already exists") from None
        return self.get_user(user_id)

    def get_user(self, user_id: str) -> dict | None:
        row = self._fetchone("SELECT * FROM users WHERE id = ?", (user_id,))
        return dict(row) if row else None

    def find_user_by_email(self, email: str) -> dict | None:
        row = self._fetchone("SELECT * FROM users WHERE email = ?", (email,))
        return dict(row) if row else None

    def user_exists(self, username: str, email: str) -> bool:
        row = self._fetchone("SELECT 1 FROM users WHERE email = ? OR username = ?", (email, username))
        return row is not None

    def touch_login(self, user_id: str, when: str) -> None:
        with self._lock:
            self._conn.execute("UPDATE users SET last_login = ? WHERE id = ?", (when, user_id))
            self._conn.commit()

    # Documents

    def _row_to_document(self, row) -> Document:
        return Document(
            user_id=row["user_id"],
            data_type=row["data_type"],
            data=json.loads(row["data"]),
            last_modified=row["last_modified"],
            version=row["version"],
        )

    def get_document(self, user_id: str, data_type: str) -> Document | None:
        row = self._fetchone("SELECT * FROM documents WHERE user_id = ? AND data_type = ?", (user_id, data_type))
        return self._row_to_document(row) if row else None

    def list_documents(self, user_id: str) -> list[Document]:
        rows = self._fetchall("SELECT * FROM documents WHERE user_id = ? ORDER BY data_type", (user_id,))
        return [self._row_to_document(r) for r in rows]

    def put_document(self, user_id: str, data_type: str, data: Any, last_modified: str) -> Document:
        """Create the document at version 1, or replace it and bump the version."""
        encoded = json.dumps(data)
        with self._lock:
            self._conn.execute(
                "INSERT INTO documents (user_id, data_type, data, last_modified, version) "
                "VALUES (?, ?, ?, ?, 1) "
                "ON CONFLICT (user_id, data_type) DO UPDATE SET "
                "data = excluded.data, last_modified = excluded.last_modified, "
                "version = documents.version + 1",
                (user_id, data_type, encoded, last_modified),
            )
            self._conn.commit()
        logger.debug(f"[STORE] Saved {data_type} for user {user_id}")
        return self.get_document(user_id, data_type)

    def delete_document(self, user_id: str, data_type: str) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM documents WHERE user_id = ? AND data_type = ?",
                (user_id, data_type),
            )
            self._conn.commit()
        return cursor.rowcount > 0

    def count_documents(self, user_id: str, data_type: str | None = None) -> int:
        if data_type is None:
            row = self._fetchone("SELECT COUNT(*) FROM documents WHERE user_id = ?", (user_id,))
        else:
            row = self._fetchone("SELECT COUNT(*) FROM documents WHERE user_id = ? AND data_type = ?", (user_id, data_type))
        return row[0]

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "RemoteStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
