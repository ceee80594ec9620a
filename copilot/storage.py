"""
Per-user key/value memory for the server copilot.

Two backends share the ``MemoryStore`` interface: a SQLite file (the default)
and a Firestore collection for deployments that already run on Firebase.
"""

import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytz

logger = logging.getLogger(__name__)

MEMORY_TABLE = "memory_store"
SQLITE_PREFIX = "sqlite:///"
FIRESTORE_PREFIX = "firestore://"


@dataclass
class MemoryEntry:
    user_id: str
    key: str
    value: str
    timestamp: str


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(pytz.utc).isoformat()


class MemoryStore:
    """Interface shared by the memory backends."""

    def upsert(self, user_id: str, key: str, value: str) -> MemoryEntry:
        raise NotImplementedError

    def get(self, user_id: str, key: str) -> Optional[MemoryEntry]:
        raise NotImplementedError

    def list(self, user_id: str) -> List[MemoryEntry]:
        """Entries for ``user_id``, newest first."""
        raise NotImplementedError

    def delete(self, user_id: str, key: str) -> bool:
        raise NotImplementedError

    def execute_sql(self, query: str) -> Any:
        raise NotImplementedError

    def list_tables(self) -> List[Dict[str, str]]:
        raise NotImplementedError


class SQLiteMemoryStore(MemoryStore):
    """Memory backed by a single SQLite database file."""

    def __init__(self, path: str = "copilot_memory.db"):
        self.path = path
        # One shared connection so ":memory:" databases survive between calls;
        # tools run in worker threads, hence the lock.
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {MEMORY_TABLE} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    UNIQUE(user_id, key)
                )
                """
            )
        logger.info(f"SQLite memory store ready at {self.path}")

    def upsert(self, user_id: str, key: str, value: str) -> MemoryEntry:
        entry = MemoryEntry(user_id=user_id, key=key, value=value, timestamp=utc_timestamp())
        with self._lock, self._conn:
            self._conn.execute(
                f"""
                INSERT INTO {MEMORY_TABLE} (user_id, key, value, timestamp)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, key) DO UPDATE SET
                    value = excluded.value,
                    timestamp = excluded.timestamp
                """,
                (entry.user_id, entry.key, entry.value, entry.timestamp),
            )
        return entry

    def get(self, user_id: str, key: str) -> Optional[MemoryEntry]:
        with self._lock:
            row = self._conn.execute(
                f"SELECT user_id, key, value, timestamp FROM {MEMORY_TABLE} WHERE user_id = ? AND key = ?",
                (user_id, key),
            ).fetchone()
        return MemoryEntry(**dict(row)) if row else None

    def list(self, user_id: str) -> List[MemoryEntry]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT user_id, key, value, timestamp FROM {MEMORY_TABLE} "
                "WHERE user_id = ? ORDER BY timestamp DESC, id DESC",
                (user_id,),
            ).fetchall()
        return [MemoryEntry(**dict(row)) for row in rows]

    def delete(self, user_id: str, key: str) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                f"DELETE FROM {MEMORY_TABLE} WHERE user_id = ? AND key = ?",
                (user_id, key),
            )
        return cursor.rowcount > 0

    def execute_sql(self, query: str) -> Any:
        """Run one raw statement; rows for queries, a change count otherwise."""
        with self._lock, self._conn:
            cursor = self._conn.execute(query)
            if cursor.description is None:
                return {"rows_affected": cursor.rowcount}
            return [dict(row) for row in cursor.fetchall()]

    def list_tables(self) -> List[Dict[str, str]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
            ).fetchall()
        return [{"table_name": row["name"], "table_schema": "main"} for row in rows]

    def close(self) -> None:
        self._conn.close()


class FirestoreMemoryStore(MemoryStore):
    """Memory kept in a Firestore collection, one document per (user, key)."""

    def __init__(self, client=None, collection: str = MEMORY_TABLE):
        if client is None:
            from firebase_admin import firestore
            from utils.config import initialize_firebase

            initialize_firebase()
            client = firestore.client()
        self.db = client
        self.collection = collection

    @staticmethod
    def document_id(user_id: str, key: str) -> str:
        return f"{user_id}:{key}"

    def _doc(self, user_id: str, key: str):
        return self.db.collection(self.collection).document(self.document_id(user_id, key))

    def upsert(self, user_id: str, key: str, value: str) -> MemoryEntry:
        entry = MemoryEntry(user_id=user_id, key=key, value=value, timestamp=utc_timestamp())
        self._doc(user_id, key).set({
            "user_id": entry.user_id,
            "key": entry.key,
            "value": entry.value,
            "timestamp": entry.timestamp,
        })
        return entry

    def get(self, user_id: str, key: str) -> Optional[MemoryEntry]:
        snapshot = self._doc(user_id, key).get()
        if not snapshot.exists:
            return None
        return MemoryEntry(**snapshot.to_dict())

    def list(self, user_id: str) -> List[MemoryEntry]:
        docs = self.db.collection(self.collection).where("user_id", "==", user_id).stream()
        entries = [MemoryEntry(**doc.to_dict()) for doc in docs]
        # Sorted here so the query needs no composite index
        entries.sort(key=lambda entry: entry.timestamp, reverse=True)
        return entries

    def delete(self, user_id: str, key: str) -> bool:
        doc = self._doc(user_id, key)
        existed = doc.get().exists
        doc.delete()
        return existed

    def execute_sql(self, query: str) -> Any:
        raise NotImplementedError("Raw SQL is not supported by the Firestore memory backend")

    def list_tables(self) -> List[Dict[str, str]]:
        return [{"table_name": collection.id, "table_schema": "firestore"} for collection in self.db.collections()]


def create_memory_store(database_url: str) -> MemoryStore:
    """
    Create the memory backend named by ``database_url``.

    ``sqlite:///path`` opens a SQLite file, ``firestore://`` uses the
    Firebase project configured in the environment.
    """
    if database_url.startswith(FIRESTORE_PREFIX):
        logger.info("Using Firestore memory store")
        return FirestoreMemoryStore()
    if database_url.startswith(SQLITE_PREFIX):
        return SQLiteMemoryStore(database_url[len(SQLITE_PREFIX):] or ":memory:")
    raise ValueError(f"Unsupported DATABASE_URL: {database_url}")
