# Sync Vault - Key/Value Storage Backends
#
# The vault never talks to a storage medium directly. It receives two
# KeyValueStore instances: a durable one (encrypted blob + salt) and the
# deprecated legacy one that may still hold a plaintext passphrase.
#
# Backends raise their native I/O errors (sqlite3.Error, OSError); the
# vault maps them to StorageUnavailableError.

import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Protocol, Union, runtime_checkable

from ..core.db import connect as db_connect

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal key/value capability consumed by the vault."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    """Volatile in-process store. Contents vanish with the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class SQLiteKeyValueStore:
    """Durable SQLite key/value store.

    Args:
        db_path: Path to SQLite file. Parent directories are created.
        table: Table name (lets several logical stores share one file).
    """

    def __init__(self, db_path: Union[str, Path], table: str = "kv_store"):
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")
        self.db_path = Path(db_path)
        self.table = table
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _init_database(self):
        with closing(db_connect(self.db_path)) as conn, conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    def _connect(self) -> sqlite3.Connection:
        return db_connect(self.db_path, row_factory=True)

    def get(self, key: str) -> Optional[str]:
        """Return the value for key, or None if absent."""
        with closing(self._connect()) as conn:
            row = conn.execute(
                f"SELECT value FROM {self.table} WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        return row["value"]

    def set(self, key: str, value: str) -> None:
        """Set a value (upsert)."""
        now = datetime.now(timezone.utc).isoformat()
        with closing(self._connect()) as conn, conn:
            conn.execute(
                f"""INSERT INTO {self.table} (key, value, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                (key, value, now),
            )

    def remove(self, key: str) -> None:
        """Delete a key. Removing an absent key is a no-op."""
        with closing(self._connect()) as conn, conn:
            conn.execute(f"DELETE FROM {self.table} WHERE key = ?", (key,))

    def keys(self):
        with closing(self._connect()) as conn:
            rows = conn.execute(f"SELECT key FROM {self.table} ORDER BY key").fetchall()
        return [row["key"] for row in rows]
