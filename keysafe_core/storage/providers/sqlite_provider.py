from __future__ import annotations
from typing import List, Optional
import sqlite3, os
from keysafe_core.storage.provider import StorageProvider
from keysafe_core.utils import now_ts


class SQLiteStorage(StorageProvider):
    def __init__(self, path="db/keysafe.db"):
        # If no directory, default to current working directory
        dir_path = os.path.dirname(path) or "."
        os.makedirs(dir_path, exist_ok=True)
        self.db = sqlite3.connect(path, check_same_thread=False)

        self._init()

    def _init(self) -> None:
        self.db.execute("""CREATE TABLE IF NOT EXISTS kv_store(
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )""")
        self.db.commit()

    def save(self, key: str, value: str) -> None:
        self.db.execute(
            "INSERT INTO kv_store(key,value,updated_at) VALUES(?,?,?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
            (key, value, now_ts())
        )
        self.db.commit()

    def load(self, key: str) -> Optional[str]:
        cur = self.db.execute("SELECT value FROM kv_store WHERE key=?", (key,))
        row = cur.fetchone()
        if not row: return None
        return row[0]

    def delete(self, key: str) -> bool:
        cur = self.db.execute("DELETE FROM kv_store WHERE key=?", (key,))
        self.db.commit()
        return cur.rowcount > 0

    def list_keys(self) -> List[str]:
        cur = self.db.execute("SELECT key FROM kv_store ORDER BY key")
        return [r[0] for r in cur.fetchall()]

    def clear(self) -> None:
        self.db.execute("DELETE FROM kv_store")
        self.db.commit()

    def close(self):
        self.db.close()
