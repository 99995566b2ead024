# keysafe_core/storage/__init__.py

from .provider import StorageProvider
from .providers.memory_provider import InMemoryStorage
from .providers.file_provider import FileStorage, validate_storage_key
from .providers.sqlite_provider import SQLiteStorage
import os


def load_storage_provider(config: dict | None = None) -> StorageProvider:
    """
    Factory resolver for selecting the runtime storage backend.

        - file (default): one JSON file per key under KEYSAFE_STORAGE_DIR
        - sqlite: key/value table in KEYSAFE_DB_PATH
        - memory: process-local, for tests and ephemeral sessions
    """
    config = config or {}
    provider = config.get("provider") or os.getenv("KEYSAFE_STORAGE_PROVIDER", "file")

    if provider == "memory":
        return InMemoryStorage()

    if provider == "file":
        directory = config.get("storage_dir") or os.getenv("KEYSAFE_STORAGE_DIR", "~/.keysafe")
        return FileStorage(directory)

    if provider == "sqlite":
        db_path = config.get("sqlite_path") or os.getenv("KEYSAFE_DB_PATH", "db/keysafe.db")
        return SQLiteStorage(os.path.expanduser(db_path))

    raise ValueError(f"Unknown storage provider: {provider}")


__all__ = [
    "StorageProvider",
    "InMemoryStorage",
    "FileStorage",
    "SQLiteStorage",
    "validate_storage_key",
    "load_storage_provider",
]
