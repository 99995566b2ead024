# keysafe_core/storage/provider.py
from typing import List, Optional


class StorageProvider:
    """
    Minimal key/value contract the keyring persists through.

    Values are opaque strings; the keyring stores its whole document under a
    single key. Providers raise their own exceptions; the keyring wraps them
    into StorageError.
    """
    def save(self, key: str, value: str) -> None: ...
    def load(self, key: str) -> Optional[str]: ...
    def delete(self, key: str) -> bool: ...
    def list_keys(self) -> List[str]: ...
    def clear(self) -> None: ...
