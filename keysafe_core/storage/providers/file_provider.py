from __future__ import annotations
from pathlib import Path
from typing import List, Optional
import os, re
from keysafe_core.logger import get_logger
from keysafe_core.storage.provider import StorageProvider

log = get_logger("keysafe.storage.file")

_VALID_KEY = re.compile(r"^[A-Za-z0-9_-]+$")
MAX_KEY_LENGTH = 255


def validate_storage_key(key: str) -> None:
    """Only alphanumerics, hyphens and underscores; nothing that can form a path."""
    if not key or not isinstance(key, str):
        raise ValueError("Storage key must be a non-empty string")
    if not _VALID_KEY.match(key):
        raise ValueError(
            f"Invalid storage key: {key!r}. Only alphanumeric characters, hyphens, "
            "and underscores are allowed."
        )
    if len(key) > MAX_KEY_LENGTH:
        raise ValueError(f"Storage key exceeds maximum length of {MAX_KEY_LENGTH} characters")


class FileStorage(StorageProvider):
    """One ``<key>.json`` file per key inside a single directory."""

    def __init__(self, directory: str | os.PathLike = "~/.keysafe"):
        self.directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        validate_storage_key(key)
        base = self.directory.resolve()
        path = (base / f"{key}.json").resolve()
        if path.parent != base:
            raise ValueError("Path traversal detected: key would escape the storage directory")
        return path

    def save(self, key: str, value: str) -> None:
        path = self._path(key)
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            f.write(value)
        os.chmod(tmp, 0o600)
        os.replace(tmp, path)
        log.debug(f"[FILE SAVE] {path}")

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def list_keys(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json") if p.is_file())

    def clear(self) -> None:
        for key in self.list_keys():
            self.delete(key)
