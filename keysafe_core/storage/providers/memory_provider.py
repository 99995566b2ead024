from typing import Dict, List, Optional
from keysafe_core.storage.provider import StorageProvider


class InMemoryStorage(StorageProvider):
    def __init__(self):
        self.data: Dict[str, str] = {}

    def save(self, key: str, value: str) -> None:
        self.data[key] = value

    def load(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None

    def list_keys(self) -> List[str]:
        return list(self.data.keys())

    def clear(self) -> None:
        self.data.clear()
