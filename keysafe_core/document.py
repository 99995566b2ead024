"""
keysafe_core.document
---------------------
The single persisted keyring document and its three on-disk shapes:

    LEGACY       {"<fingerprint>": {...entry...}, ...}
    UNENCRYPTED  {"entries": {...}}
    ENCRYPTED    {"encrypted": true, "version": 1,
                  "verificationToken": "<secret>", "entries": {...}}

The shape is sniffed exactly once, in KeyringDocument.from_json(); the rest
of the package only looks at ``KeyringDocument.format``. Legacy documents are
never written back: saving always emits one of the two wrapped shapes.
"""

from __future__ import annotations
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
from .codec import looks_encrypted
from .constants import DOCUMENT_VERSION, SUPPORTED_DOCUMENT_VERSIONS
from .errors import DecryptionFailed, StorageError
from .keys import normalize_fingerprint
from .models import KeyringEntry


class DocumentFormat(str, Enum):
    LEGACY = "legacy"
    UNENCRYPTED = "unencrypted"
    ENCRYPTED = "encrypted"


@dataclass
class KeyringDocument:
    format: DocumentFormat = DocumentFormat.UNENCRYPTED
    entries: Dict[str, KeyringEntry] = field(default_factory=dict)
    verification_token: Optional[str] = None
    version: int = DOCUMENT_VERSION

    @property
    def is_encrypted(self) -> bool:
        return self.format is DocumentFormat.ENCRYPTED

    def plaintext_private_keys(self) -> list[str]:
        """Fingerprints of entries whose private key is not an encrypted secret."""
        return [
            fpr for fpr, entry in self.entries.items()
            if entry.private_key and not looks_encrypted(entry.private_key)
        ]

    def to_dict(self) -> Dict[str, Any]:
        entries = {fpr: entry.to_dict() for fpr, entry in self.entries.items()}
        if self.is_encrypted:
            return {
                "encrypted": True,
                "version": self.version,
                "verificationToken": self.verification_token,
                "entries": entries,
            }
        return {"entries": entries}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str) -> "KeyringDocument":
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Keyring document is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise StorageError("Keyring document must be a JSON object")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyringDocument":
        if data.get("encrypted") is True:
            version = data.get("version", DOCUMENT_VERSION)
            if not isinstance(version, int) or version not in SUPPORTED_DOCUMENT_VERSIONS:
                raise DecryptionFailed(f"Unsupported keyring document version: {version!r}")
            token = data.get("verificationToken")
            if token is not None and not isinstance(token, str):
                raise StorageError("verificationToken must be a string")
            return cls(
                format=DocumentFormat.ENCRYPTED,
                entries=_parse_entries(data.get("entries", {})),
                verification_token=token or None,
                version=version,
            )

        if isinstance(data.get("entries"), dict):
            return cls(format=DocumentFormat.UNENCRYPTED, entries=_parse_entries(data["entries"]))

        # No wrapper at all: the whole object is the fingerprint map.
        return cls(format=DocumentFormat.LEGACY, entries=_parse_entries(data))


def _parse_entries(raw: Any) -> Dict[str, KeyringEntry]:
    if not isinstance(raw, dict):
        raise StorageError("Keyring entries must be a JSON object")
    entries: Dict[str, KeyringEntry] = {}
    for fpr, item in raw.items():
        if not isinstance(item, dict):
            raise StorageError(f"Malformed keyring entry for {fpr!r}")
        try:
            entry = KeyringEntry.from_dict(item)
        except (KeyError, TypeError, AttributeError) as e:
            raise StorageError(f"Malformed keyring entry for {fpr!r}: {e}") from e
        entry.fingerprint = normalize_fingerprint(entry.fingerprint)
        entries[entry.fingerprint] = entry
    return entries
