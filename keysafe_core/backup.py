"""
keysafe_core.backup
-------------------
Envelope for encrypted full-keyring backups.

    {"format": "keysafe-encrypted-backup", "version": 1,
     "createdAt": "...", "keyCount": 3, "data": "<secret>"}

``data`` is one encrypted secret (see keysafe_core.codec) sealed under the
backup passphrase, which is independent of the master passphrase. Its
plaintext is a JSON snapshot ``{"exportedAt": ..., "entries": {...}}`` with
every private key in plaintext.
"""

from __future__ import annotations
import json
from typing import Any, Dict
from .codec import encrypt_secret, decrypt_secret
from .constants import BACKUP_FORMAT, BACKUP_VERSION, MIN_BACKUP_PASSPHRASE_LENGTH
from .errors import DecryptionFailed, InvalidPassphrase
from .utils import now_ts


def check_backup_passphrase(backup_passphrase: str) -> None:
    if not backup_passphrase or len(backup_passphrase) < MIN_BACKUP_PASSPHRASE_LENGTH:
        raise InvalidPassphrase(
            f"Backup passphrase must be at least {MIN_BACKUP_PASSPHRASE_LENGTH} characters"
        )


def seal_backup(entries: Dict[str, Dict[str, Any]], backup_passphrase: str) -> str:
    check_backup_passphrase(backup_passphrase)
    snapshot = json.dumps({"exportedAt": now_ts(), "entries": entries}, ensure_ascii=False)
    return json.dumps({
        "format": BACKUP_FORMAT,
        "version": BACKUP_VERSION,
        "createdAt": now_ts(),
        "keyCount": len(entries),
        "data": encrypt_secret(snapshot, backup_passphrase),
    })


def is_encrypted_backup(blob: str) -> bool:
    try:
        _read_envelope(blob)
    except DecryptionFailed:
        return False
    return True


def open_backup(blob: str, backup_passphrase: str) -> Dict[str, Dict[str, Any]]:
    """Return the plaintext entry mapping. The envelope failing to open is always fatal."""
    envelope = _read_envelope(blob)
    plaintext = decrypt_secret(envelope["data"], backup_passphrase)
    try:
        snapshot = json.loads(plaintext)
    except ValueError as e:
        raise DecryptionFailed("Backup payload is not valid JSON") from e
    entries = snapshot.get("entries") if isinstance(snapshot, dict) else None
    if not isinstance(entries, dict):
        raise DecryptionFailed("Backup payload has no entries")
    return entries


def _read_envelope(blob: str) -> Dict[str, Any]:
    try:
        envelope = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise DecryptionFailed("Not an encrypted keyring backup") from e
    if not isinstance(envelope, dict) or envelope.get("format") != BACKUP_FORMAT:
        raise DecryptionFailed("Not an encrypted keyring backup")
    if envelope.get("version") != BACKUP_VERSION:
        raise DecryptionFailed(f"Unsupported backup version: {envelope.get('version')!r}")
    if not isinstance(envelope.get("data"), str):
        raise DecryptionFailed("Backup envelope has no encrypted payload")
    return envelope
