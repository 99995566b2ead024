"""
keysafe_core.keyring
--------------------
The keyring store: an in-memory map of KeyringEntry objects keyed by
fingerprint, persisted as one JSON document through a StorageProvider, with
private keys sealed under a master passphrase.

States:

    UNLOADED --load()--> UNENCRYPTED | LOCKED
    LOCKED   --unlock(p)--> UNLOCKED
    UNLOCKED --lock()-->    LOCKED
    UNENCRYPTED --set_master_passphrase(p)--> UNLOCKED

Every mutation writes the full document immediately. The persisted document
is only read at load(), so two Keyring instances over the same storage
location race: the last one to save wins. Within one instance, every public
operation holds an instance lock, which makes passphrase rotation a critical
section.
"""

from __future__ import annotations
import functools, json, os, threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from .backup import check_backup_passphrase, seal_backup, open_backup
from .codec import encrypt_secret, decrypt_secret, looks_encrypted
from .constants import STORAGE_KEY, DOCUMENT_VERSION
from .document import DocumentFormat, KeyringDocument
from .errors import (
    KeysafeError, InvalidPassphrase, DecryptionFailed, KeyringLocked,
    KeyringNotEncrypted, InvalidKey, StorageError,
)
from .keys import KeyParser, PemKeyParser, normalize_fingerprint
from .logger import get_logger
from .models import KeyringEntry, KeyringStats
from .storage import StorageProvider, load_storage_provider
from .utils import now_ts, secure_clear
from .verification import generate_verification_token, verify_passphrase

log = get_logger("keysafe.keyring")

WarningCallback = Callable[[str], None]


class KeyringState(str, Enum):
    UNLOADED = "unloaded"
    UNENCRYPTED = "loaded-unencrypted"
    LOCKED = "loaded-encrypted-locked"
    UNLOCKED = "loaded-encrypted-unlocked"


def _synchronized(fn):
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return fn(self, *args, **kwargs)
    return wrapper


def _default_warning(message: str) -> None:
    log.warning(message)


class Keyring:
    def __init__(
        self,
        storage: StorageProvider,
        parser: Optional[KeyParser] = None,
        passphrase: Optional[str] = None,
        require_encryption: bool = False,
        on_warning: Optional[WarningCallback] = None,
        storage_key: str = STORAGE_KEY,
    ):
        self.storage = storage
        self.parser = parser or PemKeyParser()
        self.require_encryption = require_encryption
        self.storage_key = storage_key
        self._on_warning = on_warning or _default_warning
        self._initial_passphrase = passphrase
        self._lock = threading.RLock()

        self._entries: Dict[str, KeyringEntry] = {}
        self._loaded = False
        self._encrypted = False
        self._verification_token: Optional[str] = None
        # master passphrase, UTF-8 in a buffer we can zero on lock()
        self._passphrase: Optional[bytearray] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def state(self) -> KeyringState:
        if not self._loaded:
            return KeyringState.UNLOADED
        if not self._encrypted:
            return KeyringState.UNENCRYPTED
        return KeyringState.LOCKED if self._passphrase is None else KeyringState.UNLOCKED

    def has_encryption(self) -> bool:
        return self._encrypted

    def is_locked(self) -> bool:
        return self._encrypted and self._passphrase is None

    def set_warning_callback(self, callback: Optional[WarningCallback]) -> None:
        self._on_warning = callback or _default_warning

    def _warn(self, message: str) -> None:
        try:
            self._on_warning(message)
        except Exception:
            # advisories must never break the operation that raised them
            log.exception("warning callback failed")

    def _set_passphrase(self, passphrase: str) -> None:
        self._clear_passphrase()
        self._passphrase = bytearray(passphrase.encode("utf-8"))

    def _clear_passphrase(self) -> None:
        if self._passphrase is not None:
            secure_clear(self._passphrase)
        self._passphrase = None

    def _current_passphrase(self) -> Optional[str]:
        if self._passphrase is None:
            return None
        return self._passphrase.decode("utf-8")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    @_synchronized
    def load(self) -> None:
        try:
            raw = self.storage.load(self.storage_key)
        except Exception as e:
            raise StorageError(f"Failed to load keyring: {e}") from e

        doc = KeyringDocument.from_json(raw) if raw else KeyringDocument()

        self._clear_passphrase()
        self._entries = doc.entries
        self._encrypted = doc.is_encrypted
        self._verification_token = doc.verification_token
        self._loaded = True
        log.info(f"[LOAD] keyring format={doc.format.value} entries={len(doc.entries)}")

        if doc.format is DocumentFormat.LEGACY and doc.entries:
            log.info("[LOAD] legacy keyring layout; it will be rewritten on next save")

        if not self._encrypted and doc.plaintext_private_keys():
            self._warn(
                "Keyring contains unencrypted private keys. "
                "Set a master passphrase to encrypt them at rest."
            )

        if self._initial_passphrase:
            passphrase, self._initial_passphrase = self._initial_passphrase, None
            if self._encrypted:
                self.unlock(passphrase)
            else:
                self.set_master_passphrase(passphrase)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _document(self) -> KeyringDocument:
        return KeyringDocument(
            format=DocumentFormat.ENCRYPTED if self._encrypted else DocumentFormat.UNENCRYPTED,
            entries=self._entries,
            verification_token=self._verification_token,
            version=DOCUMENT_VERSION,
        )

    @_synchronized
    def save(self) -> None:
        try:
            self.storage.save(self.storage_key, self._document().to_json())
        except Exception as e:
            raise StorageError(f"Failed to save keyring: {e}") from e

    # ------------------------------------------------------------------
    # Lock / unlock / passphrase management
    # ------------------------------------------------------------------
    @_synchronized
    def unlock(self, passphrase: str) -> None:
        self._ensure_loaded()
        if not passphrase:
            raise InvalidPassphrase("Passphrase is required to unlock the keyring")
        if not self._encrypted:
            log.debug("[UNLOCK] keyring is not encrypted; nothing to unlock")
            return
        if not self._verification_token:
            raise DecryptionFailed("Keyring is marked encrypted but has no verification token")
        if not verify_passphrase(self._verification_token, passphrase):
            log.info("[UNLOCK] rejected passphrase")
            raise InvalidPassphrase("Incorrect passphrase")

        self._set_passphrase(passphrase)
        try:
            self._seal_plaintext_entries()
        except StorageError:
            self._clear_passphrase()
            raise
        log.info("[UNLOCK] keyring unlocked")

    @_synchronized
    def lock(self) -> None:
        self._clear_passphrase()
        log.info("[LOCK] keyring locked")

    def _seal_plaintext_entries(self) -> None:
        """Encrypt private keys that were found in plaintext inside an encrypted document."""
        stray = self._document().plaintext_private_keys()
        if not stray:
            return
        passphrase = self._current_passphrase()
        sealed = dict(self._entries)
        for fpr in stray:
            entry = sealed[fpr].copy()
            entry.private_key = encrypt_secret(entry.private_key, passphrase)
            sealed[fpr] = entry

        previous, self._entries = self._entries, sealed
        try:
            self.save()
        except StorageError:
            self._entries = previous
            raise
        log.warning(f"[UNLOCK] sealed {len(stray)} plaintext private key(s) found in encrypted keyring")

    @_synchronized
    def set_master_passphrase(self, new_passphrase: str) -> None:
        """
        Enable encryption or rotate the master passphrase.

        All re-encryption happens on copies; the in-memory map and the
        document are only replaced once every entry has been processed, so a
        single failing entry leaves both untouched.
        """
        self._ensure_loaded()
        if not new_passphrase:
            raise InvalidPassphrase("Master passphrase must not be empty")
        if self._encrypted and self._passphrase is None:
            raise KeyringLocked("Unlock the keyring before changing its passphrase")

        old_passphrase = self._current_passphrase()
        rotate = old_passphrase is not None and old_passphrase != new_passphrase

        updated: Dict[str, KeyringEntry] = {}
        for fpr, entry in self._entries.items():
            new_entry = entry.copy()
            if entry.private_key:
                if looks_encrypted(entry.private_key):
                    if old_passphrase is None:
                        raise DecryptionFailed(
                            f"Entry {entry.key_id} holds an encrypted private key but no passphrase is set"
                        )
                    if rotate:
                        try:
                            plaintext = decrypt_secret(entry.private_key, old_passphrase)
                        except KeysafeError as e:
                            raise DecryptionFailed(
                                f"Failed to re-encrypt private key {entry.key_id}: {e}"
                            ) from e
                        new_entry.private_key = encrypt_secret(plaintext, new_passphrase)
                else:
                    new_entry.private_key = encrypt_secret(entry.private_key, new_passphrase)
            updated[fpr] = new_entry

        token = generate_verification_token(new_passphrase)

        previous = (self._entries, self._encrypted, self._verification_token, old_passphrase)
        self._entries = updated
        self._verification_token = token
        self._encrypted = True
        self._set_passphrase(new_passphrase)
        try:
            self.save()
        except StorageError:
            self._entries, self._encrypted, self._verification_token, old = previous
            if old is None:
                self._clear_passphrase()
            else:
                self._set_passphrase(old)
            raise
        log.info(f"[PASSPHRASE] master passphrase {'rotated' if rotate else 'set'} for {len(updated)} entries")

    @_synchronized
    def change_passphrase(self, current_passphrase: str, new_passphrase: str) -> None:
        self._ensure_loaded()
        if not self._encrypted:
            raise KeyringNotEncrypted("Keyring is not encrypted; use set_master_passphrase()")
        if not self._verification_token:
            raise DecryptionFailed("Keyring is marked encrypted but has no verification token")
        if not verify_passphrase(self._verification_token, current_passphrase):
            raise InvalidPassphrase("Current passphrase is incorrect")

        was_locked = self._passphrase is None
        self._set_passphrase(current_passphrase)
        try:
            self.set_master_passphrase(new_passphrase)
        except KeysafeError:
            if was_locked:
                self._clear_passphrase()
            raise

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------
    def _seal(self, private_key: str) -> str:
        passphrase = self._current_passphrase()
        if self._encrypted:
            if passphrase is None:
                raise KeyringLocked("Keyring is locked; unlock it to add private keys")
            return encrypt_secret(private_key, passphrase)
        if self.require_encryption:
            raise KeyringNotEncrypted("Keyring requires encryption; set a master passphrase first")
        self._warn("Storing private key without encryption. Set a master passphrase to protect it.")
        return private_key

    def _open(self, entry: KeyringEntry) -> KeyringEntry:
        """Copy of ``entry`` with its private key in plaintext."""
        opened = entry.copy()
        if entry.private_key and looks_encrypted(entry.private_key):
            passphrase = self._current_passphrase()
            if passphrase is None:
                raise KeyringLocked("Keyring is locked; unlock it to access private keys")
            opened.private_key = decrypt_secret(entry.private_key, passphrase)
        return opened

    def _find(self, identifier: str) -> Optional[KeyringEntry]:
        normalized = normalize_fingerprint(identifier or "")
        if not normalized:
            return None
        if normalized in self._entries:
            return self._entries[normalized]
        for fingerprint, entry in self._entries.items():
            if fingerprint.endswith(normalized) or entry.key_id.upper() == normalized:
                return entry
        return None

    @_synchronized
    def add_key(self, public_key: str, private_key: Optional[str] = None) -> KeyringEntry:
        self._ensure_loaded()
        try:
            info = self.parser.parse(public_key, private_key)
        except KeysafeError:
            raise
        except Exception as e:
            raise InvalidKey(f"Failed to add key: {e}") from e

        entry = KeyringEntry(
            key_id=info.key_id,
            fingerprint=normalize_fingerprint(info.fingerprint),
            public_key=public_key,
            key_info=info,
            private_key=self._seal(private_key) if private_key else None,
        )
        self._entries[entry.fingerprint] = entry
        self.save()
        log.info(f"[ADD] key {entry.key_id} private={entry.has_private_key}")
        return entry.copy()

    @_synchronized
    def get_key(self, identifier: str) -> Optional[KeyringEntry]:
        self._ensure_loaded()
        entry = self._find(identifier)
        return entry.copy() if entry else None

    @_synchronized
    def get_key_decrypted(self, identifier: str) -> Optional[KeyringEntry]:
        self._ensure_loaded()
        entry = self._find(identifier)
        return self._open(entry) if entry else None

    @_synchronized
    def get_all_keys(self) -> List[KeyringEntry]:
        self._ensure_loaded()
        return [e.copy() for e in self._entries.values()]

    # every entry carries a public key
    get_public_keys = get_all_keys

    @_synchronized
    def get_private_keys(self) -> List[KeyringEntry]:
        self._ensure_loaded()
        return [e.copy() for e in self._entries.values() if e.has_private_key]

    @_synchronized
    def get_private_keys_decrypted(self) -> List[KeyringEntry]:
        self._ensure_loaded()
        return [self._open(e) for e in self._entries.values() if e.has_private_key]

    @_synchronized
    def search_keys(self, query: str) -> List[KeyringEntry]:
        self._ensure_loaded()
        q = query.lower()
        return [
            e.copy() for e in self._entries.values()
            if any(q in u.name.lower() or q in u.email.lower() for u in e.key_info.user_ids)
        ]

    @_synchronized
    def delete_key(self, identifier: str) -> bool:
        self._ensure_loaded()
        entry = self._find(identifier)
        if not entry:
            return False
        del self._entries[entry.fingerprint]
        self.save()
        log.info(f"[DELETE] key {entry.key_id}")
        return True

    @_synchronized
    def update_last_used(self, identifier: str) -> None:
        self._ensure_loaded()
        entry = self._find(identifier)
        if entry:
            entry.last_used = now_ts()
            self.save()

    @_synchronized
    def clear(self) -> None:
        self._ensure_loaded()
        self._entries = {}
        self.save()

    @_synchronized
    def get_stats(self) -> KeyringStats:
        self._ensure_loaded()
        stats = KeyringStats(encrypted=self._encrypted, locked=self.is_locked())
        for entry in self._entries.values():
            stats.total_keys += 1
            stats.public_keys += 1
            if entry.has_private_key:
                stats.private_keys += 1
            if entry.key_info.revoked:
                stats.revoked_keys += 1
            if entry.key_info.is_expired():
                stats.expired_keys += 1
        return stats

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------
    def _snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {fpr: self._open(e).to_dict() for fpr, e in self._entries.items()}

    @_synchronized
    def export_all(self) -> str:
        """Entries exactly as stored; encrypted private keys stay encrypted."""
        self._ensure_loaded()
        return json.dumps({fpr: e.to_dict() for fpr, e in self._entries.items()}, ensure_ascii=False)

    @_synchronized
    def export_all_decrypted(self) -> str:
        self._ensure_loaded()
        data = json.dumps(self._snapshot(), ensure_ascii=False)
        self._warn("Exported private keys in plaintext. Store the export securely.")
        return data

    @_synchronized
    def export_encrypted(self, backup_passphrase: str) -> str:
        self._ensure_loaded()
        check_backup_passphrase(backup_passphrase)
        snapshot = self._snapshot()
        blob = seal_backup(snapshot, backup_passphrase)
        log.info(f"[EXPORT] encrypted backup of {len(snapshot)} entries")
        return blob

    def _import_entries(self, entries: Dict[str, Any]) -> int:
        if self.is_locked() and any(
            isinstance(item, dict) and item.get("privateKey") for item in entries.values()
        ):
            raise KeyringLocked("Unlock the keyring before importing private keys")

        imported = 0
        for fpr, item in entries.items():
            try:
                if not isinstance(item, dict):
                    raise InvalidKey("entry is not an object")
                private_key = item.get("privateKey")
                if private_key and looks_encrypted(private_key):
                    raise InvalidKey("entry holds an encrypted private key from another keyring")
                self.add_key(item["publicKey"], private_key)
                imported += 1
            except (KeysafeError, KeyError, TypeError) as e:
                log.warning(f"[IMPORT] skipped entry {fpr}: {type(e).__name__}: {e}")
        log.info(f"[IMPORT] imported {imported}/{len(entries)} entries")
        return imported

    @_synchronized
    def import_from_backup(self, backup: str) -> int:
        """Import a plaintext export (export_all_decrypted / legacy document)."""
        self._ensure_loaded()
        try:
            data = json.loads(backup)
        except (TypeError, ValueError) as e:
            raise InvalidKey(f"Backup is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidKey("Backup must be a JSON object")
        if isinstance(data.get("entries"), dict):
            data = data["entries"]
        return self._import_entries(data)

    @_synchronized
    def import_encrypted_backup(self, blob: str, backup_passphrase: str) -> int:
        self._ensure_loaded()
        entries = open_backup(blob, backup_passphrase)
        return self._import_entries(entries)


def create_keyring(config: dict | None = None, **kwargs) -> Keyring:
    """
    Build a Keyring from a config dict, falling back to KEYSAFE_* env vars.

    Recognised keys: provider, storage_dir, sqlite_path (see
    load_storage_provider), require_encryption, storage_key.
    """
    config = config or {}
    storage = load_storage_provider(config)
    require = config.get("require_encryption")
    if require is None:
        require = os.getenv("KEYSAFE_REQUIRE_ENCRYPTION", "0").lower() in ("1", "true", "yes")
    return Keyring(
        storage,
        require_encryption=bool(require),
        storage_key=config.get("storage_key", STORAGE_KEY),
        **kwargs,
    )
