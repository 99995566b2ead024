"""
keysafe Core Package
====================
Local credential store for asymmetric key-pairs under a single master
passphrase.

Provides:
- PBKDF2 + AES-256-GCM protection of private-key material at rest
- Passphrase verification tokens (no passphrase is ever persisted)
- Keyring lock/unlock, passphrase rotation and legacy-format migration
- Encrypted full-keyring backups
- Pluggable storage (file, SQLite, in-memory)
"""

from .errors import (
    KeysafeError, InvalidPassphrase, DecryptionFailed, KeyringLocked,
    KeyringNotEncrypted, InvalidKey, StorageError,
)
from .crypto import EncryptedData, derive_key, encrypt_data, decrypt_data
from .codec import (
    encode_secret, decode_secret, encrypt_secret, decrypt_secret,
    looks_encrypted, looks_plaintext_private_key,
)
from .verification import generate_verification_token, verify_passphrase
from .models import UserId, KeyUsage, KeyInfo, KeyringEntry, KeyringStats
from .document import DocumentFormat, KeyringDocument
from .keys import KeyParser, PemKeyParser
from .keyring import Keyring, KeyringState, create_keyring

__version__ = "0.1.0"
