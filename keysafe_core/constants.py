"""
keysafe_core.constants
----------------------
Fixed parameters shared across the keyring. The crypto values are part of
the on-disk format: changing any of them breaks existing keyrings unless the
secret version is bumped alongside.
"""

# --------- Key derivation / AEAD ----------
PBKDF2_ITERATIONS = 120_000
SALT_LENGTH = 16        # bytes
IV_LENGTH = 12          # bytes, 96-bit GCM nonce
KEY_LENGTH = 32         # bytes, AES-256
TAG_LENGTH = 16         # bytes, 128-bit GCM tag

SECRET_VERSION = 1
SUPPORTED_SECRET_VERSIONS = frozenset({SECRET_VERSION})

# --------- Keyring document ----------
STORAGE_KEY = "keysafe_keyring"
DOCUMENT_VERSION = 1
SUPPORTED_DOCUMENT_VERSIONS = frozenset({DOCUMENT_VERSION})

VERIFICATION_PLAINTEXT = "KEYSAFE_VERIFICATION_TOKEN_V1"

# --------- Backups ----------
BACKUP_FORMAT = "keysafe-encrypted-backup"
BACKUP_VERSION = 1
MIN_BACKUP_PASSPHRASE_LENGTH = 8

SHORT_KEY_ID_LENGTH = 8
