"""
keysafe_core.errors
-------------------
Error hierarchy for the keyring. Every error carries a stable ``code`` so
front-ends can branch without string matching.

``InvalidPassphrase`` and ``DecryptionFailed`` are distinct: the
first means "wrong passphrase or tampered ciphertext" (indistinguishable under
AES-GCM), the second means the stored data is malformed or from an
unsupported format version.
"""


class KeysafeError(Exception):
    code = "UNKNOWN_ERROR"


class InvalidPassphrase(KeysafeError):
    code = "INVALID_PASSPHRASE"


class DecryptionFailed(KeysafeError):
    code = "DECRYPTION_FAILED"


class KeyringLocked(KeysafeError):
    code = "KEYRING_LOCKED"


class KeyringNotEncrypted(KeysafeError):
    code = "KEYRING_NOT_ENCRYPTED"


class InvalidKey(KeysafeError):
    code = "INVALID_KEY"


class StorageError(KeysafeError):
    code = "STORAGE_ERROR"
