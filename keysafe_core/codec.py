"""
keysafe_core.codec
------------------
Compact string form of one encrypted secret:

    version:salt:iv:ciphertext

All three data fields are standard base64 (which never contains ':'), so a
plain split is unambiguous. The version field is the migration hook for
future algorithm changes; only version 1 is accepted today.
"""

from __future__ import annotations
import re
from .constants import SUPPORTED_SECRET_VERSIONS
from .crypto import EncryptedData, encrypt_data, decrypt_data
from .errors import DecryptionFailed

_B64_RE = re.compile(r"^[A-Za-z0-9+/]+=*$")
_PRIVATE_KEY_MARKER_RE = re.compile(r"-----BEGIN (?:[A-Z0-9]+ )*PRIVATE KEY(?: BLOCK)?-----")


def encode_secret(data: EncryptedData) -> str:
    return f"{data.version}:{data.salt}:{data.iv}:{data.ciphertext}"


def _parse_version(version_str: str) -> int | None:
    if not (version_str.isascii() and version_str.isdigit()):
        return None
    version = int(version_str)
    return version if version >= 1 else None


def decode_secret(value: str) -> EncryptedData:
    if not isinstance(value, str):
        raise DecryptionFailed("Invalid encrypted secret format")

    parts = value.split(":")
    if len(parts) != 4:
        raise DecryptionFailed("Invalid encrypted secret format")

    version_str, salt, iv, ciphertext = parts
    version = _parse_version(version_str)
    if version is None:
        raise DecryptionFailed("Invalid encryption version")
    if version not in SUPPORTED_SECRET_VERSIONS:
        raise DecryptionFailed(f"Unsupported encryption version: {version}")

    return EncryptedData(salt=salt, iv=iv, ciphertext=ciphertext, version=version)


def looks_encrypted(value: str) -> bool:
    """Structural probe for the secret format. Never needs the passphrase."""
    if not value or not isinstance(value, str):
        return False
    parts = value.split(":")
    if len(parts) != 4:
        return False
    version_str, salt, iv, ciphertext = parts
    if _parse_version(version_str) is None:
        return False
    return all(_B64_RE.match(p) for p in (salt, iv, ciphertext))


def looks_plaintext_private_key(value: str) -> bool:
    if not value or not isinstance(value, str):
        return False
    return _PRIVATE_KEY_MARKER_RE.search(value) is not None


def encrypt_secret(plaintext: str, passphrase: str) -> str:
    return encode_secret(encrypt_data(plaintext, passphrase))


def decrypt_secret(value: str, passphrase: str) -> str:
    return decrypt_data(decode_secret(value), passphrase)
