from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
import os
from .constants import (
    PBKDF2_ITERATIONS, SALT_LENGTH, IV_LENGTH, KEY_LENGTH, TAG_LENGTH, SECRET_VERSION,
)
from .errors import InvalidPassphrase, DecryptionFailed
from .logger import get_logger
from .utils import b64e, b64d, secure_bytes

log = get_logger("keysafe.crypto")

"""
keysafe_core.crypto
-------------------
Passphrase-based encryption primitives for the keyring:

- PBKDF2-HMAC-SHA256 (120k iterations) turns a passphrase + 16-byte salt
  into an AES-256 key
- AES-256-GCM with a fresh 12-byte IV and 128-bit tag seals UTF-8 payloads
- encrypt_data() / decrypt_data() bundle both with fresh randomness per call

No keyring state lives here; every function is pure apart from os.urandom.
"""


@dataclass
class EncryptedData:
    salt: str           # base64, 16 bytes
    iv: str             # base64, 12 bytes
    ciphertext: str     # base64, ciphertext || tag
    version: int = SECRET_VERSION


def generate_random_bytes(length: int) -> bytes:
    return os.urandom(length)


# --------- PBKDF2 (passphrase -> AES-256 key) ----------
def derive_key(passphrase: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    with secure_bytes(passphrase) as secret:
        return kdf.derive(bytes(secret))


# --------- AES-GCM ----------
def aead_encrypt(key: bytes, plaintext: bytes, aad: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    nonce = generate_random_bytes(IV_LENGTH)
    ct = AESGCM(key).encrypt(nonce, plaintext, aad)
    return nonce, ct


def aead_decrypt(key: bytes, nonce: bytes, ciphertext: bytes, aad: Optional[bytes] = None) -> bytes:
    return AESGCM(key).decrypt(nonce, ciphertext, aad)


# --------- Passphrase helpers ----------
def encrypt_data(plaintext: str, passphrase: str) -> EncryptedData:
    if not passphrase:
        raise InvalidPassphrase("Passphrase is required for encryption")

    salt = generate_random_bytes(SALT_LENGTH)
    with secure_bytes(derive_key(passphrase, salt)) as key:
        iv, ct = aead_encrypt(bytes(key), plaintext.encode("utf-8"))

    return EncryptedData(salt=b64e(salt), iv=b64e(iv), ciphertext=b64e(ct), version=SECRET_VERSION)


def decrypt_data(data: EncryptedData, passphrase: str) -> str:
    """
    Reverse encrypt_data().

    Structural problems (missing fields, bad base64, wrong salt/IV size,
    truncated ciphertext) raise DecryptionFailed before any key derivation.
    A GCM tag mismatch raises InvalidPassphrase: a wrong passphrase and a
    tampered ciphertext cannot be told apart.
    """
    if not passphrase:
        raise InvalidPassphrase("Passphrase is required for decryption")

    if not data.salt or not data.iv or not data.ciphertext:
        raise DecryptionFailed("Invalid encrypted data format: missing required fields")

    try:
        salt = b64d(data.salt)
        iv = b64d(data.iv)
        ct = b64d(data.ciphertext)
    except ValueError as e:
        raise DecryptionFailed(f"Invalid encrypted data encoding: {e}") from e

    if len(salt) != SALT_LENGTH:
        raise DecryptionFailed(f"Invalid salt length: expected {SALT_LENGTH}, got {len(salt)}")
    if len(iv) != IV_LENGTH:
        raise DecryptionFailed(f"Invalid IV length: expected {IV_LENGTH}, got {len(iv)}")
    if len(ct) < TAG_LENGTH:
        raise DecryptionFailed("Ciphertext is shorter than the authentication tag")

    with secure_bytes(derive_key(passphrase, salt)) as key:
        try:
            pt = aead_decrypt(bytes(key), iv, ct)
        except InvalidTag as e:
            log.debug("AES-GCM authentication failed")
            raise InvalidPassphrase("Decryption failed: incorrect passphrase or corrupted data") from e

    try:
        return pt.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionFailed("Decrypted payload is not valid UTF-8") from e
