"""
keysafe_core.keys
-----------------
Key-material collaborator for the keyring. The keyring never interprets key
text itself; it hands the exported public (and optional private) key to a
KeyParser and stores whatever identity comes back.

PemKeyParser is the default parser and understands:

- PEM SubjectPublicKeyInfo ("-----BEGIN PUBLIC KEY-----")
- OpenSSH public key lines ("ssh-ed25519 AAAA... Name <email>"); the trailing
  comment becomes the key's user ID
- unencrypted PEM (PKCS#8 / traditional) and OpenSSH private keys, which must
  belong to the given public key

Fingerprint: SHA-256 over the DER SubjectPublicKeyInfo, uppercase hex.
"""

from __future__ import annotations
import hashlib, re
from typing import List, Optional, Tuple
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa, x448, x25519
from .constants import SHORT_KEY_ID_LENGTH
from .errors import InvalidKey
from .models import KeyInfo, KeyUsage, UserId

_UID_RE = re.compile(
    r"^\s*(?P<name>[^<(]*?)\s*(?:\((?P<comment>[^)]*)\)\s*)?(?:<(?P<email>[^>]*)>)?\s*$"
)


def normalize_fingerprint(value: str) -> str:
    return re.sub(r"\s", "", value).upper()


def get_short_key_id(fingerprint: str) -> str:
    return normalize_fingerprint(fingerprint)[-SHORT_KEY_ID_LENGTH:]


def parse_user_id(text: str) -> Optional[UserId]:
    """Parse ``Name (comment) <email>``; a bare ``user@host`` is taken as an email."""
    text = text.strip()
    if not text:
        return None
    if "<" not in text and "@" in text and " " not in text:
        return UserId(email=text)
    m = _UID_RE.match(text)
    if not m:
        return UserId(name=text)
    return UserId(
        name=m.group("name") or "",
        email=m.group("email") or "",
        comment=m.group("comment") or None,
    )


class KeyParser:
    """
    Contract for the key-material collaborator.

    parse() returns the KeyInfo for the given exported key text or raises
    InvalidKey. It must not keep any reference to the private key.
    """

    def parse(self, public_key: str, private_key: Optional[str] = None) -> KeyInfo:
        raise NotImplementedError


class PemKeyParser(KeyParser):

    def parse(self, public_key: str, private_key: Optional[str] = None) -> KeyInfo:
        if not public_key or not isinstance(public_key, str):
            raise InvalidKey("Public key must be a non-empty string")

        pub, user_ids = self._load_public(public_key)
        spki = pub.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

        if private_key is not None:
            priv = self._load_private(private_key)
            priv_spki = priv.public_key().public_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
            if priv_spki != spki:
                raise InvalidKey("Private key does not match the public key")

        fingerprint = hashlib.sha256(spki).hexdigest().upper()
        algorithm, bit_length, curve, usage = describe_public_key(pub)
        return KeyInfo(
            key_id=get_short_key_id(fingerprint),
            fingerprint=fingerprint,
            algorithm=algorithm,
            bit_length=bit_length,
            curve=curve,
            user_ids=user_ids,
            usage=usage,
            is_private=private_key is not None,
        )

    @staticmethod
    def _load_public(text: str) -> Tuple[object, List[UserId]]:
        data = text.strip().encode("utf-8")
        try:
            if data.startswith(b"-----BEGIN"):
                return serialization.load_pem_public_key(data), []
            pub = serialization.load_ssh_public_key(data)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise InvalidKey(f"Unable to parse public key: {e}") from e

        parts = text.strip().split(None, 2)
        uid = parse_user_id(parts[2]) if len(parts) == 3 else None
        return pub, [uid] if uid else []

    @staticmethod
    def _load_private(text: str):
        data = text.strip().encode("utf-8")
        try:
            if b"OPENSSH PRIVATE KEY" in data:
                return serialization.load_ssh_private_key(data, password=None)
            return serialization.load_pem_private_key(data, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise InvalidKey(f"Unable to parse private key: {e}") from e


def describe_public_key(pub) -> Tuple[str, Optional[int], Optional[str], KeyUsage]:
    if isinstance(pub, rsa.RSAPublicKey):
        return f"RSA-{pub.key_size}", pub.key_size, None, KeyUsage(certify=True, sign=True, encrypt=True)
    if isinstance(pub, ec.EllipticCurvePublicKey):
        return f"ECDSA ({pub.curve.name})", pub.curve.key_size, pub.curve.name, KeyUsage(certify=True, sign=True)
    if isinstance(pub, ed25519.Ed25519PublicKey):
        return "EdDSA (Ed25519)", 256, "ed25519", KeyUsage(certify=True, sign=True)
    if isinstance(pub, ed448.Ed448PublicKey):
        return "EdDSA (Ed448)", 456, "ed448", KeyUsage(certify=True, sign=True)
    if isinstance(pub, x25519.X25519PublicKey):
        return "ECDH (X25519)", 256, "curve25519", KeyUsage(encrypt=True)
    if isinstance(pub, x448.X448PublicKey):
        return "ECDH (X448)", 448, "curve448", KeyUsage(encrypt=True)
    if isinstance(pub, dsa.DSAPublicKey):
        return f"DSA-{pub.key_size}", pub.key_size, None, KeyUsage(certify=True, sign=True)
    return "Unknown", None, None, KeyUsage()
