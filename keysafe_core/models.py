# keysafe_core/models.py
from __future__ import annotations
import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from .utils import now_ts, parse_ts


@dataclass
class UserId:
    name: str = ""
    email: str = ""
    comment: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {"name": self.name, "email": self.email}
        if self.comment:
            d["comment"] = self.comment
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserId":
        return cls(
            name=data.get("name") or "",
            email=data.get("email") or "",
            comment=data.get("comment"),
        )


@dataclass
class KeyUsage:
    certify: bool = False
    sign: bool = False
    encrypt: bool = False
    authenticate: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {
            "certify": self.certify,
            "sign": self.sign,
            "encrypt": self.encrypt,
            "authenticate": self.authenticate,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyUsage":
        return cls(
            certify=bool(data.get("certify", False)),
            sign=bool(data.get("sign", False)),
            encrypt=bool(data.get("encrypt", False)),
            authenticate=bool(data.get("authenticate", False)),
        )


@dataclass
class KeyInfo:
    """
    Descriptive metadata about a key, produced by the key parser.

    Informational only: nothing in here is secret and the keyring never
    derives security decisions from it.
    """
    key_id: str
    fingerprint: str
    algorithm: str = "Unknown"
    creation_time: str = field(default_factory=now_ts)
    user_ids: List[UserId] = field(default_factory=list)
    usage: KeyUsage = field(default_factory=KeyUsage)
    revoked: bool = False
    is_private: bool = False
    bit_length: Optional[int] = None
    curve: Optional[str] = None
    expiration_time: Optional[str] = None
    subkeys: List[Dict[str, Any]] = field(default_factory=list)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        expires = parse_ts(self.expiration_time)
        if expires is None:
            return False
        return expires < (now or datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "keyId": self.key_id,
            "fingerprint": self.fingerprint,
            "algorithm": self.algorithm,
            "creationTime": self.creation_time,
            "userIds": [u.to_dict() for u in self.user_ids],
            "usage": self.usage.to_dict(),
            "revoked": self.revoked,
            "isPrivate": self.is_private,
            "subkeys": list(self.subkeys),
        }
        # unset optionals are omitted, not written as null
        if self.bit_length is not None:
            d["bitLength"] = self.bit_length
        if self.curve is not None:
            d["curve"] = self.curve
        if self.expiration_time is not None:
            d["expirationTime"] = self.expiration_time
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyInfo":
        return cls(
            key_id=data["keyId"],
            fingerprint=data["fingerprint"],
            algorithm=data.get("algorithm", "Unknown"),
            creation_time=data.get("creationTime") or now_ts(),
            user_ids=[UserId.from_dict(u) for u in data.get("userIds", [])],
            usage=KeyUsage.from_dict(data.get("usage", {})),
            revoked=bool(data.get("revoked", False)),
            is_private=bool(data.get("isPrivate", False)),
            bit_length=data.get("bitLength"),
            curve=data.get("curve"),
            expiration_time=data.get("expirationTime"),
            subkeys=list(data.get("subkeys", [])),
        )


@dataclass
class KeyringEntry:
    """
    One key-pair record, keyed by fingerprint.

    ``private_key`` is either plaintext key material (unencrypted keyrings)
    or an encrypted secret string; its presence alone means the entry has a
    private key.
    """
    key_id: str
    fingerprint: str
    public_key: str
    key_info: KeyInfo
    private_key: Optional[str] = None
    added_at: str = field(default_factory=now_ts)
    last_used: Optional[str] = None

    @property
    def has_private_key(self) -> bool:
        return bool(self.private_key)

    def copy(self) -> "KeyringEntry":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "keyId": self.key_id,
            "fingerprint": self.fingerprint,
            "publicKey": self.public_key,
            "keyInfo": self.key_info.to_dict(),
            "addedAt": self.added_at,
        }
        if self.private_key is not None:
            d["privateKey"] = self.private_key
        if self.last_used is not None:
            d["lastUsed"] = self.last_used
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyringEntry":
        return cls(
            key_id=data["keyId"],
            fingerprint=data["fingerprint"],
            public_key=data["publicKey"],
            key_info=KeyInfo.from_dict(data["keyInfo"]),
            private_key=data.get("privateKey"),
            added_at=data.get("addedAt") or now_ts(),
            last_used=data.get("lastUsed"),
        )


@dataclass
class KeyringStats:
    total_keys: int = 0
    public_keys: int = 0
    private_keys: int = 0
    expired_keys: int = 0
    revoked_keys: int = 0
    encrypted: bool = False
    locked: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalKeys": self.total_keys,
            "publicKeys": self.public_keys,
            "privateKeys": self.private_keys,
            "expiredKeys": self.expired_keys,
            "revokedKeys": self.revoked_keys,
            "encrypted": self.encrypted,
            "locked": self.locked,
        }
