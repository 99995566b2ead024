"""
keysafe_core.utils
------------------
Small helpers for base64 handling, timestamps, constant-time comparison and
best-effort clearing of secret buffers.

Clearing is best effort only: Python ``str`` and ``bytes`` objects are
immutable and may be copied or interned by the interpreter, so only
``bytearray`` buffers we own can actually be overwritten. Callers should keep
secrets in the buffers handed out by :func:`secure_bytes` for as short a time
as possible.
"""

from __future__ import annotations
import base64, binascii, hmac, time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional


def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")


def b64d(s: str) -> bytes:
    """Strict base64 decode; raises ``ValueError`` on any non-alphabet input."""
    try:
        return base64.b64decode(s.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"invalid base64: {e}") from e


def now_ts() -> str:
    # RFC3339 / ISO 8601 in UTC, second precision
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def parse_ts(ts: Optional[str]) -> Optional[datetime]:
    if not ts:
        return None
    parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def constant_time_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def secure_clear(buf: bytearray) -> None:
    for i in range(len(buf)):
        buf[i] = 0


@contextmanager
def secure_bytes(data: bytes | bytearray | str) -> Iterator[bytearray]:
    """Yield a mutable copy of ``data`` and zero it when the block exits."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    buf = bytearray(data)
    try:
        yield buf
    finally:
        secure_clear(buf)
