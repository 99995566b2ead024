"""
keysafe_core.verification
-------------------------
Passphrase verification without storing the passphrase: a fixed marker is
encrypted under the master passphrase and persisted next to the entries.
A candidate passphrase is correct iff it opens the token back to the marker.
"""

from __future__ import annotations
from .codec import encrypt_secret, decrypt_secret
from .constants import VERIFICATION_PLAINTEXT
from .logger import get_logger
from .utils import constant_time_equals

log = get_logger("keysafe.verification")


def generate_verification_token(passphrase: str) -> str:
    return encrypt_secret(VERIFICATION_PLAINTEXT, passphrase)


def verify_passphrase(token: str, passphrase: str) -> bool:
    # Safe boolean probe: every failure, structural or cryptographic, is False.
    try:
        recovered = decrypt_secret(token, passphrase)
    except Exception as e:
        log.debug(f"passphrase verification failed: {type(e).__name__}")
        return False
    return constant_time_equals(recovered, VERIFICATION_PLAINTEXT)
