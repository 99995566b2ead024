import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from keysafe_core.keys import KeyParser
from keysafe_core.models import KeyInfo, UserId
from keysafe_core.storage import InMemoryStorage


def make_keypair(name="Test User", email="test@example.com"):
    """Ed25519 key-pair as (OpenSSH public line with identity, OpenSSH private PEM)."""
    sk = ed25519.Ed25519PrivateKey.generate()
    pub = sk.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    ).decode("ascii")
    priv = sk.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.OpenSSH,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    return f"{pub} {name} <{email}>", priv


class StubParser(KeyParser):
    """Returns canned KeyInfo objects registered by public-key text."""

    def __init__(self):
        self.infos = {}

    def register(self, public_key, fingerprint, **kwargs):
        self.infos[public_key] = KeyInfo(key_id=fingerprint[-8:], fingerprint=fingerprint, **kwargs)

    def parse(self, public_key, private_key=None):
        info = self.infos[public_key]
        info.is_private = private_key is not None
        return info


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def warnings_seen():
    return []


@pytest.fixture
def keyring(storage, warnings_seen):
    from keysafe_core.keyring import Keyring
    return Keyring(storage, on_warning=warnings_seen.append)


@pytest.fixture
def keypair():
    return make_keypair()


@pytest.fixture
def stub_parser():
    p = StubParser()
    p.register("PUB-ALICE", "A" * 56 + "AAAA1111", user_ids=[UserId("Alice", "alice@example.com")])
    p.register("PUB-BOB", "B" * 56 + "BBBB2222", user_ids=[UserId("Bob", "bob@example.org")], revoked=True)
    p.register(
        "PUB-CAROL", "C" * 56 + "CCCC3333",
        user_ids=[UserId("Carol", "carol@example.net")],
        expiration_time="2001-01-01T00:00:00Z",
    )
    return p


@pytest.fixture
def keypair_factory():
    return make_keypair
