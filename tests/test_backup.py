import json

import pytest

from keysafe_core.backup import is_encrypted_backup, open_backup, seal_backup
from keysafe_core.codec import looks_encrypted
from keysafe_core.errors import DecryptionFailed, InvalidKey, InvalidPassphrase, KeyringLocked
from keysafe_core.keyring import Keyring
from keysafe_core.storage import InMemoryStorage


MASTER = "super-secure-master-passphrase-123!"
BACKUP = "backup-pass-1234"


@pytest.fixture
def populated(keyring, keypair_factory):
    """Encrypted keyring with two key-pairs and one public-only key."""
    pairs = [keypair_factory("Alice", "alice@example.com"), keypair_factory("Bob", "bob@example.org")]
    keyring.set_master_passphrase(MASTER)
    for public_key, private_key in pairs:
        keyring.add_key(public_key, private_key)
    keyring.add_key(keypair_factory("Carol", "carol@example.net")[0])
    return keyring, pairs


def test_envelope_shape(populated):
    keyring, _ = populated
    envelope = json.loads(keyring.export_encrypted(BACKUP))

    assert envelope["format"] == "keysafe-encrypted-backup"
    assert envelope["version"] == 1
    assert envelope["keyCount"] == 3
    assert envelope["createdAt"]
    assert looks_encrypted(envelope["data"])
    assert "alice@example.com" not in json.dumps(envelope)


def test_backup_roundtrip_into_empty_keyring(populated):
    keyring, pairs = populated
    blob = keyring.export_encrypted(BACKUP)

    target = Keyring(InMemoryStorage(), passphrase="a-different-master-passphrase")
    assert target.import_encrypted_backup(blob, BACKUP) == 3

    source = {e.fingerprint: e.public_key for e in keyring.get_all_keys()}
    restored = {e.fingerprint: e.public_key for e in target.get_all_keys()}
    assert restored == source

    # private keys are re-sealed under the target's own master passphrase
    by_public = {e.public_key: e for e in target.get_private_keys_decrypted()}
    for public_key, private_key in pairs:
        assert by_public[public_key].private_key == private_key
    assert all(looks_encrypted(e.private_key) for e in target.get_private_keys())


def test_wrong_backup_passphrase_imports_nothing(populated):
    keyring, _ = populated
    blob = keyring.export_encrypted(BACKUP)

    target = Keyring(InMemoryStorage(), on_warning=lambda m: None)
    with pytest.raises(InvalidPassphrase):
        target.import_encrypted_backup(blob, "wrong-backup-pass")
    assert target.get_all_keys() == []


def test_short_backup_passphrase_rejected(populated):
    keyring, _ = populated
    with pytest.raises(InvalidPassphrase):
        keyring.export_encrypted("short")
    with pytest.raises(InvalidPassphrase):
        keyring.export_encrypted("")


def test_locked_keyring_cannot_export_private_material(populated):
    keyring, _ = populated
    keyring.lock()
    with pytest.raises(KeyringLocked):
        keyring.export_encrypted(BACKUP)
    with pytest.raises(KeyringLocked):
        keyring.export_all_decrypted()


def test_locked_keyring_cannot_import_private_keys(populated):
    keyring, _ = populated
    blob = keyring.export_encrypted(BACKUP)

    target = Keyring(InMemoryStorage())
    target.set_master_passphrase(MASTER)
    target.lock()
    with pytest.raises(KeyringLocked):
        target.import_encrypted_backup(blob, BACKUP)
    assert target.get_all_keys() == []


@pytest.mark.parametrize("blob", [
    "not json",
    "[]",
    json.dumps({"format": "something-else", "version": 1, "data": "x"}),
    json.dumps({"format": "keysafe-encrypted-backup", "version": 2, "data": "x"}),
    json.dumps({"format": "keysafe-encrypted-backup", "version": 1}),
])
def test_unrecognised_backups(blob):
    assert not is_encrypted_backup(blob)
    with pytest.raises(DecryptionFailed):
        open_backup(blob, BACKUP)


def test_backup_module_helpers():
    entries = {"F1": {"publicKey": "P", "keyId": "F1"}}
    blob = seal_backup(entries, BACKUP)
    assert is_encrypted_backup(blob)
    assert open_backup(blob, BACKUP) == entries


def test_export_all_keeps_stored_form(populated):
    keyring, _ = populated
    exported = json.loads(keyring.export_all())
    privates = [e["privateKey"] for e in exported.values() if "privateKey" in e]
    assert len(privates) == 2
    assert all(looks_encrypted(p) for p in privates)


def test_plaintext_export_and_import(populated, warnings_seen):
    keyring, pairs = populated
    exported = keyring.export_all_decrypted()
    assert any("plaintext" in w for w in warnings_seen)
    plaintext = {e.get("privateKey") for e in json.loads(exported).values()}
    assert {private_key for _, private_key in pairs} <= plaintext

    target = Keyring(InMemoryStorage(), on_warning=lambda m: None)
    assert target.import_from_backup(exported) == 3
    by_public = {e.public_key: e for e in target.get_private_keys()}
    for public_key, private_key in pairs:
        assert by_public[public_key].private_key == private_key

    wrapped = json.dumps({"entries": json.loads(exported)})
    again = Keyring(InMemoryStorage(), on_warning=lambda m: None)
    assert again.import_from_backup(wrapped) == 3


def test_import_skips_bad_entries(keyring, keypair_factory):
    good_pub, _ = keypair_factory()
    backup = json.dumps({
        "GOOD": {"publicKey": good_pub},
        "GARBAGE": {"publicKey": "nonsense"},
        "MISSING": {"keyId": "x"},
        "NOT_OBJECT": 42,
        "SEALED": {"publicKey": keypair_factory()[0], "privateKey": "1:c2FsdA==:aXY=:Y3Q="},
    })
    assert keyring.import_from_backup(backup) == 1
    assert len(keyring.get_all_keys()) == 1


def test_import_from_backup_rejects_non_json(keyring):
    with pytest.raises(InvalidKey):
        keyring.import_from_backup("nope")
    with pytest.raises(InvalidKey):
        keyring.import_from_backup("[1, 2]")
