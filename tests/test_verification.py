from keysafe_core.codec import decrypt_secret, encrypt_secret, looks_encrypted
from keysafe_core.constants import VERIFICATION_PLAINTEXT
from keysafe_core.verification import generate_verification_token, verify_passphrase


def test_token_verifies_only_its_passphrase():
    token = generate_verification_token("p")
    assert looks_encrypted(token)
    assert verify_passphrase(token, "p")
    assert not verify_passphrase(token, "p" + "x")


def test_token_wraps_marker():
    token = generate_verification_token("p")
    assert decrypt_secret(token, "p") == VERIFICATION_PLAINTEXT


def test_verify_never_raises():
    assert verify_passphrase("not-a-token", "anything") is False
    assert verify_passphrase("", "anything") is False
    assert verify_passphrase(None, "anything") is False
    assert verify_passphrase(generate_verification_token("p"), "") is False


def test_secret_with_other_plaintext_is_not_a_token():
    impostor = encrypt_secret("something else", "p")
    assert not verify_passphrase(impostor, "p")


def test_tokens_are_fresh_per_generation():
    assert generate_verification_token("p") != generate_verification_token("p")
