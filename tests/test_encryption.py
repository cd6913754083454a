import hashlib

import pytest

from app.core.encryption import (
    EncryptionError,
    decrypt_text,
    derive_key_from_user_id,
    encrypt_text,
    generate_user_salt,
    is_encrypted,
)


def test_salt_is_prefix_of_user_id_digest():
    assert generate_user_salt("user-1") == hashlib.sha256(b"user-1").digest()[:16]


def test_key_derivation_is_deterministic_per_user():
    assert derive_key_from_user_id("user-1") == derive_key_from_user_id("user-1")
    assert derive_key_from_user_id("user-1") != derive_key_from_user_id("user-2")
    assert len(derive_key_from_user_id("user-1")) == 32


def test_encrypt_then_decrypt():
    token = encrypt_text("The mitochondria is the powerhouse of the cell", "user-1")

    assert is_encrypted(token)
    assert decrypt_text(token, "user-1") == "The mitochondria is the powerhouse of the cell"


def test_encryption_uses_fresh_nonce():
    assert encrypt_text("same", "user-1") != encrypt_text("same", "user-1")


def test_other_user_cannot_decrypt():
    token = encrypt_text("secret notes", "user-1")

    with pytest.raises(EncryptionError):
        decrypt_text(token, "user-2")


def test_plaintext_passes_through_decrypt():
    assert decrypt_text("hello world!", "user-1") == "hello world!"


@pytest.mark.parametrize("text", ["hello", "", "not base64 at all!", "aGk="])
def test_is_encrypted_rejects_non_envelopes(text):
    assert not is_encrypted(text)


def test_user_id_is_required():
    with pytest.raises(EncryptionError):
        encrypt_text("hi", "")
    with pytest.raises(EncryptionError):
        decrypt_text("hi", "")
