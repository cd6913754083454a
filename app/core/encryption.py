"""User-keyed symmetric encryption for stored message content.

The key is derived from the user id alone, so this only keeps casual readers
of the database from seeing plaintext. It is not a security boundary.
"""
import base64
import binascii
import hashlib
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

SALT_LENGTH = 16
NONCE_LENGTH = 12
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 25000


class EncryptionError(Exception):
    """Raised when text cannot be encrypted or decrypted."""


def generate_user_salt(user_id: str) -> bytes:
    """First 16 bytes of SHA-256(user_id)."""
    return hashlib.sha256(user_id.encode("utf-8")).digest()[:SALT_LENGTH]


def derive_key_from_user_id(user_id: str) -> bytes:
    """Derive a 256-bit AES key from the user id with PBKDF2-HMAC-SHA256."""
    if not user_id:
        raise EncryptionError("User ID is required to derive a key")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=generate_user_salt(user_id),
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(user_id.encode("utf-8"))


def _b64decode(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


def is_encrypted(text: str) -> bool:
    """True when text is valid base64 holding at least a nonce and one byte."""
    try:
        decoded = _b64decode(text)
    except (binascii.Error, UnicodeEncodeError, ValueError):
        return False
    return len(decoded) >= NONCE_LENGTH + 1


def encrypt_text(text: str, user_id: str) -> str:
    """Encrypt text with AES-GCM; returns base64(nonce || ciphertext)."""
    if not user_id:
        raise EncryptionError("User ID is required for encryption")

    key = derive_key_from_user_id(user_id)
    nonce = os.urandom(NONCE_LENGTH)
    ciphertext = AESGCM(key).encrypt(nonce, text.encode("utf-8"), None)
    return base64.b64encode(nonce + ciphertext).decode("ascii")


def decrypt_text(encrypted_text: str, user_id: str) -> str:
    """
    Decrypt a value produced by encrypt_text.

    Values that are not in the encrypted envelope are returned unchanged,
    which lets plaintext rows written before encryption was enabled load.

    Raises:
        EncryptionError: If user_id is missing or authentication fails
    """
    if not user_id:
        raise EncryptionError("User ID is required for decryption")

    if not is_encrypted(encrypted_text):
        logger.warning("Attempted to decrypt non-encrypted text, returning original")
        return encrypted_text

    decoded = _b64decode(encrypted_text)
    nonce, ciphertext = decoded[:NONCE_LENGTH], decoded[NONCE_LENGTH:]
    key = derive_key_from_user_id(user_id)

    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise EncryptionError("Failed to decrypt text") from e

    return plaintext.decode("utf-8")
