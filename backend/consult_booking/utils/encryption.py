"""
AES-256-GCM encryption of contact data at rest.

Format: base64(iv):base64(tag):base64(ciphertext), 12-byte random IV,
so the same plaintext encrypts differently every time.
"""

import base64
import binascii
import logging
import os
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..config import settings

logger = logging.getLogger(__name__)

IV_SIZE = 12
TAG_SIZE = 16


class EncryptionError(Exception):
    pass


def decode_key(key: str) -> bytes:
    """Validate a base64 key and return its 32 raw bytes."""
    if not key:
        raise EncryptionError("ENCRYPTION_KEY is not set")
    try:
        raw = base64.b64decode(key, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncryptionError("ENCRYPTION_KEY must be base64") from e
    if len(raw) != 32:
        raise EncryptionError(f"ENCRYPTION_KEY must be 32 bytes, got {len(raw)}")
    return raw


def generate_key() -> str:
    """New base64 key for initial setup."""
    return base64.b64encode(os.urandom(32)).decode()


class FieldCipher:
    def __init__(self, key: bytes):
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        if not plaintext or not isinstance(plaintext, str):
            raise EncryptionError("Value to encrypt must be a non-empty string")

        iv = os.urandom(IV_SIZE)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return ":".join(
            base64.b64encode(part).decode() for part in (iv, tag, ciphertext)
        )

    def decrypt(self, token: str) -> str:
        if not token or not isinstance(token, str):
            raise EncryptionError("Encrypted value must be a non-empty string")

        parts = token.split(":")
        if len(parts) != 3:
            raise EncryptionError("Malformed encrypted value")

        try:
            iv, tag, ciphertext = (base64.b64decode(p, validate=True) for p in parts)
        except (binascii.Error, ValueError) as e:
            raise EncryptionError("Malformed encrypted value") from e

        if len(iv) != IV_SIZE or len(tag) != TAG_SIZE:
            raise EncryptionError("Malformed encrypted value")

        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            logger.error("Failed to decrypt field: data corrupted or wrong key")
            raise EncryptionError("Decryption failed: data corrupted or wrong key") from e

        return plaintext.decode("utf-8")


def is_encrypted(value: str) -> bool:
    """Cheap shape check for iv:tag:ciphertext."""
    if not value or not isinstance(value, str):
        return False
    parts = value.split(":")
    if len(parts) != 3:
        return False
    try:
        iv, tag, _ = (base64.b64decode(p, validate=True) for p in parts)
    except (binascii.Error, ValueError):
        return False
    return len(iv) == IV_SIZE and len(tag) == TAG_SIZE


@lru_cache
def get_cipher() -> FieldCipher:
    return FieldCipher(decode_key(settings.encryption_key))
