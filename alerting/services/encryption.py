"""
alerting/services/encryption.py

AES-256-GCM encryption of glucose magnitudes stored at rest.

Payloads are hex strings laid out as salt(64) | iv(16) | tag(16) | ciphertext,
so values written by the existing storage layer decrypt unchanged.
"""

import math
import os

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from config import settings

logger = structlog.get_logger(__name__)

_KEY_LENGTH: int = 32
_SALT_LENGTH: int = 64
_IV_LENGTH: int = 16
_TAG_LENGTH: int = 16
_HEADER_LENGTH: int = _SALT_LENGTH + _IV_LENGTH + _TAG_LENGTH


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


class GlucoseCipher:
    """Encrypts and decrypts glucose values with a 32-byte hex key.

    Usage::

        cipher = GlucoseCipher(key_hex=GlucoseCipher.generate_key())
        token = cipher.encrypt_glucose(182.0)
        cipher.decrypt_glucose(token)  # 182.0
    """

    def __init__(self, key_hex: str) -> None:
        """Initialize with a hex-encoded AES-256 key.

        Raises:
            EncryptionError: If the key is empty, not hex, or not 32 bytes.
        """
        if not key_hex or not key_hex.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            key = bytes.fromhex(key_hex.strip())
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc
        if len(key) != _KEY_LENGTH:
            raise EncryptionError(
                f"Encryption key must be {_KEY_LENGTH} bytes "
                f"({_KEY_LENGTH * 2} hex characters)"
            )
        self._aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string and return the hex payload."""
        salt = os.urandom(_SALT_LENGTH)
        iv = os.urandom(_IV_LENGTH)
        try:
            sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        except Exception as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        # AESGCM appends the tag; the stored layout puts it before the ciphertext
        ciphertext, tag = sealed[:-_TAG_LENGTH], sealed[-_TAG_LENGTH:]
        return (salt + iv + tag + ciphertext).hex()

    def decrypt(self, payload_hex: str) -> str:
        """Decrypt a hex payload back to its plaintext string.

        Raises:
            EncryptionError: If the payload is malformed or fails authentication.
        """
        try:
            combined = bytes.fromhex(payload_hex)
        except (TypeError, ValueError) as exc:
            raise EncryptionError("Decryption failed: payload is not hex") from exc
        if len(combined) <= _HEADER_LENGTH:
            raise EncryptionError("Decryption failed: payload too short")

        iv = combined[_SALT_LENGTH : _SALT_LENGTH + _IV_LENGTH]
        tag = combined[_SALT_LENGTH + _IV_LENGTH : _HEADER_LENGTH]
        ciphertext = combined[_HEADER_LENGTH:]
        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            raise EncryptionError(
                "Decryption failed: invalid tag or wrong key"
            ) from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise EncryptionError("Decryption failed: plaintext is not UTF-8") from exc

    def encrypt_glucose(self, value: float) -> str:
        """Encrypt a glucose value in mg/dL."""
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EncryptionError("Invalid glucose value")
        if not math.isfinite(value):
            raise EncryptionError("Invalid glucose value")
        return self.encrypt(repr(float(value)))

    def decrypt_glucose(self, payload_hex: str) -> float:
        """Decrypt a glucose value in mg/dL.

        Raises:
            EncryptionError: If decryption fails or the plaintext is not a
                finite number.
        """
        plaintext = self.decrypt(payload_hex)
        try:
            value = float(plaintext)
        except ValueError as exc:
            raise EncryptionError("Invalid decrypted glucose value") from exc
        if not math.isfinite(value):
            raise EncryptionError("Invalid decrypted glucose value")
        return value

    @staticmethod
    def generate_key() -> str:
        """Generate a new 32-byte key as 64 hex characters."""
        return os.urandom(_KEY_LENGTH).hex()


def get_cipher() -> GlucoseCipher:
    """Build a cipher from the configured encryption key."""
    return GlucoseCipher(settings.encryption_key)
