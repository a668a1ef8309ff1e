"""Fernet-based encryption for free-text PHI at rest.

Symptom descriptions, durations and notes can identify a patient and are
encrypted before they reach SQLite. Numeric readings, scores and severities
stay in clear so they can be indexed and ordered.
"""

from __future__ import annotations

import logging

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


class FieldEncryptor:
    """Encrypts and decrypts optional text fields with a Fernet key.

    Usage::

        encryptor = FieldEncryptor(key="...")
        token = encryptor.encrypt_text("sharp chest pain after climbing stairs")
        encryptor.decrypt_text(token)  # original text
        encryptor.encrypt_text(None)   # None, nothing to protect
    """

    def __init__(self, key: str) -> None:
        """Initialize with a Fernet key.

        Raises:
            EncryptionError: If the key is empty or invalid.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.encode())
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt_text(self, text: str | None) -> str | None:
        """Encrypt a text value; ``None`` passes through unchanged."""
        if text is None:
            return None
        try:
            return self._fernet.encrypt(text.encode("utf-8")).decode("utf-8")
        except (TypeError, AttributeError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc

    def decrypt_text(self, token: str | None) -> str | None:
        """Decrypt a token produced by :meth:`encrypt_text`.

        Raises:
            EncryptionError: If the token is invalid or the key is wrong.
        """
        if token is None:
            return None
        try:
            return self._fernet.decrypt(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
