"""Tests for the FieldEncryptor (Fernet-based PHI text encryption)."""

from __future__ import annotations

import pytest
from cryptography.fernet import Fernet

from healthpulse.core.storage.encryption import EncryptionError, FieldEncryptor


@pytest.fixture
def key() -> str:
    return Fernet.generate_key().decode()


@pytest.fixture
def encryptor(key: str) -> FieldEncryptor:
    return FieldEncryptor(key)


class TestRoundTrip:
    def test_text_round_trip(self, encryptor: FieldEncryptor):
        token = encryptor.encrypt_text("sharp chest pain after climbing stairs")
        assert token != "sharp chest pain after climbing stairs"
        assert encryptor.decrypt_text(token) == "sharp chest pain after climbing stairs"

    def test_unicode_round_trip(self, encryptor: FieldEncryptor):
        text = "douleur thoracique, fièvre 38.5°C"
        assert encryptor.decrypt_text(encryptor.encrypt_text(text)) == text

    def test_empty_string_round_trip(self, encryptor: FieldEncryptor):
        token = encryptor.encrypt_text("")
        assert token
        assert encryptor.decrypt_text(token) == ""

    def test_none_passes_through(self, encryptor: FieldEncryptor):
        assert encryptor.encrypt_text(None) is None
        assert encryptor.decrypt_text(None) is None


class TestKeyValidation:
    def test_empty_key_raises(self):
        with pytest.raises(EncryptionError, match="must not be empty"):
            FieldEncryptor("")

    def test_whitespace_key_raises(self):
        with pytest.raises(EncryptionError, match="must not be empty"):
            FieldEncryptor("   ")

    def test_invalid_key_raises(self):
        with pytest.raises(EncryptionError, match="Invalid encryption key"):
            FieldEncryptor("not-a-valid-fernet-key")


class TestCorruptData:
    def test_wrong_key_cannot_decrypt(self, encryptor: FieldEncryptor):
        token = encryptor.encrypt_text("insomnia")
        other = FieldEncryptor(Fernet.generate_key().decode())
        with pytest.raises(EncryptionError, match="invalid token"):
            other.decrypt_text(token)

    def test_garbage_token_raises(self, encryptor: FieldEncryptor):
        with pytest.raises(EncryptionError):
            encryptor.decrypt_text("not-a-valid-token")


class TestGenerateKey:
    def test_generated_key_works(self):
        enc = FieldEncryptor(FieldEncryptor.generate_key())
        assert enc.decrypt_text(enc.encrypt_text("ok")) == "ok"

    def test_each_key_is_unique(self):
        keys = {FieldEncryptor.generate_key() for _ in range(10)}
        assert len(keys) == 10
