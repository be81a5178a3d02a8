"""Tests for Fernet value encryption."""

import pytest
from cryptography.fernet import Fernet

from pgharbor.services import encryption_service
from pgharbor.services.encryption_service import (
    decrypt_value,
    encrypt_value,
    init_encryption,
    is_encryption_available,
)


@pytest.fixture(autouse=True)
def _restore_encryption():
    yield
    init_encryption()


class TestEncryption:
    def test_round_trip(self):
        init_encryption(Fernet.generate_key().decode())
        token = encrypt_value("p@ss:word")
        assert token != "p@ss:word"
        assert decrypt_value(token) == "p@ss:word"

    def test_unconfigured_rejects_encrypt(self):
        init_encryption("")
        assert not is_encryption_available()
        with pytest.raises(RuntimeError, match="PGHARBOR_ENCRYPTION_KEY"):
            encrypt_value("secret")

    def test_invalid_key_disables_encryption(self):
        init_encryption("not-a-fernet-key")
        assert encryption_service._fernet is None

    def test_key_mismatch(self):
        init_encryption(Fernet.generate_key().decode())
        token = encrypt_value("secret")
        init_encryption(Fernet.generate_key().decode())
        with pytest.raises(ValueError, match="key mismatch"):
            decrypt_value(token)
