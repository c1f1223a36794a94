"""
Tests for token encryption at rest.
"""

import pytest
from cryptography.fernet import Fernet

from config.settings import Settings
from connectors.encryption import (
    FernetTextEncryptor,
    NoOpTextEncryptor,
    decrypt_if_present,
    encrypt_if_present,
    encryptor_from_settings,
)
from connectors.exceptions import TokenDecryptionError


class TestFernetTextEncryptor:
    def test_round_trip(self):
        encryptor = FernetTextEncryptor(Fernet.generate_key().decode())
        ciphertext = encryptor.encrypt("access-token")
        assert ciphertext != "access-token"
        assert encryptor.decrypt(ciphertext) == "access-token"

    def test_wrong_key(self):
        ciphertext = FernetTextEncryptor(Fernet.generate_key()).encrypt("access-token")
        with pytest.raises(TokenDecryptionError):
            FernetTextEncryptor(Fernet.generate_key()).decrypt(ciphertext)

    def test_none_passes_through(self):
        encryptor = FernetTextEncryptor(Fernet.generate_key())
        assert encrypt_if_present(encryptor, None) is None
        assert decrypt_if_present(encryptor, None) is None
        assert decrypt_if_present(encryptor, encrypt_if_present(encryptor, "s")) == "s"


class TestEncryptorFromSettings:
    def test_no_key_means_plaintext(self, caplog):
        encryptor = encryptor_from_settings(Settings(_env_file=None, token_encryption_key=""))
        assert isinstance(encryptor, NoOpTextEncryptor)
        assert encryptor.encrypt("t") == "t"
        assert "plaintext" in caplog.text

    def test_key_enables_fernet(self):
        key = Fernet.generate_key().decode()
        encryptor = encryptor_from_settings(Settings(_env_file=None, token_encryption_key=key))
        assert isinstance(encryptor, FernetTextEncryptor)
        assert Fernet(key.encode()).decrypt(encryptor.encrypt("t").encode()) == b"t"
