"""
Token encryption — encrypt / decrypt OAuth tokens at rest.

Uses Fernet (AES-128-CBC + HMAC-SHA256) from the ``cryptography`` library.
Repositories receive a ``TextEncryptor`` at construction; the key for the
default one is loaded from ``config.token_encryption_key``
(env var: ``TOKEN_ENCRYPTION_KEY``).

If no key is configured, ``encryptor_from_settings`` returns a pass-through
encryptor and tokens are stored as plaintext (with a warning).  Generate a
key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken

from config.settings import Settings, config
from connectors.exceptions import TokenDecryptionError

logger = logging.getLogger(__name__)


class TextEncryptor(ABC):
    """Reversible string encryption used for token columns."""

    @abstractmethod
    def encrypt(self, plaintext: str) -> str:
        ...

    @abstractmethod
    def decrypt(self, ciphertext: str) -> str:
        ...


class NoOpTextEncryptor(TextEncryptor):
    """Stores tokens as plaintext. Development and tests only."""

    def encrypt(self, plaintext: str) -> str:
        return plaintext

    def decrypt(self, ciphertext: str) -> str:
        return ciphertext


class FernetTextEncryptor(TextEncryptor):
    def __init__(self, key: Union[str, bytes]) -> None:
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken as exc:
            raise TokenDecryptionError(
                "Stored token could not be decrypted with the configured key"
            ) from exc


def encrypt_if_present(encryptor: TextEncryptor, text: Optional[str]) -> Optional[str]:
    return encryptor.encrypt(text) if text is not None else None


def decrypt_if_present(encryptor: TextEncryptor, text: Optional[str]) -> Optional[str]:
    return encryptor.decrypt(text) if text is not None else None


def encryptor_from_settings(settings: Optional[Settings] = None) -> TextEncryptor:
    """Fernet when a key is configured, otherwise plaintext with a warning."""
    settings = settings or config
    key = settings.token_encryption_key
    if not key:
        logger.warning(
            "TOKEN_ENCRYPTION_KEY not set — OAuth tokens will be stored as plaintext. "
            "Generate a key: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
        )
        return NoOpTextEncryptor()

    encryptor = FernetTextEncryptor(key)
    logger.info("Token encryption enabled (Fernet/AES-128-CBC)")
    return encryptor
