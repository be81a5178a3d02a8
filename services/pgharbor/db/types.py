"""Custom column types.

EncryptedString applies Fernet encryption at the storage boundary so
model attributes always hold plaintext in memory.
"""

from typing import Any

from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator

from pgharbor.services.encryption_service import decrypt_value, encrypt_value


class EncryptedString(TypeDecorator):
    """Text column stored as Fernet ciphertext."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        if value is None:
            return None
        return encrypt_value(str(value))

    def process_result_value(self, value: Any, dialect: Any) -> str | None:
        if value is None:
            return None
        return decrypt_value(value)
