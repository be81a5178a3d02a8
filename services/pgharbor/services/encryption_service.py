"""Fernet symmetric encryption for database passwords and agent tokens.

Uses AES-128-CBC + HMAC-SHA256 via the cryptography library's Fernet.
Master key sourced from PGHARBOR_ENCRYPTION_KEY environment variable.
"""

from cryptography.fernet import Fernet, InvalidToken

from pgharbor.logging_config import get_logger

logger = get_logger(__name__)

_fernet: Fernet | None = None
_initialized: bool = False


def init_encryption(key: str | None = None) -> None:
    """Initialize encryption from config. Call during service startup."""
    global _fernet, _initialized  # noqa: PLW0603

    if key is None:
        from pgharbor.config import settings

        key = settings.encryption_key

    if not key:
        logger.warning(
            "No encryption key configured (PGHARBOR_ENCRYPTION_KEY). "
            "Database passwords cannot be stored."
        )
        _fernet = None
        _initialized = True
        return

    try:
        _fernet = Fernet(key.encode() if isinstance(key, str) else key)
        _initialized = True
        logger.info("Encryption initialized")
    except Exception as e:
        logger.error("Invalid encryption key", error=str(e))
        _fernet = None
        _initialized = True


def is_encryption_available() -> bool:
    """Check if encryption is configured and available."""
    return _fernet is not None


def encrypt_value(plaintext: str) -> str:
    """Encrypt a plaintext string. Returns base64-encoded Fernet ciphertext."""
    if _fernet is None:
        raise RuntimeError(
            "Encryption not configured. Set PGHARBOR_ENCRYPTION_KEY to store secrets."
        )
    return _fernet.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> str:
    """Decrypt a Fernet ciphertext string. Returns plaintext."""
    if _fernet is None:
        raise RuntimeError("Encryption not configured.")
    try:
        return _fernet.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        raise ValueError("Failed to decrypt value — key mismatch or corrupted data") from None
