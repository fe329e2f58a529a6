"""Fernet encryption for LLM provider API keys at rest.

Keys are encrypted before they reach the database and decrypted only when a
provider is built from a stored configuration. Plaintext keys never appear
in responses; logs only ever see `mask_api_key` output.
"""

import base64

import structlog
from cryptography.fernet import Fernet, InvalidToken

from schoolops.config.settings import settings

logger = structlog.get_logger()

_fernet: Fernet | None = None


class EncryptionKeyError(Exception):
    """ENCRYPTION_KEY is missing in production or unusable."""


def _load_key() -> bytes:
    key = settings.ENCRYPTION_KEY.strip()
    if key:
        return key.encode()

    if settings.ENVIRONMENT == "production":
        raise EncryptionKeyError(
            "ENCRYPTION_KEY is required in production. Generate one with "
            "Fernet.generate_key() and set it in the environment."
        )
    logger.warning(
        "No ENCRYPTION_KEY set, using a temporary key; stored LLM API keys "
        "will be unreadable after a restart"
    )
    return Fernet.generate_key()


def get_fernet() -> Fernet:
    """Process-wide Fernet instance built from ENCRYPTION_KEY."""
    global _fernet
    if _fernet is None:
        key = _load_key()
        try:
            _fernet = Fernet(key)
        except ValueError:
            # Not a urlsafe-base64 32-byte key: treat it as a passphrase
            logger.warning("ENCRYPTION_KEY is not a Fernet key, deriving one from it")
            _fernet = Fernet(base64.urlsafe_b64encode(key.ljust(32, b"=")[:32]))
    return _fernet


def validate_encryption_key() -> None:
    """Startup check: the key loads and round-trips a canary value.

    Raises:
        EncryptionKeyError: key missing in production or not usable
    """
    fernet = get_fernet()
    try:
        fernet.decrypt(fernet.encrypt(b"schoolops"))
    except InvalidToken as e:
        raise EncryptionKeyError("ENCRYPTION_KEY failed a round-trip check") from e


def encrypt_value(value: str) -> str:
    if not value:
        return value
    return get_fernet().encrypt(value.encode()).decode()


def decrypt_value(encrypted_value: str) -> str:
    """
    Decrypt a stored API key.

    Raises:
        InvalidToken: the value was encrypted under a different key
    """
    if not encrypted_value:
        return encrypted_value
    try:
        return get_fernet().decrypt(encrypted_value.encode()).decode()
    except InvalidToken:
        logger.error("Stored API key could not be decrypted, was ENCRYPTION_KEY rotated?")
        raise


def mask_api_key(api_key: str | None) -> str:
    """Render an API key safe for logs: sk-a...wxyz."""
    if not api_key or len(api_key) <= 8:
        return "****"
    return f"{api_key[:4]}...{api_key[-4:]}"
