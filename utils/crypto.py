"""
Encryption at rest for third-party access tokens stored on pixels
"""
import base64
import hashlib
import os
from typing import Optional

from cryptography.fernet import Fernet

from core.config import logger


def _get_encryption_key() -> Optional[bytes]:
    """
    Derive a Fernet key from ENCRYPTION_KEY.
    ENCRYPTION_KEY is read on every call.
    """
    secret = (os.getenv("ENCRYPTION_KEY") or "").strip()
    if not secret:
        return None
    # Use SHA256 to get 32 bytes, then base64 encode for Fernet
    key_hash = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(key_hash)


def encrypt_token(token: str) -> str:
    """Encrypt an access token; output differs on every call."""
    if not isinstance(token, str) or not token:
        raise ValueError("Invalid token for encryption")
    key = _get_encryption_key()
    if key is None:
        raise ValueError("ENCRYPTION_KEY not configured")
    return Fernet(key).encrypt(token.encode("utf-8")).decode("utf-8")


def decrypt_token(encrypted: Optional[str]) -> Optional[str]:
    """Decrypt an access token, or None if it cannot be decrypted for any reason."""
    if not isinstance(encrypted, str) or not encrypted:
        return None
    key = _get_encryption_key()
    if key is None:
        logger.warning("[crypto] ENCRYPTION_KEY not configured; cannot decrypt token")
        return None
    try:
        return Fernet(key).decrypt(encrypted.encode("utf-8")).decode("utf-8")
    except Exception as ex:
        logger.warning(f"[crypto] Token decryption failed: {type(ex).__name__}")
        return None
