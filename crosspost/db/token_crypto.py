import logging
from typing import Optional
from cryptography.fernet import Fernet, InvalidToken
from crosspost.config import settings

logger = logging.getLogger(__name__)

def _fernet() -> Fernet:
    if not settings.fernet_key:
        raise RuntimeError("FERNET_KEY is missing in .env")
    return Fernet(settings.fernet_key.encode())

def encrypt_token(plain: str) -> str:
    return _fernet().encrypt(plain.encode()).decode()

def decrypt_token(cipher: Optional[str]) -> Optional[str]:
    """Return the plaintext token, or None when the ciphertext is missing or unreadable."""
    if not cipher:
        return None
    try:
        return _fernet().decrypt(cipher.encode()).decode() or None
    except (TypeError, ValueError, InvalidToken) as e:
        logger.warning("[token_crypto] decrypt error: %r", e)
        return None
