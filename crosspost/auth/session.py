# crosspost/auth/session.py
import time
from typing import Optional
from jose import jwt, exceptions as jose_errors
from crosspost.config import settings

DEFAULT_TTL_SECONDS = 7 * 24 * 3600

def _secret() -> str:
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is missing in .env")
    return settings.jwt_secret

def create_access_token(user_id: int, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
    now = int(time.time())
    claims = {"userId": str(user_id), "iat": now, "exp": now + ttl_seconds}
    return jwt.encode(claims, _secret(), algorithm=settings.jwt_algorithm)

def decode_access_token(token: str) -> Optional[dict]:
    """Verified claims, or None for a bad signature, an expired token or garbage."""
    try:
        claims = jwt.decode(token, _secret(), algorithms=[settings.jwt_algorithm])
    except (jose_errors.JWTError, jose_errors.ExpiredSignatureError):
        return None
    if not claims.get("userId"):
        return None
    return claims

def user_id_from_authorization(header: Optional[str]) -> Optional[int]:
    if not header or not header.startswith("Bearer "):
        return None
    claims = decode_access_token(header[len("Bearer "):].strip())
    if not claims:
        return None
    try:
        return int(claims["userId"])
    except (TypeError, ValueError):
        return None
