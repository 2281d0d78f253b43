"""
JWT helpers. Tokens are issued by the auth service; this app only verifies them.
create_access_token exists for tooling and tests.
"""
from datetime import datetime, timedelta

from jose import jwt

from jobtracker.app.core.config import settings


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Encode a signed access token with an exp claim."""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict:
    """Decode and verify a token. Raises jose.JWTError when invalid or expired."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
