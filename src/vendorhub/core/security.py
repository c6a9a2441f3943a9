"""JWT helpers.

Users authenticate against the external auth service; this service only
verifies bearer tokens and reads the actor id from the ``sub`` claim.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from vendorhub.core.config import settings


def create_access_token(subject: str, expires_delta: timedelta | None = None, **claims: Any) -> str:
    """Issue a token for ``subject``. Used by scripts and tests."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    payload = {"sub": subject, "exp": expire, **claims}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and verify a token. Returns None if invalid or expired."""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
