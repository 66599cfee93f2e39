"""
Bearer token handling.

Tokens are issued by the identity provider in front of this service; we only
verify them. ``create_access_token`` exists for tooling and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from jose import jwt, JWTError
import structlog

from assettrack.config import settings

logger = structlog.get_logger()


def create_access_token(
    user_id: str,
    role: str,
    email: str,
    name: str = "",
    location_ids: Optional[Sequence[str]] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "role": role,
        "email": email,
        "name": name,
        "location_ids": [str(loc) for loc in (location_ids or [])],
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "type": "access",
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_access_token(token: str) -> dict:
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("type") != "access":
        raise JWTError("Not an access token")
    return payload
