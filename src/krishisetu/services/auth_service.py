"""Authentication service: anonymous demo identities and JWT token management."""

import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from krishisetu.app.config import get_settings

settings = get_settings()


def new_uid() -> str:
    return uuid.uuid4().hex


def create_access_token(uid: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expiration_minutes)
    payload = {"sub": uid, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def uid_from_token(token: str | None) -> str | None:
    """Subject of a valid token, or None."""
    if not token:
        return None
    payload = decode_token(token)
    if not payload or not payload.get("sub"):
        return None
    return payload["sub"]
