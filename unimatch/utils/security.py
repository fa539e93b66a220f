"""
UniMatch — Password hashing and access tokens.

Passwords are SHA-256 pre-hashed before bcrypt so inputs longer than
bcrypt's 72-byte limit are not silently truncated.
"""

import datetime as dt
import hashlib
from typing import Any, Dict

from jose import JWTError, jwt
from passlib.context import CryptContext

from unimatch.config import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    sha = hashlib.sha256(password.encode("utf-8")).hexdigest()
    return pwd_context.hash(sha)


def verify_password(password: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    sha = hashlib.sha256(password.encode("utf-8")).hexdigest()
    return pwd_context.verify(sha, hashed)


def create_access_token(user_id: str, expires_minutes: int | None = None) -> str:
    settings = get_settings()
    now = dt.datetime.now(dt.timezone.utc)
    expires = now + dt.timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload: Dict[str, Any] = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int(expires.timestamp()),
        "type": "access",
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
