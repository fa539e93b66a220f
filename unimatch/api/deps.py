"""
UniMatch — Authentication dependencies.

``get_current_user`` resolves the bearer token to an approved, active
user; ``get_current_admin`` additionally requires the admin flag.
"""

from __future__ import annotations

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from unimatch.database import get_db
from unimatch.models.user import User
from unimatch.utils.security import decode_token

logger = structlog.get_logger("unimatch.api.deps")

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    try:
        payload = decode_token(credentials.credentials)
    except ValueError:
        raise unauthorized

    user_id = payload.get("sub")
    if payload.get("type") != "access" or not user_id:
        raise unauthorized

    user = await db.get(User, user_id)
    if user is None:
        raise unauthorized

    if not user.is_approved:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account pending approval",
        )
    if user.is_suspended:
        logger.warning("suspended_user_request", user_id=user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account suspended",
        )
    return user


async def get_current_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
