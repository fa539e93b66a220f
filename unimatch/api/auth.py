"""
UniMatch — Login.

Accounts are created and approved elsewhere; this endpoint only exchanges
credentials for an access token.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from unimatch.database import get_db
from unimatch.models.user import User
from unimatch.schemas.user import LoginRequest, TokenResponse
from unimatch.utils.security import create_access_token, verify_password

logger = structlog.get_logger("unimatch.api.auth")

router = APIRouter()


@router.post("/login", response_model=TokenResponse, summary="Exchange credentials for a token")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    stmt = select(User).where(func.lower(User.email) == body.email.strip().lower())
    user = (await db.execute(stmt)).scalar_one_or_none()

    if user is None or not verify_password(body.password, user.password_hash):
        logger.info("login_failed", email=body.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    logger.info("login_succeeded", user_id=user.id)
    return TokenResponse(access_token=create_access_token(user.id))
