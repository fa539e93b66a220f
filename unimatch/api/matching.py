"""
UniMatch — Matching API

Swipe, block and match-list endpoints.  Swipes run in the request
transaction; when a like completes a new match the transaction is
committed before the counterpart is notified over WebSocket.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from unimatch.api.deps import get_current_user
from unimatch.api.errors import http_error
from unimatch.database import get_db
from unimatch.models.user import User
from unimatch.realtime.manager import ConnectionManager, get_connection_manager
from unimatch.schemas.match import (
    BlockRequest,
    MatchListItem,
    StatusResponse,
    SwipeRequest,
    SwipeResponse,
)
from unimatch.services.exceptions import ServiceError
from unimatch.services.match_service import MatchService
from unimatch.services.swipe_service import SwipeService

logger = structlog.get_logger("unimatch.api.matching")

router = APIRouter()

# ── Service singletons ────────────────────────────────────────────────────────

_match_service: MatchService | None = None
_swipe_service: SwipeService | None = None


def _get_match_service() -> MatchService:
    global _match_service
    if _match_service is None:
        _match_service = MatchService()
    return _match_service


def _get_swipe_service() -> SwipeService:
    global _swipe_service
    if _swipe_service is None:
        _swipe_service = SwipeService(_get_match_service())
    return _swipe_service


# ──────────────────────────────────────────────────────────────────────────────
# POST /swipe — Record a like or dislike
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/swipe",
    response_model=SwipeResponse,
    summary="Like or dislike a profile",
)
async def swipe(
    body: SwipeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    connections: ConnectionManager = Depends(get_connection_manager),
) -> SwipeResponse:
    """Record a swipe and report whether it completed a mutual like.

    A like toward someone who already likes the caller creates the match
    (exactly once per pair) and pushes a ``new_match`` notification to
    both users if they are online.
    """
    try:
        outcome = await _get_swipe_service().record_swipe(
            current_user.id, body.swiped_id, body.is_like, db
        )
    except ServiceError as exc:
        raise http_error(exc)

    if outcome.match_created:
        await db.commit()
        for recipient_id, other_id in (
            (body.swiped_id, current_user.id),
            (current_user.id, body.swiped_id),
        ):
            await connections.send_notification(
                recipient_id, "new_match", matchId=outcome.match_id, userId=other_id
            )

    return SwipeResponse(is_match=outcome.is_match, match_id=outcome.match_id)


# ──────────────────────────────────────────────────────────────────────────────
# GET /matches — List the caller's matches
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/matches",
    response_model=list[MatchListItem],
    summary="List all matches for the current user",
)
async def list_matches(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[MatchListItem]:
    items = await _get_match_service().list_matches(current_user.id, db)
    return [MatchListItem(**item) for item in items]


# ──────────────────────────────────────────────────────────────────────────────
# POST /block — Block a user
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/block",
    response_model=StatusResponse,
    summary="Block a user",
)
async def block_user(
    body: BlockRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> StatusResponse:
    try:
        await _get_swipe_service().block_user(current_user.id, body.user_id, db)
    except ServiceError as exc:
        raise http_error(exc)
    return StatusResponse(message="User blocked successfully")
