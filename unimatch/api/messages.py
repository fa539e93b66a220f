"""
UniMatch — Messages API

REST access to chat history, sending and read receipts.  Sending over HTTP
persists and commits first, then relays through the same WebSocket frames
the socket path uses.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from unimatch.api.deps import get_current_user
from unimatch.api.errors import http_error
from unimatch.database import get_db
from unimatch.models.user import User
from unimatch.realtime.manager import ConnectionManager, get_connection_manager
from unimatch.realtime.relay import push_new_message
from unimatch.schemas.message import (
    MarkReadResponse,
    MessageCreate,
    MessageResponse,
    UnreadCountResponse,
)
from unimatch.schemas.realtime import messages_read_frame
from unimatch.services.chat_service import ChatService, serialize_message
from unimatch.services.exceptions import ServiceError

logger = structlog.get_logger("unimatch.api.messages")

router = APIRouter()

_chat_service: ChatService | None = None


def _get_chat_service() -> ChatService:
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service


@router.get(
    "/unread/count",
    response_model=UnreadCountResponse,
    summary="Count unread messages across all matches",
)
async def unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UnreadCountResponse:
    count = await _get_chat_service().unread_count(current_user.id, db)
    return UnreadCountResponse(unread_count=count)


@router.get(
    "/match/{match_id}",
    response_model=list[MessageResponse],
    summary="Fetch a conversation and mark incoming messages read",
)
async def get_history(
    match_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[MessageResponse]:
    try:
        history = await _get_chat_service().get_history(current_user.id, match_id, db)
    except ServiceError as exc:
        raise http_error(exc)
    return [MessageResponse.model_validate(m) for m in history]


@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message into a match",
)
async def send_message(
    body: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    connections: ConnectionManager = Depends(get_connection_manager),
) -> MessageResponse:
    try:
        message, recipient_id = await _get_chat_service().send_message(
            current_user.id, body.match_id, body.content, db
        )
    except ServiceError as exc:
        raise http_error(exc)

    payload = serialize_message(message, current_user)
    await db.commit()

    delivered = await push_new_message(connections, recipient_id, current_user.id, payload)
    logger.info(
        "message_sent_http",
        message_id=message.id,
        match_id=body.match_id,
        delivered=delivered,
    )
    return MessageResponse.model_validate(payload)


@router.put(
    "/read/{match_id}",
    response_model=MarkReadResponse,
    summary="Mark the other participant's messages as read",
)
async def mark_read(
    match_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    connections: ConnectionManager = Depends(get_connection_manager),
) -> MarkReadResponse:
    try:
        updated, other_id = await _get_chat_service().mark_read(current_user.id, match_id, db)
    except ServiceError as exc:
        raise http_error(exc)

    await db.commit()
    await connections.send_to(other_id, messages_read_frame(match_id, current_user.id))
    return MarkReadResponse(message="Messages marked as read", updated=updated)
