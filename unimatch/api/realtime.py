"""
UniMatch — WebSocket endpoint.

``/ws?userId=<id>&isAdmin=<bool>``.  The user must exist, be approved and
not suspended, otherwise the socket is closed with policy-violation code
1008 before it is accepted.  The ``isAdmin`` flag is only honoured for
users who really are admins.  The ``userId`` is taken on trust; no token
is checked on the handshake.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unimatch.database import get_session_factory
from unimatch.models.user import User
from unimatch.realtime.manager import ConnectionManager, get_connection_manager
from unimatch.realtime.relay import ChatRelay

logger = structlog.get_logger("unimatch.api.realtime")

router = APIRouter()


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    user_id: str | None = Query(None, alias="userId"),
    is_admin: bool = Query(False, alias="isAdmin"),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    manager: ConnectionManager = Depends(get_connection_manager),
) -> None:
    if not user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="User ID required")
        return

    async with session_factory() as session:
        user = await session.get(User, user_id)

    if user is None or not user.can_interact:
        logger.warning("socket_rejected", user_id=user_id, known=user is not None)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="User not allowed")
        return

    relay = ChatRelay(manager, session_factory)
    await manager.connect(user_id, websocket, is_admin=is_admin and user.is_admin)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            # Binary frames carry the same JSON as text frames.
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            await relay.handle(user_id, raw)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(user_id, websocket)
