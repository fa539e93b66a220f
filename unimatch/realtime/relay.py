"""
UniMatch — WebSocket frame relay.

Dispatches each inbound frame from an open socket.  Every frame gets its
own short database session; a message is committed before it is pushed to
anyone, so whatever a client sees live is already in the history.

Failures are scoped to the frame that caused them.  Malformed frames and
authorization failures are answered with an ``error`` frame and the
socket stays open.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unimatch.realtime.manager import ConnectionManager
from unimatch.schemas.realtime import (
    FrameError,
    MarkReadFrame,
    PingFrame,
    SendMessageFrame,
    TypingFrame,
    error_frame,
    message_sent_frame,
    messages_read_frame,
    new_message_frame,
    parse_frame,
    pong_frame,
    typing_frame,
)
from unimatch.services.chat_service import ChatService, serialize_message
from unimatch.services.exceptions import ServiceError

logger = structlog.get_logger("unimatch.realtime.relay")


class ChatRelay:
    """Turns inbound frames into chat operations and outbound frames."""

    def __init__(
        self,
        manager: ConnectionManager,
        session_factory: async_sessionmaker[AsyncSession],
        chat_service: ChatService | None = None,
    ) -> None:
        self._manager = manager
        self._session_factory = session_factory
        self._chat = chat_service or ChatService()
        self._handlers = {
            SendMessageFrame: self._on_send_message,
            MarkReadFrame: self._on_mark_read,
            TypingFrame: self._on_typing,
            PingFrame: self._on_ping,
        }

    async def handle(self, user_id: str, raw: str | bytes | None) -> None:
        """Process one raw frame received from ``user_id``."""
        log = logger.bind(user_id=user_id)

        try:
            frame = parse_frame(raw)
        except FrameError as exc:
            log.warning("frame_rejected", code=exc.code, reason=exc.message)
            await self._manager.send_to(user_id, error_frame(exc.code, exc.message))
            return

        match_id = getattr(frame, "match_id", None)
        handler = self._handlers[type(frame)]
        try:
            await handler(user_id, frame)
        except ServiceError as exc:
            log.warning("frame_failed", frame_type=frame.type, code=exc.code, match_id=match_id)
            await self._manager.send_to(user_id, error_frame(exc.code, exc.message, match_id))
        except SQLAlchemyError:
            log.exception("frame_persistence_error", frame_type=frame.type, match_id=match_id)
            await self._manager.send_to(
                user_id,
                error_frame("internal_error", "The request could not be completed.", match_id),
            )

    # ── Handlers ──────────────────────────────────────────────────────────

    async def _on_send_message(self, user_id: str, frame: SendMessageFrame) -> None:
        async with self._session_factory() as session:
            message, recipient_id = await self._chat.send_message(
                user_id, frame.match_id, frame.content, session
            )
            payload = serialize_message(message)
            await session.commit()

        delivered = await self._manager.send_to(recipient_id, new_message_frame(payload))
        await self._manager.send_to(user_id, message_sent_frame(payload))
        logger.info(
            "message_relayed",
            message_id=payload["id"],
            match_id=frame.match_id,
            sender_id=user_id,
            recipient_id=recipient_id,
            delivered=delivered,
        )

    async def _on_mark_read(self, user_id: str, frame: MarkReadFrame) -> None:
        async with self._session_factory() as session:
            updated, other_id = await self._chat.mark_read(user_id, frame.match_id, session)
            await session.commit()

        await self._manager.send_to(other_id, messages_read_frame(frame.match_id, user_id))
        logger.info("read_receipt_relayed", match_id=frame.match_id, reader_id=user_id, updated=updated)

    async def _on_typing(self, user_id: str, frame: TypingFrame) -> None:
        async with self._session_factory() as session:
            match = await self._chat.get_participant_match(frame.match_id, user_id, session)
            other_id = match.other_participant(user_id)

        await self._manager.send_to(
            other_id, typing_frame(frame.match_id, user_id, frame.is_typing)
        )

    async def _on_ping(self, user_id: str, frame: PingFrame) -> None:
        await self._manager.send_to(user_id, pong_frame(user_id))


async def push_new_message(
    manager: ConnectionManager,
    recipient_id: str,
    sender_id: str,
    payload: dict[str, Any],
) -> bool:
    """Relay a message persisted outside the socket (the REST send route)."""
    delivered = await manager.send_to(recipient_id, new_message_frame(payload))
    await manager.send_to(sender_id, message_sent_frame(payload))
    return delivered
