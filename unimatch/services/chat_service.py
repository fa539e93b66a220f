"""
UniMatch — Chat History & Read Receipts

Every chat operation starts by resolving the match and checking that the
caller is one of its two participants.  Reading a conversation marks the
counterparty's unread messages as read in the same transaction; the
caller's own messages are left untouched.

Message payloads are built here once and shared by the REST routes and the
WebSocket relay so both surfaces put identical fields on the wire.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from unimatch.config import get_settings
from unimatch.models.match import Match
from unimatch.models.message import Message
from unimatch.models.user import User
from unimatch.services.exceptions import (
    InvalidMessageError,
    MatchNotFoundError,
    NotMatchParticipantError,
)

logger = structlog.get_logger("unimatch.chat_service")


def serialize_message(message: Message, sender: User | None = None) -> dict[str, Any]:
    """Build the camelCase payload pushed over WebSocket and returned by REST."""
    sender = sender if sender is not None else message.sender
    return {
        "id": message.id,
        "matchId": message.match_id,
        "senderId": message.sender_id,
        "content": message.content,
        "isRead": message.is_read,
        "createdAt": message.created_at.isoformat() if message.created_at else None,
        "senderFirstName": sender.first_name if sender is not None else None,
        "senderLastName": sender.last_name if sender is not None else None,
    }


class ChatService:
    """Participant-checked message storage and retrieval."""

    def __init__(self, max_length: int | None = None) -> None:
        self._max_length = max_length or get_settings().MESSAGE_MAX_LENGTH

    async def get_participant_match(
        self,
        match_id: str,
        user_id: str,
        db_session: AsyncSession,
    ) -> Match:
        """Return the match if ``user_id`` takes part in it.

        Raises
        ------
        MatchNotFoundError
            No match with this id.
        NotMatchParticipantError
            The match exists but belongs to two other users.
        """
        match = await db_session.get(Match, match_id)
        if match is None:
            raise MatchNotFoundError("Match not found.", match_id=match_id)
        if not match.has_participant(user_id):
            logger.warning("chat_access_denied", match_id=match_id, user_id=user_id)
            raise NotMatchParticipantError(
                "You are not part of this match.", match_id=match_id, user_id=user_id
            )
        return match

    async def send_message(
        self,
        sender_id: str,
        match_id: str,
        content: str,
        db_session: AsyncSession,
    ) -> tuple[Message, str]:
        """Persist a message and return it with the recipient's id.

        The message is flushed but not committed; the caller commits before
        relaying so a pushed message is always already durable.
        """
        match = await self.get_participant_match(match_id, sender_id, db_session)
        text = self._clean_content(content, match_id)

        message = Message(match_id=match.id, sender_id=sender_id, content=text)
        db_session.add(message)
        await db_session.flush()
        await db_session.refresh(message, attribute_names=["sender"])

        recipient_id = match.other_participant(sender_id)
        logger.info(
            "message_stored",
            message_id=message.id,
            match_id=match.id,
            sender_id=sender_id,
            recipient_id=recipient_id,
        )
        return message, recipient_id

    async def get_history(
        self,
        requester_id: str,
        match_id: str,
        db_session: AsyncSession,
    ) -> list[dict[str, Any]]:
        """Return the conversation oldest-first and mark incoming messages read.

        The returned payloads reflect each message's read state *before*
        this call, so the client can tell which messages were new to it.
        """
        log = logger.bind(match_id=match_id, requester_id=requester_id)
        await self.get_participant_match(match_id, requester_id, db_session)

        stmt = (
            select(Message)
            .where(Message.match_id == match_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        result = await db_session.execute(stmt)
        history = [serialize_message(m) for m in result.scalars().all()]

        marked = await self._mark_incoming_read(requester_id, match_id, db_session)
        log.info("history_fetched", count=len(history), marked_read=marked)
        return history

    async def mark_read(
        self,
        user_id: str,
        match_id: str,
        db_session: AsyncSession,
    ) -> tuple[int, str]:
        """Mark the counterparty's unread messages read.

        Returns the number of rows updated and the counterparty's id, who
        is the one to notify.
        """
        match = await self.get_participant_match(match_id, user_id, db_session)
        updated = await self._mark_incoming_read(user_id, match_id, db_session)
        logger.info("messages_marked_read", match_id=match_id, user_id=user_id, updated=updated)
        return updated, match.other_participant(user_id)

    async def unread_count(self, user_id: str, db_session: AsyncSession) -> int:
        """Unread messages written by counterparts across all of the user's matches."""
        stmt = (
            select(func.count(Message.id))
            .join(Match, Match.id == Message.match_id)
            .where(
                or_(Match.user1_id == user_id, Match.user2_id == user_id),
                Message.sender_id != user_id,
                Message.is_read.is_(False),
            )
        )
        result = await db_session.execute(stmt)
        return int(result.scalar_one())

    # ── Private helpers ───────────────────────────────────────────────────

    def _clean_content(self, content: str, match_id: str) -> str:
        text = (content or "").strip()
        if not text:
            raise InvalidMessageError("Message content cannot be empty.", match_id=match_id)
        if len(text) > self._max_length:
            raise InvalidMessageError(
                f"Message content exceeds {self._max_length} characters.",
                match_id=match_id,
            )
        return text

    async def _mark_incoming_read(
        self,
        reader_id: str,
        match_id: str,
        db_session: AsyncSession,
    ) -> int:
        stmt = (
            update(Message)
            .where(
                Message.match_id == match_id,
                Message.sender_id != reader_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        result = await db_session.execute(stmt)
        return result.rowcount or 0
