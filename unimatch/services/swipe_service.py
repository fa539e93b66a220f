"""
UniMatch — Swipe Recorder

Records like / dislike / block decisions as ``(actor, target)`` interaction
edges and keeps an append-only swipe log alongside them.

Each edge write is a single ``INSERT .. ON CONFLICT DO UPDATE``, so two
concurrent swipes by the same actor can never lose one another's update
and a target can only ever sit in one of the actor's liked / disliked /
blocked sets.

A swipe first locks both user rows (``SELECT .. FOR UPDATE``, lower id
first).  Two reciprocal likes submitted at the same moment therefore run
one after the other, and the second always sees the first one's edge when
it checks for a mutual like.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from unimatch.models.base import new_id, utcnow
from unimatch.models.interaction import Interaction, InteractionKind
from unimatch.models.match import Swipe
from unimatch.models.user import User
from unimatch.services.exceptions import InvalidSwipeError, UserNotFoundError
from unimatch.services.match_service import MatchService
from unimatch.services.upsert import insert_for

logger = structlog.get_logger("unimatch.swipe_service")


@dataclass
class SwipeOutcome:
    """What a recorded swipe produced."""

    is_match: bool
    match_id: str | None = None
    match_created: bool = False


class SwipeService:
    """Swipe, block and interaction-set queries for a single actor."""

    def __init__(self, match_service: MatchService | None = None) -> None:
        self._matches = match_service or MatchService()

    # ── Swipes ────────────────────────────────────────────────────────────

    async def record_swipe(
        self,
        actor_id: str,
        target_id: str,
        is_like: bool,
        db_session: AsyncSession,
    ) -> SwipeOutcome:
        """Record a like or dislike and run match detection on likes.

        Parameters
        ----------
        actor_id:
            The authenticated user doing the swiping.
        target_id:
            The profile being swiped on.  Must exist and differ from
            ``actor_id``.
        is_like:
            ``True`` for a like, ``False`` for a dislike.
        db_session:
            Active SQLAlchemy async session.  The edge, the swipe log row
            and any new match share its transaction.

        Returns
        -------
        SwipeOutcome
            ``is_match`` is set when the target already likes the actor.
        """
        log = logger.bind(actor_id=actor_id, target_id=target_id, is_like=is_like)

        await self._lock_pair(actor_id, target_id, db_session)

        kind = InteractionKind.LIKE if is_like else InteractionKind.DISLIKE
        await self._upsert_edge(actor_id, target_id, kind, db_session)

        db_session.add(Swipe(swiper_id=actor_id, swiped_id=target_id, is_like=is_like))
        await db_session.flush()

        if not is_like:
            log.info("swipe_recorded", is_match=False)
            return SwipeOutcome(is_match=False)

        reciprocal = await self._matches.has_liked(target_id, actor_id, db_session)
        if not reciprocal:
            log.info("swipe_recorded", is_match=False)
            return SwipeOutcome(is_match=False)

        match, created = await self._matches.ensure_match(actor_id, target_id, db_session)
        log.info("swipe_recorded", is_match=True, match_id=match.id, match_created=created)
        return SwipeOutcome(is_match=True, match_id=match.id, match_created=created)

    async def block_user(
        self,
        actor_id: str,
        target_id: str,
        db_session: AsyncSession,
    ) -> None:
        """Replace any like / dislike toward the target with a block."""
        await self._lock_pair(actor_id, target_id, db_session)
        await self._upsert_edge(actor_id, target_id, InteractionKind.BLOCK, db_session)
        logger.info("user_blocked", actor_id=actor_id, target_id=target_id)

    # ── Derived id sets ───────────────────────────────────────────────────

    async def ids_by_kind(
        self,
        actor_id: str,
        kind: InteractionKind,
        db_session: AsyncSession,
    ) -> list[str]:
        stmt = (
            select(Interaction.target_id)
            .where(Interaction.actor_id == actor_id, Interaction.kind == kind.value)
            .order_by(Interaction.updated_at.asc())
        )
        result = await db_session.execute(stmt)
        return list(result.scalars().all())

    async def liked_ids(self, actor_id: str, db_session: AsyncSession) -> list[str]:
        return await self.ids_by_kind(actor_id, InteractionKind.LIKE, db_session)

    async def disliked_ids(self, actor_id: str, db_session: AsyncSession) -> list[str]:
        return await self.ids_by_kind(actor_id, InteractionKind.DISLIKE, db_session)

    async def blocked_ids(self, actor_id: str, db_session: AsyncSession) -> list[str]:
        return await self.ids_by_kind(actor_id, InteractionKind.BLOCK, db_session)

    async def interacted_ids(self, actor_id: str, db_session: AsyncSession) -> set[str]:
        """Every target the actor has an edge to, whatever its kind."""
        stmt = select(Interaction.target_id).where(Interaction.actor_id == actor_id)
        result = await db_session.execute(stmt)
        return set(result.scalars().all())

    # ── Private helpers ───────────────────────────────────────────────────

    async def _lock_pair(
        self,
        actor_id: str,
        target_id: str,
        db_session: AsyncSession,
    ) -> None:
        """Row-lock both users in id order, held until the transaction ends.

        SQLite renders no ``FOR UPDATE``; its single writer already
        serialises the two swipes.
        """
        if actor_id == target_id:
            raise InvalidSwipeError("You cannot swipe on yourself.", user_id=actor_id)
        stmt = (
            select(User.id)
            .where(User.id.in_(sorted((actor_id, target_id))))
            .order_by(User.id)
            .with_for_update()
        )
        locked = set((await db_session.execute(stmt)).scalars().all())
        if target_id not in locked:
            raise UserNotFoundError("User not found.", user_id=target_id)

    async def _upsert_edge(
        self,
        actor_id: str,
        target_id: str,
        kind: InteractionKind,
        db_session: AsyncSession,
    ) -> None:
        now = utcnow()
        stmt = insert_for(db_session, Interaction.__table__).values(
            id=new_id(),
            actor_id=actor_id,
            target_id=target_id,
            kind=kind.value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["actor_id", "target_id"],
            set_={"kind": stmt.excluded.kind, "updated_at": stmt.excluded.updated_at},
        )
        await db_session.execute(stmt)
