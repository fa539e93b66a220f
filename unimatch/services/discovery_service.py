"""
UniMatch — Profile discovery.

Candidates are approved, non-suspended users the viewer has not yet liked,
disliked or blocked, and who have not blocked the viewer.  Gender rules:

    male               -> female
    female             -> male
    non-binary         -> anyone who is not non-binary
    prefer-not-to-say  -> anyone

Oldest accounts are offered first so every profile eventually surfaces.
"""

from __future__ import annotations

import structlog
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from unimatch.config import get_settings
from unimatch.models.interaction import Interaction, InteractionKind
from unimatch.models.user import User

logger = structlog.get_logger("unimatch.discovery_service")


def gender_filter(gender: str):
    """Return the WHERE clause restricting candidates for a viewer's gender."""
    if gender == "male":
        return User.gender == "female"
    if gender == "female":
        return User.gender == "male"
    if gender == "non-binary":
        return User.gender != "non-binary"
    return None


class DiscoveryService:

    async def next_candidate(self, viewer: User, db_session: AsyncSession) -> User | None:
        stmt = self._candidate_query(viewer).limit(1)
        result = await db_session.execute(stmt)
        candidate = result.scalar_one_or_none()
        logger.info(
            "discover_next",
            viewer_id=viewer.id,
            candidate_id=candidate.id if candidate else None,
        )
        return candidate

    async def list_candidates(
        self,
        viewer: User,
        db_session: AsyncSession,
        limit: int | None = None,
    ) -> list[User]:
        limit = limit or get_settings().DISCOVER_PAGE_SIZE
        stmt = self._candidate_query(viewer).limit(limit)
        result = await db_session.execute(stmt)
        candidates = list(result.scalars().all())
        logger.info("discover_list", viewer_id=viewer.id, count=len(candidates))
        return candidates

    def _candidate_query(self, viewer: User) -> Select:
        already_seen = select(Interaction.target_id).where(
            Interaction.actor_id == viewer.id
        )
        blocked_viewer = select(Interaction.actor_id).where(
            Interaction.target_id == viewer.id,
            Interaction.kind == InteractionKind.BLOCK.value,
        )

        stmt = select(User).where(
            User.id != viewer.id,
            User.is_approved.is_(True),
            User.is_suspended.is_(False),
            User.id.not_in(already_seen),
            User.id.not_in(blocked_viewer),
        )
        clause = gender_filter(viewer.gender)
        if clause is not None:
            stmt = stmt.where(clause)
        return stmt.order_by(User.created_at.asc(), User.id.asc())
