"""
UniMatch — Match Detection & Match Bookkeeping

A match is the materialised form of a mutual like.  Detection runs
synchronously after every recorded like:

  1. Look up whether the target already has a ``like`` edge toward the actor.
  2. If so, canonicalise the pair (lexicographically smaller id first).
  3. Insert the match with ``ON CONFLICT DO NOTHING`` against the unique
     ``(user1_id, user2_id)`` constraint and read the surviving row back.

Step 3 is what makes two near-simultaneous reciprocal likes converge on a
single row: whichever insert loses the race becomes a no-op instead of a
duplicate.  ``deduplicate_matches`` remains for legacy data written with
non-canonical ordering, which the constraint cannot see.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

import structlog
from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from unimatch.models.base import new_id, utcnow
from unimatch.models.interaction import Interaction, InteractionKind
from unimatch.models.match import Match
from unimatch.models.message import Message
from unimatch.models.user import User
from unimatch.services.exceptions import InvalidSwipeError, MatchNotFoundError
from unimatch.services.upsert import insert_for

logger = structlog.get_logger("unimatch.match_service")


def canonical_pair(user_a_id: str, user_b_id: str) -> tuple[str, str]:
    """Return the pair ordered so the lexicographically smaller id is first."""
    if user_a_id == user_b_id:
        raise InvalidSwipeError(
            "A match needs two distinct users.", user_id=user_a_id
        )
    return (user_a_id, user_b_id) if user_a_id < user_b_id else (user_b_id, user_a_id)


class MatchService:
    """Mutual-like detection, match creation and match listing."""

    # ── Detection ─────────────────────────────────────────────────────────

    async def has_liked(
        self,
        actor_id: str,
        target_id: str,
        db_session: AsyncSession,
    ) -> bool:
        """Return True if ``actor_id`` currently has a like edge to ``target_id``."""
        stmt = select(Interaction.id).where(
            Interaction.actor_id == actor_id,
            Interaction.target_id == target_id,
            Interaction.kind == InteractionKind.LIKE.value,
        )
        result = await db_session.execute(stmt)
        return result.first() is not None

    async def ensure_match(
        self,
        user_a_id: str,
        user_b_id: str,
        db_session: AsyncSession,
    ) -> tuple[Match, bool]:
        """Return the match for the pair, creating it if it does not exist.

        Returns
        -------
        tuple[Match, bool]
            The match row and whether this call inserted it.
        """
        user1_id, user2_id = canonical_pair(user_a_id, user_b_id)
        log = logger.bind(user1_id=user1_id, user2_id=user2_id)

        existing = await self._find_match(user1_id, user2_id, db_session)
        if existing is not None:
            log.info("match_already_exists", match_id=existing.id)
            return existing, False

        table = Match.__table__
        stmt = (
            insert_for(db_session, table)
            .values(
                id=new_id(),
                user1_id=user1_id,
                user2_id=user2_id,
                created_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["user1_id", "user2_id"])
        )
        result = await db_session.execute(stmt)
        created = result.rowcount == 1

        match = await self._find_match(user1_id, user2_id, db_session)
        if match is None:
            # Conflict reported but no row visible: the pair was deleted
            # between the two statements.
            raise MatchNotFoundError(
                "Match vanished during creation.",
                user1_id=user1_id,
                user2_id=user2_id,
            )

        if created:
            log.info("match_created", match_id=match.id)
        else:
            log.info("match_insert_lost_race", match_id=match.id)
        return match, created

    # ── Lookups ───────────────────────────────────────────────────────────

    async def get_match(self, match_id: str, db_session: AsyncSession) -> Match:
        match = await db_session.get(Match, match_id)
        if match is None:
            raise MatchNotFoundError("Match not found.", match_id=match_id)
        return match

    async def matched_user_ids(
        self,
        user_id: str,
        db_session: AsyncSession,
    ) -> list[str]:
        """Ids of every user ``user_id`` is matched with."""
        stmt = select(Match.user1_id, Match.user2_id).where(
            or_(Match.user1_id == user_id, Match.user2_id == user_id)
        )
        result = await db_session.execute(stmt)
        return [u2 if u1 == user_id else u1 for u1, u2 in result.all()]

    async def list_matches(
        self,
        user_id: str,
        db_session: AsyncSession,
    ) -> list[dict[str, Any]]:
        """List the user's matches as counterpart profile summaries.

        Parameters
        ----------
        user_id:
            Id of the authenticated user.
        db_session:
            Active SQLAlchemy async session.

        Returns
        -------
        list[dict]
            One entry per match, newest first, describing the *other*
            participant plus the match id and creation time.
        """
        log = logger.bind(user_id=user_id)

        stmt = (
            select(Match)
            .where(or_(Match.user1_id == user_id, Match.user2_id == user_id))
            .order_by(Match.created_at.desc())
        )
        result = await db_session.execute(stmt)
        matches = result.scalars().all()

        items: list[dict[str, Any]] = []
        for m in matches:
            other: User | None = m.user2 if m.user1_id == user_id else m.user1
            if other is None:
                continue
            items.append({
                "id": m.id,
                "user_id": other.id,
                "email": other.email,
                "first_name": other.first_name,
                "last_name": other.last_name,
                "age": other.age,
                "college": other.college,
                "branch": other.branch,
                "graduation_year": other.graduation_year,
                "profile_image_url": other.profile_image_url,
                "created_at": m.created_at,
            })

        log.info("list_matches_complete", count=len(items))
        return items

    # ── Maintenance ───────────────────────────────────────────────────────

    async def deduplicate_matches(self, db_session: AsyncSession) -> dict[str, int]:
        """Collapse duplicate matches for the same unordered pair.

        The oldest row per pair survives.  Messages attached to the removed
        rows are moved onto the survivor so no conversation history is lost,
        and a survivor stored with non-canonical ordering is rewritten.
        """
        stmt = select(Match).order_by(Match.created_at.asc(), Match.id.asc())
        result = await db_session.execute(stmt)
        all_matches = result.scalars().all()

        logger.info("deduplicate_start", total_matches=len(all_matches))

        by_pair: dict[tuple[str, str], list[Match]] = defaultdict(list)
        for m in all_matches:
            by_pair[tuple(sorted((m.user1_id, m.user2_id)))].append(m)

        removed = 0
        reordered = 0
        for pair, rows in by_pair.items():
            keep, duplicates = rows[0], rows[1:]

            if duplicates:
                duplicate_ids = [d.id for d in duplicates]
                await db_session.execute(
                    update(Message)
                    .where(Message.match_id.in_(duplicate_ids))
                    .values(match_id=keep.id)
                    .execution_options(synchronize_session=False)
                )
                await db_session.execute(
                    delete(Match)
                    .where(Match.id.in_(duplicate_ids))
                    .execution_options(synchronize_session=False)
                )
                for d in duplicates:
                    db_session.expunge(d)
                removed += len(duplicates)
                logger.info(
                    "duplicate_matches_removed",
                    pair="-".join(pair),
                    kept=keep.id,
                    removed=len(duplicates),
                )

            if (keep.user1_id, keep.user2_id) != pair:
                keep.user1_id, keep.user2_id = pair
                reordered += 1

        await db_session.flush()

        report = {
            "total_matches": len(all_matches),
            "duplicates_removed": removed,
            "unique_pairs": len(by_pair),
            "reordered": reordered,
        }
        logger.info("deduplicate_complete", **report)
        return report

    # ── Private helpers ───────────────────────────────────────────────────

    async def _find_match(
        self,
        user1_id: str,
        user2_id: str,
        db_session: AsyncSession,
    ) -> Match | None:
        stmt = select(Match).where(
            Match.user1_id == user1_id,
            Match.user2_id == user2_id,
        )
        result = await db_session.execute(stmt)
        return result.scalar_one_or_none()
