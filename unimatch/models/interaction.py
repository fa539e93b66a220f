"""
UniMatch — Interaction edge model.

One row per ordered ``(actor, target)`` pair holding the actor's current
stance toward the target.  Liked / disliked / blocked id sets are derived
from this table, and the unique constraint makes "in both liked and
disliked" unrepresentable.
"""

import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from unimatch.database import Base
from unimatch.models.base import ID_TYPE, new_id, utcnow


class InteractionKind(str, enum.Enum):
    LIKE = "like"
    DISLIKE = "dislike"
    BLOCK = "block"


class Interaction(Base):
    __tablename__ = "interactions"
    __table_args__ = (
        UniqueConstraint("actor_id", "target_id", name="uq_interaction_pair"),
        Index("ix_interactions_target_kind", "target_id", "kind"),
    )

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    actor_id: Mapped[str] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    target_id: Mapped[str] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(
        String(16), nullable=False, comment="like / dislike / block"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    # ── Relationships ──────────────────────────────────────────────
    actor: Mapped["User"] = relationship(
        "User", foreign_keys=[actor_id], back_populates="interactions"
    )

    def __repr__(self) -> str:
        return f"<Interaction {self.actor_id} -> {self.target_id} kind={self.kind!r}>"
