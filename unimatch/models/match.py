"""
UniMatch — Match and Swipe models.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from unimatch.database import Base
from unimatch.models.base import ID_TYPE, new_id, utcnow


class Match(Base):
    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_match_pair"),
        Index("ix_matches_user2_id", "user2_id"),
    )

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    # user1_id is always the lexicographically smaller id of the pair
    user1_id: Mapped[str] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    user2_id: Mapped[str] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    # ── Relationships ──────────────────────────────────────────────
    user1: Mapped["User"] = relationship(
        "User", foreign_keys=[user1_id], lazy="selectin"
    )
    user2: Mapped["User"] = relationship(
        "User", foreign_keys=[user2_id], lazy="selectin"
    )
    messages: Mapped[list["Message"]] = relationship(
        "Message", back_populates="match", cascade="all, delete-orphan", passive_deletes=True
    )

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def other_participant(self, user_id: str) -> str:
        return self.user2_id if self.user1_id == user_id else self.user1_id

    def __repr__(self) -> str:
        return f"<Match {self.user1_id} <-> {self.user2_id}>"


class Swipe(Base):
    """Append-only log of swipe actions; repeated swipes add new rows."""

    __tablename__ = "swipes"
    __table_args__ = (
        Index("ix_swipes_swiper_swiped", "swiper_id", "swiped_id"),
    )

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    swiper_id: Mapped[str] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    swiped_id: Mapped[str] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    is_like: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Swipe {self.swiper_id} -> {self.swiped_id} like={self.is_like}>"
