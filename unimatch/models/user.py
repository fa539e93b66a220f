"""
UniMatch — User model.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from unimatch.database import Base
from unimatch.models.base import ID_TYPE, new_id, utcnow

GENDERS: tuple[str, ...] = ("male", "female", "non-binary", "prefer-not-to-say")


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    password_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    gender: Mapped[str] = mapped_column(
        String, nullable=False, comment="male / female / non-binary / prefer-not-to-say"
    )
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    college: Mapped[str | None] = mapped_column(String, nullable=True)
    branch: Mapped[str | None] = mapped_column(String, nullable=True)
    graduation_year: Mapped[str | None] = mapped_column(String, nullable=True)
    profile_image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    is_approved: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    is_suspended: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    # ── Relationships ──────────────────────────────────────────────
    interactions: Mapped[list["Interaction"]] = relationship(
        "Interaction",
        foreign_keys="Interaction.actor_id",
        back_populates="actor",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    @property
    def can_interact(self) -> bool:
        return self.is_approved and not self.is_suspended

    def __repr__(self) -> str:
        return f"<User {self.email!r} id={self.id}>"
