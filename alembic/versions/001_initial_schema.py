"""Initial schema: users, interactions, swipes, matches, messages.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String, unique=True, index=True, nullable=False),
        sa.Column("password_hash", sa.String, nullable=True),
        sa.Column("first_name", sa.String, nullable=False),
        sa.Column("last_name", sa.String, nullable=True),
        sa.Column(
            "gender",
            sa.String,
            nullable=False,
            comment="male / female / non-binary / prefer-not-to-say",
        ),
        sa.Column("age", sa.Integer, nullable=True),
        sa.Column("college", sa.String, nullable=True),
        sa.Column("branch", sa.String, nullable=True),
        sa.Column("graduation_year", sa.String, nullable=True),
        sa.Column("profile_image_url", sa.String, nullable=True),
        sa.Column("is_approved", sa.Boolean, server_default="false", nullable=False),
        sa.Column("is_suspended", sa.Boolean, server_default="false", nullable=False),
        sa.Column("is_admin", sa.Boolean, server_default="false", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    # ── 2. interactions (one edge per ordered actor/target pair) ────
    op.create_table(
        "interactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "actor_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "target_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(16), nullable=False, comment="like / dislike / block"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("actor_id", "target_id", name="uq_interaction_pair"),
    )
    op.create_index(
        "ix_interactions_target_kind", "interactions", ["target_id", "kind"]
    )

    # ── 3. swipes (append-only log) ─────────────────────────────────
    op.create_table(
        "swipes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "swiper_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "swiped_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_like", sa.Boolean, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_swipes_swiper_swiped", "swipes", ["swiper_id", "swiped_id"])

    # ── 4. matches (user1_id < user2_id) ────────────────────────────
    op.create_table(
        "matches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user1_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user2_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("user1_id", "user2_id", name="uq_match_pair"),
    )
    op.create_index("ix_matches_user2_id", "matches", ["user2_id"])

    # ── 5. messages ─────────────────────────────────────────────────
    op.create_table(
        "messages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "match_id",
            sa.String(36),
            sa.ForeignKey("matches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "sender_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("is_read", sa.Boolean, server_default="false", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_messages_match_created", "messages", ["match_id", "created_at"]
    )


def downgrade() -> None:
    # Drop in reverse order (children / dependents first).
    op.drop_index("ix_messages_match_created", table_name="messages")
    op.drop_table("messages")

    op.drop_index("ix_matches_user2_id", table_name="matches")
    op.drop_table("matches")

    op.drop_index("ix_swipes_swiper_swiped", table_name="swipes")
    op.drop_table("swipes")

    op.drop_index("ix_interactions_target_kind", table_name="interactions")
    op.drop_table("interactions")

    op.drop_table("users")
