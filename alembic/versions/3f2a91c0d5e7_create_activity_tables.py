"""Create activity tracking tables

Revision ID: 3f2a91c0d5e7
Revises:
Create Date: 2026-10-18 10:12:03.418211

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3f2a91c0d5e7'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create member/server stats, voice sessions and settings."""

    # --- member_stats ---
    op.create_table(
        "member_stats",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("user_id", sa.BigInteger, nullable=False),
        sa.Column("xp", sa.Integer, nullable=False, server_default="0"),
        sa.Column("level", sa.Integer, nullable=False, server_default="1"),
        sa.Column("message_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("voice_seconds", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("guild_id", "user_id", name="uq_member_stats_guild_user"),
        sa.CheckConstraint("xp >= 0", name="ck_member_stats_xp"),
        sa.CheckConstraint("level >= 1", name="ck_member_stats_level"),
    )
    op.create_index("ix_member_stats_ranking", "member_stats", ["guild_id", "level", "xp"])

    # --- member_channel_stats ---
    op.create_table(
        "member_channel_stats",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column("channel_id", sa.BigInteger, primary_key=True),
        sa.Column("kind", sa.String(8), primary_key=True),
        sa.Column("count", sa.BigInteger, nullable=False, server_default="0"),
        sa.CheckConstraint("count >= 0", name="ck_member_channel_stats_count"),
    )

    # --- server_stats ---
    op.create_table(
        "server_stats",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- server_channel_stats ---
    op.create_table(
        "server_channel_stats",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("channel_id", sa.BigInteger, primary_key=True),
        sa.Column("kind", sa.String(8), primary_key=True),
        sa.Column("count", sa.BigInteger, nullable=False, server_default="0"),
        sa.CheckConstraint("count >= 0", name="ck_server_channel_stats_count"),
    )

    # --- voice_sessions ---
    op.create_table(
        "voice_sessions",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column("channel_id", sa.BigInteger, nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
    )

    # --- settings ---
    op.create_table(
        "settings",
        sa.Column("key", sa.String(200), primary_key=True),
        sa.Column("value_json", sa.Text, nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_settings_category", "settings", ["category"])


def downgrade() -> None:
    """Drop all activity tables."""
    op.drop_index("ix_settings_category", table_name="settings")
    op.drop_table("settings")
    op.drop_table("voice_sessions")
    op.drop_table("server_channel_stats")
    op.drop_table("server_stats")
    op.drop_table("member_channel_stats")
    op.drop_index("ix_member_stats_ranking", table_name="member_stats")
    op.drop_table("member_stats")
