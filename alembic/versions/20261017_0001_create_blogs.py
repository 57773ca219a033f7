"""
Create the blogs table.

Revision ID: 0001
Revises:
Create Date: 2026-10-17

Blog metadata only; content and cover bytes live in the blob store under
blogs/{id}/. Rows with a NULL content_key are provisional.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

SEARCH_DOCUMENT = "to_tsvector('english', title || ' ' || tags::text)"


def upgrade() -> None:
    """Apply schema changes for this revision."""
    op.create_table(
        "blogs",
        # IDENTITY without CYCLE: ids are never handed out twice
        sa.Column("id", sa.Integer(), sa.Identity(always=False), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column(
            "tags",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("content_key", sa.String(length=512), nullable=True),
        sa.Column("cover_key", sa.String(length=512), nullable=True),
        sa.Column("read_time", sa.Integer(), nullable=True),
        sa.Column("views", sa.Integer(), server_default="0", nullable=False),
        sa.Column("likes", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("views >= 0", name="ck_blogs_views_non_negative"),
        sa.CheckConstraint("likes >= 0", name="ck_blogs_likes_non_negative"),
        sa.CheckConstraint("read_time IS NULL OR read_time > 0", name="ck_blogs_read_time_positive"),
    )
    op.create_index("ix_blogs_created_at", "blogs", ["created_at"], unique=False)
    op.create_index("ix_blogs_deleted_at", "blogs", ["deleted_at"], unique=False)
    op.create_index("ix_blogs_views", "blogs", ["views"], unique=False)
    op.create_index("ix_blogs_deleted_created", "blogs", ["deleted_at", "created_at"], unique=False)
    op.create_index("ix_blogs_tags_gin", "blogs", ["tags"], unique=False, postgresql_using="gin")
    op.execute(f"CREATE INDEX ix_blogs_search ON blogs USING gin ({SEARCH_DOCUMENT})")


def downgrade() -> None:
    """Revert schema changes for this revision."""
    op.execute("DROP INDEX IF EXISTS ix_blogs_search")
    op.drop_index("ix_blogs_tags_gin", table_name="blogs")
    op.drop_index("ix_blogs_deleted_created", table_name="blogs")
    op.drop_index("ix_blogs_views", table_name="blogs")
    op.drop_index("ix_blogs_deleted_at", table_name="blogs")
    op.drop_index("ix_blogs_created_at", table_name="blogs")
    op.drop_table("blogs")
