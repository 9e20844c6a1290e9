"""
Initial schema: users, tags, links, link_tags, rate_limit_violations, user_settings.

Revision ID: 4c1f8a2b9d3e
Revises:
Create Date: 2026-10-19 10:02:41.118204
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "4c1f8a2b9d3e"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "auth0_id",
            sa.String(length=255),
            nullable=False,
            comment="Auth0 'sub' claim - unique identifier from Auth0",
        ),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_auth0_id"), "users", ["auth0_id"], unique=True)
    op.create_index(op.f("ix_users_created_at"), "users", ["created_at"], unique=False)

    op.create_table(
        "tags",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=30), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("length(name) >= 2", name="ck_tags_name_min_length"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "name", name="uq_tags_user_id_name"),
    )
    op.create_index(op.f("ix_tags_user_id"), "tags", ["user_id"], unique=False)

    op.create_table(
        "links",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column(
            "normalized_url",
            sa.String(length=2048),
            nullable=False,
            comment="URL normalized for uniqueness comparison (lowercase scheme, no trailing slash)",  # noqa: E501
        ),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("ai_description", sa.String(length=280), nullable=True),
        sa.Column("scraped_content", sa.String(length=3000), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("ai_processing_status", sa.String(length=20), nullable=False),
        sa.Column("ai_processing_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ai_processing_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ai_processing_error", sa.String(length=500), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)",
            name="ck_links_rating_range",
        ),
        sa.CheckConstraint(
            "ai_processing_status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_links_ai_processing_status",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_links_user_id"), "links", ["user_id"], unique=False)
    op.create_index(op.f("ix_links_created_at"), "links", ["created_at"], unique=False)
    op.create_index(op.f("ix_links_deleted_at"), "links", ["deleted_at"], unique=False)
    op.create_index("ix_links_user_domain", "links", ["user_id", "domain"], unique=False)
    # Partial unique index: soft-deleted links don't block re-saving the same URL
    op.create_index(
        "uq_links_user_normalized_url_active",
        "links",
        ["user_id", "normalized_url"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
        sqlite_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "link_tags",
        sa.Column("link_id", sa.Uuid(), nullable=False),
        sa.Column("tag_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["link_id"], ["links.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("link_id", "tag_id"),
    )
    op.create_index("ix_link_tags_tag_id", "link_tags", ["tag_id"], unique=False)

    op.create_table(
        "rate_limit_violations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("violation_type", sa.String(length=50), nullable=False),
        sa.Column("attempted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "details",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_rate_limit_violations_user_attempted",
        "rate_limit_violations",
        ["user_id", "attempted_at"],
        unique=False,
    )

    op.create_table(
        "user_settings",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("ai_processing_enabled", sa.Boolean(), nullable=False),
        sa.Column("default_sort", sa.String(length=20), nullable=False),
        sa.Column("links_per_page", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "default_sort IN ('rating-desc', 'date-desc', 'date-asc')",
            name="ck_user_settings_default_sort",
        ),
        sa.CheckConstraint(
            "links_per_page IN (12, 24, 48)",
            name="ck_user_settings_links_per_page",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_index(
        op.f("ix_user_settings_created_at"), "user_settings", ["created_at"], unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f("ix_user_settings_created_at"), table_name="user_settings")
    op.drop_table("user_settings")
    op.drop_index("ix_rate_limit_violations_user_attempted", table_name="rate_limit_violations")
    op.drop_table("rate_limit_violations")
    op.drop_index("ix_link_tags_tag_id", table_name="link_tags")
    op.drop_table("link_tags")
    op.drop_index("uq_links_user_normalized_url_active", table_name="links")
    op.drop_index("ix_links_user_domain", table_name="links")
    op.drop_index(op.f("ix_links_deleted_at"), table_name="links")
    op.drop_index(op.f("ix_links_created_at"), table_name="links")
    op.drop_index(op.f("ix_links_user_id"), table_name="links")
    op.drop_table("links")
    op.drop_index(op.f("ix_tags_user_id"), table_name="tags")
    op.drop_table("tags")
    op.drop_index(op.f("ix_users_created_at"), table_name="users")
    op.drop_index(op.f("ix_users_auth0_id"), table_name="users")
    op.drop_table("users")
