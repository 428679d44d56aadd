"""Initial schema — roles, users, purge list, options, audit log.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from userpurge.models.role import DEFAULT_ROLES

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None

# Kept in one place so upgrade and downgrade always agree on the name
INACTIVITY_TABLE = "purge_user_list"


def upgrade() -> None:
    # ── Standalone tables (no FKs) ─────────────────────────────────────

    op.create_table(
        "roles",
        sa.Column("slug", sa.String(64), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("editable", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("slug"),
    )

    op.create_table(
        "options",
        sa.Column("name", sa.String(191), nullable=False),
        sa.Column("value", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("name"),
    )

    op.create_table(
        "audit_log",
        sa.Column("event_type", sa.String(100), nullable=False, index=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("actor_id", sa.String(100), comment="Admin username, 'hook' or 'system'"),
        sa.Column("actor_role", sa.String(50), comment="admin, hook, system"),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "users",
        sa.Column("login", sa.String(60), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("role", sa.String(64), nullable=False),
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_login", "users", ["login"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    # ── Tables with FK to users ────────────────────────────────────────

    op.create_table(
        INACTIVITY_TABLE,
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("changed_at", sa.DateTime(timezone=True), comment="NULL = preserve, never purge"),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_index(f"ix_{INACTIVITY_TABLE}_changed_at", INACTIVITY_TABLE, ["changed_at"])

    # ── Seed roles ─────────────────────────────────────────────────────

    roles = sa.table(
        "roles",
        sa.column("slug", sa.String),
        sa.column("name", sa.String),
        sa.column("editable", sa.Boolean),
    )
    op.bulk_insert(roles, DEFAULT_ROLES)


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table(INACTIVITY_TABLE)
    op.drop_table("users")
    op.drop_table("audit_log")
    op.drop_table("options")
    op.drop_table("roles")
