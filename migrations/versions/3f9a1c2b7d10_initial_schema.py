"""initial schema

Revision ID: 3f9a1c2b7d10
Revises:
Create Date: 2026-10-19 09:12:41.118204
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f9a1c2b7d10"
down_revision = None
branch_labels = None
depends_on = None


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _jsonb():
    # Portable: JSON on SQLite, JSONB on Postgres
    return sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade():
    # --- accounts ---
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("user_metadata", _jsonb(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    with op.batch_alter_table("accounts") as batch_op:
        batch_op.create_index(batch_op.f("ix_accounts_email"), ["email"], unique=True)
        batch_op.create_index(batch_op.f("ix_accounts_created_at"), ["created_at"], unique=False)

    # --- profiles ---
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(length=36), sa.ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True, nullable=False),
        sa.Column("display_name", sa.String(length=120), nullable=True),
        sa.Column("avatar_url", sa.String(length=512), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("role in ('admin', 'user')", name="ck_profiles_role"),
    )
    with op.batch_alter_table("profiles") as batch_op:
        batch_op.create_index(batch_op.f("ix_profiles_role"), ["role"], unique=False)
        batch_op.create_index(batch_op.f("ix_profiles_created_at"), ["created_at"], unique=False)

    # --- projects ---
    op.create_table(
        "projects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("summary", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("target_usd", sa.Numeric(12, 2), nullable=False),
        sa.Column("raised_usd", sa.Numeric(12, 2), nullable=False),
        sa.Column("kpi_jsonb", _jsonb(), nullable=False),
        sa.Column("image_url", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("target_usd >= 0", name="ck_projects_target_nonneg"),
        sa.CheckConstraint("raised_usd >= 0", name="ck_projects_raised_nonneg"),
        sa.CheckConstraint("status in ('pending', 'in-progress', 'completed')", name="ck_projects_status"),
    )
    with op.batch_alter_table("projects") as batch_op:
        batch_op.create_index(batch_op.f("ix_projects_status"), ["status"], unique=False)
        batch_op.create_index(batch_op.f("ix_projects_created_at"), ["created_at"], unique=False)

    # --- donations ---
    op.create_table(
        "donations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount_usd", sa.Numeric(12, 2), nullable=False),
        sa.Column("tx_hash", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_usd > 0", name="ck_donations_amount_positive"),
    )
    with op.batch_alter_table("donations") as batch_op:
        batch_op.create_index(batch_op.f("ix_donations_project_id"), ["project_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_donations_user_id"), ["user_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_donations_tx_hash"), ["tx_hash"], unique=True)
        batch_op.create_index(batch_op.f("ix_donations_created_at"), ["created_at"], unique=False)
        batch_op.create_index("ix_donations_user_created", ["user_id", "created_at"], unique=False)

    # --- stories ---
    op.create_table(
        "stories",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("body_md", sa.Text(), nullable=False),
        sa.Column("approved", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    with op.batch_alter_table("stories") as batch_op:
        batch_op.create_index(batch_op.f("ix_stories_user_id"), ["user_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_stories_approved"), ["approved"], unique=False)
        batch_op.create_index(batch_op.f("ix_stories_created_at"), ["created_at"], unique=False)

    # --- donee_submissions ---
    op.create_table(
        "donee_submissions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("org_name", sa.String(length=200), nullable=False),
        sa.Column("proposal_md", sa.Text(), nullable=False),
        sa.Column("budget_usd", sa.Numeric(12, 2), nullable=False),
        sa.Column("initial_kpis", _jsonb(), nullable=False),
        sa.Column("submitted_by", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("budget_usd >= 0", name="ck_submissions_budget_nonneg"),
        sa.CheckConstraint("status in ('pending', 'approved', 'rejected')", name="ck_submissions_status"),
    )
    with op.batch_alter_table("donee_submissions") as batch_op:
        batch_op.create_index(batch_op.f("ix_donee_submissions_status"), ["status"], unique=False)
        batch_op.create_index(batch_op.f("ix_donee_submissions_created_at"), ["created_at"], unique=False)


def downgrade():
    for table in ("donee_submissions", "stories", "donations", "projects", "profiles", "accounts"):
        op.drop_table(table)
