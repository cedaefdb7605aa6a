"""Users with team membership, and records (entries and cities).

Revision ID: 0001_workspace_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_workspace_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="contributor"),
        # NULL = unassigned
        sa.Column("team", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("role IN ('administrator', 'contributor')", name="ck_users_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_team", "users", ["team"])

    op.create_table(
        "records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False, server_default=""),
        sa.Column("author_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="draft"),
        # JSON, not JSONB: JSONB reorders keys and export columns follow stored order.
        sa.Column("fields", postgresql.JSON(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("type IN ('entry', 'city')", name="ck_records_type"),
        sa.CheckConstraint(
            "status IN ('draft', 'pending', 'private', 'trash')", name="ck_records_status"
        ),
    )
    op.create_index("ix_records_type", "records", ["type"])
    op.create_index("ix_records_author_id", "records", ["author_id"])
    op.create_index("ix_records_status", "records", ["status"])


def downgrade() -> None:
    op.drop_index("ix_records_status", table_name="records")
    op.drop_index("ix_records_author_id", table_name="records")
    op.drop_index("ix_records_type", table_name="records")
    op.drop_table("records")

    op.drop_index("ix_users_team", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
