"""Unified tickets table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

Adds the unified "tickets" table served by /api/tickets. It reuses the
ticket_status and ticket_priority types created in 001.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


KIND_VALUES = ("incident", "request")


def upgrade() -> None:
    bind = op.get_bind()
    postgresql.ENUM(*KIND_VALUES, name="unified_ticket_kind").create(bind, checkfirst=True)

    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "type",
            postgresql.ENUM(*KIND_VALUES, name="unified_ticket_kind", create_type=False),
            nullable=False,
        ),
        sa.Column(
            "status",
            postgresql.ENUM(name="ticket_status", create_type=False),
            nullable=False,
            server_default="new",
        ),
        sa.Column(
            "priority",
            postgresql.ENUM(name="ticket_priority", create_type=False),
            nullable=False,
            server_default="medium",
        ),
        sa.Column("requester_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assignee_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("device_id", sa.Integer(), sa.ForeignKey("devices.id"), nullable=True),
        sa.Column("breach_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_tickets_org_id", "tickets", ["org_id"])
    op.create_index("ix_tickets_org_requester", "tickets", ["org_id", "requester_user_id"])


def downgrade() -> None:
    op.drop_index("ix_tickets_org_requester", table_name="tickets")
    op.drop_index("ix_tickets_org_id", table_name="tickets")
    op.drop_table("tickets")
    postgresql.ENUM(name="unified_ticket_kind").drop(op.get_bind(), checkfirst=True)
