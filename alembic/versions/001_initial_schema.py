"""Initial schema: tenants, devices, tickets and ticket sub-resources.

Revision ID: 001
Revises:
Create Date: 2026-10-19

WHAT: Creates every table the service reads and writes.

WHY: Ticket sub-resources (comments, attachments, history) are keyed by
(ticket_type, ticket_id, org_id) with no foreign key to the four ticket
tables. The legacy "comments" table is not created here; it only exists on
deployments upgraded from the single-family schema, and the comment store
reads it when ticket_comments is missing.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


# WHY: ticket_status and ticket_type are shared by several tables, so the
# types are created once up front and columns reference them with
# create_type=False.
ENUMS = {
    "user_role": ("admin", "agent", "user"),
    "ticket_type": ("incident", "service_request", "problem", "change"),
    "ticket_status": ("new", "in_progress", "waiting", "resolved", "closed"),
    "ticket_priority": ("low", "medium", "high", "critical"),
    "change_status": (
        "draft",
        "pending_approval",
        "approved",
        "scheduled",
        "in_progress",
        "completed",
        "failed",
        "cancelled",
    ),
    "change_risk": ("low", "medium", "high"),
    "device_status": ("active", "retired"),
    "activity_status": ("queued", "processing", "completed", "failed"),
    "policy_assignment_status": ("pending", "applied", "failed"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def _ticket_columns() -> list:
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
    ]


def _sub_resource_key() -> list:
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ticket_type", _enum("ticket_type"), nullable=False),
        sa.Column("ticket_id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
    ]


def upgrade() -> None:
    """Create enum types, then tables in foreign-key order."""
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # ------------------------------------------------------------------ tenants
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_organizations_name", "organizations", ["name"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", _enum("user_role"), nullable=False, server_default="user"),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_org_id", "users", ["org_id"])

    # ------------------------------------------------------------------ devices
    op.create_table(
        "devices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("owner_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("hostname", sa.String(255), nullable=False),
        sa.Column("os", sa.String(100), nullable=True),
        sa.Column("status", _enum("device_status"), nullable=False, server_default="active"),
        sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
        *_timestamps(),
    )
    op.create_index("ix_devices_org_id", "devices", ["org_id"])

    op.create_table(
        "device_policies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("platform", sa.String(50), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_device_policies_org_id", "device_policies", ["org_id"])

    op.create_table(
        "device_policy_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("device_id", sa.Integer(), sa.ForeignKey("devices.id"), nullable=False),
        sa.Column("policy_id", sa.Integer(), sa.ForeignKey("device_policies.id"), nullable=False),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column(
            "status", _enum("policy_assignment_status"), nullable=False, server_default="pending"
        ),
        *_timestamps(),
        sa.UniqueConstraint("device_id", "policy_id", name="uq_device_policy_assignment"),
    )

    op.create_table(
        "device_activity",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("device_id", sa.Integer(), sa.ForeignKey("devices.id"), nullable=False),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("initiated_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("status", _enum("activity_status"), nullable=False, server_default="queued"),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_device_activity_device", "device_activity", ["device_id", "org_id"])
    op.create_index("ix_device_activity_status", "device_activity", ["status", "created_at"])

    # ------------------------------------------------------------------ catalog
    op.create_table(
        "service_catalog_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("form_schema", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_service_catalog_items_org_id", "service_catalog_items", ["org_id"])

    # ------------------------------------------------------------------ tickets
    op.create_table(
        "incidents",
        *_ticket_columns(),
        sa.Column("status", _enum("ticket_status"), nullable=False, server_default="new"),
        sa.Column("priority", _enum("ticket_priority"), nullable=False, server_default="medium"),
        sa.Column("impact", sa.String(50), nullable=True),
        sa.Column("urgency", sa.String(50), nullable=True),
        sa.Column("requester_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assignee_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("device_id", sa.Integer(), sa.ForeignKey("devices.id"), nullable=True),
        sa.Column("breach_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "service_requests",
        *_ticket_columns(),
        sa.Column("status", _enum("ticket_status"), nullable=False, server_default="new"),
        sa.Column("priority", _enum("ticket_priority"), nullable=False, server_default="medium"),
        sa.Column("requester_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assignee_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column(
            "catalog_item_id",
            sa.Integer(),
            sa.ForeignKey("service_catalog_items.id"),
            nullable=True,
        ),
        sa.Column("fulfillment_notes", sa.Text(), nullable=True),
        sa.Column("approved_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("breach_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "problems",
        *_ticket_columns(),
        sa.Column("status", _enum("ticket_status"), nullable=False, server_default="new"),
        sa.Column("priority", _enum("ticket_priority"), nullable=False, server_default="medium"),
        sa.Column("assigned_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("root_cause", sa.Text(), nullable=True),
        sa.Column("workaround", sa.Text(), nullable=True),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.Column("related_incidents", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "changes",
        *_ticket_columns(),
        sa.Column("status", _enum("change_status"), nullable=False, server_default="draft"),
        sa.Column("risk", _enum("change_risk"), nullable=False, server_default="medium"),
        sa.Column("requester_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigned_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("impact_analysis", sa.Text(), nullable=True),
        sa.Column("rollback_plan", sa.Text(), nullable=True),
        sa.Column("approved_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("scheduled_start", sa.DateTime(), nullable=True),
        sa.Column("scheduled_end", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )

    op.create_index("ix_incidents_org_id", "incidents", ["org_id"])
    op.create_index("ix_incidents_created_at", "incidents", ["created_at"])
    op.create_index("ix_incidents_org_status", "incidents", ["org_id", "status"])
    op.create_index("ix_incidents_org_requester", "incidents", ["org_id", "requester_user_id"])
    op.create_index("ix_service_requests_org_id", "service_requests", ["org_id"])
    op.create_index("ix_service_requests_created_at", "service_requests", ["created_at"])
    op.create_index("ix_service_requests_org_status", "service_requests", ["org_id", "status"])
    op.create_index(
        "ix_service_requests_org_requester", "service_requests", ["org_id", "requester_user_id"]
    )
    op.create_index("ix_problems_org_id", "problems", ["org_id"])
    op.create_index("ix_problems_created_at", "problems", ["created_at"])
    op.create_index("ix_problems_org_status", "problems", ["org_id", "status"])
    op.create_index("ix_problems_org_assigned", "problems", ["org_id", "assigned_user_id"])
    op.create_index("ix_changes_org_id", "changes", ["org_id"])
    op.create_index("ix_changes_created_at", "changes", ["created_at"])
    op.create_index("ix_changes_org_status", "changes", ["org_id", "status"])
    op.create_index("ix_changes_org_requester", "changes", ["org_id", "requester_user_id"])

    # ------------------------------------------------------------ sub-resources
    op.create_table(
        "ticket_comments",
        *_sub_resource_key(),
        sa.Column("author_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("mentions", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_ticket_comments_ticket", "ticket_comments", ["ticket_type", "ticket_id", "org_id"]
    )

    op.create_table(
        "ticket_attachments",
        *_sub_resource_key(),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.String(1024), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("mime_type", sa.String(255), nullable=False),
        sa.Column("uploaded_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_ticket_attachments_ticket",
        "ticket_attachments",
        ["ticket_type", "ticket_id", "org_id"],
    )

    op.create_table(
        "ticket_history",
        *_sub_resource_key(),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("field_name", sa.String(100), nullable=True),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_ticket_history_ticket", "ticket_history", ["ticket_type", "ticket_id", "org_id"]
    )


def downgrade() -> None:
    """Drop all tables and enum types (reverse of upgrade)."""
    for table in (
        "ticket_history",
        "ticket_attachments",
        "ticket_comments",
        "changes",
        "problems",
        "service_requests",
        "incidents",
        "service_catalog_items",
        "device_activity",
        "device_policy_assignments",
        "device_policies",
        "devices",
        "users",
        "organizations",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
