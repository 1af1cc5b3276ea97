"""
Ticket models for the ITSM ticket family.

WHAT: SQLAlchemy models for incidents, service requests, problems and
changes, the service catalog that feeds service requests, and the
unified tickets table kept for older clients.

WHY: The four ticket types share a lifecycle and the same generic
sub-resources (comments, attachments, history) but have distinct fields,
so each lives in its own table and the shared columns come from
TicketMixin. Sub-resources point at a ticket through the (ticket_type,
ticket_id) pair, not a foreign key.

HOW: Uses SQLAlchemy 2.0 with:
- Enums stored by value
- org_id on every table, indexed for org-scoped lists
- No delete path; terminal statuses are logical end states
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from rook.models.base import Base, PrimaryKeyMixin, TimestampMixin, enum_column


# ============================================================================
# Enums
# ============================================================================


class TicketType(str, Enum):
    """
    Ticket type tag used in the composite sub-resource key.

    WHY: Comments, attachments and history are shared across the four
    ticket tables; this tag says which table ticket_id refers to.
    """

    INCIDENT = "incident"
    SERVICE_REQUEST = "service_request"
    PROBLEM = "problem"
    CHANGE = "change"


class TicketStatus(str, Enum):
    """
    Status values shared by incidents, service requests and problems.

    Any state may move to any other through an explicit update; entering
    RESOLVED stamps the resolution timestamp when none is supplied.
    """

    NEW = "new"
    IN_PROGRESS = "in_progress"
    WAITING = "waiting"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ChangeStatus(str, Enum):
    """
    Change lifecycle.

    draft → pending_approval → approved → scheduled → in_progress → completed,
    with failed and cancelled reachable from any non-terminal state.
    APPROVED/SCHEDULED are normally entered via the approve operation.
    """

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


CHANGE_TERMINAL_STATUSES = frozenset(
    {ChangeStatus.COMPLETED, ChangeStatus.FAILED, ChangeStatus.CANCELLED}
)


class TicketPriority(str, Enum):
    """Priority levels; the incident SLA table keys on these."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ChangeRisk(str, Enum):
    """Risk levels for changes (changes have risk instead of priority)."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ============================================================================
# Shared columns
# ============================================================================


class TicketMixin(PrimaryKeyMixin, TimestampMixin):
    """
    Columns common to all four ticket tables.

    WHY: Keeping the shared shape in one place is what lets the DAO layer
    offer one adapter interface over four tables.
    """

    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


# ============================================================================
# Ticket models
# ============================================================================


class Incident(Base, TicketMixin):
    """
    Unplanned interruption reported by a requester.

    WHY: The only ticket type whose SLA deadline (breach_at) is computed at
    creation from priority.
    """

    __tablename__ = "incidents"

    status: Mapped[TicketStatus] = mapped_column(
        enum_column(TicketStatus, "ticket_status"),
        default=TicketStatus.NEW,
        nullable=False,
    )
    priority: Mapped[TicketPriority] = mapped_column(
        enum_column(TicketPriority, "ticket_priority"),
        default=TicketPriority.MEDIUM,
        nullable=False,
    )
    impact: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    urgency: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    requester_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    assignee_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    device_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("devices.id"), nullable=True
    )

    breach_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_incidents_org_status", "org_id", "status"),
        Index("ix_incidents_org_requester", "org_id", "requester_user_id"),
    )

    def __repr__(self) -> str:
        return f"<Incident(id={self.id}, status={self.status}, priority={self.priority})>"


class ServiceRequest(Base, TicketMixin):
    """
    Request for something standard, usually raised from the service catalog.

    breach_at exists for schema parity but is never computed for service
    requests.
    """

    __tablename__ = "service_requests"

    status: Mapped[TicketStatus] = mapped_column(
        enum_column(TicketStatus, "ticket_status"),
        default=TicketStatus.NEW,
        nullable=False,
    )
    priority: Mapped[TicketPriority] = mapped_column(
        enum_column(TicketPriority, "ticket_priority"),
        default=TicketPriority.MEDIUM,
        nullable=False,
    )

    requester_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    assignee_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    catalog_item_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("service_catalog_items.id"), nullable=True
    )

    fulfillment_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    breach_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_service_requests_org_status", "org_id", "status"),
        Index("ix_service_requests_org_requester", "org_id", "requester_user_id"),
    )

    def __repr__(self) -> str:
        return f"<ServiceRequest(id={self.id}, status={self.status})>"


class Problem(Base, TicketMixin):
    """
    Underlying cause behind one or more incidents.

    WHY: A problem has a single owner (assigned_user_id) and no requester,
    so the access policy compares against the assignee only.
    """

    __tablename__ = "problems"

    status: Mapped[TicketStatus] = mapped_column(
        enum_column(TicketStatus, "ticket_status"),
        default=TicketStatus.NEW,
        nullable=False,
    )
    priority: Mapped[TicketPriority] = mapped_column(
        enum_column(TicketPriority, "ticket_priority"),
        default=TicketPriority.MEDIUM,
        nullable=False,
    )

    assigned_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )

    root_cause: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    workaround: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    related_incidents: Mapped[List[int]] = mapped_column(JSON, nullable=False, default=list)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_problems_org_status", "org_id", "status"),
        Index("ix_problems_org_assigned", "org_id", "assigned_user_id"),
    )

    def __repr__(self) -> str:
        return f"<Problem(id={self.id}, status={self.status})>"


class Change(Base, TicketMixin):
    """
    Planned modification to infrastructure, gated by admin approval.
    """

    __tablename__ = "changes"

    status: Mapped[ChangeStatus] = mapped_column(
        enum_column(ChangeStatus, "change_status"),
        default=ChangeStatus.DRAFT,
        nullable=False,
    )
    risk: Mapped[ChangeRisk] = mapped_column(
        enum_column(ChangeRisk, "change_risk"),
        default=ChangeRisk.MEDIUM,
        nullable=False,
    )

    requester_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    assigned_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )

    reason: Mapped[str] = mapped_column(Text, nullable=False)
    impact_analysis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rollback_plan: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    approved_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    scheduled_start: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    scheduled_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_changes_org_status", "org_id", "status"),
        Index("ix_changes_org_requester", "org_id", "requester_user_id"),
    )

    def __repr__(self) -> str:
        return f"<Change(id={self.id}, status={self.status}, risk={self.risk})>"


class UnifiedTicketKind(str, Enum):
    """Kinds held by the unified tickets table."""

    INCIDENT = "incident"
    REQUEST = "request"


class UnifiedTicket(Base, TicketMixin):
    """
    Ticket in the unified table that predates the per-type split.

    WHY: Older clients still open incidents and requests through one
    /tickets collection. These rows keep the shorter SLA table (high 4h,
    medium 8h, anything else 24h) and have no update path.
    """

    __tablename__ = "tickets"

    type: Mapped[UnifiedTicketKind] = mapped_column(
        enum_column(UnifiedTicketKind, "unified_ticket_kind"), nullable=False
    )
    status: Mapped[TicketStatus] = mapped_column(
        enum_column(TicketStatus, "ticket_status"),
        default=TicketStatus.NEW,
        nullable=False,
    )
    priority: Mapped[TicketPriority] = mapped_column(
        enum_column(TicketPriority, "ticket_priority"),
        default=TicketPriority.MEDIUM,
        nullable=False,
    )

    requester_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    assignee_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    device_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("devices.id"), nullable=True
    )
    breach_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_tickets_org_requester", "org_id", "requester_user_id"),
    )

    def __repr__(self) -> str:
        return f"<UnifiedTicket(id={self.id}, type={self.type}, priority={self.priority})>"


# ============================================================================
# Service catalog
# ============================================================================


class ServiceCatalogItem(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Orderable item in the service catalog.

    WHY: form_schema describes the fields a requester fills in; the
    submitted values are folded into the created service request's
    description.
    """

    __tablename__ = "service_catalog_items"

    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    form_schema: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ServiceCatalogItem(id={self.id}, name={self.name})>"
