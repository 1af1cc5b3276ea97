"""
Pydantic schemas for ticket endpoints.

WHAT: Request/response schemas for the four ticket types and the service
catalog.

WHY: Enum and required-field validation happens here, at the boundary; the
DAO adapters trust what they receive. Update schemas are partial: the
service writes only the fields a client actually sent
(model_dump(exclude_unset=True)).

HOW: Uses Pydantic v2 with Field constraints, field validators and ORM
mode. is_breached is computed on every response from breach_at and the
wall clock; it is never stored.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from rook.models.ticket import (
    ChangeRisk,
    ChangeStatus,
    TicketPriority,
    TicketStatus,
    UnifiedTicketKind,
)
from rook.services.sla_service import is_breached


def _reject_null(value: Any) -> Any:
    """Non-nullable columns may be omitted from a patch but not set to null."""
    if value is None:
        raise ValueError("may not be null")
    return value


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC; offset-aware input is converted."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ============================================================================
# Shared
# ============================================================================


class TicketBase(BaseModel):
    """Fields every ticket create request carries."""

    title: str = Field(..., min_length=1, max_length=500, description="Short summary")
    description: Optional[str] = Field(None, max_length=20000, description="Details")


class TicketResponseBase(BaseModel):
    """Fields every ticket response carries."""

    id: int = Field(..., description="Ticket ID")
    org_id: int = Field(..., description="Owning organization")
    title: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# Incident
# ============================================================================


class IncidentCreate(TicketBase):
    """Incident creation request. The requester is always the caller."""

    priority: TicketPriority = Field(TicketPriority.MEDIUM, description="Drives the SLA deadline")
    impact: Optional[str] = Field(None, max_length=50)
    urgency: Optional[str] = Field(None, max_length=50)
    assignee_user_id: Optional[int] = None
    device_id: Optional[int] = None


class IncidentUpdate(BaseModel):
    """Partial incident update."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=20000)
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    impact: Optional[str] = Field(None, max_length=50)
    urgency: Optional[str] = Field(None, max_length=50)
    assignee_user_id: Optional[int] = None
    device_id: Optional[int] = None
    resolved_at: Optional[datetime] = None

    _not_null = field_validator("title", "status", "priority")(_reject_null)
    _naive = field_validator("resolved_at")(_naive_utc)


class IncidentResponse(TicketResponseBase):
    """Incident response."""

    status: TicketStatus
    priority: TicketPriority
    impact: Optional[str] = None
    urgency: Optional[str] = None
    requester_user_id: int
    assignee_user_id: Optional[int] = None
    device_id: Optional[int] = None
    breach_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @computed_field
    @property
    def is_breached(self) -> bool:
        return is_breached(self.breach_at)


# ============================================================================
# Service request
# ============================================================================


class ServiceRequestCreate(TicketBase):
    """Service request creation request."""

    priority: TicketPriority = TicketPriority.MEDIUM
    catalog_item_id: Optional[int] = None
    assignee_user_id: Optional[int] = None


class ServiceRequestUpdate(BaseModel):
    """Partial service request update."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=20000)
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    assignee_user_id: Optional[int] = None
    fulfillment_notes: Optional[str] = Field(None, max_length=20000)
    completed_at: Optional[datetime] = None

    _not_null = field_validator("title", "status", "priority")(_reject_null)
    _naive = field_validator("completed_at")(_naive_utc)


class ServiceRequestResponse(TicketResponseBase):
    """Service request response."""

    status: TicketStatus
    priority: TicketPriority
    requester_user_id: int
    assignee_user_id: Optional[int] = None
    catalog_item_id: Optional[int] = None
    fulfillment_notes: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    breach_at: Optional[datetime] = None

    @computed_field
    @property
    def is_breached(self) -> bool:
        return is_breached(self.breach_at)


# ============================================================================
# Problem
# ============================================================================


class ProblemCreate(TicketBase):
    """Problem creation request. Unassigned unless assigned_user_id is given."""

    priority: TicketPriority = TicketPriority.MEDIUM
    assigned_user_id: Optional[int] = None
    root_cause: Optional[str] = None
    workaround: Optional[str] = None
    related_incidents: List[int] = Field(default_factory=list)

    @field_validator("related_incidents")
    @classmethod
    def dedupe_related(cls, v: List[int]) -> List[int]:
        """related_incidents is a set; keep first-seen order."""
        return list(dict.fromkeys(v))


class ProblemUpdate(BaseModel):
    """Partial problem update."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=20000)
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    assigned_user_id: Optional[int] = None
    root_cause: Optional[str] = None
    workaround: Optional[str] = None
    resolution: Optional[str] = None
    related_incidents: Optional[List[int]] = None
    resolved_at: Optional[datetime] = None

    _not_null = field_validator("title", "status", "priority", "related_incidents")(_reject_null)
    _naive = field_validator("resolved_at")(_naive_utc)

    @field_validator("related_incidents")
    @classmethod
    def dedupe_related(cls, v: List[int]) -> List[int]:
        return list(dict.fromkeys(v))


class ProblemResponse(TicketResponseBase):
    """Problem response."""

    status: TicketStatus
    priority: TicketPriority
    assigned_user_id: Optional[int] = None
    root_cause: Optional[str] = None
    workaround: Optional[str] = None
    resolution: Optional[str] = None
    related_incidents: List[int] = Field(default_factory=list)
    resolved_at: Optional[datetime] = None


# ============================================================================
# Change
# ============================================================================


def _check_window(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is not None and end is not None and end < start:
        raise ValueError("scheduled_end must not be before scheduled_start")


class ChangeCreate(TicketBase):
    """Change creation request. Always starts in draft."""

    risk: ChangeRisk = ChangeRisk.MEDIUM
    reason: str = Field(..., min_length=1, max_length=20000, description="Why the change is needed")
    impact_analysis: Optional[str] = None
    rollback_plan: Optional[str] = None
    assigned_user_id: Optional[int] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None

    _naive = field_validator("scheduled_start", "scheduled_end")(_naive_utc)

    @model_validator(mode="after")
    def check_window(self) -> "ChangeCreate":
        _check_window(self.scheduled_start, self.scheduled_end)
        return self


class ChangeUpdate(BaseModel):
    """Partial change update."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=20000)
    status: Optional[ChangeStatus] = None
    risk: Optional[ChangeRisk] = None
    reason: Optional[str] = Field(None, min_length=1, max_length=20000)
    impact_analysis: Optional[str] = None
    rollback_plan: Optional[str] = None
    assigned_user_id: Optional[int] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    _not_null = field_validator("title", "status", "risk", "reason")(_reject_null)
    _naive = field_validator("scheduled_start", "scheduled_end", "completed_at")(_naive_utc)

    @model_validator(mode="after")
    def check_window(self) -> "ChangeUpdate":
        _check_window(self.scheduled_start, self.scheduled_end)
        return self


class ChangeResponse(TicketResponseBase):
    """Change response."""

    status: ChangeStatus
    risk: ChangeRisk
    requester_user_id: int
    assigned_user_id: Optional[int] = None
    reason: str
    impact_analysis: Optional[str] = None
    rollback_plan: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# ============================================================================
# Unified tickets
# ============================================================================


class UnifiedTicketCreate(BaseModel):
    """
    Ticket in the unified collection.

    Type and priority are required and a description must be given,
    unlike the per-type create requests.
    """

    type: UnifiedTicketKind = Field(..., description="incident or request")
    priority: TicketPriority = Field(..., description="Drives the legacy SLA deadline")
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1, max_length=20000)
    device_id: Optional[int] = None


class UnifiedTicketResponse(TicketResponseBase):
    """Unified ticket response."""

    type: UnifiedTicketKind
    status: TicketStatus
    priority: TicketPriority
    requester_user_id: int
    assignee_user_id: Optional[int] = None
    device_id: Optional[int] = None
    breach_at: Optional[datetime] = None

    @computed_field
    @property
    def is_breached(self) -> bool:
        return is_breached(self.breach_at)


# ============================================================================
# Service catalog
# ============================================================================


class CatalogItemResponse(BaseModel):
    """Service catalog item."""

    id: int
    org_id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    form_schema: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CatalogRequestCreate(BaseModel):
    """
    Request a catalog item.

    WHAT: Creates a service request titled after the catalog item. Its
    description is the item description followed by a "Form Data:" block
    with one "key: value" line per form_data entry.
    """

    priority: TicketPriority = TicketPriority.MEDIUM
    form_data: Dict[str, Any] = Field(default_factory=dict)
