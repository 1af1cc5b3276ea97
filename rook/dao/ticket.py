"""
Ticket Data Access Objects.

WHAT: One persistence adapter per ticket type, all sharing the same
interface (list / get / create / update), plus the dispatch table that maps
a TicketType to its adapter.

WHY: The four ticket tables differ in ownership columns and lifecycle
details. Each adapter owns those differences so the service layer (and the
sub-resource parent check) can treat every ticket type the same way:
1. Org-scoped queries for multi-tenancy
2. Per-type ownership (requester/assignee) for the access policy
3. Per-type list visibility for plain users
4. Per-type initial status and resolution timestamp

HOW: Adapters subclass BaseDAO and are looked up through TICKET_ADAPTERS,
never by building table names from strings.
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Type, Union

from sqlalchemy import ColumnElement, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from rook.core.config import settings
from rook.dao.base import BaseDAO
from rook.models.ticket import (
    Change,
    ChangeStatus,
    Incident,
    Problem,
    ServiceCatalogItem,
    ServiceRequest,
    TicketStatus,
    TicketType,
    UnifiedTicket,
)
from rook.services.access_policy import Actor, ResourceOwners


AnyTicket = Union[Incident, ServiceRequest, Problem, Change]


class TicketAdapter(BaseDAO):
    """
    Shared adapter behaviour for one ticket table.

    Subclasses set the class attributes below and implement owners() and
    visibility_clause().
    """

    model_class: ClassVar[Type[AnyTicket]]
    ticket_type: ClassVar[TicketType]
    initial_status: ClassVar[Union[TicketStatus, ChangeStatus]] = TicketStatus.NEW
    # Status that triggers resolution stamping, and the column it stamps
    resolved_status: ClassVar[Union[TicketStatus, ChangeStatus]] = TicketStatus.RESOLVED
    resolution_field: ClassVar[Optional[str]] = "resolved_at"
    # Whether creation stamps breach_at from the SLA clock
    tracks_sla: ClassVar[bool] = False
    # Whether the acting user becomes requester_user_id on create
    sets_requester: ClassVar[bool] = True

    def __init__(self, session: AsyncSession):
        super().__init__(self.model_class, session)

    def owners(self, ticket: AnyTicket) -> ResourceOwners:
        """Ownership ids the access policy compares against."""
        raise NotImplementedError

    def visibility_clause(self, user_id: int) -> ColumnElement[bool]:
        """WHERE clause selecting the rows a plain user may list."""
        raise NotImplementedError

    async def list(self, org_id: int, actor: Actor, limit: Optional[int] = None) -> List[AnyTicket]:
        """
        List tickets in the organization visible to the actor.

        Admin/agent see all rows; plain users see the rows selected by
        visibility_clause(). Newest first, capped at TICKET_LIST_LIMIT.
        """
        query = select(self.model).where(self.model.org_id == org_id)

        if not actor.is_staff:
            query = query.where(self.visibility_clause(actor.user_id))

        query = query.order_by(self.model.created_at.desc(), self.model.id.desc()).limit(
            limit or settings.TICKET_LIST_LIMIT
        )

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get(self, org_id: int, ticket_id: int) -> Optional[AnyTicket]:
        """Get a ticket by id within the organization; None if absent or foreign."""
        return await self.get_by_id_and_org(ticket_id, org_id)

    async def create(self, org_id: int, actor: Actor, fields: Dict[str, Any]) -> AnyTicket:
        """
        Insert a ticket in its initial status.

        Args:
            org_id: Owning organization
            actor: Creating user (becomes requester where the type has one)
            fields: Validated type-specific fields

        Returns:
            Created ticket
        """
        values = dict(fields)
        values["org_id"] = org_id
        values["status"] = self.initial_status
        if self.sets_requester:
            values["requester_user_id"] = actor.user_id

        return await super().create(**values)

    async def update(self, org_id: int, ticket_id: int, fields: Dict[str, Any]) -> Optional[AnyTicket]:
        """
        Apply a partial patch in one statement.

        Args:
            org_id: Owning organization
            ticket_id: Ticket id
            fields: Only the fields to change

        Returns:
            Updated ticket or None if no row matched id + org
        """
        values = dict(fields)
        values["updated_at"] = datetime.utcnow()
        return await self.update_in_org(ticket_id, org_id, **values)


class IncidentAdapter(TicketAdapter):
    """Incidents: requester + assignee, SLA deadline stamped on create."""

    model_class = Incident
    ticket_type = TicketType.INCIDENT
    tracks_sla = True

    def owners(self, ticket: Incident) -> ResourceOwners:
        return ResourceOwners(
            requester_id=ticket.requester_user_id,
            assignee_id=ticket.assignee_user_id,
        )

    def visibility_clause(self, user_id: int) -> ColumnElement[bool]:
        return Incident.requester_user_id == user_id


class ServiceRequestAdapter(TicketAdapter):
    """Service requests: requester + assignee; resolution stamps completed_at."""

    model_class = ServiceRequest
    ticket_type = TicketType.SERVICE_REQUEST
    resolution_field = "completed_at"

    def owners(self, ticket: ServiceRequest) -> ResourceOwners:
        return ResourceOwners(
            requester_id=ticket.requester_user_id,
            assignee_id=ticket.assignee_user_id,
        )

    def visibility_clause(self, user_id: int) -> ColumnElement[bool]:
        return ServiceRequest.requester_user_id == user_id


class ProblemAdapter(TicketAdapter):
    """
    Problems: a single assignee, no requester.

    Created unassigned unless assigned_user_id is supplied.
    """

    model_class = Problem
    ticket_type = TicketType.PROBLEM
    sets_requester = False

    def owners(self, ticket: Problem) -> ResourceOwners:
        return ResourceOwners(assignee_id=ticket.assigned_user_id)

    def visibility_clause(self, user_id: int) -> ColumnElement[bool]:
        return Problem.assigned_user_id == user_id


class ChangeAdapter(TicketAdapter):
    """
    Changes: requester + assignee, draft on create, completed stamps completed_at.
    """

    model_class = Change
    ticket_type = TicketType.CHANGE
    initial_status = ChangeStatus.DRAFT
    resolved_status = ChangeStatus.COMPLETED
    resolution_field = "completed_at"

    def owners(self, ticket: Change) -> ResourceOwners:
        return ResourceOwners(
            requester_id=ticket.requester_user_id,
            assignee_id=ticket.assigned_user_id,
        )

    def visibility_clause(self, user_id: int) -> ColumnElement[bool]:
        return or_(Change.requester_user_id == user_id, Change.assigned_user_id == user_id)


# WHY: Exhaustive mapping; a new TicketType without an adapter fails loudly
# at import time instead of at the first request.
TICKET_ADAPTERS: Dict[TicketType, Type[TicketAdapter]] = {
    TicketType.INCIDENT: IncidentAdapter,
    TicketType.SERVICE_REQUEST: ServiceRequestAdapter,
    TicketType.PROBLEM: ProblemAdapter,
    TicketType.CHANGE: ChangeAdapter,
}
assert set(TICKET_ADAPTERS) == set(TicketType), "every TicketType needs an adapter"


def get_ticket_adapter(ticket_type: TicketType, session: AsyncSession) -> TicketAdapter:
    """Return the persistence adapter for a ticket type."""
    return TICKET_ADAPTERS[TicketType(ticket_type)](session)


class ServiceCatalogDAO(BaseDAO[ServiceCatalogItem]):
    """Read access to the service catalog."""

    def __init__(self, session: AsyncSession):
        super().__init__(ServiceCatalogItem, session)

    async def list_active(self, org_id: int) -> List[ServiceCatalogItem]:
        """Active catalog items for the organization, ordered by name."""
        result = await self.session.execute(
            select(ServiceCatalogItem)
            .where(
                ServiceCatalogItem.org_id == org_id,
                ServiceCatalogItem.is_active.is_(True),
            )
            .order_by(ServiceCatalogItem.category, ServiceCatalogItem.name)
        )
        return list(result.scalars().all())


class UnifiedTicketDAO(BaseDAO[UnifiedTicket]):
    """
    Unified /tickets table.

    Plain users list only the tickets they requested; staff list the whole
    organization. Same ordering and cap as the per-type adapters.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(UnifiedTicket, session)

    def owners(self, ticket: UnifiedTicket) -> ResourceOwners:
        return ResourceOwners(
            requester_id=ticket.requester_user_id,
            assignee_id=ticket.assignee_user_id,
        )

    async def list(self, org_id: int, actor: Actor, limit: Optional[int] = None) -> List[UnifiedTicket]:
        query = select(UnifiedTicket).where(UnifiedTicket.org_id == org_id)
        if not actor.is_staff:
            query = query.where(UnifiedTicket.requester_user_id == actor.user_id)

        result = await self.session.execute(
            query.order_by(UnifiedTicket.created_at.desc(), UnifiedTicket.id.desc()).limit(
                limit or settings.TICKET_LIST_LIMIT
            )
        )
        return list(result.scalars().all())
