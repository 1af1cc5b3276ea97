"""
Ticket Service.

WHAT: Business logic for the four ticket types, the service catalog and
the unified tickets collection.

WHY: The service layer:
1. Resolves the type adapter, so routes never branch on ticket type
2. Applies the access policy after the org-scoped lookup
3. Stamps the SLA deadline and resolution timestamps
4. Writes the history trail in the same transaction as the mutation

HOW: Orchestrates the TicketAdapter for the requested type,
TicketHistoryDAO and ServiceCatalogDAO. Field validation has already
happened in the pydantic schemas.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from rook.core.exceptions import (
    CatalogItemNotFoundError,
    TicketNotFoundError,
    ValidationError,
)
from rook.dao.history import TicketHistoryDAO
from rook.dao.ticket import (
    AnyTicket,
    ServiceCatalogDAO,
    TicketAdapter,
    UnifiedTicketDAO,
    get_ticket_adapter,
)
from rook.models.ticket import (
    ChangeStatus,
    ServiceCatalogItem,
    TicketPriority,
    TicketStatus,
    TicketType,
    UnifiedTicket,
)
from rook.models.user import UserRole
from rook.services.access_policy import Actor, ensure_access, require_admin, require_role
from rook.services.sla_service import compute_breach_at, compute_legacy_breach_at


logger = logging.getLogger(__name__)


def build_catalog_description(base: Optional[str], form_data: Dict[str, Any]) -> Optional[str]:
    """
    Append submitted catalog form data to the item description.

    Example:
        >>> build_catalog_description("Laptop", {"model": "X1"})
        'Laptop\\n\\nForm Data:\\nmodel: X1'
    """
    if not form_data:
        return base

    lines = "\n".join(f"{key}: {value}" for key, value in form_data.items())
    return f"{base or ''}\n\nForm Data:\n{lines}"


class TicketService:
    """
    Service for ticket operations across all ticket types.

    WHAT: list / get / create / update for every type, approvals for
    changes and service requests, and catalog requests.

    WHY: Incidents, service requests, problems and changes share one
    lifecycle shape; the per-type differences live in the adapters.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize TicketService.

        Args:
            session: Async database session
        """
        self.session = session
        self.history_dao = TicketHistoryDAO(session)
        self.catalog_dao = ServiceCatalogDAO(session)
        self.unified_dao = UnifiedTicketDAO(session)

    def _adapter(self, ticket_type: TicketType) -> TicketAdapter:
        return get_ticket_adapter(ticket_type, self.session)

    # =========================================================================
    # Read
    # =========================================================================

    async def list_tickets(self, ticket_type: TicketType, actor: Actor) -> List[AnyTicket]:
        """
        List tickets of one type visible to the actor.

        Args:
            ticket_type: Ticket type
            actor: Authenticated caller

        Returns:
            Tickets, newest first
        """
        return await self._adapter(ticket_type).list(actor.org_id, actor)

    async def get_ticket(self, ticket_type: TicketType, ticket_id: int, actor: Actor) -> AnyTicket:
        """
        Get one ticket after the org and ownership checks.

        WHY: The org-scoped lookup runs first, so a ticket in another
        organization reads as missing (404) and never as forbidden.

        Raises:
            TicketNotFoundError: If the ticket is not in the actor's org
            AuthorizationError: If the actor may not see the ticket
        """
        adapter = self._adapter(ticket_type)
        ticket = await adapter.get(actor.org_id, ticket_id)

        if ticket is None:
            raise TicketNotFoundError(
                message=f"{ticket_type.value} not found",
                ticket_type=ticket_type.value,
                ticket_id=ticket_id,
            )

        ensure_access(actor, adapter.owners(ticket), ticket_type.value, ticket_id)
        return ticket

    # =========================================================================
    # Write
    # =========================================================================

    async def create_ticket(
        self,
        ticket_type: TicketType,
        actor: Actor,
        fields: Dict[str, Any],
    ) -> AnyTicket:
        """
        Create a ticket in its initial status.

        Incidents get breach_at from the SLA clock using the submitted
        priority. Service requests never do.

        Args:
            ticket_type: Ticket type
            actor: Creating user (becomes the requester where the type has one)
            fields: Validated create fields

        Returns:
            Created ticket
        """
        adapter = self._adapter(ticket_type)
        values = dict(fields)

        if adapter.tracks_sla:
            values["breach_at"] = compute_breach_at(
                values.get("priority") or TicketPriority.MEDIUM
            )

        ticket = await adapter.create(actor.org_id, actor, values)

        await self.history_dao.append(
            ticket_type,
            ticket.id,
            actor.org_id,
            action="created",
            user_id=actor.user_id,
        )

        logger.info(
            f"Created {ticket_type.value} {ticket.id} in org {actor.org_id} by user {actor.user_id}"
        )
        return ticket

    async def update_ticket(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        actor: Actor,
        fields: Dict[str, Any],
    ) -> AnyTicket:
        """
        Apply a partial update.

        WHAT: Only the given fields are written, in one statement. Moving
        into the resolved status (completed for changes) stamps the
        resolution timestamp unless the request supplies one or the ticket
        was already there.

        Args:
            ticket_type: Ticket type
            ticket_id: Ticket id
            actor: Authenticated caller
            fields: Fields present in the request

        Returns:
            Updated ticket

        Raises:
            ValidationError: If no fields were given
            TicketNotFoundError: If the ticket is not in the actor's org
            AuthorizationError: If the actor may not modify the ticket
        """
        if not fields:
            raise ValidationError(message="No fields to update")

        adapter = self._adapter(ticket_type)
        ticket = await self.get_ticket(ticket_type, ticket_id, actor)

        values = dict(fields)
        if (
            adapter.resolution_field
            and values.get("status") == adapter.resolved_status
            and ticket.status != adapter.resolved_status
            and values.get(adapter.resolution_field) is None
        ):
            values[adapter.resolution_field] = datetime.utcnow()

        # Capture before the UPDATE refreshes the identity-mapped row
        previous = {name: getattr(ticket, name) for name in values}

        updated = await adapter.update(actor.org_id, ticket_id, values)
        if updated is None:
            raise TicketNotFoundError(
                message=f"{ticket_type.value} not found",
                ticket_type=ticket_type.value,
                ticket_id=ticket_id,
            )

        for name, old_value in previous.items():
            new_value = getattr(updated, name)
            if old_value != new_value:
                await self.history_dao.append(
                    ticket_type,
                    ticket_id,
                    actor.org_id,
                    action="updated",
                    user_id=actor.user_id,
                    field_name=name,
                    old_value=old_value,
                    new_value=new_value,
                )

        logger.info(
            f"Updated {ticket_type.value} {ticket_id} fields={sorted(values)} by user {actor.user_id}"
        )
        return updated

    # =========================================================================
    # Approvals
    # =========================================================================

    async def approve_change(self, ticket_id: int, actor: Actor) -> AnyTicket:
        """
        Approve a change (admin only).

        Status becomes scheduled when a scheduled_start is set, approved
        otherwise.

        Raises:
            InsufficientRoleError: If the actor is not an admin
            TicketNotFoundError: If the change is not in the actor's org
        """
        require_admin(actor, "change approval")
        change = await self.get_ticket(TicketType.CHANGE, ticket_id, actor)

        old_status = change.status
        new_status = ChangeStatus.SCHEDULED if change.scheduled_start else ChangeStatus.APPROVED

        updated = await self._adapter(TicketType.CHANGE).update(
            actor.org_id,
            ticket_id,
            {
                "status": new_status,
                "approved_by": actor.user_id,
                "approved_at": datetime.utcnow(),
            },
        )

        await self.history_dao.append(
            TicketType.CHANGE,
            ticket_id,
            actor.org_id,
            action="approved",
            user_id=actor.user_id,
            field_name="status",
            old_value=old_status,
            new_value=new_status,
        )

        logger.info(f"Change {ticket_id} approved by admin {actor.user_id}, status={new_status.value}")
        return updated

    async def approve_service_request(self, ticket_id: int, actor: Actor) -> AnyTicket:
        """
        Approve a service request (admin or agent). Status is unchanged.

        Raises:
            InsufficientRoleError: If the actor is a plain user
            TicketNotFoundError: If the request is not in the actor's org
        """
        require_role(actor, UserRole.AGENT, "service request approval")
        await self.get_ticket(TicketType.SERVICE_REQUEST, ticket_id, actor)

        updated = await self._adapter(TicketType.SERVICE_REQUEST).update(
            actor.org_id,
            ticket_id,
            {"approved_by": actor.user_id, "approved_at": datetime.utcnow()},
        )

        await self.history_dao.append(
            TicketType.SERVICE_REQUEST,
            ticket_id,
            actor.org_id,
            action="approved",
            user_id=actor.user_id,
        )

        logger.info(f"Service request {ticket_id} approved by user {actor.user_id}")
        return updated

    # =========================================================================
    # Unified tickets
    # =========================================================================

    async def list_unified_tickets(self, actor: Actor) -> List[UnifiedTicket]:
        """Unified tickets visible to the actor, newest first."""
        return await self.unified_dao.list(actor.org_id, actor)

    async def get_unified_ticket(self, ticket_id: int, actor: Actor) -> UnifiedTicket:
        """
        Get a unified ticket after the org and ownership checks.

        Raises:
            TicketNotFoundError: If the ticket is not in the actor's org
            AuthorizationError: If the actor is neither staff, requester
                nor assignee
        """
        ticket = await self.unified_dao.get_by_id_and_org(ticket_id, actor.org_id)
        if ticket is None:
            raise TicketNotFoundError(message="ticket not found", ticket_id=ticket_id)

        ensure_access(actor, self.unified_dao.owners(ticket), "ticket", ticket_id)
        return ticket

    async def create_unified_ticket(self, actor: Actor, fields: Dict[str, Any]) -> UnifiedTicket:
        """
        Open a unified ticket.

        The caller becomes the requester and breach_at comes from the
        legacy SLA table, so critical gets the 24h default.
        """
        values = dict(fields)
        values["org_id"] = actor.org_id
        values["status"] = TicketStatus.NEW
        values["requester_user_id"] = actor.user_id
        values["breach_at"] = compute_legacy_breach_at(values["priority"])

        ticket = await self.unified_dao.create(**values)

        logger.info(
            f"Created unified {ticket.type.value} ticket {ticket.id} in org {actor.org_id} "
            f"by user {actor.user_id}"
        )
        return ticket

    # =========================================================================
    # Service catalog
    # =========================================================================

    async def list_catalog(self, actor: Actor) -> List[ServiceCatalogItem]:
        """Active catalog items of the actor's organization."""
        return await self.catalog_dao.list_active(actor.org_id)

    async def get_catalog_item(self, item_id: int, actor: Actor) -> ServiceCatalogItem:
        """
        Get an active catalog item.

        Raises:
            CatalogItemNotFoundError: If missing, inactive or in another org
        """
        item = await self.catalog_dao.get_by_id_and_org(item_id, actor.org_id)
        if item is None or not item.is_active:
            raise CatalogItemNotFoundError(catalog_item_id=item_id)
        return item

    async def request_from_catalog(
        self,
        item_id: int,
        actor: Actor,
        priority: Optional[TicketPriority] = None,
        form_data: Optional[Dict[str, Any]] = None,
    ) -> AnyTicket:
        """
        Create a service request from a catalog item.

        WHAT: Title is the item name; the description is the item
        description plus the submitted form data.

        Returns:
            Created service request
        """
        item = await self.get_catalog_item(item_id, actor)

        return await self.create_ticket(
            TicketType.SERVICE_REQUEST,
            actor,
            {
                "title": item.name,
                "description": build_catalog_description(item.description, form_data or {}),
                "priority": priority or TicketPriority.MEDIUM,
                "catalog_item_id": item.id,
            },
        )
