"""
Ticket API endpoints.

WHAT: RESTful API for incidents, service requests, problems and changes,
plus approvals, the unified /tickets collection and the service catalog.

WHY: The four ticket types share one lifecycle shape but differ in their
fields, so each collection gets its own typed request/response schemas
while the handlers themselves are identical.

HOW: FastAPI routers with:
- Org-scoped queries (multi-tenancy) via TicketService
- Ownership checks for plain users, full org visibility for admin/agent
- One set of list/get/create/update routes per ticket collection, built
  by _build_ticket_router
"""

from typing import List, Type

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from rook.core.deps import get_actor
from rook.db.session import get_db
from rook.models.ticket import TicketType
from rook.schemas.ticket import (
    CatalogItemResponse,
    CatalogRequestCreate,
    ChangeCreate,
    ChangeResponse,
    ChangeUpdate,
    IncidentCreate,
    IncidentResponse,
    IncidentUpdate,
    ProblemCreate,
    ProblemResponse,
    ProblemUpdate,
    ServiceRequestCreate,
    ServiceRequestResponse,
    ServiceRequestUpdate,
    UnifiedTicketCreate,
    UnifiedTicketResponse,
)
from rook.services.access_policy import Actor
from rook.services.ticket_service import TicketService


def _build_ticket_router(
    prefix: str,
    ticket_type: TicketType,
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
    response_schema: Type[BaseModel],
) -> APIRouter:
    """
    Build list/get/create/update routes for one ticket collection.

    WHY: FastAPI reads request and response models from the handler
    signature, so each collection needs its own handler functions; this
    builds them from one definition.
    """
    router = APIRouter(prefix=prefix, tags=[prefix.strip("/")])
    label = ticket_type.value.replace("_", " ")

    @router.get(
        "",
        response_model=List[response_schema],
        status_code=status.HTTP_200_OK,
        summary=f"List {label}s",
    )
    async def list_tickets(
        actor: Actor = Depends(get_actor),
        db: AsyncSession = Depends(get_db),
    ):
        """
        List tickets visible to the caller, newest first.

        Admin and agent see every ticket in the organization; users see the
        ones they own.
        """
        return await TicketService(db).list_tickets(ticket_type, actor)

    @router.get(
        "/{ticket_id}",
        response_model=response_schema,
        status_code=status.HTTP_200_OK,
        summary=f"Get {label}",
    )
    async def get_ticket(
        ticket_id: int,
        actor: Actor = Depends(get_actor),
        db: AsyncSession = Depends(get_db),
    ):
        """
        Get one ticket.

        Raises:
            TicketNotFoundError (404): Not in the caller's organization
            AuthorizationError (403): Caller does not own the ticket
        """
        return await TicketService(db).get_ticket(ticket_type, ticket_id, actor)

    @router.post(
        "",
        response_model=response_schema,
        status_code=status.HTTP_201_CREATED,
        summary=f"Create {label}",
    )
    async def create_ticket(
        data: create_schema,
        actor: Actor = Depends(get_actor),
        db: AsyncSession = Depends(get_db),
    ):
        """Create a ticket; the caller becomes its requester."""
        return await TicketService(db).create_ticket(ticket_type, actor, data.model_dump())

    @router.patch(
        "/{ticket_id}",
        response_model=response_schema,
        status_code=status.HTTP_200_OK,
        summary=f"Update {label}",
    )
    async def update_ticket(
        ticket_id: int,
        data: update_schema,
        actor: Actor = Depends(get_actor),
        db: AsyncSession = Depends(get_db),
    ):
        """
        Partially update a ticket. Only fields present in the body change.

        Raises:
            ValidationError (400): Empty body
            TicketNotFoundError (404): Not in the caller's organization
            AuthorizationError (403): Caller does not own the ticket
        """
        return await TicketService(db).update_ticket(
            ticket_type, ticket_id, actor, data.model_dump(exclude_unset=True)
        )

    return router


incidents_router = _build_ticket_router(
    "/incidents", TicketType.INCIDENT, IncidentCreate, IncidentUpdate, IncidentResponse
)
service_requests_router = _build_ticket_router(
    "/service-requests",
    TicketType.SERVICE_REQUEST,
    ServiceRequestCreate,
    ServiceRequestUpdate,
    ServiceRequestResponse,
)
problems_router = _build_ticket_router(
    "/problems", TicketType.PROBLEM, ProblemCreate, ProblemUpdate, ProblemResponse
)
changes_router = _build_ticket_router(
    "/changes", TicketType.CHANGE, ChangeCreate, ChangeUpdate, ChangeResponse
)


# ============================================================================
# Approvals
# ============================================================================


@changes_router.post(
    "/{ticket_id}/approve",
    response_model=ChangeResponse,
    status_code=status.HTTP_200_OK,
    summary="Approve change",
)
async def approve_change(
    ticket_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Approve a change (admin only).

    Status becomes scheduled if the change has a scheduled start, approved
    otherwise.
    """
    return await TicketService(db).approve_change(ticket_id, actor)


@service_requests_router.post(
    "/{ticket_id}/approve",
    response_model=ServiceRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Approve service request",
)
async def approve_service_request(
    ticket_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Approve a service request (admin or agent). Status is unchanged."""
    return await TicketService(db).approve_service_request(ticket_id, actor)


# ============================================================================
# Unified tickets
# ============================================================================


unified_tickets_router = APIRouter(prefix="/tickets", tags=["tickets"])


@unified_tickets_router.get(
    "",
    response_model=List[UnifiedTicketResponse],
    status_code=status.HTTP_200_OK,
)
async def list_unified_tickets(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """List unified tickets; plain users see only the ones they requested."""
    return await TicketService(db).list_unified_tickets(actor)


@unified_tickets_router.get(
    "/{ticket_id}",
    response_model=UnifiedTicketResponse,
    status_code=status.HTTP_200_OK,
)
async def get_unified_ticket(
    ticket_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await TicketService(db).get_unified_ticket(ticket_id, actor)


@unified_tickets_router.post(
    "",
    response_model=UnifiedTicketResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_unified_ticket(
    data: UnifiedTicketCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Open an incident or request in the unified collection.

    breach_at uses the legacy SLA table: high 4h, medium 8h, otherwise 24h.
    """
    return await TicketService(db).create_unified_ticket(actor, data.model_dump())


# ============================================================================
# Service catalog
# ============================================================================


catalog_router = APIRouter(prefix="/catalog", tags=["catalog"])


@catalog_router.get(
    "",
    response_model=List[CatalogItemResponse],
    status_code=status.HTTP_200_OK,
)
async def list_catalog_items(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Active catalog items of the caller's organization."""
    return await TicketService(db).list_catalog(actor)


@catalog_router.get(
    "/{item_id}",
    response_model=CatalogItemResponse,
    status_code=status.HTTP_200_OK,
)
async def get_catalog_item(
    item_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await TicketService(db).get_catalog_item(item_id, actor)


@catalog_router.post(
    "/{item_id}/request",
    response_model=ServiceRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_catalog_item(
    item_id: int,
    data: CatalogRequestCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a service request from a catalog item.

    The request is titled after the item; submitted form data is appended
    to the description.
    """
    return await TicketService(db).request_from_catalog(
        item_id, actor, priority=data.priority, form_data=data.form_data
    )


routers = [
    incidents_router,
    service_requests_router,
    problems_router,
    changes_router,
    unified_tickets_router,
    catalog_router,
]
