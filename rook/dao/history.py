"""
Ticket history Data Access Object.

WHAT: Append-only audit trail keyed by (ticket_type, ticket_id, org_id).

WHY: Every mutating ticket operation writes here in the same transaction
as the mutation, so the trail cannot drift from the ticket state. There is
no update or delete method.
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rook.dao.base import BaseDAO
from rook.models.sub_resource import TicketHistory
from rook.models.ticket import TicketType


def _stringify(value: Any) -> Optional[str]:
    """History stores old/new values as text."""
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class TicketHistoryDAO(BaseDAO[TicketHistory]):
    """Data Access Object for ticket history."""

    def __init__(self, session: AsyncSession):
        super().__init__(TicketHistory, session)

    async def append(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        org_id: int,
        action: str,
        user_id: Optional[int] = None,
        field_name: Optional[str] = None,
        old_value: Any = None,
        new_value: Any = None,
    ) -> TicketHistory:
        """
        Append one history entry.

        Args:
            ticket_type: Parent ticket type
            ticket_id: Parent ticket id
            org_id: Organization
            action: What happened ("created", "updated", "approved", ...)
            user_id: Acting user, None for system entries
            field_name: Changed field for "updated" entries
            old_value: Previous value (stringified)
            new_value: New value (stringified)
        """
        entry = TicketHistory(
            ticket_type=ticket_type,
            ticket_id=ticket_id,
            org_id=org_id,
            user_id=user_id,
            action=action,
            field_name=field_name,
            old_value=_stringify(old_value),
            new_value=_stringify(new_value),
            created_at=datetime.utcnow(),
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_for_ticket(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        org_id: int,
    ) -> List[TicketHistory]:
        """History of a ticket, oldest first."""
        result = await self.session.execute(
            select(TicketHistory)
            .where(
                TicketHistory.ticket_type == ticket_type,
                TicketHistory.ticket_id == ticket_id,
                TicketHistory.org_id == org_id,
            )
            .order_by(TicketHistory.created_at.asc(), TicketHistory.id.asc())
        )
        return list(result.scalars().all())
