"""
Ticket attachment Data Access Object.

WHAT: Attachment metadata keyed by (ticket_type, ticket_id, org_id).

WHY: Attachments were introduced together with type tagging, so unlike
comments there is no legacy table and no fallback. Bytes live in the blob
store; this table only records where.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rook.dao.base import BaseDAO
from rook.models.sub_resource import TicketAttachment
from rook.models.ticket import TicketType


class TicketAttachmentDAO(BaseDAO[TicketAttachment]):
    """Data Access Object for ticket attachments."""

    def __init__(self, session: AsyncSession):
        super().__init__(TicketAttachment, session)

    async def list_for_ticket(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        org_id: int,
    ) -> List[TicketAttachment]:
        """Attachments of a ticket, newest first."""
        result = await self.session.execute(
            select(TicketAttachment)
            .where(
                TicketAttachment.ticket_type == ticket_type,
                TicketAttachment.ticket_id == ticket_id,
                TicketAttachment.org_id == org_id,
            )
            .order_by(TicketAttachment.created_at.desc(), TicketAttachment.id.desc())
        )
        return list(result.scalars().all())

    async def get_for_ticket(
        self,
        attachment_id: int,
        ticket_type: TicketType,
        ticket_id: int,
        org_id: int,
    ) -> Optional[TicketAttachment]:
        """
        Get one attachment, only if it belongs to this ticket in this org.

        WHY: The attachment id alone is not enough; a valid id under the
        wrong ticket must read as missing.
        """
        result = await self.session.execute(
            select(TicketAttachment).where(
                TicketAttachment.id == attachment_id,
                TicketAttachment.ticket_type == ticket_type,
                TicketAttachment.ticket_id == ticket_id,
                TicketAttachment.org_id == org_id,
            )
        )
        return result.scalar_one_or_none()
