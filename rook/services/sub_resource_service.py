"""
Ticket sub-resource service.

WHAT: Comments, attachments and history for any ticket type.

WHY: Sub-resources are addressed by (ticket_type, ticket_id, org_id)
rather than a foreign key, so the parent ticket has to be checked
explicitly. Every operation here does that first: existence in the
caller's organization (404), then the access policy (403), then the
sub-resource work.

HOW: The parent check goes through the same type adapter the ticket
service uses. Comments go through CommentStore for its schema fallback;
attachments and history are plain DAO calls.
"""

import base64
import binascii
import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rook.core.config import settings
from rook.core.exceptions import (
    AttachmentNotFoundError,
    AttachmentTooLargeError,
    TicketNotFoundError,
    ValidationError,
)
from rook.dao.attachment import TicketAttachmentDAO
from rook.dao.comment import CommentGateway, CommentRecord, CommentStore
from rook.dao.history import TicketHistoryDAO
from rook.dao.ticket import get_ticket_adapter
from rook.models.sub_resource import TicketAttachment, TicketHistory
from rook.models.ticket import TicketType
from rook.services.access_policy import Actor, ensure_access
from rook.services.storage import LocalBlobStore


logger = logging.getLogger(__name__)


def decode_attachment(encoded: str, max_size: Optional[int] = None) -> bytes:
    """
    Decode a base64 upload and enforce the size limit.

    Accepts a data URL ("data:<mime>;base64,<payload>") as well as a bare
    payload.

    Raises:
        ValidationError: If the payload is not valid base64
        AttachmentTooLargeError: If the decoded size exceeds max_size
    """
    limit = max_size if max_size is not None else settings.MAX_ATTACHMENT_SIZE

    payload = encoded.split(",", 1)[1] if encoded.startswith("data:") else encoded
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(message="File content is not valid base64")

    if len(data) > limit:
        raise AttachmentTooLargeError(
            message=f"File too large (max {limit} bytes)",
            file_size=len(data),
            max_size=limit,
        )
    return data


class SubResourceService:
    """
    Service for ticket comments, attachments and history.
    """

    def __init__(self, session: AsyncSession, blob_store: Optional[LocalBlobStore] = None):
        """
        Initialize SubResourceService.

        Args:
            session: Async database session
            blob_store: Attachment byte storage (defaults to the local store)
        """
        self.session = session
        self.comment_store = CommentStore(CommentGateway(session))
        self.attachment_dao = TicketAttachmentDAO(session)
        self.history_dao = TicketHistoryDAO(session)
        self.blob_store = blob_store or LocalBlobStore()

    async def _check_parent(self, ticket_type: TicketType, ticket_id: int, actor: Actor) -> None:
        """
        Verify the parent ticket exists in the actor's org and is visible.

        Raises:
            TicketNotFoundError: If the ticket is not in the actor's org
            AuthorizationError: If the actor may not see the ticket
        """
        adapter = get_ticket_adapter(ticket_type, self.session)
        ticket = await adapter.get(actor.org_id, ticket_id)

        if ticket is None:
            raise TicketNotFoundError(
                message=f"{ticket_type.value} not found",
                ticket_type=ticket_type.value,
                ticket_id=ticket_id,
            )

        ensure_access(actor, adapter.owners(ticket), ticket_type.value, ticket_id)

    # =========================================================================
    # Comments
    # =========================================================================

    async def list_comments(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        actor: Actor,
    ) -> List[CommentRecord]:
        """Comments on a ticket, oldest first."""
        await self._check_parent(ticket_type, ticket_id, actor)
        return await self.comment_store.list_comments(ticket_type, ticket_id, actor.org_id)

    async def create_comment(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        actor: Actor,
        body: str,
        mentions: Optional[List[int]] = None,
    ) -> CommentRecord:
        """
        Add a comment authored by the actor.

        Returns:
            The stored comment
        """
        await self._check_parent(ticket_type, ticket_id, actor)

        comment = await self.comment_store.create_comment(
            ticket_type,
            ticket_id,
            actor.org_id,
            author_user_id=actor.user_id,
            body=body,
            mentions=mentions,
        )

        await self.history_dao.append(
            ticket_type,
            ticket_id,
            actor.org_id,
            action="commented",
            user_id=actor.user_id,
        )

        logger.info(f"Comment {comment.id} added to {ticket_type.value} {ticket_id} by user {actor.user_id}")
        return comment

    # =========================================================================
    # Attachments
    # =========================================================================

    async def list_attachments(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        actor: Actor,
    ) -> List[TicketAttachment]:
        """Attachments of a ticket, newest first."""
        await self._check_parent(ticket_type, ticket_id, actor)
        return await self.attachment_dao.list_for_ticket(ticket_type, ticket_id, actor.org_id)

    async def upload_attachment(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        actor: Actor,
        encoded_file: str,
        file_name: str,
        mime_type: str,
    ) -> TicketAttachment:
        """
        Store a base64-encoded attachment.

        WHAT: Decodes and size-checks the payload, writes the bytes to the
        blob store, then records the metadata row. If the row cannot be
        written the stored bytes are removed again.

        Raises:
            ValidationError: Invalid base64
            AttachmentTooLargeError: Decoded size above MAX_ATTACHMENT_SIZE
            BlobStorageError: Bytes could not be written
        """
        await self._check_parent(ticket_type, ticket_id, actor)
        data = decode_attachment(encoded_file)

        file_path = await self.blob_store.save(ticket_type.value, ticket_id, file_name, data)

        try:
            attachment = await self.attachment_dao.create(
                ticket_type=ticket_type,
                ticket_id=ticket_id,
                org_id=actor.org_id,
                file_name=file_name,
                file_path=file_path,
                file_size=len(data),
                mime_type=mime_type,
                uploaded_by=actor.user_id,
            )
        except SQLAlchemyError:
            await self.blob_store.delete(file_path)
            raise

        await self.history_dao.append(
            ticket_type,
            ticket_id,
            actor.org_id,
            action="attachment_added",
            user_id=actor.user_id,
            new_value=file_name,
        )

        logger.info(
            f"Attachment {attachment.id} ({len(data)} bytes) added to "
            f"{ticket_type.value} {ticket_id} by user {actor.user_id}"
        )
        return attachment

    async def download_attachment(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        attachment_id: int,
        actor: Actor,
    ) -> Tuple[TicketAttachment, bytes]:
        """
        Fetch an attachment's metadata and bytes.

        Raises:
            AttachmentNotFoundError: If the attachment is not on this ticket
        """
        await self._check_parent(ticket_type, ticket_id, actor)

        attachment = await self.attachment_dao.get_for_ticket(
            attachment_id, ticket_type, ticket_id, actor.org_id
        )
        if attachment is None:
            raise AttachmentNotFoundError(
                attachment_id=attachment_id,
                ticket_type=ticket_type.value,
                ticket_id=ticket_id,
            )

        data = await self.blob_store.read(attachment.file_path)
        return attachment, data

    # =========================================================================
    # History
    # =========================================================================

    async def list_history(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        actor: Actor,
    ) -> List[TicketHistory]:
        """History of a ticket, oldest first."""
        await self._check_parent(ticket_type, ticket_id, actor)
        return await self.history_dao.list_for_ticket(ticket_type, ticket_id, actor.org_id)
