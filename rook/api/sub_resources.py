"""
Ticket sub-resource API endpoints.

WHAT: Comments, attachments and history, shared by all four ticket
collections: /{ticket_collection}/{ticket_id}/comments and so on.

WHY: Sub-resources behave the same for every ticket type, so one set of
routes serves all of them. The collection segment is mapped to a
TicketType by get_ticket_type; anything else is a 400.

HOW: Attachment uploads are JSON with a base64 body. The upload handler
reads the request itself so it can answer multipart bodies with 501 and
other content types with 400 before any parsing.
"""

from typing import List
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from rook.core.deps import get_actor, get_ticket_type
from rook.core.exceptions import (
    NotImplementedFeatureError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from rook.db.session import get_db
from rook.models.ticket import TicketType
from rook.schemas.sub_resource import (
    AttachmentResponse,
    AttachmentUpload,
    CommentCreate,
    CommentResponse,
    HistoryResponse,
)
from rook.services.access_policy import Actor
from rook.services.storage import LocalBlobStore, get_blob_store
from rook.services.sub_resource_service import SubResourceService


router = APIRouter(prefix="/{ticket_collection}/{ticket_id}", tags=["ticket sub-resources"])


async def _parse_upload(request: Request) -> AttachmentUpload:
    """
    Validate the upload content type and parse the JSON body.

    Raises:
        NotImplementedFeatureError (501): multipart/form-data body
        UnsupportedMediaTypeError (400): any other non-JSON content type
        ValidationError (400): body is not valid JSON
    """
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith("multipart/form-data"):
        raise NotImplementedFeatureError(
            message="Multipart uploads are not supported; send JSON with base64 file content"
        )
    if not content_type.startswith("application/json"):
        raise UnsupportedMediaTypeError(
            message="Content-Type must be application/json",
            content_type=content_type or None,
        )

    try:
        body = await request.json()
    except ValueError:
        raise ValidationError(message="Request body must be valid JSON")

    try:
        return AttachmentUpload.model_validate(body)
    except PydanticValidationError as e:
        raise RequestValidationError(e.errors())


def _content_disposition(file_name: str) -> str:
    """Attachment header with an ASCII fallback name and the UTF-8 original."""
    fallback = file_name.encode("ascii", "ignore").decode().replace('"', "") or "download"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"


# ============================================================================
# Comments
# ============================================================================


@router.get(
    "/comments",
    response_model=List[CommentResponse],
    status_code=status.HTTP_200_OK,
)
async def list_comments(
    ticket_id: int,
    ticket_type: TicketType = Depends(get_ticket_type),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    List a ticket's comments, oldest first.

    Raises:
        InvalidTicketTypeError (400): Unknown ticket collection
        TicketNotFoundError (404): Ticket not in the caller's organization
    """
    return await SubResourceService(db).list_comments(ticket_type, ticket_id, actor)


@router.post(
    "/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    ticket_id: int,
    data: CommentCreate,
    ticket_type: TicketType = Depends(get_ticket_type),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Add a comment to a ticket."""
    return await SubResourceService(db).create_comment(
        ticket_type, ticket_id, actor, body=data.body, mentions=data.mentions
    )


# ============================================================================
# Attachments
# ============================================================================


@router.get(
    "/attachments",
    response_model=List[AttachmentResponse],
    status_code=status.HTTP_200_OK,
)
async def list_attachments(
    ticket_id: int,
    ticket_type: TicketType = Depends(get_ticket_type),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """List a ticket's attachments, newest first."""
    return await SubResourceService(db).list_attachments(ticket_type, ticket_id, actor)


@router.post(
    "/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachment(
    ticket_id: int,
    request: Request,
    ticket_type: TicketType = Depends(get_ticket_type),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    blob_store: LocalBlobStore = Depends(get_blob_store),
):
    """
    Upload an attachment.

    Body: {"file": "<base64>", "file_name": "...", "mime_type": "..."}

    Raises:
        NotImplementedFeatureError (501): multipart/form-data upload
        ValidationError (400): Wrong content type, invalid base64 or
            file larger than MAX_ATTACHMENT_SIZE
    """
    upload = await _parse_upload(request)
    return await SubResourceService(db, blob_store).upload_attachment(
        ticket_type,
        ticket_id,
        actor,
        encoded_file=upload.file,
        file_name=upload.file_name,
        mime_type=upload.mime_type,
    )


@router.get(
    "/attachments/{attachment_id}",
    status_code=status.HTTP_200_OK,
    response_class=Response,
)
async def download_attachment(
    ticket_id: int,
    attachment_id: int,
    ticket_type: TicketType = Depends(get_ticket_type),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    blob_store: LocalBlobStore = Depends(get_blob_store),
):
    """
    Download an attachment's bytes.

    Raises:
        AttachmentNotFoundError (404): Attachment not on this ticket
    """
    attachment, data = await SubResourceService(db, blob_store).download_attachment(
        ticket_type, ticket_id, attachment_id, actor
    )
    return Response(
        content=data,
        media_type=attachment.mime_type,
        headers={"Content-Disposition": _content_disposition(attachment.file_name)},
    )


# ============================================================================
# History
# ============================================================================


@router.get(
    "/history",
    response_model=List[HistoryResponse],
    status_code=status.HTTP_200_OK,
)
async def list_history(
    ticket_id: int,
    ticket_type: TicketType = Depends(get_ticket_type),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """A ticket's history, oldest first."""
    return await SubResourceService(db).list_history(ticket_type, ticket_id, actor)
