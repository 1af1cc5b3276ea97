"""
Pydantic schemas for ticket sub-resources (comments, attachments, history).

WHY: Comments, attachments and history are shared by all four ticket
types; the response shapes carry ticket_type so a client listing across
types can tell them apart.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from rook.models.ticket import TicketType


# ============================================================================
# Comments
# ============================================================================


class CommentCreate(BaseModel):
    """
    Comment creation request.

    mentions are user ids; they are dropped silently on deployments whose
    comment table predates mentions.
    """

    body: str = Field(..., min_length=1, max_length=10000, description="Comment text")
    mentions: List[int] = Field(default_factory=list, description="Mentioned user ids")

    @field_validator("body")
    @classmethod
    def body_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Comment body cannot be empty")
        return v


class CommentResponse(BaseModel):
    """Comment response, identical whichever comment table served it."""

    id: int
    ticket_type: TicketType
    ticket_id: int
    org_id: int
    author_user_id: int
    body: str
    mentions: List[int] = Field(default_factory=list)
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# Attachments
# ============================================================================


class AttachmentUpload(BaseModel):
    """
    JSON attachment upload.

    WHAT: The file travels base64-encoded in `file`; multipart uploads are
    answered with 501.
    """

    file: str = Field(..., min_length=1, description="Base64-encoded file content")
    file_name: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field("application/octet-stream", min_length=1, max_length=255)

    @field_validator("file_name")
    @classmethod
    def strip_directories(cls, v: str) -> str:
        """Keep only the final path component of a client-supplied name."""
        name = v.replace("\\", "/").rsplit("/", 1)[-1].strip()
        if not name:
            raise ValueError("file_name must name a file")
        return name


class AttachmentResponse(BaseModel):
    """Attachment metadata. The storage path is never exposed."""

    id: int
    ticket_type: TicketType
    ticket_id: int
    org_id: int
    file_name: str
    file_size: int
    mime_type: str
    uploaded_by: int
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# History
# ============================================================================


class HistoryResponse(BaseModel):
    """One ticket history entry."""

    id: int
    ticket_type: TicketType
    ticket_id: int
    user_id: Optional[int] = None
    action: str
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
