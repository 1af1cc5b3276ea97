"""
Ticket sub-resource models.

WHAT: Comments, attachments and history rows shared by all ticket types.

WHY: Each row is addressed by (ticket_type, ticket_id) instead of a
foreign key because the parent can live in any of four tables. Parent
existence is checked by the service layer through the ticket adapters.

LegacyComment maps the pre-typing "comments" table. It is only touched by
the comment store's fallback path while a deployment still runs the old
schema. The table has no ticket_type column, so rows are matched on
ticket_id and org_id alone.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rook.models.base import Base, PrimaryKeyMixin, enum_column
from rook.models.ticket import TicketType


class TicketComment(Base, PrimaryKeyMixin):
    """Comment on any ticket type. Immutable once written."""

    __tablename__ = "ticket_comments"

    ticket_type: Mapped[TicketType] = mapped_column(
        enum_column(TicketType, "ticket_type"), nullable=False
    )
    ticket_id: Mapped[int] = mapped_column(Integer, nullable=False)
    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id"), nullable=False
    )
    author_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    # Server-side default only: the no-mentions fallback insert must not
    # name this column.
    mentions: Mapped[List[int]] = mapped_column(JSON, nullable=False, server_default="[]")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_ticket_comments_ticket", "ticket_type", "ticket_id", "org_id"),
    )


class LegacyComment(Base, PrimaryKeyMixin):
    """
    Comment row in the legacy single-family table.

    No ticket_type and no mentions.
    """

    __tablename__ = "comments"

    ticket_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id"), nullable=False
    )
    author_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )


class TicketAttachment(Base, PrimaryKeyMixin):
    """
    File attached to a ticket.

    file_path is an opaque locator into the blob store and is never exposed
    through the API.
    """

    __tablename__ = "ticket_attachments"

    ticket_type: Mapped[TicketType] = mapped_column(
        enum_column(TicketType, "ticket_type"), nullable=False
    )
    ticket_id: Mapped[int] = mapped_column(Integer, nullable=False)
    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id"), nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    uploaded_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_ticket_attachments_ticket", "ticket_type", "ticket_id", "org_id"),
    )


class TicketHistory(Base, PrimaryKeyMixin):
    """
    Append-only audit trail entry for a ticket.

    user_id is null for system-originated entries.
    """

    __tablename__ = "ticket_history"

    ticket_type: Mapped[TicketType] = mapped_column(
        enum_column(TicketType, "ticket_type"), nullable=False
    )
    ticket_id: Mapped[int] = mapped_column(Integer, nullable=False)
    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id"), nullable=False
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    field_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_ticket_history_ticket", "ticket_type", "ticket_id", "org_id"),
    )
