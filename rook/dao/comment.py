"""
Comment store with schema fallback.

WHAT: Reads and writes ticket comments keyed by (ticket_type, ticket_id)
while tolerating deployments whose database is not fully migrated.

WHY: A rolling migration can leave a deployment with:
1. the current ticket_comments table (happy path, one query)
2. no ticket_comments table yet, only the legacy "comments" table
3. ticket_comments present but without the mentions column
Callers must get the same comment shape in all three cases and never learn
which one served them.

HOW: Two layers.
- CommentGateway issues exactly one statement per call inside a SAVEPOINT
  and returns a tagged StorageResult instead of raising. It is the only
  code that looks at driver errors (classify_storage_error).
- CommentStore is the fallback policy. It only branches on the tag, so it
  can be tested with a fake gateway and no degraded database.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

from sqlalchemy import insert, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from rook.models.sub_resource import LegacyComment, TicketComment
from rook.models.ticket import TicketType


logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATE codes
UNDEFINED_TABLE = "42P01"
UNDEFINED_COLUMN = "42703"


class StorageOutcome(str, Enum):
    """Tag of a gateway call result."""

    OK = "ok"
    RELATION_MISSING = "relation_missing"
    COLUMN_MISSING = "column_missing"
    OTHER_ERROR = "other_error"


@dataclass
class StorageResult(Generic[T]):
    """
    Tagged result of one storage call.

    Exactly one of value (OK) or error (any other outcome) is meaningful.
    """

    outcome: StorageOutcome
    value: Optional[T] = None
    error: Optional[Exception] = None

    @classmethod
    def ok(cls, value: T) -> "StorageResult[T]":
        return cls(outcome=StorageOutcome.OK, value=value)

    @classmethod
    def failed(cls, error: Exception) -> "StorageResult[T]":
        return cls(outcome=classify_storage_error(error), error=error)

    def unwrap(self) -> T:
        """Return the value or re-raise the original storage error."""
        if self.outcome is StorageOutcome.OK:
            return self.value
        raise self.error


def classify_storage_error(error: Exception) -> StorageOutcome:
    """
    Map a driver error to a StorageOutcome.

    Reads the SQLSTATE where the driver exposes one (asyncpg/psycopg) and
    falls back to SQLite's message text, which has no codes.
    """
    orig = getattr(error, "orig", error)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)

    if code == UNDEFINED_TABLE:
        return StorageOutcome.RELATION_MISSING
    if code == UNDEFINED_COLUMN:
        return StorageOutcome.COLUMN_MISSING

    message = str(orig).lower()
    if "no such table" in message or ("relation" in message and "does not exist" in message):
        return StorageOutcome.RELATION_MISSING
    if "no such column" in message or "has no column named" in message:
        return StorageOutcome.COLUMN_MISSING
    if "column" in message and "does not exist" in message:
        return StorageOutcome.COLUMN_MISSING

    return StorageOutcome.OTHER_ERROR


@dataclass
class CommentRecord:
    """
    Logical comment, identical whichever table served it.
    """

    id: int
    ticket_type: TicketType
    ticket_id: int
    org_id: int
    author_user_id: int
    body: str
    created_at: datetime
    mentions: List[int] = field(default_factory=list)


class CommentGateway:
    """
    Physical comment storage.

    Each method runs one statement inside a SAVEPOINT and reports the
    outcome as a StorageResult. A failed statement rolls back only its
    savepoint, so the request transaction stays usable for the fallback.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _attempt(self, operation: Callable[[], Awaitable[T]]) -> StorageResult[T]:
        try:
            async with self.session.begin_nested():
                value = await operation()
        except DBAPIError as exc:
            return StorageResult.failed(exc)
        return StorageResult.ok(value)

    async def select_current(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        org_id: int,
        include_mentions: bool = True,
    ) -> StorageResult[List[CommentRecord]]:
        """Comments from ticket_comments, oldest first."""
        table = TicketComment.__table__
        columns = [
            table.c.id,
            table.c.ticket_type,
            table.c.ticket_id,
            table.c.org_id,
            table.c.author_user_id,
            table.c.body,
            table.c.created_at,
        ]
        if include_mentions:
            columns.append(table.c.mentions)

        async def run() -> List[CommentRecord]:
            result = await self.session.execute(
                select(*columns)
                .where(
                    table.c.ticket_type == ticket_type,
                    table.c.ticket_id == ticket_id,
                    table.c.org_id == org_id,
                )
                .order_by(table.c.created_at.asc(), table.c.id.asc())
            )
            return [
                CommentRecord(
                    id=row.id,
                    ticket_type=TicketType(row.ticket_type),
                    ticket_id=row.ticket_id,
                    org_id=row.org_id,
                    author_user_id=row.author_user_id,
                    body=row.body,
                    created_at=row.created_at,
                    mentions=list(row.mentions or []) if include_mentions else [],
                )
                for row in result
            ]

        return await self._attempt(run)

    async def insert_current(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        org_id: int,
        author_user_id: int,
        body: str,
        mentions: List[int],
        include_mentions: bool = True,
    ) -> StorageResult[CommentRecord]:
        """Insert into ticket_comments."""
        table = TicketComment.__table__
        created_at = datetime.utcnow()
        values = {
            "ticket_type": ticket_type,
            "ticket_id": ticket_id,
            "org_id": org_id,
            "author_user_id": author_user_id,
            "body": body,
            "created_at": created_at,
        }
        if include_mentions:
            values["mentions"] = list(mentions)

        async def run() -> CommentRecord:
            result = await self.session.execute(insert(table).values(**values))
            return CommentRecord(
                id=result.inserted_primary_key[0],
                ticket_type=ticket_type,
                ticket_id=ticket_id,
                org_id=org_id,
                author_user_id=author_user_id,
                body=body,
                created_at=created_at,
                mentions=list(mentions) if include_mentions else [],
            )

        return await self._attempt(run)

    async def select_legacy(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        org_id: int,
    ) -> StorageResult[List[CommentRecord]]:
        """
        Comments from the legacy table, filtered by ticket_id + org only.
        """
        table = LegacyComment.__table__

        async def run() -> List[CommentRecord]:
            result = await self.session.execute(
                select(table)
                .where(table.c.ticket_id == ticket_id, table.c.org_id == org_id)
                .order_by(table.c.created_at.asc(), table.c.id.asc())
            )
            return [
                CommentRecord(
                    id=row.id,
                    ticket_type=ticket_type,
                    ticket_id=row.ticket_id,
                    org_id=row.org_id,
                    author_user_id=row.author_user_id,
                    body=row.body,
                    created_at=row.created_at,
                )
                for row in result
            ]

        return await self._attempt(run)

    async def insert_legacy(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        org_id: int,
        author_user_id: int,
        body: str,
    ) -> StorageResult[CommentRecord]:
        """Insert into the legacy table (no type tag, no mentions)."""
        table = LegacyComment.__table__
        created_at = datetime.utcnow()

        async def run() -> CommentRecord:
            result = await self.session.execute(
                insert(table).values(
                    ticket_id=ticket_id,
                    org_id=org_id,
                    author_user_id=author_user_id,
                    body=body,
                    created_at=created_at,
                )
            )
            return CommentRecord(
                id=result.inserted_primary_key[0],
                ticket_type=ticket_type,
                ticket_id=ticket_id,
                org_id=org_id,
                author_user_id=author_user_id,
                body=body,
                created_at=created_at,
            )

        return await self._attempt(run)


class CommentStore:
    """
    Comment fallback policy.

    Tier 1: current table. RelationMissing → legacy table. ColumnMissing →
    current table without mentions. Anything else re-raises the original
    error. The fallback paths synthesize mentions=[].

    The legacy table has no type column, so every ticket type falls back to
    it and its rows come back tagged with the requested type.
    """

    def __init__(self, gateway: CommentGateway):
        self.gateway = gateway

    async def list_comments(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        org_id: int,
    ) -> List[CommentRecord]:
        """
        List a ticket's comments, oldest first.

        Raises:
            DBAPIError: Any storage error the fallback does not handle
        """
        result = await self.gateway.select_current(ticket_type, ticket_id, org_id)

        if result.outcome is StorageOutcome.RELATION_MISSING:
            logger.warning(
                f"ticket_comments missing, reading legacy comments for {ticket_type.value} {ticket_id}"
            )
            return (await self.gateway.select_legacy(ticket_type, ticket_id, org_id)).unwrap()

        if result.outcome is StorageOutcome.COLUMN_MISSING:
            logger.warning("ticket_comments.mentions missing, reading comments without mentions")
            return (
                await self.gateway.select_current(
                    ticket_type, ticket_id, org_id, include_mentions=False
                )
            ).unwrap()

        return result.unwrap()

    async def create_comment(
        self,
        ticket_type: TicketType,
        ticket_id: int,
        org_id: int,
        author_user_id: int,
        body: str,
        mentions: Optional[List[int]] = None,
    ) -> CommentRecord:
        """
        Create a comment.

        The caller must already have checked that the parent ticket exists
        in the organization.

        Raises:
            DBAPIError: Any storage error the fallback does not handle
        """
        mentions = list(mentions or [])
        result = await self.gateway.insert_current(
            ticket_type, ticket_id, org_id, author_user_id, body, mentions
        )

        if result.outcome is StorageOutcome.RELATION_MISSING:
            logger.warning(
                f"ticket_comments missing, writing legacy comment for {ticket_type.value} {ticket_id}"
            )
            return (
                await self.gateway.insert_legacy(
                    ticket_type, ticket_id, org_id, author_user_id, body
                )
            ).unwrap()

        if result.outcome is StorageOutcome.COLUMN_MISSING:
            logger.warning("ticket_comments.mentions missing, writing comment without mentions")
            return (
                await self.gateway.insert_current(
                    ticket_type,
                    ticket_id,
                    org_id,
                    author_user_id,
                    body,
                    mentions,
                    include_mentions=False,
                )
            ).unwrap()

        return result.unwrap()
