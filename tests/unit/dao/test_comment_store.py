"""
Tests for the comment store and its schema fallback.

WHAT: CommentStore policy, storage error classification and the gateway
against a partially migrated database.

WHY: A rolling migration can leave a deployment on the legacy comments
table or without the mentions column. Callers must get the same comment
shape either way, and unrelated storage errors must still surface.

HOW: The policy is tested with a fake gateway (no database). The gateway
is tested against SQLite with the table or column dropped inside the
test transaction, which the fixture rollback restores.
"""

import pytest
from datetime import datetime
from typing import List

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from rook.dao.comment import (
    CommentGateway,
    CommentRecord,
    CommentStore,
    StorageOutcome,
    StorageResult,
    classify_storage_error,
)
from rook.models.ticket import TicketType


def _record(ticket_type=TicketType.INCIDENT, mentions=None) -> CommentRecord:
    return CommentRecord(
        id=1,
        ticket_type=ticket_type,
        ticket_id=5,
        org_id=10,
        author_user_id=3,
        body="hello",
        created_at=datetime(2025, 1, 1),
        mentions=mentions or [],
    )


class _PgError(Exception):
    """Stand-in for an asyncpg error carrying a SQLSTATE."""

    def __init__(self, sqlstate: str):
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


class FakeGateway:
    """
    Gateway double returning scripted outcomes.

    Records every call so tests can assert which tier served a request.
    """

    def __init__(self, current: List[StorageResult], legacy: StorageResult = None):
        self.current = list(current)
        self.legacy = legacy
        self.calls = []

    async def select_current(self, ticket_type, ticket_id, org_id, include_mentions=True):
        self.calls.append(("select_current", include_mentions))
        return self.current.pop(0)

    async def insert_current(
        self, ticket_type, ticket_id, org_id, author_user_id, body, mentions, include_mentions=True
    ):
        self.calls.append(("insert_current", include_mentions))
        return self.current.pop(0)

    async def select_legacy(self, ticket_type, ticket_id, org_id):
        self.calls.append(("select_legacy",))
        return self.legacy

    async def insert_legacy(self, ticket_type, ticket_id, org_id, author_user_id, body):
        self.calls.append(("insert_legacy",))
        return self.legacy


def _failed(outcome: StorageOutcome) -> StorageResult:
    return StorageResult(outcome=outcome, error=RuntimeError(outcome.value))


class TestClassifyStorageError:
    """Driver errors map to outcomes."""

    def test_pg_undefined_table(self):
        error = ProgrammingError("SELECT", {}, _PgError("42P01"))
        assert classify_storage_error(error) == StorageOutcome.RELATION_MISSING

    def test_pg_undefined_column(self):
        error = ProgrammingError("SELECT", {}, _PgError("42703"))
        assert classify_storage_error(error) == StorageOutcome.COLUMN_MISSING

    def test_sqlite_messages(self):
        missing_table = OperationalError("SELECT", {}, Exception("no such table: ticket_comments"))
        missing_column = OperationalError(
            "INSERT", {}, Exception("table ticket_comments has no column named mentions")
        )

        assert classify_storage_error(missing_table) == StorageOutcome.RELATION_MISSING
        assert classify_storage_error(missing_column) == StorageOutcome.COLUMN_MISSING

    def test_other_error(self):
        error = OperationalError("SELECT", {}, Exception("database is locked"))
        assert classify_storage_error(error) == StorageOutcome.OTHER_ERROR


class TestCommentStorePolicy:
    """Fallback decisions, driven by a fake gateway."""

    async def test_happy_path_single_call(self):
        gateway = FakeGateway([StorageResult.ok([_record(mentions=[7])])])

        comments = await CommentStore(gateway).list_comments(TicketType.INCIDENT, 5, 10)

        assert comments[0].mentions == [7]
        assert gateway.calls == [("select_current", True)]

    async def test_relation_missing_reads_legacy(self):
        gateway = FakeGateway(
            [_failed(StorageOutcome.RELATION_MISSING)],
            legacy=StorageResult.ok([_record()]),
        )

        comments = await CommentStore(gateway).list_comments(TicketType.SERVICE_REQUEST, 5, 10)

        assert len(comments) == 1
        assert comments[0].mentions == []
        assert gateway.calls == [("select_current", True), ("select_legacy",)]

    async def test_relation_missing_for_problem_reads_legacy(self):
        """
        WHY: The legacy table has no type column; any ticket type can be
        served from it while ticket_comments is missing.
        """
        gateway = FakeGateway(
            [_failed(StorageOutcome.RELATION_MISSING)],
            legacy=StorageResult.ok([_record(ticket_type=TicketType.PROBLEM)]),
        )

        comments = await CommentStore(gateway).list_comments(TicketType.PROBLEM, 5, 10)

        assert [c.ticket_type for c in comments] == [TicketType.PROBLEM]
        assert gateway.calls == [("select_current", True), ("select_legacy",)]

    async def test_column_missing_retries_without_mentions(self):
        gateway = FakeGateway(
            [_failed(StorageOutcome.COLUMN_MISSING), StorageResult.ok([_record()])]
        )

        comments = await CommentStore(gateway).list_comments(TicketType.CHANGE, 5, 10)

        assert comments[0].mentions == []
        assert gateway.calls == [("select_current", True), ("select_current", False)]

    async def test_other_error_propagates(self):
        gateway = FakeGateway([_failed(StorageOutcome.OTHER_ERROR)])

        with pytest.raises(RuntimeError, match="other_error"):
            await CommentStore(gateway).list_comments(TicketType.INCIDENT, 5, 10)

    async def test_create_falls_back_to_legacy(self):
        gateway = FakeGateway(
            [_failed(StorageOutcome.RELATION_MISSING)],
            legacy=StorageResult.ok(_record()),
        )

        comment = await CommentStore(gateway).create_comment(
            TicketType.INCIDENT, 5, 10, author_user_id=3, body="hello", mentions=[7]
        )

        assert comment.mentions == []
        assert gateway.calls == [("insert_current", True), ("insert_legacy",)]

    async def test_create_for_change_without_table_writes_legacy(self):
        gateway = FakeGateway(
            [_failed(StorageOutcome.RELATION_MISSING)],
            legacy=StorageResult.ok(_record(ticket_type=TicketType.CHANGE)),
        )

        comment = await CommentStore(gateway).create_comment(
            TicketType.CHANGE, 5, 10, author_user_id=3, body="hello"
        )

        assert comment.ticket_type == TicketType.CHANGE
        assert gateway.calls == [("insert_current", True), ("insert_legacy",)]

    async def test_legacy_failure_propagates(self):
        gateway = FakeGateway(
            [_failed(StorageOutcome.RELATION_MISSING)],
            legacy=_failed(StorageOutcome.OTHER_ERROR),
        )

        with pytest.raises(RuntimeError, match="other_error"):
            await CommentStore(gateway).create_comment(
                TicketType.CHANGE, 5, 10, author_user_id=3, body="hello"
            )

    async def test_create_column_missing_retries(self):
        gateway = FakeGateway(
            [_failed(StorageOutcome.COLUMN_MISSING), StorageResult.ok(_record())]
        )

        await CommentStore(gateway).create_comment(
            TicketType.INCIDENT, 5, 10, author_user_id=3, body="hello", mentions=[7]
        )

        assert gateway.calls == [("insert_current", True), ("insert_current", False)]


class TestCommentGatewayOnSqlite:
    """The three schema tiers against a real database."""

    async def test_current_schema(self, db_session, user):
        store = CommentStore(CommentGateway(db_session))

        created = await store.create_comment(
            TicketType.PROBLEM, 1, user.org_id, author_user_id=user.id, body="first", mentions=[user.id]
        )
        await store.create_comment(
            TicketType.PROBLEM, 1, user.org_id, author_user_id=user.id, body="second"
        )
        # Same id under another type is a different ticket
        await store.create_comment(
            TicketType.INCIDENT, 1, user.org_id, author_user_id=user.id, body="elsewhere"
        )

        comments = await store.list_comments(TicketType.PROBLEM, 1, user.org_id)

        assert [c.body for c in comments] == ["first", "second"]
        assert comments[0].id == created.id
        assert comments[0].mentions == [user.id]

    async def test_legacy_table_only(self, db_session, user):
        await db_session.execute(text("DROP TABLE ticket_comments"))
        store = CommentStore(CommentGateway(db_session))

        created = await store.create_comment(
            TicketType.INCIDENT, 4, user.org_id, author_user_id=user.id, body="legacy", mentions=[1]
        )
        comments = await store.list_comments(TicketType.INCIDENT, 4, user.org_id)

        assert created.mentions == []
        assert [(c.body, c.ticket_type, c.mentions) for c in comments] == [
            ("legacy", TicketType.INCIDENT, [])
        ]

    async def test_mentions_column_missing(self, db_session, user):
        await db_session.execute(text("ALTER TABLE ticket_comments DROP COLUMN mentions"))
        store = CommentStore(CommentGateway(db_session))

        await store.create_comment(
            TicketType.CHANGE, 2, user.org_id, author_user_id=user.id, body="no mentions", mentions=[9]
        )
        comments = await store.list_comments(TicketType.CHANGE, 2, user.org_id)

        assert [(c.body, c.mentions) for c in comments] == [("no mentions", [])]

    async def test_legacy_table_serves_change(self, db_session, user):
        await db_session.execute(text("DROP TABLE ticket_comments"))
        store = CommentStore(CommentGateway(db_session))

        created = await store.create_comment(
            TicketType.CHANGE, 6, user.org_id, author_user_id=user.id, body="cab approved"
        )
        comments = await store.list_comments(TicketType.CHANGE, 6, user.org_id)

        assert created.ticket_type == TicketType.CHANGE
        assert [(c.id, c.ticket_type) for c in comments] == [(created.id, TicketType.CHANGE)]
