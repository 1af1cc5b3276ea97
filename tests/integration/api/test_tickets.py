"""
Integration tests for the ticket API.

WHAT: CRUD, approvals and catalog requests over HTTP for the four ticket
collections.

WHY: These tests ensure:
1. Requesters can open incidents and get an SLA deadline
2. Staff can manage tickets, users only their own
3. Org-scoping prevents cross-org access (OWASP A01)
4. Validation failures answer 400 with field details
5. Approvals are role-gated

HOW: Uses pytest-asyncio with AsyncClient for HTTP testing.
"""

import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.factories import (
    CatalogItemFactory,
    ChangeFactory,
    IncidentFactory,
    ServiceRequestFactory,
    UnifiedTicketFactory,
    auth_headers,
)


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", ""))


class TestAuthentication:
    """Every ticket route needs a valid bearer token."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/incidents")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get(
            "/api/incidents", headers={"Authorization": "Bearer nonsense"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_health_is_public(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestIncidentApi:
    """Integration tests for incidents."""

    @pytest.mark.asyncio
    async def test_create_high_incident(self, client: AsyncClient, user):
        """
        Test creating a high priority incident.

        WHY: High incidents breach after 4 hours; the deadline must be
        stamped at creation and the ticket must start unbreached.
        """
        before = datetime.utcnow()

        response = await client.post(
            "/api/incidents",
            headers=auth_headers(user),
            json={"title": "Email down", "priority": "high"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "new"
        assert data["requester_user_id"] == user.id
        assert data["is_breached"] is False
        breach_at = _parse(data["breach_at"])
        assert before + timedelta(hours=4) - timedelta(seconds=1) <= breach_at
        assert breach_at <= datetime.utcnow() + timedelta(hours=4)

    @pytest.mark.asyncio
    async def test_invalid_priority_rejected(self, client: AsyncClient, user):
        response = await client.post(
            "/api/incidents",
            headers=auth_headers(user),
            json={"title": "Email down", "priority": "urgent"},
        )

        assert response.status_code == 400
        fields = [e["field"] for e in response.json()["details"]["errors"]]
        assert "body.priority" in fields

    @pytest.mark.asyncio
    async def test_missing_title_rejected(self, client: AsyncClient, user):
        response = await client.post("/api/incidents", headers=auth_headers(user), json={})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_breached_flag(self, client: AsyncClient, db_session: AsyncSession, user):
        incident = await IncidentFactory.create_breached(db_session, user)

        response = await client.get(f"/api/incidents/{incident.id}", headers=auth_headers(user))

        assert response.status_code == 200
        assert response.json()["is_breached"] is True

    @pytest.mark.asyncio
    async def test_other_user_forbidden(
        self, client: AsyncClient, db_session: AsyncSession, user, other_user
    ):
        incident = await IncidentFactory.create(db_session, user)

        response = await client.get(
            f"/api/incidents/{incident.id}", headers=auth_headers(other_user)
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_other_org_not_found(
        self, client: AsyncClient, db_session: AsyncSession, user, foreign_admin
    ):
        incident = await IncidentFactory.create(db_session, user)

        response = await client.get(
            f"/api/incidents/{incident.id}", headers=auth_headers(foreign_admin)
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_scoped_to_requester(
        self, client: AsyncClient, db_session: AsyncSession, user, other_user, agent
    ):
        await IncidentFactory.create(db_session, user)
        await IncidentFactory.create(db_session, other_user)

        user_list = await client.get("/api/incidents", headers=auth_headers(user))
        agent_list = await client.get("/api/incidents", headers=auth_headers(agent))

        assert [i["requester_user_id"] for i in user_list.json()] == [user.id]
        assert len(agent_list.json()) == 2

    @pytest.mark.asyncio
    async def test_admin_resolves(
        self, client: AsyncClient, db_session: AsyncSession, user, admin
    ):
        incident = await IncidentFactory.create(db_session, user)

        response = await client.patch(
            f"/api/incidents/{incident.id}",
            headers=auth_headers(admin),
            json={"status": "resolved"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "resolved"
        assert data["resolved_at"] is not None
        assert data["title"] == incident.title

    @pytest.mark.asyncio
    async def test_resolved_at_with_offset_stored_as_utc(
        self, client: AsyncClient, db_session: AsyncSession, user, agent
    ):
        incident = await IncidentFactory.create(db_session, user)

        response = await client.patch(
            f"/api/incidents/{incident.id}",
            headers=auth_headers(agent),
            json={"status": "resolved", "resolved_at": "2026-03-01T09:30:00-05:00"},
        )

        assert response.status_code == 200
        assert _parse(response.json()["resolved_at"]) == datetime(2026, 3, 1, 14, 30)

    @pytest.mark.asyncio
    async def test_empty_patch_rejected(
        self, client: AsyncClient, db_session: AsyncSession, user
    ):
        incident = await IncidentFactory.create(db_session, user)

        response = await client.patch(
            f"/api/incidents/{incident.id}", headers=auth_headers(user), json={}
        )

        assert response.status_code == 400
        assert response.json()["message"] == "No fields to update"

    @pytest.mark.asyncio
    async def test_null_status_rejected(
        self, client: AsyncClient, db_session: AsyncSession, user
    ):
        incident = await IncidentFactory.create(db_session, user)

        response = await client.patch(
            f"/api/incidents/{incident.id}", headers=auth_headers(user), json={"status": None}
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_collection_is_404(self, client: AsyncClient, user):
        response = await client.get("/api/widgets", headers=auth_headers(user))
        assert response.status_code == 404


class TestOtherTicketTypes:
    """Service requests, problems and changes share the same routes."""

    @pytest.mark.asyncio
    async def test_service_request_has_no_deadline(self, client: AsyncClient, user):
        response = await client.post(
            "/api/service-requests",
            headers=auth_headers(user),
            json={"title": "Need access", "priority": "critical"},
        )

        assert response.status_code == 201
        assert response.json()["breach_at"] is None
        assert response.json()["is_breached"] is False

    @pytest.mark.asyncio
    async def test_problem_lifecycle(self, client: AsyncClient, agent):
        created = await client.post(
            "/api/problems",
            headers=auth_headers(agent),
            json={"title": "DNS flaps", "related_incidents": [3, 3, 4]},
        )
        assert created.status_code == 201
        problem = created.json()
        assert problem["related_incidents"] == [3, 4]

        resolved = await client.patch(
            f"/api/problems/{problem['id']}",
            headers=auth_headers(agent),
            json={"status": "resolved", "root_cause": "Bad resolver"},
        )

        assert resolved.status_code == 200
        assert resolved.json()["resolved_at"] is not None
        assert resolved.json()["root_cause"] == "Bad resolver"

    @pytest.mark.asyncio
    async def test_change_requires_reason(self, client: AsyncClient, user):
        response = await client.post(
            "/api/changes", headers=auth_headers(user), json={"title": "Patch"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_change_window_validated(self, client: AsyncClient, user):
        response = await client.post(
            "/api/changes",
            headers=auth_headers(user),
            json={
                "title": "Patch",
                "reason": "CVE",
                "scheduled_start": "2025-06-02T10:00:00",
                "scheduled_end": "2025-06-01T10:00:00",
            },
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_change_window_mixed_offsets(self, client: AsyncClient, user):
        """
        Test a change window mixing UTC-suffixed and naive timestamps.

        WHY: Offset-aware input is converted to naive UTC before the window
        check and before it reaches the naive DateTime columns.
        """
        response = await client.post(
            "/api/changes",
            headers=auth_headers(user),
            json={
                "title": "Patch",
                "reason": "CVE",
                "scheduled_start": "2026-01-01T10:00:00Z",
                "scheduled_end": "2026-01-01T12:00:00",
            },
        )

        assert response.status_code == 201
        assert _parse(response.json()["scheduled_start"]) == datetime(2026, 1, 1, 10, 0)
        assert _parse(response.json()["scheduled_end"]) == datetime(2026, 1, 1, 12, 0)

    @pytest.mark.asyncio
    async def test_change_window_compared_in_utc(self, client: AsyncClient, user):
        # 11:00+02:00 is 09:00 UTC, before the naive 10:00 start
        response = await client.post(
            "/api/changes",
            headers=auth_headers(user),
            json={
                "title": "Patch",
                "reason": "CVE",
                "scheduled_start": "2026-01-01T10:00:00",
                "scheduled_end": "2026-01-01T11:00:00+02:00",
            },
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_change_created_as_draft(self, client: AsyncClient, user):
        response = await client.post(
            "/api/changes",
            headers=auth_headers(user),
            json={"title": "Patch", "reason": "CVE", "risk": "high"},
        )

        assert response.status_code == 201
        assert response.json()["status"] == "draft"
        assert response.json()["risk"] == "high"


class TestApprovals:
    """Change and service request approval."""

    @pytest.mark.asyncio
    async def test_admin_approves_scheduled_change(
        self, client: AsyncClient, db_session: AsyncSession, user, admin
    ):
        start = datetime.utcnow() + timedelta(days=2)
        change = await ChangeFactory.create(db_session, user, scheduled_start=start)

        response = await client.post(
            f"/api/changes/{change.id}/approve", headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json()["status"] == "scheduled"
        assert response.json()["approved_by"] == admin.id

    @pytest.mark.asyncio
    async def test_agent_cannot_approve_change(
        self, client: AsyncClient, db_session: AsyncSession, user, agent
    ):
        change = await ChangeFactory.create(db_session, user)

        response = await client.post(
            f"/api/changes/{change.id}/approve", headers=auth_headers(agent)
        )

        assert response.status_code == 403
        assert response.json()["error"] == "InsufficientRoleError"

    @pytest.mark.asyncio
    async def test_agent_approves_service_request(
        self, client: AsyncClient, db_session: AsyncSession, user, agent
    ):
        request = await ServiceRequestFactory.create(db_session, user)

        response = await client.post(
            f"/api/service-requests/{request.id}/approve", headers=auth_headers(agent)
        )

        assert response.status_code == 200
        assert response.json()["approved_by"] == agent.id
        assert response.json()["status"] == "new"


class TestUnifiedTicketApi:
    """The unified /api/tickets collection."""

    @pytest.mark.asyncio
    async def test_create_critical_gets_default_deadline(self, client: AsyncClient, user):
        """
        Test the legacy SLA table on the unified collection.

        WHY: The unified table only knows high (4h) and medium (8h); every
        other priority, critical included, breaches after 24h.
        """
        before = datetime.utcnow()

        response = await client.post(
            "/api/tickets",
            headers=auth_headers(user),
            json={
                "type": "request",
                "priority": "critical",
                "title": "Need VPN",
                "description": "Remote from Monday",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "request"
        assert data["status"] == "new"
        assert data["is_breached"] is False
        breach_at = _parse(data["breach_at"])
        assert before + timedelta(hours=24) - timedelta(seconds=1) <= breach_at
        assert breach_at <= datetime.utcnow() + timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_description_required(self, client: AsyncClient, user):
        response = await client.post(
            "/api/tickets",
            headers=auth_headers(user),
            json={"type": "incident", "priority": "high", "title": "Down"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, client: AsyncClient, user):
        response = await client.post(
            "/api/tickets",
            headers=auth_headers(user),
            json={"type": "problem", "priority": "high", "title": "Down", "description": "x"},
        )

        assert response.status_code == 400
        fields = [e["field"] for e in response.json()["details"]["errors"]]
        assert "body.type" in fields

    @pytest.mark.asyncio
    async def test_read_access(
        self, client: AsyncClient, db_session: AsyncSession, user, other_user, foreign_admin
    ):
        ticket = await UnifiedTicketFactory.create(db_session, user)

        own = await client.get(f"/api/tickets/{ticket.id}", headers=auth_headers(user))
        other = await client.get(f"/api/tickets/{ticket.id}", headers=auth_headers(other_user))
        foreign = await client.get(f"/api/tickets/{ticket.id}", headers=auth_headers(foreign_admin))

        assert own.status_code == 200
        assert other.status_code == 403
        assert foreign.status_code == 404

    @pytest.mark.asyncio
    async def test_list_scoped_to_requester(
        self, client: AsyncClient, db_session: AsyncSession, user, other_user, agent
    ):
        await UnifiedTicketFactory.create(db_session, user)
        await UnifiedTicketFactory.create(db_session, other_user)

        user_list = await client.get("/api/tickets", headers=auth_headers(user))
        agent_list = await client.get("/api/tickets", headers=auth_headers(agent))

        assert [t["requester_user_id"] for t in user_list.json()] == [user.id]
        assert len(agent_list.json()) == 2


class TestCatalogApi:
    """Service catalog browsing and requests."""

    @pytest.mark.asyncio
    async def test_list_and_request(
        self, client: AsyncClient, db_session: AsyncSession, org, user
    ):
        item = await CatalogItemFactory.create(
            db_session, org, name="Laptop", description="Standard issue"
        )
        await CatalogItemFactory.create(db_session, org, name="Retired", is_active=False)

        listed = await client.get("/api/catalog", headers=auth_headers(user))
        assert [i["name"] for i in listed.json()] == ["Laptop"]

        response = await client.post(
            f"/api/catalog/{item.id}/request",
            headers=auth_headers(user),
            json={"priority": "high", "form_data": {"model": "X1", "ram": "32GB"}},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Laptop"
        assert data["priority"] == "high"
        assert data["catalog_item_id"] == item.id
        assert data["description"] == "Standard issue\n\nForm Data:\nmodel: X1\nram: 32GB"

    @pytest.mark.asyncio
    async def test_inactive_item_not_found(
        self, client: AsyncClient, db_session: AsyncSession, org, user
    ):
        item = await CatalogItemFactory.create(db_session, org, is_active=False)

        response = await client.get(f"/api/catalog/{item.id}", headers=auth_headers(user))

        assert response.status_code == 404
