"""
Tests for the ticket adapters.

WHY: The adapters carry every per-type difference the service relies on:
ownership ids, list visibility, initial status and the resolution column.
"""

import pytest

from rook.dao.ticket import (
    TICKET_ADAPTERS,
    ChangeAdapter,
    IncidentAdapter,
    ProblemAdapter,
    ServiceRequestAdapter,
    get_ticket_adapter,
)
from rook.models.ticket import ChangeStatus, TicketStatus, TicketType
from rook.services.access_policy import ResourceOwners
from tests.factories import ChangeFactory, IncidentFactory, ProblemFactory, actor_for


class TestAdapterTable:
    """Dispatch from TicketType to adapter."""

    def test_every_type_has_adapter(self):
        assert set(TICKET_ADAPTERS) == set(TicketType)

    @pytest.mark.parametrize(
        "ticket_type, adapter_class",
        [
            (TicketType.INCIDENT, IncidentAdapter),
            (TicketType.SERVICE_REQUEST, ServiceRequestAdapter),
            (TicketType.PROBLEM, ProblemAdapter),
            (TicketType.CHANGE, ChangeAdapter),
        ],
    )
    def test_lookup(self, db_session, ticket_type, adapter_class):
        assert isinstance(get_ticket_adapter(ticket_type, db_session), adapter_class)

    def test_per_type_rules(self):
        assert IncidentAdapter.tracks_sla is True
        assert ServiceRequestAdapter.tracks_sla is False
        assert ServiceRequestAdapter.resolution_field == "completed_at"
        assert ProblemAdapter.sets_requester is False
        assert ChangeAdapter.initial_status == ChangeStatus.DRAFT
        assert ChangeAdapter.resolved_status == ChangeStatus.COMPLETED


class TestOwners:
    """Ownership ids handed to the access policy."""

    async def test_incident_owners(self, db_session, user, agent):
        incident = await IncidentFactory.create(db_session, user, assignee=agent)

        assert IncidentAdapter(db_session).owners(incident) == ResourceOwners(
            requester_id=user.id, assignee_id=agent.id
        )

    async def test_problem_owner_is_assignee_only(self, db_session, org, user):
        problem = await ProblemFactory.create(db_session, org, assigned=user)

        assert ProblemAdapter(db_session).owners(problem) == ResourceOwners(assignee_id=user.id)


class TestAdapterCrud:
    """Create / update / list through the adapters."""

    async def test_create_sets_org_and_status(self, db_session, user):
        incident = await IncidentAdapter(db_session).create(
            user.org_id, actor_for(user), {"title": "Disk full"}
        )

        assert incident.id is not None
        assert incident.status == TicketStatus.NEW
        assert incident.requester_user_id == user.id

    async def test_update_bumps_updated_at(self, db_session, user):
        incident = await IncidentFactory.create(db_session, user)
        before = incident.updated_at

        updated = await IncidentAdapter(db_session).update(
            user.org_id, incident.id, {"title": "Renamed"}
        )

        assert updated.title == "Renamed"
        assert updated.updated_at >= before

    async def test_update_other_org_returns_none(self, db_session, user, other_org):
        incident = await IncidentFactory.create(db_session, user)

        assert await IncidentAdapter(db_session).update(other_org.id, incident.id, {"title": "x"}) is None

    async def test_change_visible_to_assignee(self, db_session, user, other_user):
        change = await ChangeFactory.create(db_session, user, assigned=other_user)

        listed = await ChangeAdapter(db_session).list(user.org_id, actor_for(other_user))

        assert [c.id for c in listed] == [change.id]

    async def test_list_limit(self, db_session, user):
        for i in range(3):
            await IncidentFactory.create(db_session, user, title=f"#{i}")

        listed = await IncidentAdapter(db_session).list(user.org_id, actor_for(user), limit=2)

        assert len(listed) == 2
