"""
Test factories for creating test data.

WHY: Factories provide a consistent, reusable way to create test objects,
reducing duplication and making tests more maintainable. Using factories
instead of manual object creation ensures tests stay consistent when models change.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from rook.core.auth import create_access_token
from rook.models.device import (
    ActivityStatus,
    Device,
    DeviceActivity,
    DevicePolicy,
    DeviceStatus,
)
from rook.models.organization import Organization
from rook.models.ticket import (
    Change,
    ChangeRisk,
    ChangeStatus,
    Incident,
    Problem,
    ServiceCatalogItem,
    ServiceRequest,
    TicketPriority,
    TicketStatus,
    UnifiedTicket,
    UnifiedTicketKind,
)
from rook.models.user import User, UserRole
from rook.services.access_policy import Actor
from rook.services.sla_service import compute_breach_at, compute_legacy_breach_at


async def _save(session: AsyncSession, instance):
    session.add(instance)
    await session.commit()
    await session.refresh(instance)
    return instance


def auth_headers(user: User) -> Dict[str, str]:
    """Bearer header with a token for the given user."""
    token = create_access_token({"user_id": user.id})
    return {"Authorization": f"Bearer {token}"}


def actor_for(user: User) -> Actor:
    """Actor the services expect for a given user row."""
    return Actor(user_id=user.id, role=UserRole(user.role), org_id=user.org_id)


class OrganizationFactory:
    """
    Factory for creating Organization test instances.

    WHY: Centralizes organization creation logic for tests,
    ensuring consistent test data across all test suites.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        name: str = "Test Organization",
        is_active: bool = True,
    ) -> Organization:
        """
        Create an organization for testing.

        Args:
            session: Database session
            name: Organization name
            is_active: Whether organization is active

        Returns:
            Created Organization instance
        """
        return await _save(session, Organization(name=name, is_active=is_active))


class UserFactory:
    """
    Factory for creating User test instances.

    Identity lives with the external provider, so users here carry only
    what authorization needs: role and organization.
    """

    _counter = 0

    @staticmethod
    async def create(
        session: AsyncSession,
        organization: Organization,
        email: Optional[str] = None,
        name: str = "Test User",
        role: UserRole = UserRole.USER,
        is_active: bool = True,
    ) -> User:
        """
        Create a user for testing.

        Args:
            session: Database session
            organization: Owning organization
            email: Unique email (generated when omitted)
            name: Display name
            role: User role
            is_active: Whether the account is active

        Returns:
            Created User instance
        """
        if email is None:
            UserFactory._counter += 1
            email = f"user{UserFactory._counter}@example.test"

        return await _save(
            session,
            User(
                email=email,
                name=name,
                role=role,
                org_id=organization.id,
                is_active=is_active,
            ),
        )


class IncidentFactory:
    """Factory for creating Incident test instances."""

    @staticmethod
    async def create(
        session: AsyncSession,
        requester: User,
        title: str = "Printer on fire",
        priority: TicketPriority = TicketPriority.MEDIUM,
        status: TicketStatus = TicketStatus.NEW,
        assignee: Optional[User] = None,
        breach_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
    ) -> Incident:
        """
        Create an incident for testing.

        WHY: breach_at defaults to the real SLA deadline so list and read
        paths see the same data an API-created incident would have.
        """
        created_at = created_at or datetime.utcnow()
        return await _save(
            session,
            Incident(
                org_id=requester.org_id,
                title=title,
                priority=priority,
                status=status,
                requester_user_id=requester.id,
                assignee_user_id=assignee.id if assignee else None,
                breach_at=breach_at or compute_breach_at(priority, created_at),
                created_at=created_at,
                updated_at=created_at,
            ),
        )

    @staticmethod
    async def create_breached(session: AsyncSession, requester: User, **kwargs: Any) -> Incident:
        """Create an incident whose SLA deadline has already passed."""
        return await IncidentFactory.create(
            session,
            requester,
            breach_at=datetime.utcnow() - timedelta(minutes=5),
            **kwargs,
        )


class ServiceRequestFactory:
    """Factory for creating ServiceRequest test instances."""

    @staticmethod
    async def create(
        session: AsyncSession,
        requester: User,
        title: str = "New laptop",
        priority: TicketPriority = TicketPriority.MEDIUM,
        status: TicketStatus = TicketStatus.NEW,
        assignee: Optional[User] = None,
    ) -> ServiceRequest:
        """Create a service request for testing."""
        return await _save(
            session,
            ServiceRequest(
                org_id=requester.org_id,
                title=title,
                priority=priority,
                status=status,
                requester_user_id=requester.id,
                assignee_user_id=assignee.id if assignee else None,
            ),
        )


class ProblemFactory:
    """Factory for creating Problem test instances."""

    @staticmethod
    async def create(
        session: AsyncSession,
        organization: Organization,
        title: str = "Recurring printer fires",
        assigned: Optional[User] = None,
        related_incidents: Optional[List[int]] = None,
    ) -> Problem:
        """Create a problem for testing (unassigned unless `assigned` is given)."""
        return await _save(
            session,
            Problem(
                org_id=organization.id,
                title=title,
                status=TicketStatus.NEW,
                priority=TicketPriority.MEDIUM,
                assigned_user_id=assigned.id if assigned else None,
                related_incidents=related_incidents or [],
            ),
        )


class ChangeFactory:
    """Factory for creating Change test instances."""

    @staticmethod
    async def create(
        session: AsyncSession,
        requester: User,
        title: str = "Replace core switch",
        reason: str = "End of life hardware",
        status: ChangeStatus = ChangeStatus.DRAFT,
        risk: ChangeRisk = ChangeRisk.MEDIUM,
        scheduled_start: Optional[datetime] = None,
        scheduled_end: Optional[datetime] = None,
        assigned: Optional[User] = None,
    ) -> Change:
        """Create a change for testing (draft by default)."""
        return await _save(
            session,
            Change(
                org_id=requester.org_id,
                title=title,
                reason=reason,
                status=status,
                risk=risk,
                requester_user_id=requester.id,
                assigned_user_id=assigned.id if assigned else None,
                scheduled_start=scheduled_start,
                scheduled_end=scheduled_end,
            ),
        )


class UnifiedTicketFactory:
    """Factory for creating UnifiedTicket test instances."""

    @staticmethod
    async def create(
        session: AsyncSession,
        requester: User,
        type: UnifiedTicketKind = UnifiedTicketKind.INCIDENT,
        title: str = "VPN drops",
        description: str = "Disconnects every few minutes",
        priority: TicketPriority = TicketPriority.MEDIUM,
        assignee: Optional[User] = None,
    ) -> UnifiedTicket:
        """Create a unified ticket with its legacy SLA deadline."""
        return await _save(
            session,
            UnifiedTicket(
                org_id=requester.org_id,
                type=type,
                title=title,
                description=description,
                priority=priority,
                status=TicketStatus.NEW,
                requester_user_id=requester.id,
                assignee_user_id=assignee.id if assignee else None,
                breach_at=compute_legacy_breach_at(priority),
            ),
        )


class CatalogItemFactory:
    """Factory for creating ServiceCatalogItem test instances."""

    @staticmethod
    async def create(
        session: AsyncSession,
        organization: Organization,
        name: str = "Laptop",
        description: Optional[str] = "Standard issue laptop",
        category: Optional[str] = "Hardware",
        form_schema: Optional[Dict[str, Any]] = None,
        is_active: bool = True,
    ) -> ServiceCatalogItem:
        """Create a catalog item for testing."""
        return await _save(
            session,
            ServiceCatalogItem(
                org_id=organization.id,
                name=name,
                description=description,
                category=category,
                form_schema=form_schema,
                is_active=is_active,
            ),
        )


class DeviceFactory:
    """Factory for creating Device test instances."""

    _counter = 0

    @staticmethod
    async def create(
        session: AsyncSession,
        organization: Organization,
        owner: Optional[User] = None,
        hostname: Optional[str] = None,
        status: DeviceStatus = DeviceStatus.ACTIVE,
        tags: Optional[List[str]] = None,
    ) -> Device:
        """Create a device for testing."""
        if hostname is None:
            DeviceFactory._counter += 1
            hostname = f"host-{DeviceFactory._counter:03d}"

        return await _save(
            session,
            Device(
                org_id=organization.id,
                owner_user_id=owner.id if owner else None,
                hostname=hostname,
                os="linux",
                status=status,
                tags=tags or [],
            ),
        )

    @staticmethod
    async def create_retired(session: AsyncSession, organization: Organization, **kwargs: Any) -> Device:
        """Create a retired (locked) device."""
        return await DeviceFactory.create(
            session, organization, status=DeviceStatus.RETIRED, **kwargs
        )


class DevicePolicyFactory:
    """Factory for creating DevicePolicy test instances."""

    @staticmethod
    async def create(
        session: AsyncSession,
        organization: Organization,
        name: str = "Disk encryption",
    ) -> DevicePolicy:
        """Create a device policy for testing."""
        return await _save(
            session,
            DevicePolicy(org_id=organization.id, name=name, platform="linux", enabled=True),
        )


class DeviceActivityFactory:
    """Factory for creating DeviceActivity (queued job) test instances."""

    @staticmethod
    async def create(
        session: AsyncSession,
        device: Device,
        action: str = "restart",
        initiated_by: Optional[User] = None,
        status: ActivityStatus = ActivityStatus.QUEUED,
        details: Optional[Dict[str, Any]] = None,
        updated_at: Optional[datetime] = None,
    ) -> DeviceActivity:
        """Create a device activity row for testing."""
        activity = DeviceActivity(
            device_id=device.id,
            org_id=device.org_id,
            action=action,
            initiated_by=initiated_by.id if initiated_by else None,
            status=status,
            details=details or {},
        )
        if updated_at is not None:
            activity.updated_at = updated_at
        return await _save(session, activity)
