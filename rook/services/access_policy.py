"""
Resource access policy.

WHAT: Pure decision functions for who may read or write a ticket or device.

WHY: Every ticket type and every device path asks the same question
("may this actor touch a resource owned by these users?"). Answering it in
one place keeps the four ticket types and the device routes consistent.

HOW: No I/O. Organization scoping happens before these functions are
called; the DAOs only return rows from the actor's organization, so the
policy decides intra-organization visibility only. Destructive operations
add a second, role-specific gate (require_admin) on top.
"""

from dataclasses import dataclass
from typing import Optional

from rook.core.exceptions import AuthorizationError, InsufficientRoleError
from rook.models.user import UserRole


@dataclass(frozen=True)
class Actor:
    """
    The authenticated caller, already resolved to a user and organization.

    Built by rook.core.deps from the bearer token; services never see the
    User ORM row.
    """

    user_id: int
    role: UserRole
    org_id: int

    @property
    def is_staff(self) -> bool:
        """Admins and agents see every resource in their organization."""
        return self.role in (UserRole.ADMIN, UserRole.AGENT)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True)
class ResourceOwners:
    """
    Ownership identifiers of a resource.

    Problems only carry an assignee; devices carry their owner as the
    requester slot.
    """

    requester_id: Optional[int] = None
    assignee_id: Optional[int] = None


def can_access(actor: Actor, owners: ResourceOwners) -> bool:
    """
    Decide whether the actor may read/write a resource.

    Rules:
    - admin and agent: always
    - user: only when they are the requester or the assignee

    A resource with no owner ids is not visible to plain users.

    Args:
        actor: Authenticated caller
        owners: Ownership ids of the resource

    Returns:
        True if access is allowed
    """
    if actor.is_staff:
        return True

    return actor.user_id in {
        owner_id
        for owner_id in (owners.requester_id, owners.assignee_id)
        if owner_id is not None
    }


def ensure_access(actor: Actor, owners: ResourceOwners, resource: str, resource_id: int) -> None:
    """
    Raise AuthorizationError when can_access denies.

    Args:
        actor: Authenticated caller
        owners: Ownership ids of the resource
        resource: Resource kind for error context ("incident", "device")
        resource_id: Resource id for error context

    Raises:
        AuthorizationError: If the actor may not access the resource
    """
    if not can_access(actor, owners):
        raise AuthorizationError(
            message=f"Access to {resource} denied",
            resource=resource,
            resource_id=resource_id,
            user_id=actor.user_id,
        )


def has_role(actor: Actor, minimum: UserRole) -> bool:
    """Role hierarchy check (admin > agent > user)."""
    return actor.role.rank >= minimum.rank


def require_role(actor: Actor, minimum: UserRole, operation: str) -> None:
    """
    Raise InsufficientRoleError unless the actor holds at least `minimum`.

    Raises:
        InsufficientRoleError: If the actor's role is too low
    """
    if not has_role(actor, minimum):
        raise InsufficientRoleError(
            message=f"{minimum.value} role required for {operation}",
            user_id=actor.user_id,
            user_role=actor.role.value,
            required_role=minimum.value,
        )


def require_admin(actor: Actor, operation: str) -> None:
    """
    Gate a destructive operation on the admin role.

    WHY: Device lock/wipe/isolate and change approval override the
    ownership rule; even an agent who can see the resource may not do them.

    Raises:
        InsufficientRoleError: If the actor is not an admin
    """
    if not actor.is_admin:
        raise InsufficientRoleError(
            message=f"Admin role required for {operation}",
            user_id=actor.user_id,
            user_role=actor.role.value,
            required_role=UserRole.ADMIN.value,
        )
