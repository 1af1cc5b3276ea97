"""
FastAPI dependencies for authentication and authorization.

WHY: Dependencies provide reusable authentication and authorization logic
that can be injected into route handlers, so every router resolves the
caller, the organization and the ticket type the same way.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rook.core.auth import verify_token
from rook.core.exceptions import (
    AuthenticationError,
    InvalidTicketTypeError,
    TokenExpiredError,
    TokenInvalidError,
)
from rook.db.session import get_db
from rook.models.ticket import TicketType
from rook.models.user import User, UserRole
from rook.services import access_policy
from rook.services.access_policy import Actor


# HTTP Bearer token security scheme
# WHY: auto_error=False so a missing header goes through AuthenticationError
# and answers 401 like every other authentication failure.
security = HTTPBearer(auto_error=False)

# URL collection segment → ticket type. Sub-resource routes are shared by
# all four collections.
TICKET_TYPE_SEGMENTS = {
    "incidents": TicketType.INCIDENT,
    "service-requests": TicketType.SERVICE_REQUEST,
    "problems": TicketType.PROBLEM,
    "changes": TicketType.CHANGE,
}


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user from JWT token.

    WHY: This dependency:
    1. Extracts token from Authorization header
    2. Verifies token signature and expiration
    3. Fetches user from database
    4. Ensures user still exists and is active

    Args:
        credentials: JWT token from Authorization header
        db: Database session

    Returns:
        Authenticated User instance

    Raises:
        AuthenticationError: If token is missing, invalid, expired, or the
            user is not found
    """
    if credentials is None:
        raise AuthenticationError(message="Missing bearer token")

    try:
        payload = verify_token(credentials.credentials)
    except (TokenExpiredError, TokenInvalidError) as e:
        # WHY: Re-raise as AuthenticationError for consistent API responses
        raise AuthenticationError(message=str(e), status_code=e.status_code)

    user_id = payload.get("user_id")
    if not user_id:
        raise AuthenticationError(message="Invalid token: missing user_id")

    # WHY: Role and organization in the token might be stale; always fetch
    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError(message="User not found", user_id=user_id)

    if not user.is_active:
        raise AuthenticationError(message="User account is inactive", user_id=user_id)

    return user


async def get_actor(current_user: User = Depends(get_current_user)) -> Actor:
    """
    Resolve the authenticated user to the Actor the services work with.

    WHY: Services take (user id, role, org) only, never the ORM row, so they
    can be unit tested without a session.
    """
    return Actor(
        user_id=current_user.id,
        role=UserRole(current_user.role),
        org_id=current_user.org_id,
    )


def require_role(minimum: UserRole):
    """
    Factory function to create a role requirement dependency.

    WHY: Roles are hierarchical (admin > agent > user), so a route that
    needs an agent also admits admins.

    Usage:
        @router.post("/devices/bulk")
        async def bulk(actor: Actor = Depends(require_role(UserRole.AGENT))):
            ...

    Args:
        minimum: Lowest role admitted

    Returns:
        Dependency function that resolves the Actor after the role check
    """

    async def role_checker(actor: Actor = Depends(get_actor)) -> Actor:
        access_policy.require_role(actor, minimum, operation="this endpoint")
        return actor

    return role_checker


async def get_ticket_type(ticket_collection: str) -> TicketType:
    """
    Map the {ticket_collection} path segment to a TicketType.

    Raises:
        InvalidTicketTypeError: If the segment is not a ticket collection
    """
    try:
        return TICKET_TYPE_SEGMENTS[ticket_collection]
    except KeyError:
        raise InvalidTicketTypeError(
            message=f"Invalid ticket type: {ticket_collection}",
            ticket_collection=ticket_collection,
        )
