"""
User model.

WHY: Users carry the role the access policy decides on and the org_id that
scopes every request. Identity and credentials live with the external
identity provider; this table only mirrors what authorization needs.
"""

import enum

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from rook.models.base import Base, TimestampMixin, PrimaryKeyMixin, enum_column


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    WHY: Roles form a hierarchy (admin > agent > user). Admin and agent see
    every ticket in their organization; user sees only tickets they own.
    """

    ADMIN = "admin"
    AGENT = "agent"
    USER = "user"

    @property
    def rank(self) -> int:
        """Position in the role hierarchy, higher is more privileged."""
        return ROLE_RANKS[self]


ROLE_RANKS = {
    UserRole.USER: 1,
    UserRole.AGENT: 2,
    UserRole.ADMIN: 3,
}


class User(Base, PrimaryKeyMixin, TimestampMixin):
    """User within exactly one organization."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # WHY: Least privilege by default
    role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole, "user_role"), nullable=False, default=UserRole.USER
    )

    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
