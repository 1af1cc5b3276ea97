"""
Organization model.

WHY: Organizations are the tenant boundary. Every ticket, sub-resource and
device row carries org_id, and every query filters on it.
"""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from rook.models.base import Base, TimestampMixin, PrimaryKeyMixin


class Organization(Base, PrimaryKeyMixin, TimestampMixin):
    """Tenant in the multi-tenant system."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name})>"
