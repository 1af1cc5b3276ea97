"""
Device models.

WHAT: Fleet devices, device policies and the device activity log.

WHY: Devices are the targets of bulk and single device actions. Every
action leaves a DeviceActivity row; for queued actions that row *is* the
job record, so its status is the only place a worker failure shows up.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from rook.models.base import Base, PrimaryKeyMixin, TimestampMixin, enum_column


class DeviceStatus(str, Enum):
    """Device lifecycle status. Locking a device retires it."""

    ACTIVE = "active"
    RETIRED = "retired"


class ActivityStatus(str, Enum):
    """
    Device activity (job) states.

    queued → processing → completed, or failed with an error recorded.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PolicyAssignmentStatus(str, Enum):
    """Policy push status on a device."""

    PENDING = "pending"
    APPLIED = "applied"
    FAILED = "failed"


class Device(Base, PrimaryKeyMixin, TimestampMixin):
    """Managed endpoint owned by (at most) one user."""

    __tablename__ = "devices"

    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id"), nullable=False, index=True
    )
    owner_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    hostname: Mapped[str] = mapped_column(String(255), nullable=False)
    os: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[DeviceStatus] = mapped_column(
        enum_column(DeviceStatus, "device_status"),
        default=DeviceStatus.ACTIVE,
        nullable=False,
    )
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Device(id={self.id}, hostname={self.hostname}, status={self.status})>"


class DevicePolicy(Base, PrimaryKeyMixin, TimestampMixin):
    """Configuration policy that can be pushed to devices."""

    __tablename__ = "device_policies"

    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    platform: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class DevicePolicyAssignment(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Policy assigned to a device.

    WHY: Unique on (device_id, policy_id) so pushing the same policy twice
    is a no-op rather than a duplicate.
    """

    __tablename__ = "device_policy_assignments"

    device_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("devices.id"), nullable=False
    )
    policy_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("device_policies.id"), nullable=False
    )
    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id"), nullable=False
    )
    status: Mapped[PolicyAssignmentStatus] = mapped_column(
        enum_column(PolicyAssignmentStatus, "policy_assignment_status"),
        default=PolicyAssignmentStatus.PENDING,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("device_id", "policy_id", name="uq_device_policy_assignment"),
    )


class DeviceActivity(Base, PrimaryKeyMixin, TimestampMixin):
    """
    One device action invocation.

    The metadata column holds the action params; it is mapped as `details`
    because `metadata` is reserved on declarative classes.
    """

    __tablename__ = "device_activity"

    device_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("devices.id"), nullable=False
    )
    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    initiated_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    status: Mapped[ActivityStatus] = mapped_column(
        enum_column(ActivityStatus, "activity_status"),
        default=ActivityStatus.QUEUED,
        nullable=False,
    )
    details: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_device_activity_device", "device_id", "org_id"),
        Index("ix_device_activity_status", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<DeviceActivity(id={self.id}, action={self.action}, status={self.status})>"
