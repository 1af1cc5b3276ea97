"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from rook.models.base import Base, TimestampMixin, PrimaryKeyMixin
from rook.models.organization import Organization
from rook.models.user import User, UserRole
from rook.models.ticket import (
    TicketType,
    TicketStatus,
    ChangeStatus,
    TicketPriority,
    ChangeRisk,
    Incident,
    ServiceRequest,
    Problem,
    Change,
    ServiceCatalogItem,
    UnifiedTicket,
    UnifiedTicketKind,
)
from rook.models.sub_resource import (
    TicketComment,
    LegacyComment,
    TicketAttachment,
    TicketHistory,
)
from rook.models.device import (
    Device,
    DeviceStatus,
    DevicePolicy,
    DevicePolicyAssignment,
    PolicyAssignmentStatus,
    DeviceActivity,
    ActivityStatus,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "PrimaryKeyMixin",
    "Organization",
    "User",
    "UserRole",
    "TicketType",
    "TicketStatus",
    "ChangeStatus",
    "TicketPriority",
    "ChangeRisk",
    "Incident",
    "ServiceRequest",
    "Problem",
    "Change",
    "ServiceCatalogItem",
    "UnifiedTicket",
    "UnifiedTicketKind",
    "TicketComment",
    "LegacyComment",
    "TicketAttachment",
    "TicketHistory",
    "Device",
    "DeviceStatus",
    "DevicePolicy",
    "DevicePolicyAssignment",
    "PolicyAssignmentStatus",
    "DeviceActivity",
    "ActivityStatus",
]
