"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from rook.dao.base import BaseDAO
from rook.dao.ticket import (
    TicketAdapter,
    IncidentAdapter,
    ServiceRequestAdapter,
    ProblemAdapter,
    ChangeAdapter,
    TICKET_ADAPTERS,
    get_ticket_adapter,
    ServiceCatalogDAO,
    UnifiedTicketDAO,
)
from rook.dao.comment import CommentGateway, CommentStore, CommentRecord, StorageResult, StorageOutcome
from rook.dao.attachment import TicketAttachmentDAO
from rook.dao.history import TicketHistoryDAO
from rook.dao.device import DeviceDAO, DevicePolicyAssignmentDAO, DeviceActivityDAO

__all__ = [
    "BaseDAO",
    "TicketAdapter",
    "IncidentAdapter",
    "ServiceRequestAdapter",
    "ProblemAdapter",
    "ChangeAdapter",
    "TICKET_ADAPTERS",
    "get_ticket_adapter",
    "ServiceCatalogDAO",
    "UnifiedTicketDAO",
    "CommentGateway",
    "CommentStore",
    "CommentRecord",
    "StorageResult",
    "StorageOutcome",
    "TicketAttachmentDAO",
    "TicketHistoryDAO",
    "DeviceDAO",
    "DevicePolicyAssignmentDAO",
    "DeviceActivityDAO",
]
