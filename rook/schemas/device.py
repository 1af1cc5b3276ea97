"""
Pydantic schemas for device endpoints.

WHY: Bulk actions report per-device outcomes; the response shape keeps
processed and failed ids separate so a client can retry only the failures.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from rook.models.device import ActivityStatus


class BulkActionRequest(BaseModel):
    """
    Bulk device action request.

    WHAT: One action applied to many devices. Unknown actions are accepted
    here and reported per device, so a partially supported batch still runs.
    A device id listed twice is processed and reported twice.
    """

    device_ids: List[int] = Field(..., min_length=1, description="Target device ids")
    action: str = Field(..., min_length=1, max_length=50, description="Action name")
    params: Dict[str, Any] = Field(default_factory=dict, description="Action parameters")


class BulkFailure(BaseModel):
    """Why one device was not processed."""

    device_id: int
    error: str


class BulkActionResponse(BaseModel):
    """
    Bulk device action outcome.

    success is true only when no device failed. failures is omitted when
    empty.
    """

    success: bool
    processed: int
    failed: int
    processed_ids: List[int] = Field(default_factory=list)
    failures: Optional[List[BulkFailure]] = None


class DeviceActionRequest(BaseModel):
    """Single device action request (queued for the worker)."""

    action: str = Field(..., min_length=1, max_length=50)
    params: Dict[str, Any] = Field(default_factory=dict)


class DeviceActionResponse(BaseModel):
    """Queued action acknowledgement."""

    action_id: int
    status: ActivityStatus


class DeviceActivityResponse(BaseModel):
    """One device activity entry."""

    id: int
    device_id: int
    action: str
    initiated_by: Optional[int] = None
    status: ActivityStatus
    details: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
