"""
Device API endpoints.

WHAT: Bulk device actions, single queued device actions and the device
activity log.

WHY: Device management is staff work: bulk and single actions need at
least the agent role, and the destructive ones (lock/wipe in bulk,
wipe/isolate singly) need admin. The activity log is how callers observe
queued actions completing or failing.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from rook.core.deps import get_actor, require_role
from rook.db.session import get_db
from rook.models.user import UserRole
from rook.schemas.device import (
    BulkActionRequest,
    BulkActionResponse,
    DeviceActionRequest,
    DeviceActionResponse,
    DeviceActivityResponse,
)
from rook.services.access_policy import Actor
from rook.services.bulk_action_service import BulkActionProcessor
from rook.services.device_action_service import DeviceActionService


router = APIRouter(prefix="/devices", tags=["devices"])


@router.post(
    "/bulk",
    response_model=BulkActionResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
async def bulk_device_action(
    data: BulkActionRequest,
    actor: Actor = Depends(require_role(UserRole.AGENT)),
    db: AsyncSession = Depends(get_db),
):
    """
    Apply one action to many devices.

    WHAT: Always 200 once the batch runs; per-device failures are listed in
    the response. failures is omitted when every device succeeded.

    Raises:
        InsufficientRoleError (403): Plain user, or lock/wipe by a non-admin
        RequestValidationError (400): Empty device_ids or missing action
    """
    result = await BulkActionProcessor(db).process(actor, data.device_ids, data.action, data.params)
    return result.to_dict()


@router.post(
    "/{device_id}/actions",
    response_model=DeviceActionResponse,
    status_code=status.HTTP_200_OK,
)
async def queue_device_action(
    device_id: int,
    data: DeviceActionRequest,
    actor: Actor = Depends(require_role(UserRole.AGENT)),
    db: AsyncSession = Depends(get_db),
):
    """
    Queue an action for one device.

    Raises:
        DeviceNotFoundError (404): Device not in the caller's organization
        InsufficientRoleError (403): wipe/isolate by a non-admin
    """
    activity = await DeviceActionService(db).enqueue(actor, device_id, data.action, data.params)
    return DeviceActionResponse(action_id=activity.id, status=activity.status)


@router.get(
    "/{device_id}/activity",
    response_model=List[DeviceActivityResponse],
    status_code=status.HTTP_200_OK,
)
async def list_device_activity(
    device_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    A device's activity log, newest first.

    Raises:
        DeviceNotFoundError (404): Device not in the caller's organization
        AuthorizationError (403): Plain user who does not own the device
    """
    return await DeviceActionService(db).list_activity(actor, device_id)
