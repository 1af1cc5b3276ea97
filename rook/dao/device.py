"""
Device Data Access Objects.

WHAT: Persistence for devices, policy assignments and the device activity
log that doubles as the device action queue.

WHY: Bulk and single device actions mutate devices one statement at a
time, scoped by (id, org_id). The activity DAO gives the worker explicit
state transitions (queued → processing → completed | failed) instead of
ad-hoc UPDATE strings.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rook.dao.base import BaseDAO
from rook.models.device import (
    ActivityStatus,
    Device,
    DeviceActivity,
    DevicePolicy,
    DevicePolicyAssignment,
    DeviceStatus,
    PolicyAssignmentStatus,
)


class DeviceDAO(BaseDAO[Device]):
    """Data Access Object for devices."""

    def __init__(self, session: AsyncSession):
        super().__init__(Device, session)

    async def assign_owner(self, device_id: int, org_id: int, user_id: int) -> Optional[Device]:
        return await self.update_in_org(
            device_id, org_id, owner_user_id=user_id, updated_at=datetime.utcnow()
        )

    async def set_status(self, device_id: int, org_id: int, status: DeviceStatus) -> Optional[Device]:
        return await self.update_in_org(
            device_id, org_id, status=status, updated_at=datetime.utcnow()
        )

    async def rename(self, device_id: int, org_id: int, hostname: str) -> Optional[Device]:
        return await self.update_in_org(
            device_id, org_id, hostname=hostname, updated_at=datetime.utcnow()
        )

    async def set_tags(self, device_id: int, org_id: int, tags: List[str]) -> Optional[Device]:
        """Replace the device's tag list."""
        return await self.update_in_org(
            device_id, org_id, tags=list(tags), updated_at=datetime.utcnow()
        )


class DevicePolicyAssignmentDAO(BaseDAO[DevicePolicyAssignment]):
    """Data Access Object for policy assignments."""

    def __init__(self, session: AsyncSession):
        super().__init__(DevicePolicyAssignment, session)

    async def policy_exists(self, policy_id: int, org_id: int) -> bool:
        result = await self.session.execute(
            select(DevicePolicy.id).where(
                DevicePolicy.id == policy_id,
                DevicePolicy.org_id == org_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def assign_pending(self, device_id: int, policy_id: int, org_id: int) -> DevicePolicyAssignment:
        """
        Assign a policy to a device as pending.

        Idempotent: an existing assignment is returned unchanged.
        """
        result = await self.session.execute(
            select(DevicePolicyAssignment).where(
                DevicePolicyAssignment.device_id == device_id,
                DevicePolicyAssignment.policy_id == policy_id,
            )
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            return existing

        return await self.create(
            device_id=device_id,
            policy_id=policy_id,
            org_id=org_id,
            status=PolicyAssignmentStatus.PENDING,
        )


class DeviceActivityDAO(BaseDAO[DeviceActivity]):
    """
    Data Access Object for device activity.

    Rows in QUEUED status are the pending jobs of the device action worker.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(DeviceActivity, session)

    async def enqueue(
        self,
        device_id: int,
        org_id: int,
        action: str,
        initiated_by: Optional[int],
        params: Optional[Dict[str, Any]] = None,
    ) -> DeviceActivity:
        """Record an action in QUEUED status."""
        return await self.create(
            device_id=device_id,
            org_id=org_id,
            action=action,
            initiated_by=initiated_by,
            status=ActivityStatus.QUEUED,
            details=dict(params or {}),
        )

    async def list_for_device(self, device_id: int, org_id: int, limit: int = 100) -> List[DeviceActivity]:
        """Activity of a device, newest first."""
        result = await self.session.execute(
            select(DeviceActivity)
            .where(DeviceActivity.device_id == device_id, DeviceActivity.org_id == org_id)
            .order_by(DeviceActivity.created_at.desc(), DeviceActivity.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_queued(self, limit: int) -> List[DeviceActivity]:
        """Oldest queued activities across all organizations."""
        result = await self.session.execute(
            select(DeviceActivity)
            .where(DeviceActivity.status == ActivityStatus.QUEUED)
            .order_by(DeviceActivity.created_at.asc(), DeviceActivity.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def claim(self, activity_id: int) -> bool:
        """
        Move an activity from QUEUED to PROCESSING.

        WHY: The WHERE on status makes the claim atomic; if another worker
        got there first, zero rows change and this worker skips the job.

        Returns:
            True if this call claimed the activity
        """
        result = await self.session.execute(
            update(DeviceActivity)
            .where(
                DeviceActivity.id == activity_id,
                DeviceActivity.status == ActivityStatus.QUEUED,
            )
            .values(status=ActivityStatus.PROCESSING, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def fail_stale_claims(self, older_than: datetime, error: str) -> List[int]:
        """
        Mark PROCESSING activities last touched before `older_than` as FAILED.

        WHY: A worker that dies between claim and outcome leaves the row in
        PROCESSING forever. Such rows are failed rather than re-queued, since
        the action may already have reached the device.

        Returns:
            IDs of the activities that were failed
        """
        now = datetime.utcnow()
        result = await self.session.execute(
            update(DeviceActivity)
            .where(
                DeviceActivity.status == ActivityStatus.PROCESSING,
                DeviceActivity.updated_at < older_than,
            )
            .values(status=ActivityStatus.FAILED, error=error, completed_at=now, updated_at=now)
            .returning(DeviceActivity.id)
            .execution_options(synchronize_session=False)
        )
        return [row[0] for row in result.all()]

    async def mark_completed(self, activity_id: int) -> None:
        now = datetime.utcnow()
        await self.session.execute(
            update(DeviceActivity)
            .where(DeviceActivity.id == activity_id)
            .values(status=ActivityStatus.COMPLETED, completed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )

    async def mark_failed(self, activity_id: int, error: str) -> None:
        now = datetime.utcnow()
        await self.session.execute(
            update(DeviceActivity)
            .where(DeviceActivity.id == activity_id)
            .values(status=ActivityStatus.FAILED, error=error, completed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
