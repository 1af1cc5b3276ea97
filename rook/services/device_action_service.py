"""
Device Action Service.

WHAT: Queues single-device actions and runs them in the background.

WHY: Device actions (install an app, rotate a key, wipe) take longer than a
request should. The request only records the action as a queued
DeviceActivity row; a scheduler job picks queued rows up, runs them and
records the outcome:
1. queued: accepted by the API
2. processing: claimed by a worker run
3. completed / failed: final, with completed_at and the error text

HOW: DeviceActionService handles the request side (checks + enqueue).
DeviceActionWorker is the APScheduler job; it opens its own sessions, since
it runs outside any request.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from rook.core.config import settings
from rook.core.exceptions import DeviceActionError, DeviceNotFoundError
from rook.dao.device import DeviceActivityDAO, DeviceDAO
from rook.db.session import AsyncSessionLocal
from rook.models.device import Device, DeviceActivity, DeviceStatus
from rook.services.access_policy import Actor, ResourceOwners, ensure_access, require_admin


logger = logging.getLogger(__name__)


# Single-device actions that require the admin role
DESTRUCTIVE_DEVICE_ACTIONS = frozenset({"wipe", "isolate"})

# Actions a retired device still accepts
RETIRED_DEVICE_ACTIONS = frozenset({"wipe", "lock"})

KNOWN_DEVICE_ACTIONS = frozenset({"installApp", "rotateKey", "isolate", "restart", "wipe", "lock"})


class DeviceActionService:
    """
    Request-side device action operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.device_dao = DeviceDAO(session)
        self.activity_dao = DeviceActivityDAO(session)

    async def _get_device(self, actor: Actor, device_id: int) -> Device:
        """
        Org-scoped device lookup followed by the ownership check.

        Raises:
            DeviceNotFoundError: If the device is not in the actor's org
            AuthorizationError: If the actor may not act on the device
        """
        device = await self.device_dao.get_by_id_and_org(device_id, actor.org_id)
        if device is None:
            raise DeviceNotFoundError(device_id=device_id)

        ensure_access(actor, ResourceOwners(requester_id=device.owner_user_id), "device", device_id)
        return device

    async def enqueue(
        self,
        actor: Actor,
        device_id: int,
        action: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> DeviceActivity:
        """
        Queue an action for a device.

        WHAT: Unknown action names are accepted and fail in the worker, so
        the refusal is recorded on the device's activity log.

        Args:
            actor: Authenticated caller
            device_id: Target device
            action: Action name
            params: Action parameters, stored as the activity metadata

        Returns:
            The queued DeviceActivity

        Raises:
            DeviceNotFoundError: Device not in the actor's org
            AuthorizationError: Ownership check failed
            InsufficientRoleError: wipe/isolate by a non-admin
        """
        device = await self._get_device(actor, device_id)

        if action in DESTRUCTIVE_DEVICE_ACTIONS:
            require_admin(actor, f"device {action}")

        activity = await self.activity_dao.enqueue(
            device.id, actor.org_id, action, actor.user_id, params
        )

        logger.info(
            f"Queued {action} for device {device.id} as activity {activity.id} by user {actor.user_id}"
        )
        return activity

    async def list_activity(self, actor: Actor, device_id: int) -> List[DeviceActivity]:
        """Activity of a device, newest first."""
        device = await self._get_device(actor, device_id)
        return await self.activity_dao.list_for_device(device.id, actor.org_id)


class DeviceActionExecutor:
    """
    Carries out one claimed activity.

    WHAT: Validates the action against the device's current state and
    hands it to the device channel. Raises DeviceActionError for anything
    the worker should record as failed.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.device_dao = DeviceDAO(session)

    async def execute(self, activity: DeviceActivity) -> None:
        """
        Run one activity.

        Raises:
            DeviceActionError: Unknown action, missing parameter, or a
                device that no longer accepts the action
        """
        if activity.action not in KNOWN_DEVICE_ACTIONS:
            raise DeviceActionError(message=f"Unknown action: {activity.action}")

        device = await self.device_dao.get_by_id_and_org(activity.device_id, activity.org_id)
        if device is None:
            raise DeviceActionError(message="Device not found")

        if device.status == DeviceStatus.RETIRED and activity.action not in RETIRED_DEVICE_ACTIONS:
            raise DeviceActionError(message=f"Device is retired; {activity.action} not allowed")

        params = activity.details or {}
        if activity.action == "installApp" and not params.get("packageId"):
            raise DeviceActionError(message="packageId required for installApp")

        if activity.action == "lock":
            await self.device_dao.set_status(device.id, device.org_id, DeviceStatus.RETIRED)

        logger.info(f"Dispatched {activity.action} to device {device.id} ({device.hostname})")


class DeviceActionWorker:
    """
    Background worker draining the device action queue.

    WHAT: Scheduled job that processes queued DeviceActivity rows, oldest
    first.

    HOW: For each queued row: claim it (queued → processing) and commit, so
    a concurrent run skips it; execute; then record completed or failed and
    commit again. One session per activity, so one failure cannot roll back
    another activity's outcome.

    Example:
        worker = DeviceActionWorker()
        await worker.process_pending()
    """

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        """
        Initialize the worker.

        Args:
            session_factory: Factory for database sessions. Defaults to the
                application's AsyncSessionLocal.
        """
        self._session_factory = session_factory or AsyncSessionLocal

    async def _pending_ids(self, limit: int) -> List[int]:
        async with self._session_factory() as session:
            queued = await DeviceActivityDAO(session).get_queued(limit)
            return [activity.id for activity in queued]

    async def fail_stale_claims(self, now: Optional[datetime] = None) -> List[int]:
        """
        Fail activities stuck in processing past DEVICE_ACTION_STALE_SECONDS.

        Returns:
            IDs of the activities that were failed
        """
        now = now or datetime.utcnow()
        cutoff = now - timedelta(seconds=settings.DEVICE_ACTION_STALE_SECONDS)
        async with self._session_factory() as session:
            failed = await DeviceActivityDAO(session).fail_stale_claims(
                cutoff, "Worker stopped while processing action"
            )
            await session.commit()

        if failed:
            logger.warning(f"Failed {len(failed)} stale device action claims: {failed}")
        return failed

    async def process_pending(self, limit: Optional[int] = None) -> Dict[str, int]:
        """
        Main job function: process up to `limit` queued activities.

        Returns:
            Dict with counts of claimed, completed, failed and stale activities
        """
        limit = limit or settings.DEVICE_ACTION_BATCH_SIZE
        stats = {"claimed": 0, "completed": 0, "failed": 0, "stale": 0}

        stats["stale"] = len(await self.fail_stale_claims())

        for activity_id in await self._pending_ids(limit):
            outcome = await self._process_one(activity_id)
            if outcome is None:
                continue
            stats["claimed"] += 1
            stats[outcome] += 1

        if stats["claimed"]:
            logger.info(
                f"Device action run: {stats['completed']} completed, {stats['failed']} failed"
            )
        return stats

    async def _process_one(self, activity_id: int) -> Optional[str]:
        """Returns "completed", "failed", or None when another run claimed it."""
        async with self._session_factory() as session:
            dao = DeviceActivityDAO(session)

            if not await dao.claim(activity_id):
                await session.rollback()
                return None
            await session.commit()

            activity = await dao.get_by_id(activity_id)
            # Rollback expires the instance; keep the name for logging
            action = activity.action
            started = datetime.utcnow()

            try:
                await DeviceActionExecutor(session).execute(activity)
            except DeviceActionError as e:
                await session.rollback()
                logger.error(f"Device action {activity_id} ({action}) failed: {e.message}")
                await dao.mark_failed(activity_id, e.message)
                await session.commit()
                return "failed"
            except Exception:
                await session.rollback()
                logger.exception(f"Unexpected error in device action {activity_id}")
                await dao.mark_failed(activity_id, "Internal error while executing action")
                await session.commit()
                return "failed"

            await dao.mark_completed(activity_id)
            await session.commit()
            logger.info(
                f"Device action {activity_id} ({action}) completed in "
                f"{(datetime.utcnow() - started).total_seconds():.2f}s"
            )
            return "completed"


# Global service instance
_device_action_worker: Optional[DeviceActionWorker] = None


def get_device_action_worker() -> DeviceActionWorker:
    """Get or create the device action worker instance."""
    global _device_action_worker
    if _device_action_worker is None:
        _device_action_worker = DeviceActionWorker()
    return _device_action_worker
