"""
Bulk device action processor.

WHAT: Applies one action to many devices and reports a per-device outcome.

WHY: A batch must not stop at the first bad device. Missing devices,
devices in another organization, missing parameters and storage errors
all become entries in the result, and the remaining devices are still
processed.

HOW: Devices are processed sequentially in request order. Each device runs
in its own SAVEPOINT so a storage error rolls back that device only.
Action handlers are looked up in a table keyed by action name; an unknown
action fails each target individually. Cancellation of the request task
propagates out of the loop (CancelledError is not caught).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rook.dao.device import DeviceActivityDAO, DeviceDAO, DevicePolicyAssignmentDAO
from rook.models.device import Device, DeviceStatus
from rook.services.access_policy import Actor, ResourceOwners, can_access, require_admin


logger = logging.getLogger(__name__)

# Actions that require the admin role for the whole batch
DESTRUCTIVE_BULK_ACTIONS = frozenset({"lock", "wipe"})

DEVICE_NOT_FOUND = "Device not found"
ACCESS_DENIED = "Access denied"
STORAGE_FAILURE = "Storage error"


@dataclass
class BulkActionResult:
    """
    Outcome of a bulk action.

    processed_ids and failures are in request order.
    """

    processed_ids: List[int] = field(default_factory=list)
    failures: List[Tuple[int, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def processed(self) -> int:
        return len(self.processed_ids)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the API; failures is omitted when empty."""
        data: Dict[str, Any] = {
            "success": self.success,
            "processed": self.processed,
            "failed": self.failed,
            "processed_ids": list(self.processed_ids),
        }
        if self.failures:
            data["failures"] = [
                {"device_id": device_id, "error": error} for device_id, error in self.failures
            ]
        return data


# A handler returns None on success or the failure message
ActionHandler = Callable[[Device, Actor, Dict[str, Any]], Awaitable[Optional[str]]]


class BulkActionProcessor:
    """
    Processor for bulk device actions.

    Usage:
        processor = BulkActionProcessor(session)
        result = await processor.process(actor, [1, 2, 3], "tag", {"tags": ["lab"]})
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.device_dao = DeviceDAO(session)
        self.assignment_dao = DevicePolicyAssignmentDAO(session)
        self.activity_dao = DeviceActivityDAO(session)

        self.handlers: Dict[str, ActionHandler] = {
            "assignUser": self._assign_user,
            "pushPolicy": self._push_policy,
            "lock": self._lock,
            "wipe": self._wipe,
            "rename": self._rename,
            "tag": self._tag,
        }

    async def process(
        self,
        actor: Actor,
        device_ids: List[int],
        action: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> BulkActionResult:
        """
        Run an action against each device.

        Args:
            actor: Authenticated caller (org comes from here)
            device_ids: Target devices, processed in this order
            action: Action name
            params: Action parameters

        Returns:
            BulkActionResult with one entry per listed id, repeats included

        Raises:
            InsufficientRoleError: Destructive action by a non-admin (whole
                batch, before any device is touched)
        """
        if action in DESTRUCTIVE_BULK_ACTIONS:
            require_admin(actor, f"bulk {action}")

        params = params or {}
        result = BulkActionResult()
        handler = self.handlers.get(action)

        for device_id in device_ids:
            error = await self._process_one(actor, device_id, action, handler, params)
            if error is None:
                result.processed_ids.append(device_id)
            else:
                logger.warning(f"Bulk {action} failed for device {device_id}: {error}")
                result.failures.append((device_id, error))

        logger.info(
            f"Bulk {action} by user {actor.user_id} in org {actor.org_id}: "
            f"{result.processed} processed, {result.failed} failed"
        )
        return result

    async def _process_one(
        self,
        actor: Actor,
        device_id: int,
        action: str,
        handler: Optional[ActionHandler],
        params: Dict[str, Any],
    ) -> Optional[str]:
        """Process one device; returns the failure message or None."""
        try:
            async with self.session.begin_nested():
                # Unscoped lookup so a foreign device reads as denied, not missing
                device = await self.device_dao.get_by_id(device_id)

                if device is None:
                    return DEVICE_NOT_FOUND
                if device.org_id != actor.org_id:
                    return ACCESS_DENIED
                if not can_access(actor, ResourceOwners(requester_id=device.owner_user_id)):
                    return ACCESS_DENIED
                if handler is None:
                    return f"Unknown action: {action}"

                return await handler(device, actor, params)
        except SQLAlchemyError as e:
            logger.warning(f"Storage error during bulk {action} on device {device_id}: {e}")
            return STORAGE_FAILURE

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _assign_user(self, device: Device, actor: Actor, params: Dict[str, Any]) -> Optional[str]:
        user_id = params.get("userId")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            return "userId required for assignUser"
        await self.device_dao.assign_owner(device.id, actor.org_id, user_id)
        return None

    async def _push_policy(self, device: Device, actor: Actor, params: Dict[str, Any]) -> Optional[str]:
        policy_id = params.get("policyId")
        if not isinstance(policy_id, int) or isinstance(policy_id, bool):
            return "policyId required for pushPolicy"
        if not await self.assignment_dao.policy_exists(policy_id, actor.org_id):
            return "Policy not found"
        await self.assignment_dao.assign_pending(device.id, policy_id, actor.org_id)
        return None

    async def _lock(self, device: Device, actor: Actor, params: Dict[str, Any]) -> Optional[str]:
        await self.device_dao.set_status(device.id, actor.org_id, DeviceStatus.RETIRED)
        await self.activity_dao.enqueue(device.id, actor.org_id, "lock", actor.user_id)
        return None

    async def _wipe(self, device: Device, actor: Actor, params: Dict[str, Any]) -> Optional[str]:
        await self.activity_dao.enqueue(device.id, actor.org_id, "wipe", actor.user_id)
        return None

    async def _rename(self, device: Device, actor: Actor, params: Dict[str, Any]) -> Optional[str]:
        hostname = params.get("hostname")
        if not isinstance(hostname, str) or not hostname.strip():
            return "hostname required for rename"
        await self.device_dao.rename(device.id, actor.org_id, hostname.strip())
        return None

    async def _tag(self, device: Device, actor: Actor, params: Dict[str, Any]) -> Optional[str]:
        tags = params.get("tags")
        if not isinstance(tags, list):
            return "tags array required for tag action"
        await self.device_dao.set_tags(device.id, actor.org_id, [str(tag) for tag in tags])
        return None
