# ============================================================================
# FABRIC CAPACITY - ENSURE ACTIVE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Operation - fabric.capacity.ensure_active
# PURPOSE: Resume a paused capacity and resolve its Fabric GUID
# CREATED: 18 OCT 2026
# ============================================================================
"""
Capacity: ensure Active

Capacities are provisioned by infrastructure-as-code, never by this
tool, so "create" is a fatal error. The step's job is convergence:

    ARM state Active            -> nothing to do (SucceededExisting)
    Paused / Suspended          -> POST resume, poll every 20s up to 900s
                                   for Active (Succeeded)
    Failed / Deleting           -> convergence failure
    anything else               -> warn, leave alone

Then the Fabric-side GUID is looked up by exact display name. A freshly
resumed capacity can take a while to appear there; until it does the
step raises NotReadyError and the retry policy waits.

Poll timeout defaults to PROCEED: downstream steps retry NotReady on
their own.
"""

import logging
from typing import Any, Dict, Optional

from core.contracts import ControlPlane, PollTolerance
from core.errors import FatalError, NotReadyError
from handlers.base import IdempotentStep, Resource
from handlers.registry import register_operation

logger = logging.getLogger(__name__)

ARM_CAPACITY_API_VERSION = "2023-11-01"

ACTIVE = "Active"
RESUMABLE_STATES = frozenset({"Paused", "Suspended"})
FAILURE_STATES = frozenset({"Failed", "Deleting"})


def capacity_name_from_id(capacity_id: str) -> str:
    """Last segment of an ARM resource id."""
    return capacity_id.rstrip("/").rsplit("/", 1)[-1]


@register_operation("fabric.capacity.ensure_active")
class CapacityEnsureActive(IdempotentStep):
    """Ensure a Fabric capacity is Active and resolve its GUID."""

    control_plane = ControlPlane.ARM
    outputs = ("capacity_id", "capacity_guid", "capacity_name", "state")
    natural_key_input = "capacity_id"
    default_tolerance = PollTolerance.PROCEED

    def natural_key(self, inputs: Dict[str, Any]) -> str:
        return inputs.get("capacity_name") or capacity_name_from_id(inputs["capacity_id"])

    async def _arm_state(self, capacity_id: str) -> Optional[str]:
        response = await self.client.get(capacity_id, params={"api-version": ARM_CAPACITY_API_VERSION})
        return (response.json_dict().get("properties") or {}).get("state")

    async def find_existing(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        response = await self.client.get_or_none(
            inputs["capacity_id"], params={"api-version": ARM_CAPACITY_API_VERSION}
        )
        return response.json_dict() if response is not None else None

    async def create(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        raise FatalError(
            f"Capacity '{self.natural_key(inputs)}' not found at {inputs['capacity_id']}; "
            "capacities must be provisioned before running this plan"
        )

    async def reconcile(self, resource: Resource, inputs: Dict[str, Any]) -> Resource:
        capacity_id = inputs["capacity_id"]
        name = self.natural_key(inputs)
        state = (resource.get("properties") or {}).get("state")
        logger.info(f"Capacity '{name}' state: {state}")

        if state in FAILURE_STATES:
            raise FatalError(f"Capacity '{name}' is in state {state}")

        if state in RESUMABLE_STATES:
            logger.info(f"Resuming capacity '{name}'")
            await self.client.invoke(
                "POST", f"{capacity_id}/resume", params={"api-version": ARM_CAPACITY_API_VERSION}
            )
            self.mark_mutated()
            result = await self.wait_for_state(
                lambda: self._arm_state(capacity_id),
                target_states={ACTIVE},
                failure_states=FAILURE_STATES,
                describe=f"capacity '{name}'",
            )
            state = result.final_state
        elif state != ACTIVE:
            self.warn(f"capacity state '{state}' is not Active; resume only applies to Paused/Suspended")

        guid = await self._resolve_guid(name)
        return {"id": capacity_id, "guid": guid, "name": name, "state": state}

    async def _resolve_guid(self, name: str) -> str:
        fabric = self.context.client(ControlPlane.FABRIC)
        for capacity in await fabric.list_items("/capacities"):
            if capacity.get("displayName") == name:
                return capacity["id"]
        raise NotReadyError(f"Capacity '{name}' not yet visible in Fabric")

    def to_outputs(self, resource: Resource, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "capacity_id": resource["id"],
            "capacity_guid": resource["guid"],
            "capacity_name": resource["name"],
            "state": resource["state"],
        }
