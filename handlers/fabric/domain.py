# ============================================================================
# FABRIC DOMAIN - ENSURE / ASSIGN WORKSPACE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Operations - fabric.domain.ensure, fabric.domain.assign_workspace
# PURPOSE: Create or reuse a governance domain and attach a workspace to it
# CREATED: 18 OCT 2026
# ============================================================================
"""
Domains

fabric.domain.ensure
    Natural key: domain display name, looked up in the admin domain list.

fabric.domain.assign_workspace
    "Exists" means the workspace is already listed under the domain.
    Assignment goes by capacity (every workspace on the capacity joins
    the domain) when capacity_guid is given, otherwise by workspace id.
    The admin API may answer 202; the step then polls the domain's
    workspace list. Poll timeout defaults to PROCEED.
"""

import logging
from typing import Any, Dict, Optional

from core.contracts import ControlPlane, PollTolerance
from handlers.base import IdempotentStep, Resource
from handlers.registry import register_operation

logger = logging.getLogger(__name__)

ASSIGNED = "assigned"
PENDING = "pending"


@register_operation("fabric.domain.ensure")
class DomainEnsure(IdempotentStep):
    """Ensure a Fabric domain exists."""

    control_plane = ControlPlane.FABRIC
    outputs = ("domain_id", "display_name")

    async def find_existing(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        for domain in await self.client.list_items("/admin/domains", item_key="domains"):
            if domain.get("displayName") == inputs["display_name"]:
                return domain
        return None

    async def create(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        body: Dict[str, Any] = {"displayName": inputs["display_name"]}
        if inputs.get("description"):
            body["description"] = inputs["description"]
        if inputs.get("parent_domain_id"):
            body["parentDomainId"] = inputs["parent_domain_id"]
        response = await self.client.invoke("POST", "/admin/domains", json=body)
        return response.json_dict() or None

    def to_outputs(self, resource: Resource, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "domain_id": resource["id"],
            "display_name": resource.get("displayName", inputs["display_name"]),
        }


@register_operation("fabric.domain.assign_workspace")
class DomainAssignWorkspace(IdempotentStep):
    """Ensure a workspace belongs to a domain."""

    control_plane = ControlPlane.FABRIC
    outputs = ("domain_id", "workspace_id")
    required_inputs = ("domain_id",)
    natural_key_input = "workspace_id"
    default_tolerance = PollTolerance.PROCEED

    async def _is_assigned(self, inputs: Dict[str, Any]) -> bool:
        workspaces = await self.client.list_items(f"/admin/domains/{inputs['domain_id']}/workspaces")
        wanted = str(inputs["workspace_id"]).lower()
        return any(str(w.get("id", "")).lower() == wanted for w in workspaces)

    async def find_existing(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        if await self._is_assigned(inputs):
            return {"domain_id": inputs["domain_id"], "workspace_id": inputs["workspace_id"]}
        return None

    async def create(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        domain_id = inputs["domain_id"]
        capacity_guid = inputs.get("capacity_guid")
        if capacity_guid:
            logger.info(f"Assigning workspaces on capacity {capacity_guid} to domain {domain_id}")
            response = await self.client.invoke(
                "POST",
                f"/admin/domains/{domain_id}/assignWorkspacesByCapacities",
                json={"capacitiesIds": [capacity_guid]},
            )
        else:
            logger.info(f"Assigning workspace {inputs['workspace_id']} to domain {domain_id}")
            response = await self.client.invoke(
                "POST",
                f"/admin/domains/{domain_id}/assignWorkspaces",
                json={"workspacesIds": [inputs["workspace_id"]]},
            )

        if response.accepted:
            async def assignment_state() -> str:
                return ASSIGNED if await self._is_assigned(inputs) else PENDING

            await self.wait_for_state(
                assignment_state,
                target_states={ASSIGNED},
                describe=f"domain assignment of workspace {inputs['workspace_id']}",
            )

        return {"domain_id": domain_id, "workspace_id": inputs["workspace_id"]}

    def to_outputs(self, resource: Resource, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return {"domain_id": resource["domain_id"], "workspace_id": resource["workspace_id"]}
