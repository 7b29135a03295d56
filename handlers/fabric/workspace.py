# ============================================================================
# FABRIC WORKSPACE - ENSURE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Operation - fabric.workspace.ensure
# PURPOSE: Create or reuse a workspace, pin it to a capacity, add admins
# CREATED: 18 OCT 2026
# ============================================================================
"""
Workspace: ensure

Natural key is the workspace display name (exact match). An existing
workspace is reconciled: capacity re-assigned if it drifted, missing
admin role assignments added. Either of those makes the step Succeeded
rather than SucceededExisting.

Admins are principal object ids, or dicts {"id": ..., "type": ...}
where type is User, Group, ServicePrincipal or ServicePrincipalProfile.
"""

import logging
from typing import Any, Dict, List, Optional

from core.contracts import ControlPlane, ErrorClass
from core.errors import RemoteCallError
from handlers.base import IdempotentStep, Resource
from handlers.registry import register_operation

logger = logging.getLogger(__name__)


def _normalize_admins(admins: Any) -> List[Dict[str, str]]:
    if not admins:
        return []
    if isinstance(admins, (str, dict)):
        admins = [admins]
    normalized = []
    for admin in admins:
        if isinstance(admin, dict):
            normalized.append({"id": str(admin["id"]), "type": admin.get("type", "User")})
        else:
            normalized.append({"id": str(admin), "type": "User"})
    return normalized


@register_operation("fabric.workspace.ensure")
class WorkspaceEnsure(IdempotentStep):
    """Ensure a Fabric workspace exists on the right capacity."""

    control_plane = ControlPlane.FABRIC
    outputs = ("workspace_id", "display_name", "capacity_id")

    async def find_existing(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        name = inputs["display_name"]
        for workspace in await self.client.list_items("/workspaces"):
            if workspace.get("displayName") == name:
                return workspace
        return None

    async def create(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        body: Dict[str, Any] = {"displayName": inputs["display_name"]}
        if inputs.get("description"):
            body["description"] = inputs["description"]
        if inputs.get("capacity_id"):
            body["capacityId"] = inputs["capacity_id"]
        response = await self.client.invoke("POST", "/workspaces", json=body)
        return response.json_dict() or None

    async def reconcile(self, resource: Resource, inputs: Dict[str, Any]) -> Resource:
        workspace_id = resource["id"]
        resource = dict(resource)

        desired = inputs.get("capacity_id")
        current = resource.get("capacityId")
        if desired and (current or "").lower() != str(desired).lower():
            logger.info(f"Assigning workspace {workspace_id} to capacity {desired} (was {current})")
            await self.client.invoke(
                "POST",
                f"/workspaces/{workspace_id}/assignToCapacity",
                json={"capacityId": desired},
            )
            self.mark_mutated()
            resource["capacityId"] = desired

        await self._ensure_admins(workspace_id, _normalize_admins(inputs.get("admins")))
        return resource

    async def _ensure_admins(self, workspace_id: str, admins: List[Dict[str, str]]) -> None:
        if not admins:
            return
        assignments = await self.client.list_items(f"/workspaces/{workspace_id}/roleAssignments")
        present = {
            (a.get("principal") or {}).get("id", "").lower()
            for a in assignments
            if a.get("role") == "Admin"
        }
        for admin in admins:
            if admin["id"].lower() in present:
                continue
            logger.info(f"Adding {admin['type']} {admin['id']} as Admin on workspace {workspace_id}")
            try:
                await self.client.invoke(
                    "POST",
                    f"/workspaces/{workspace_id}/roleAssignments",
                    json={"principal": admin, "role": "Admin"},
                )
            except RemoteCallError as e:
                # Assigned with a different role, or a concurrent add
                if e.classification != ErrorClass.CONFLICT:
                    raise
                logger.info(f"Principal {admin['id']} already has a role on {workspace_id}")
                continue
            self.mark_mutated()

    def to_outputs(self, resource: Resource, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "workspace_id": resource["id"],
            "display_name": resource.get("displayName", inputs["display_name"]),
            "capacity_id": resource.get("capacityId") or inputs.get("capacity_id"),
        }
