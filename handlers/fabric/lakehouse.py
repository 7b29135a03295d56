# ============================================================================
# FABRIC LAKEHOUSE - ENSURE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Operation - fabric.lakehouse.ensure
# PURPOSE: Create or reuse a lakehouse inside a workspace
# CREATED: 18 OCT 2026
# ============================================================================
"""
Lakehouse: ensure

Natural key is the lakehouse display name within workspace_id. Creation
may answer 202 (long-running); the base class then polls the lookup
until the lakehouse is visible.

A workspace whose capacity is still waking up answers NotInActiveState,
which classifies as NOT_READY and is retried on the fixed interval.
"""

from typing import Any, Dict, Optional

from core.contracts import ControlPlane
from handlers.base import IdempotentStep, Resource
from handlers.registry import register_operation


@register_operation("fabric.lakehouse.ensure")
class LakehouseEnsure(IdempotentStep):
    """Ensure a lakehouse exists in a workspace."""

    control_plane = ControlPlane.FABRIC
    outputs = ("lakehouse_id", "display_name", "workspace_id")
    required_inputs = ("workspace_id",)

    async def find_existing(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        items = await self.client.list_items(f"/workspaces/{inputs['workspace_id']}/lakehouses")
        for item in items:
            if item.get("displayName") == inputs["display_name"]:
                return item
        return None

    async def create(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        body: Dict[str, Any] = {"displayName": inputs["display_name"]}
        if inputs.get("description"):
            body["description"] = inputs["description"]
        response = await self.client.invoke(
            "POST", f"/workspaces/{inputs['workspace_id']}/lakehouses", json=body
        )
        if response.accepted:
            return None
        return response.json_dict() or None

    def to_outputs(self, resource: Resource, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "lakehouse_id": resource["id"],
            "display_name": resource.get("displayName", inputs["display_name"]),
            "workspace_id": inputs["workspace_id"],
        }
