# ============================================================================
# PURVIEW DATA SOURCE - ENSURE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Operation - purview.datasource.ensure
# PURPOSE: Register the Fabric / Power BI tenant as a Purview data source
# CREATED: 18 OCT 2026
# ============================================================================
"""
Purview data source: ensure

Registers a PowerBI-kind data source. The collection reference is
omitted (account root) when collection_name is empty or one of the
root aliases. An existing source registered under a different
collection is moved with a PUT.
"""

import logging
from typing import Any, Dict, Optional

from core.contracts import ControlPlane
from handlers.base import IdempotentStep, Resource
from handlers.registry import register_operation

logger = logging.getLogger(__name__)

SCAN_API_VERSION = "2022-07-01-preview"
DATASOURCE_KIND = "PowerBI"
ROOT_ALIASES = frozenset({"", "-", "default", "root"})


def collection_reference(collection_name: Optional[str]) -> Optional[Dict[str, str]]:
    """Collection reference block, or None for the account root."""
    if collection_name is None or collection_name.strip().lower() in ROOT_ALIASES:
        return None
    return {"referenceName": collection_name, "type": "CollectionReference"}


@register_operation("purview.datasource.ensure")
class DataSourceEnsure(IdempotentStep):
    """Ensure the PowerBI data source is registered."""

    control_plane = ControlPlane.PURVIEW
    outputs = ("datasource_name", "collection_name")
    natural_key_input = "name"

    def _path(self, inputs: Dict[str, Any]) -> str:
        return f"/scan/datasources/{inputs['name']}"

    def _body(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        properties: Dict[str, Any] = {
            "tenant": inputs.get("tenant_id") or self.context.settings.endpoints.tenant_id,
        }
        reference = collection_reference(inputs.get("collection_name"))
        if reference:
            properties["collection"] = reference
        return {"kind": DATASOURCE_KIND, "properties": properties}

    async def _put(self, inputs: Dict[str, Any]) -> Resource:
        response = await self.client.invoke(
            "PUT", self._path(inputs), json=self._body(inputs), params={"api-version": SCAN_API_VERSION}
        )
        return response.json_dict()

    async def find_existing(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        response = await self.client.get_or_none(self._path(inputs), params={"api-version": SCAN_API_VERSION})
        return response.json_dict() if response is not None else None

    async def create(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        return await self._put(inputs) or None

    async def reconcile(self, resource: Resource, inputs: Dict[str, Any]) -> Resource:
        wanted = collection_reference(inputs.get("collection_name"))
        actual = (resource.get("properties") or {}).get("collection") or None
        wanted_name = wanted["referenceName"] if wanted else None
        actual_name = actual.get("referenceName") if actual else None
        # Purview reports root-registered sources under the account collection
        if wanted_name is None or wanted_name == actual_name:
            return resource
        logger.info(f"Moving data source '{inputs['name']}' from '{actual_name}' to '{wanted_name}'")
        updated = await self._put(inputs)
        self.mark_mutated()
        return updated or resource

    def to_outputs(self, resource: Resource, inputs: Dict[str, Any]) -> Dict[str, Any]:
        collection = (resource.get("properties") or {}).get("collection") or {}
        return {
            "datasource_name": resource.get("name", inputs["name"]),
            "collection_name": collection.get("referenceName") or "",
        }
