# ============================================================================
# PURVIEW COLLECTION - ENSURE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Operation - purview.collection.ensure
# PURPOSE: Create or reuse a collection under the account root or a parent
# CREATED: 18 OCT 2026
# ============================================================================
"""
Purview collection: ensure

Natural key is the collection `name`. A collection whose `name` or
`friendlyName` matches exactly counts as existing (collections created
in the portal get a generated name and keep the typed text as
friendlyName).

The parent defaults to the root collection, whose reference name is the
Purview account name.
"""

import logging
from typing import Any, Dict, Optional

from core.contracts import ControlPlane
from handlers.base import IdempotentStep, Resource
from handlers.registry import register_operation

logger = logging.getLogger(__name__)

COLLECTIONS_API_VERSION = "2019-11-01-preview"


@register_operation("purview.collection.ensure")
class CollectionEnsure(IdempotentStep):
    """Ensure a Purview collection exists."""

    control_plane = ControlPlane.PURVIEW
    outputs = ("collection_name", "friendly_name")
    natural_key_input = "name"

    def _parent(self, inputs: Dict[str, Any]) -> Optional[str]:
        return inputs.get("parent_collection") or self.context.settings.endpoints.purview_account_name

    async def find_existing(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        name = inputs["name"]
        collections = await self.client.list_items(
            "/account/collections", params={"api-version": COLLECTIONS_API_VERSION}
        )
        for collection in collections:
            if collection.get("name") == name or collection.get("friendlyName") == name:
                return collection
        return None

    async def create(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        name = inputs["name"]
        body: Dict[str, Any] = {"friendlyName": inputs.get("friendly_name") or name}
        if inputs.get("description"):
            body["description"] = inputs["description"]
        parent = self._parent(inputs)
        if parent:
            body["parentCollection"] = {"referenceName": parent}
        response = await self.client.invoke(
            "PUT",
            f"/account/collections/{name}",
            json=body,
            params={"api-version": COLLECTIONS_API_VERSION},
        )
        return response.json_dict() or None

    async def reconcile(self, resource: Resource, inputs: Dict[str, Any]) -> Resource:
        wanted = inputs.get("parent_collection")
        actual = (resource.get("parentCollection") or {}).get("referenceName")
        if wanted and actual and actual != wanted:
            # Moving a collection re-homes every asset under it; leave that to a human
            self.warn(f"collection '{resource.get('name')}' is under '{actual}', not '{wanted}'")
        return resource

    def to_outputs(self, resource: Resource, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "collection_name": resource.get("name", inputs["name"]),
            "friendly_name": resource.get("friendlyName") or inputs["name"],
        }
