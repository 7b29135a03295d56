# ============================================================================
# PURVIEW SCAN - ENSURE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Operation - purview.scan.ensure
# PURPOSE: Define a workspace-scoped scan, make sure it has run, wait for it
# CREATED: 18 OCT 2026
# ============================================================================
"""
Purview scan: ensure

Two resources behind one step:

    scan definition   PUT under the data source, scoped to one workspace;
                      an existing definition scoped elsewhere is re-PUT
    scan run          triggered when the scan has never run, its latest
                      run ended Failed/Canceled, or it was just re-scoped;
                      an in-progress or succeeded run is reused

The run is polled every 5s until Succeeded, Failed or Canceled. Failed
is a convergence failure; a poll timeout proceeds with a warning by
default because scans can take far longer than provisioning. A trigger
whose run cannot be identified ends the step with a warning instead of
polling.
"""

import logging
from typing import Any, Dict, List, Optional

from core.contracts import ControlPlane, PollTolerance
from handlers.base import IdempotentStep, Resource
from handlers.purview.datasource import SCAN_API_VERSION
from handlers.registry import register_operation

logger = logging.getLogger(__name__)

SCAN_RULESET = "Default"
SUCCEEDED = "Succeeded"
FAILED = "Failed"
CANCELED_STATES = frozenset({"Canceled", "Cancelled"})
FINISHED_STATES = frozenset({SUCCEEDED, FAILED}) | CANCELED_STATES


def run_status(run: Dict[str, Any]) -> Optional[str]:
    return run.get("status") or run.get("runStatus")


def run_identifier(run: Dict[str, Any]) -> Optional[str]:
    return run.get("scanResultId") or run.get("runId") or run.get("id")


def scope_workspaces(scan: Dict[str, Any]) -> List[str]:
    """Workspace ids a PowerBI scan definition is scoped to."""
    scope = (scan.get("properties") or {}).get("scanScope") or {}
    return [ws.get("id") for ws in scope.get("workspaces") or []]


def latest_run(runs: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Most recent run by start time (ISO timestamps sort lexically)."""
    if not runs:
        return None
    return max(runs, key=lambda r: r.get("startTime") or "")


@register_operation("purview.scan.ensure")
class ScanEnsure(IdempotentStep):
    """Ensure a workspace scan exists and has a completed run."""

    control_plane = ControlPlane.PURVIEW
    outputs = ("scan_name", "datasource_name", "run_id", "run_status")
    required_inputs = ("datasource_name", "workspace_id")
    natural_key_input = ""
    default_tolerance = PollTolerance.PROCEED
    default_poll_interval = 5.0

    def natural_key(self, inputs: Dict[str, Any]) -> str:
        return inputs.get("name") or f"scan-workspace-{inputs['workspace_id']}"

    def _scan_path(self, inputs: Dict[str, Any]) -> str:
        return f"/scan/datasources/{inputs['datasource_name']}/scans/{self.natural_key(inputs)}"

    def _params(self) -> Dict[str, str]:
        return {"api-version": SCAN_API_VERSION}

    # ------------------------------------------------------------------
    # SCAN DEFINITION
    # ------------------------------------------------------------------

    def _definition(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "kind": inputs.get("kind", "PowerBIMsi"),
            "properties": {
                "scanRulesetName": inputs.get("scan_ruleset", SCAN_RULESET),
                "scanScope": {
                    "type": "PowerBIScanScope",
                    "workspaces": [{"id": inputs["workspace_id"]}],
                },
            },
        }

    async def _put_definition(self, inputs: Dict[str, Any]) -> Resource:
        body = self._definition(inputs)
        response = await self.client.invoke("PUT", self._scan_path(inputs), json=body, params=self._params())
        return response.json_dict() or {"name": self.natural_key(inputs), **body}

    async def find_existing(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        response = await self.client.get_or_none(self._scan_path(inputs), params=self._params())
        return response.json_dict() if response is not None else None

    async def create(self, inputs: Dict[str, Any]) -> Optional[Resource]:
        return await self._put_definition(inputs)

    # ------------------------------------------------------------------
    # SCAN RUN
    # ------------------------------------------------------------------

    async def _trigger(self, scan_path: str, earlier: List[Dict[str, Any]]) -> Dict[str, Any]:
        """POST a run; the id comes back as scanResultId (older shapes: runId/id)."""
        response = await self.client.invoke("POST", f"{scan_path}/run", json={}, params=self._params())
        self.mark_mutated()
        started = response.json_dict()
        status = run_status(started) or "Accepted"
        run_id = run_identifier(started)
        if run_id:
            return {"id": run_id, "status": status}

        # No id in the response: the new run is the latest one not seen before triggering
        seen = {run_identifier(r) for r in earlier}
        runs = await self.client.list_items(f"{scan_path}/runs", params=self._params())
        fresh = latest_run([r for r in runs if run_identifier(r) not in seen])
        if fresh is not None:
            return {"id": run_identifier(fresh), "status": run_status(fresh) or status}
        return {"id": None, "status": status}

    async def reconcile(self, resource: Resource, inputs: Dict[str, Any]) -> Resource:
        scan_path = self._scan_path(inputs)
        name = self.natural_key(inputs)

        rescoped = False
        scoped_to = scope_workspaces(resource)
        if scoped_to != [inputs["workspace_id"]]:
            logger.info(f"Scan '{name}' is scoped to {scoped_to}; re-scoping to {inputs['workspace_id']}")
            resource = await self._put_definition(inputs)
            self.mark_mutated()
            rescoped = True

        runs = await self.client.list_items(f"{scan_path}/runs", params=self._params())
        run = latest_run(runs)

        if rescoped or run is None or run_status(run) in CANCELED_STATES | {FAILED}:
            previous = run_status(run) if run else "none"
            logger.info(f"Triggering scan '{name}' (previous run: {previous})")
            run = await self._trigger(scan_path, runs)

        run_id = run_identifier(run)
        status = run_status(run)

        if run_id is None:
            self.warn(f"scan '{name}' triggered but no run id was returned (status={status}); not waiting")
        elif status not in FINISHED_STATES:
            async def current_status() -> Optional[str]:
                current = await self.client.get(f"{scan_path}/runs/{run_id}", params=self._params())
                return run_status(current.json_dict())

            result = await self.wait_for_state(
                current_status,
                target_states=FINISHED_STATES - {FAILED},
                failure_states={FAILED},
                describe=f"scan run {run_id}",
            )
            status = result.final_state or status

        if status in CANCELED_STATES:
            self.warn(f"scan run {run_id} was cancelled")

        resource = dict(resource)
        resource["_run"] = {"id": run_id, "status": status}
        return resource

    def to_outputs(self, resource: Resource, inputs: Dict[str, Any]) -> Dict[str, Any]:
        run = resource.get("_run") or {}
        return {
            "scan_name": resource.get("name") or self.natural_key(inputs),
            "datasource_name": inputs["datasource_name"],
            "run_id": run.get("id"),
            "run_status": run.get("status"),
        }
