# ============================================================================
# SHARED TEST DOUBLES
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Tests - Fixtures shared across modules
# PURPOSE: Virtual clock, fake credential, in-memory Fabric/ARM/Purview
# CREATED: 18 OCT 2026
# ============================================================================
"""
Shared test doubles.

FakeClock advances virtual time instantly on sleep, so poll and retry
budgets of many minutes run in milliseconds.

FakeCloud is a tiny in-memory model of the three control planes served
through httpx.MockTransport. It implements just enough of each API for
the operations in handlers/, records every request, and lets a test
script one-off failures with `script(...)`.
"""

import asyncio
import itertools
import json
import re
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from azure.core.credentials import AccessToken

from core.config import EndpointDefaults, ProvisioningSettings
from infrastructure.auth.token_provider import TokenProvider
from orchestrator.context import Clock, RunContext

FABRIC = "https://api.fabric.microsoft.com/v1"
ARM = "https://management.azure.com"
PURVIEW_ACCOUNT = "pvtest"
PURVIEW = f"https://{PURVIEW_ACCOUNT}.purview.azure.com"

CAPACITY_ID = (
    "/subscriptions/00000000-0000-0000-0000-000000000000/resourceGroups/rg"
    "/providers/Microsoft.Fabric/capacities/capdev"
)


# ============================================================================
# CLOCK / CREDENTIAL
# ============================================================================

class FakeClock(Clock):
    """Virtual monotonic clock; sleep advances time without waiting."""

    def __init__(self, start: float = 0.0):
        self.t = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.t

    async def sleep(self, seconds: float, cancel_event: Optional[asyncio.Event] = None) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return True
        self.sleeps.append(seconds)
        self.t += max(seconds, 0)
        # Let other tasks run, like a real sleep would
        await asyncio.sleep(0)
        return cancel_event is not None and cancel_event.is_set()


class FakeCredential:
    """Synchronous azure-identity style credential."""

    def __init__(self, lifetime_seconds: int = 3600):
        self.lifetime_seconds = lifetime_seconds
        self.calls: List[Tuple[str, ...]] = []
        self._counter = itertools.count(1)

    def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        self.calls.append(scopes)
        return AccessToken(f"token-{next(self._counter)}", int(time.time()) + self.lifetime_seconds)


# ============================================================================
# FAKE CLOUD
# ============================================================================

def _json(status: int, body: Any = None, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
    if body is None:
        return httpx.Response(status, headers=headers)
    return httpx.Response(status, json=body, headers=headers)


def _fabric_error(status: int, code: str, message: str = "") -> httpx.Response:
    return _json(status, {"errorCode": code, "message": message or code})


def _arm_error(status: int, code: str) -> httpx.Response:
    return _json(status, {"error": {"code": code, "message": code}})


class FakeCloud:
    """
    In-memory Fabric + ARM + Purview.

    Args:
        clock: Virtual clock (capacity resume completes `resume_seconds` later)
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.requests: List[Tuple[str, str]] = []
        self._scripted: List[Tuple[str, str, Callable[[], httpx.Response]]] = []
        self._ids = itertools.count(1)

        # ARM / Fabric capacities
        self.capacities: Dict[str, Dict[str, Any]] = {}
        self.resume_seconds = 60.0
        self.capacity_visible_after: Optional[float] = None

        # Fabric
        self.workspaces: List[Dict[str, Any]] = []
        self.role_assignments: Dict[str, List[Dict[str, Any]]] = {}
        self.lakehouses: Dict[str, List[Dict[str, Any]]] = {}
        self.lakehouse_create_async = False
        self.domains: List[Dict[str, Any]] = []
        self.domain_workspaces: Dict[str, List[str]] = {}

        # Purview
        self.collections: Dict[str, Dict[str, Any]] = {}
        self.datasources: Dict[str, Dict[str, Any]] = {}
        self.scans: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.scan_runs: Dict[Tuple[str, str], List[Dict[str, Any]]] = {}
        self.scan_run_polls_to_finish = 1
        self.scan_run_final_status = "Succeeded"

    # ------------------------------------------------------------------
    # TEST CONTROLS
    # ------------------------------------------------------------------

    def new_id(self) -> str:
        return str(uuid.UUID(int=next(self._ids)))

    def add_capacity(self, capacity_id: str = CAPACITY_ID, state: str = "Active") -> Dict[str, Any]:
        name = capacity_id.rsplit("/", 1)[-1]
        capacity = {"name": name, "state": state, "guid": self.new_id(), "active_at": None}
        self.capacities[capacity_id] = capacity
        return capacity

    def script(self, method: str, pattern: str, *responses: httpx.Response) -> None:
        """Answer the next matching requests with these responses, in order."""
        for response in responses:
            self._scripted.append((method, pattern, lambda r=response: r))

    def count(self, method: str, pattern: str = "") -> int:
        return sum(1 for m, p in self.requests if m == method and re.search(pattern, p))

    def mutating_requests(self) -> List[Tuple[str, str]]:
        return [(m, p) for m, p in self.requests if m in ("POST", "PUT", "PATCH", "DELETE")]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # ------------------------------------------------------------------
    # DISPATCH
    # ------------------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        self.requests.append((method, url))

        for i, (m, pattern, factory) in enumerate(self._scripted):
            if m == method and re.search(pattern, url):
                del self._scripted[i]
                return factory()

        body = json.loads(request.content) if request.content else None
        if url.startswith(ARM):
            return self._arm(method, url[len(ARM):])
        if url.startswith(FABRIC):
            return self._fabric(method, url[len(FABRIC):], body)
        if url.startswith(PURVIEW):
            return self._purview(method, url[len(PURVIEW):], body)
        return _json(404, {"error": {"code": "UnknownHost"}})

    # ------------------------------------------------------------------
    # ARM
    # ------------------------------------------------------------------

    def _capacity_state(self, capacity: Dict[str, Any]) -> str:
        if capacity["state"] == "Resuming" and self.clock.now() >= capacity["active_at"]:
            capacity["state"] = "Active"
        return capacity["state"]

    def _arm(self, method: str, path: str) -> httpx.Response:
        resume = path.endswith("/resume")
        capacity_id = path[: -len("/resume")] if resume else path
        capacity = self.capacities.get(capacity_id)
        if capacity is None:
            return _arm_error(404, "ResourceNotFound")
        if resume and method == "POST":
            capacity["state"] = "Resuming"
            capacity["active_at"] = self.clock.now() + self.resume_seconds
            return _json(202)
        if method == "GET":
            return _json(200, {
                "id": capacity_id,
                "name": capacity["name"],
                "properties": {"state": self._capacity_state(capacity)},
            })
        return _arm_error(405, "MethodNotAllowed")

    # ------------------------------------------------------------------
    # FABRIC
    # ------------------------------------------------------------------

    def _fabric(self, method: str, path: str, body: Any) -> httpx.Response:
        if path == "/capacities" and method == "GET":
            visible = self.capacity_visible_after is None or self.clock.now() >= self.capacity_visible_after
            value = [
                {"id": c["guid"], "displayName": c["name"], "state": self._capacity_state(c)}
                for c in self.capacities.values()
            ] if visible else []
            return _json(200, {"value": value})

        if path == "/workspaces":
            if method == "GET":
                return _json(200, {"value": self.workspaces})
            if any(w["displayName"] == body["displayName"] for w in self.workspaces):
                return _fabric_error(409, "WorkspaceNameAlreadyExists")
            workspace = {
                "id": self.new_id(),
                "displayName": body["displayName"],
                "description": body.get("description", ""),
                "type": "Workspace",
                "capacityId": body.get("capacityId"),
            }
            self.workspaces.append(workspace)
            return _json(201, workspace)

        match = re.fullmatch(r"/workspaces/([^/]+)/(assignToCapacity|roleAssignments|lakehouses)", path)
        if match:
            workspace_id, resource = match.groups()
            workspace = next((w for w in self.workspaces if w["id"] == workspace_id), None)
            if workspace is None:
                return _fabric_error(404, "WorkspaceNotFound")
            if resource == "assignToCapacity":
                workspace["capacityId"] = body["capacityId"]
                return _json(202)
            if resource == "roleAssignments":
                assignments = self.role_assignments.setdefault(workspace_id, [])
                if method == "GET":
                    return _json(200, {"value": assignments})
                assignments.append({"id": body["principal"]["id"], **body})
                return _json(201, assignments[-1])
            items = self.lakehouses.setdefault(workspace_id, [])
            if method == "GET":
                return _json(200, {"value": items})
            if any(i["displayName"] == body["displayName"] for i in items):
                return _fabric_error(409, "ItemDisplayNameAlreadyInUse")
            item = {
                "id": self.new_id(),
                "displayName": body["displayName"],
                "type": "Lakehouse",
                "workspaceId": workspace_id,
            }
            items.append(item)
            if self.lakehouse_create_async:
                return _json(202, headers={"Location": f"{FABRIC}/operations/{self.new_id()}"})
            return _json(201, item)

        if path == "/admin/domains":
            if method == "GET":
                return _json(200, {"domains": self.domains})
            if any(d["displayName"] == body["displayName"] for d in self.domains):
                return _fabric_error(409, "DomainDisplayNameAlreadyExists")
            domain = {"id": self.new_id(), "displayName": body["displayName"],
                      "description": body.get("description", "")}
            self.domains.append(domain)
            return _json(201, domain)

        match = re.fullmatch(
            r"/admin/domains/([^/]+)/(workspaces|assignWorkspacesByCapacities|assignWorkspaces)", path
        )
        if match:
            domain_id, action = match.groups()
            if not any(d["id"] == domain_id for d in self.domains):
                return _fabric_error(404, "DomainNotFound")
            assigned = self.domain_workspaces.setdefault(domain_id, [])
            if action == "workspaces":
                return _json(200, {"value": [{"id": ws} for ws in assigned]})
            if action == "assignWorkspacesByCapacities":
                wanted = {c.lower() for c in body["capacitiesIds"]}
                targets = [w["id"] for w in self.workspaces if (w.get("capacityId") or "").lower() in wanted]
            else:
                targets = list(body["workspacesIds"])
            for ws in targets:
                if ws not in assigned:
                    assigned.append(ws)
            return _json(200)

        return _fabric_error(404, "EntityNotFound")

    # ------------------------------------------------------------------
    # PURVIEW
    # ------------------------------------------------------------------

    def _purview(self, method: str, path: str, body: Any) -> httpx.Response:
        if path == "/account/collections" and method == "GET":
            return _json(200, {"value": list(self.collections.values())})

        match = re.fullmatch(r"/account/collections/([^/]+)", path)
        if match and method == "PUT":
            name = match.group(1)
            collection = {"name": name, **body}
            self.collections[name] = collection
            return _json(200, collection)

        match = re.fullmatch(r"/scan/datasources/([^/]+)", path)
        if match:
            name = match.group(1)
            if method == "GET":
                if name not in self.datasources:
                    return _arm_error(404, "DataSourceNotFound")
                return _json(200, self.datasources[name])
            created = name not in self.datasources
            self.datasources[name] = {"name": name, **body}
            return _json(201 if created else 200, self.datasources[name])

        match = re.fullmatch(r"/scan/datasources/([^/]+)/scans/([^/]+)(/run|/runs|/runs/[^/]+)?", path)
        if match:
            ds, scan, tail = match.groups()
            key = (ds, scan)
            if ds not in self.datasources:
                return _arm_error(404, "DataSourceNotFound")
            if tail is None:
                if method == "GET":
                    if key not in self.scans:
                        return _arm_error(404, "ScanNotFound")
                    return _json(200, self.scans[key])
                self.scans[key] = {"name": scan, **body}
                return _json(201, self.scans[key])
            if key not in self.scans:
                return _arm_error(404, "ScanNotFound")
            runs = self.scan_runs.setdefault(key, [])
            if tail == "/run":
                run = {
                    "id": self.new_id(),
                    "status": "Accepted",
                    "startTime": f"2026-10-18T00:{len(runs):02d}:00Z",
                    "_polls": 0,
                }
                runs.append(run)
                return _json(202, {"scanResultId": run["id"], "status": "Accepted"})
            if tail == "/runs":
                return _json(200, {"value": [self._public_run(r) for r in runs]})
            run_id = tail.rsplit("/", 1)[-1]
            run = next((r for r in runs if r["id"] == run_id), None)
            if run is None:
                return _arm_error(404, "RunNotFound")
            run["_polls"] += 1
            if run["_polls"] >= self.scan_run_polls_to_finish:
                run["status"] = self.scan_run_final_status
            else:
                run["status"] = "InProgress"
            return _json(200, self._public_run(run))

        return _arm_error(404, "NotFound")

    @staticmethod
    def _public_run(run: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in run.items() if not k.startswith("_")}


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def credential():
    return FakeCredential()


@pytest.fixture
def tokens(credential):
    return TokenProvider(credential=credential)


@pytest.fixture
def settings():
    return ProvisioningSettings(
        endpoints=EndpointDefaults(purview_account_name=PURVIEW_ACCOUNT, tenant_id="tenant-1"),
    )


@pytest.fixture
def cloud(clock):
    return FakeCloud(clock)


@pytest.fixture
def make_context(settings, tokens, clock, cloud):
    """Factory: a fresh RunContext wired to the fake cloud (one per run)."""
    def _make(**overrides: Any) -> RunContext:
        kwargs = dict(settings=settings, tokens=tokens, clock=clock, transport=cloud.transport)
        kwargs.update(overrides)
        return RunContext(**kwargs)
    return _make
