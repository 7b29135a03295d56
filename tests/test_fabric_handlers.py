# ============================================================================
# FABRIC OPERATION TESTS
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Tests - Capacity, workspace, lakehouse and domain operations
# PURPOSE: Exercise each Fabric operation against the in-memory control planes
# CREATED: 18 OCT 2026
# ============================================================================
"""
Fabric Operation Tests

Run with:
    pytest tests/test_fabric_handlers.py -v
"""

import asyncio

import httpx
import pytest

from core.contracts import ErrorClass
from core.errors import (
    ConflictUnresolvedError,
    FatalError,
    NotReadyError,
    PollTimeoutError,
    RemoteCallError,
)
from core.models import PollSettings, StepDefinition
from handlers.base import StepRuntime
from handlers.fabric import (
    CapacityEnsureActive,
    DomainAssignWorkspace,
    DomainEnsure,
    LakehouseEnsure,
    WorkspaceEnsure,
)

from conftest import CAPACITY_ID


@pytest.fixture
def run_op(make_context):
    """Execute one operation once; returns (outcome, runtime)."""
    def _run(op_cls, inputs, **poll):
        context = make_context()
        runtime = StepRuntime(
            context=context,
            definition=StepDefinition(name="step", operation=op_cls.operation),
            poll=PollSettings(**poll).resolve(
                context.settings.poll, op_cls.default_tolerance, op_cls.default_poll_interval
            ),
        )
        outcome = asyncio.run(op_cls(runtime).execute(inputs))
        return outcome, runtime
    return _run


def _add_workspace(cloud, name="ws-dev", capacity_id=None):
    workspace = {"id": cloud.new_id(), "displayName": name, "type": "Workspace", "capacityId": capacity_id}
    cloud.workspaces.append(workspace)
    return workspace


# ============================================================================
# CAPACITY
# ============================================================================

class TestCapacity:

    def test_active_capacity_is_existing(self, cloud, run_op):
        capacity = cloud.add_capacity(state="Active")

        outcome, _ = run_op(CapacityEnsureActive, {"capacity_id": CAPACITY_ID})

        assert outcome.existed
        assert outcome.outputs == {
            "capacity_id": CAPACITY_ID,
            "capacity_guid": capacity["guid"],
            "capacity_name": "capdev",
            "state": "Active",
        }
        assert cloud.mutating_requests() == []

    def test_paused_capacity_is_resumed_and_polled(self, cloud, clock, run_op):
        cloud.add_capacity(state="Paused")

        outcome, _ = run_op(CapacityEnsureActive, {"capacity_id": CAPACITY_ID})

        assert not outcome.existed
        assert outcome.outputs["state"] == "Active"
        assert cloud.count("POST", r"/resume$") == 1
        assert clock.sleeps == [20, 20, 20]
        assert clock.now() == 60

    def test_resume_timeout_proceeds_with_warning(self, cloud, run_op):
        cloud.add_capacity(state="Paused")
        cloud.resume_seconds = 10_000

        outcome, runtime = run_op(CapacityEnsureActive, {"capacity_id": CAPACITY_ID}, timeout_seconds=100)

        assert outcome.outputs["state"] == "Resuming"
        assert len(outcome.warnings) == 1
        assert runtime.warnings == outcome.warnings

    def test_resume_timeout_fails_when_configured(self, cloud, run_op):
        cloud.add_capacity(state="Paused")
        cloud.resume_seconds = 10_000

        with pytest.raises(PollTimeoutError) as exc:
            run_op(CapacityEnsureActive, {"capacity_id": CAPACITY_ID}, timeout_seconds=100, on_timeout="fail")
        assert exc.value.last_state == "Resuming"

    def test_missing_capacity_is_fatal(self, cloud, run_op):
        with pytest.raises(FatalError, match="capdev"):
            run_op(CapacityEnsureActive, {"capacity_id": CAPACITY_ID})
        assert cloud.mutating_requests() == []

    def test_failed_capacity_is_fatal(self, cloud, run_op):
        cloud.add_capacity(state="Failed")

        with pytest.raises(FatalError, match="Failed"):
            run_op(CapacityEnsureActive, {"capacity_id": CAPACITY_ID})

    def test_capacity_not_yet_visible_in_fabric(self, cloud, run_op):
        cloud.add_capacity(state="Active")
        cloud.capacity_visible_after = 30

        with pytest.raises(NotReadyError):
            run_op(CapacityEnsureActive, {"capacity_id": CAPACITY_ID})


# ============================================================================
# WORKSPACE
# ============================================================================

class TestWorkspace:

    def test_creates_on_capacity(self, cloud, run_op):
        outcome, _ = run_op(WorkspaceEnsure, {"display_name": "ws-dev", "capacity_id": "CAP-GUID"})

        assert not outcome.existed
        assert outcome.outputs["display_name"] == "ws-dev"
        assert outcome.outputs["capacity_id"] == "CAP-GUID"
        assert cloud.workspaces[0]["capacityId"] == "CAP-GUID"

    def test_existing_workspace_on_same_capacity(self, cloud, run_op):
        workspace = _add_workspace(cloud, capacity_id="cap-guid")

        outcome, _ = run_op(WorkspaceEnsure, {"display_name": "ws-dev", "capacity_id": "CAP-GUID"})

        assert outcome.existed
        assert outcome.outputs["workspace_id"] == workspace["id"]
        assert cloud.mutating_requests() == []

    def test_existing_workspace_is_moved_to_capacity(self, cloud, run_op):
        workspace = _add_workspace(cloud, capacity_id="old-capacity")

        outcome, _ = run_op(WorkspaceEnsure, {"display_name": "ws-dev", "capacity_id": "new-capacity"})

        assert not outcome.existed
        assert workspace["capacityId"] == "new-capacity"
        assert cloud.count("POST", r"/assignToCapacity$") == 1

    def test_admins_added_once(self, cloud, run_op):
        inputs = {"display_name": "ws-dev", "admins": ["user-1", {"id": "sp-1", "type": "ServicePrincipal"}]}

        first, _ = run_op(WorkspaceEnsure, inputs)
        second, _ = run_op(WorkspaceEnsure, inputs)

        assigned = cloud.role_assignments[first.outputs["workspace_id"]]
        assert [a["principal"] for a in assigned] == [
            {"id": "user-1", "type": "User"},
            {"id": "sp-1", "type": "ServicePrincipal"},
        ]
        assert second.existed

    def test_conflict_resolved_by_requery(self, cloud, run_op):
        # Lookup misses a workspace created concurrently by someone else
        cloud.script("GET", r"/v1/workspaces$", httpx.Response(200, json={"value": []}))
        workspace = _add_workspace(cloud)

        outcome, _ = run_op(WorkspaceEnsure, {"display_name": "ws-dev"})

        assert outcome.existed
        assert outcome.outputs["workspace_id"] == workspace["id"]
        assert cloud.count("POST", r"/v1/workspaces$") == 1

    def test_conflict_without_workspace_is_fatal(self, cloud, run_op):
        cloud.script(
            "POST", r"/v1/workspaces$",
            httpx.Response(409, json={"errorCode": "WorkspaceNameAlreadyExists"}),
        )

        with pytest.raises(ConflictUnresolvedError):
            run_op(WorkspaceEnsure, {"display_name": "ws-dev"})


# ============================================================================
# LAKEHOUSE
# ============================================================================

class TestLakehouse:

    def test_creates_then_finds(self, cloud, run_op):
        workspace = _add_workspace(cloud)
        inputs = {"display_name": "bronze", "workspace_id": workspace["id"]}

        first, _ = run_op(LakehouseEnsure, inputs)
        second, _ = run_op(LakehouseEnsure, inputs)

        assert not first.existed
        assert second.existed
        assert first.outputs == second.outputs
        assert first.outputs["workspace_id"] == workspace["id"]
        assert len(cloud.lakehouses[workspace["id"]]) == 1

    def test_accepted_create_converges_by_lookup(self, cloud, run_op):
        workspace = _add_workspace(cloud)
        cloud.lakehouse_create_async = True

        outcome, _ = run_op(LakehouseEnsure, {"display_name": "silver", "workspace_id": workspace["id"]})

        assert not outcome.existed
        assert outcome.outputs["lakehouse_id"] == cloud.lakehouses[workspace["id"]][0]["id"]
        assert cloud.count("GET", r"/lakehouses$") == 2

    def test_unknown_workspace_is_not_ready(self, cloud, run_op):
        with pytest.raises(RemoteCallError) as exc:
            run_op(LakehouseEnsure, {"display_name": "bronze", "workspace_id": "missing"})

        assert exc.value.classification == ErrorClass.NOT_READY
        assert exc.value.error_code == "WorkspaceNotFound"

    def test_workspace_id_required(self, run_op):
        with pytest.raises(FatalError, match="workspace_id"):
            run_op(LakehouseEnsure, {"display_name": "bronze", "workspace_id": ""})


# ============================================================================
# DOMAIN
# ============================================================================

class TestDomain:

    def test_domain_created_with_description(self, cloud, run_op):
        outcome, _ = run_op(DomainEnsure, {"display_name": "Finance", "description": "finance data"})

        assert not outcome.existed
        assert cloud.domains[0]["description"] == "finance data"
        assert outcome.outputs == {"domain_id": cloud.domains[0]["id"], "display_name": "Finance"}

    def test_assign_by_capacity(self, cloud, run_op):
        capacity = cloud.add_capacity()
        workspace = _add_workspace(cloud, capacity_id=capacity["guid"])
        domain, _ = run_op(DomainEnsure, {"display_name": "Finance"})
        inputs = {
            "domain_id": domain.outputs["domain_id"],
            "workspace_id": workspace["id"],
            "capacity_guid": capacity["guid"],
        }

        first, _ = run_op(DomainAssignWorkspace, inputs)
        second, _ = run_op(DomainAssignWorkspace, inputs)

        assert not first.existed
        assert second.existed
        assert cloud.count("POST", r"/assignWorkspacesByCapacities$") == 1
        assert cloud.domain_workspaces[inputs["domain_id"]] == [workspace["id"]]

    def test_assign_single_workspace(self, cloud, run_op):
        workspace = _add_workspace(cloud)
        domain, _ = run_op(DomainEnsure, {"display_name": "Finance"})

        outcome, _ = run_op(
            DomainAssignWorkspace,
            {"domain_id": domain.outputs["domain_id"], "workspace_id": workspace["id"]},
        )

        assert outcome.outputs["workspace_id"] == workspace["id"]
        assert cloud.count("POST", r"/assignWorkspaces$") == 1

    def test_accepted_assignment_that_never_lands_warns(self, cloud, run_op):
        workspace = _add_workspace(cloud)
        domain, _ = run_op(DomainEnsure, {"display_name": "Finance"})
        cloud.script("POST", r"/assignWorkspaces$", httpx.Response(202))

        outcome, _ = run_op(
            DomainAssignWorkspace,
            {"domain_id": domain.outputs["domain_id"], "workspace_id": workspace["id"]},
            timeout_seconds=60,
        )

        assert not outcome.existed
        assert len(outcome.warnings) == 1
