# ============================================================================
# PURVIEW OPERATION TESTS
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Tests - Collection, data source and scan operations
# PURPOSE: Exercise each Purview operation against the in-memory data plane
# CREATED: 18 OCT 2026
# ============================================================================
"""
Purview Operation Tests

Run with:
    pytest tests/test_purview_handlers.py -v
"""

import asyncio

import httpx
import pytest

from core.config import ProvisioningSettings
from core.errors import ConvergenceFailedError, FatalError
from core.models import PollSettings, StepDefinition
from handlers.base import StepRuntime
from handlers.purview import CollectionEnsure, DataSourceEnsure, ScanEnsure
from handlers.purview.datasource import collection_reference
from handlers.purview.scan import latest_run


@pytest.fixture
def run_op(make_context):
    """Execute one operation once; returns (outcome, runtime)."""
    def _run(op_cls, inputs, context=None, **poll):
        context = context or make_context()
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


@pytest.fixture
def datasource(cloud):
    cloud.datasources["Fabric-PowerBI"] = {
        "name": "Fabric-PowerBI",
        "kind": "PowerBI",
        "properties": {"tenant": "tenant-1"},
    }
    return "Fabric-PowerBI"


SCAN_INPUTS = {"datasource_name": "Fabric-PowerBI", "workspace_id": "ws-1"}


# ============================================================================
# COLLECTION
# ============================================================================

class TestCollection:

    def test_created_under_account_root(self, cloud, run_op):
        outcome, _ = run_op(CollectionEnsure, {"name": "dataplatform", "description": "platform"})

        assert not outcome.existed
        assert outcome.outputs == {"collection_name": "dataplatform", "friendly_name": "dataplatform"}
        assert cloud.collections["dataplatform"]["parentCollection"] == {"referenceName": "pvtest"}

    def test_existing_matched_by_friendly_name(self, cloud, run_op):
        cloud.collections["x1y2z3"] = {"name": "x1y2z3", "friendlyName": "dataplatform"}

        outcome, _ = run_op(CollectionEnsure, {"name": "dataplatform"})

        assert outcome.existed
        assert outcome.outputs["collection_name"] == "x1y2z3"
        assert cloud.mutating_requests() == []

    def test_parent_mismatch_warns_without_moving(self, cloud, run_op):
        cloud.collections["dataplatform"] = {
            "name": "dataplatform",
            "parentCollection": {"referenceName": "pvtest"},
        }

        outcome, _ = run_op(CollectionEnsure, {"name": "dataplatform", "parent_collection": "finance"})

        assert outcome.existed
        assert "finance" in outcome.warnings[0]
        assert cloud.mutating_requests() == []

    def test_missing_purview_endpoint_is_fatal(self, make_context, run_op):
        context = make_context(settings=ProvisioningSettings())

        with pytest.raises(FatalError, match="Purview endpoint"):
            run_op(CollectionEnsure, {"name": "dataplatform"}, context=context)


# ============================================================================
# DATA SOURCE
# ============================================================================

class TestDataSource:

    def test_registered_in_collection(self, cloud, run_op):
        outcome, _ = run_op(DataSourceEnsure, {"name": "Fabric-PowerBI", "collection_name": "dataplatform"})

        assert not outcome.existed
        assert outcome.outputs == {"datasource_name": "Fabric-PowerBI", "collection_name": "dataplatform"}
        properties = cloud.datasources["Fabric-PowerBI"]["properties"]
        assert properties["tenant"] == "tenant-1"
        assert properties["collection"]["type"] == "CollectionReference"

    def test_registered_at_root(self, cloud, run_op):
        outcome, _ = run_op(DataSourceEnsure, {"name": "Fabric-PowerBI", "collection_name": "root"})

        assert outcome.outputs["collection_name"] == ""
        assert "collection" not in cloud.datasources["Fabric-PowerBI"]["properties"]

    def test_moved_when_collection_differs(self, cloud, run_op):
        run_op(DataSourceEnsure, {"name": "Fabric-PowerBI", "collection_name": "old"})

        outcome, _ = run_op(DataSourceEnsure, {"name": "Fabric-PowerBI", "collection_name": "dataplatform"})

        assert not outcome.existed
        assert outcome.outputs["collection_name"] == "dataplatform"
        assert cloud.count("PUT", r"/scan/datasources/Fabric-PowerBI$") == 2

    def test_unchanged_is_existing(self, cloud, run_op):
        inputs = {"name": "Fabric-PowerBI", "collection_name": "dataplatform"}
        run_op(DataSourceEnsure, inputs)

        outcome, _ = run_op(DataSourceEnsure, inputs)

        assert outcome.existed
        assert cloud.count("PUT") == 1

    @pytest.mark.parametrize("name", [None, "", " - ", "Default", "ROOT"])
    def test_root_aliases(self, name):
        assert collection_reference(name) is None


# ============================================================================
# SCAN
# ============================================================================

class TestScan:

    def test_scan_created_and_run_to_completion(self, cloud, clock, datasource, run_op):
        cloud.scan_run_polls_to_finish = 3

        outcome, _ = run_op(ScanEnsure, SCAN_INPUTS)

        assert not outcome.existed
        assert outcome.outputs["scan_name"] == "scan-workspace-ws-1"
        assert outcome.outputs["run_status"] == "Succeeded"
        assert cloud.count("POST", r"/run$") == 1
        assert clock.sleeps == [5, 5]
        scan = cloud.scans[(datasource, "scan-workspace-ws-1")]
        assert scan["properties"]["scanScope"]["workspaces"] == [{"id": "ws-1"}]

    def test_succeeded_run_is_reused(self, cloud, datasource, run_op):
        first, _ = run_op(ScanEnsure, SCAN_INPUTS)
        second, _ = run_op(ScanEnsure, SCAN_INPUTS)

        assert second.existed
        assert second.outputs == first.outputs
        assert cloud.count("POST", r"/run$") == 1

    def test_failed_run_fails_step_then_retriggers(self, cloud, datasource, run_op):
        cloud.scan_run_final_status = "Failed"
        with pytest.raises(ConvergenceFailedError):
            run_op(ScanEnsure, SCAN_INPUTS)

        cloud.scan_run_final_status = "Succeeded"
        outcome, _ = run_op(ScanEnsure, SCAN_INPUTS)

        assert not outcome.existed
        assert outcome.outputs["run_status"] == "Succeeded"
        assert cloud.count("POST", r"/run$") == 2

    def test_cancelled_run_warns(self, cloud, datasource, run_op):
        cloud.scan_run_final_status = "Canceled"

        outcome, _ = run_op(ScanEnsure, SCAN_INPUTS)

        assert outcome.outputs["run_status"] == "Canceled"
        assert any("cancelled" in w for w in outcome.warnings)

    def test_slow_scan_proceeds_after_timeout(self, cloud, datasource, run_op):
        cloud.scan_run_polls_to_finish = 1000

        outcome, _ = run_op(ScanEnsure, SCAN_INPUTS, timeout_seconds=30)

        assert outcome.outputs["run_status"] == "InProgress"
        assert len(outcome.warnings) == 1

    def test_missing_datasource_is_fatal(self, cloud, run_op):
        with pytest.raises(FatalError):
            run_op(ScanEnsure, SCAN_INPUTS)

    def test_run_id_taken_from_scan_result_id(self, cloud, datasource, run_op):
        outcome, _ = run_op(ScanEnsure, SCAN_INPUTS)

        triggered = cloud.scan_runs[(datasource, "scan-workspace-ws-1")]
        assert outcome.outputs["run_id"] == triggered[0]["id"]
        assert cloud.count("GET", r"/runs/None$") == 0

    def test_trigger_without_run_id_warns_instead_of_polling(self, cloud, clock, datasource, run_op):
        cloud.script("POST", r"/scans/scan-workspace-ws-1/run$", httpx.Response(202, json={"status": "Accepted"}))

        outcome, _ = run_op(ScanEnsure, SCAN_INPUTS)

        assert not outcome.existed
        assert outcome.outputs["run_id"] is None
        assert outcome.outputs["run_status"] == "Accepted"
        assert any("no run id" in w for w in outcome.warnings)
        assert cloud.count("GET", r"/runs/") == 0
        assert clock.sleeps == []

    def test_named_scan_scoped_elsewhere_is_rescoped_and_rerun(self, cloud, datasource, run_op):
        key = (datasource, "nightly")
        cloud.scans[key] = {
            "name": "nightly",
            "kind": "PowerBIMsi",
            "properties": {"scanScope": {"type": "PowerBIScanScope", "workspaces": [{"id": "ws-OTHER"}]}},
        }
        cloud.scan_runs[key] = [
            {"id": "old-run", "status": "Succeeded", "startTime": "2026-10-17T00:00:00Z", "_polls": 0},
        ]

        outcome, _ = run_op(ScanEnsure, {**SCAN_INPUTS, "name": "nightly"})

        assert not outcome.existed
        assert cloud.scans[key]["properties"]["scanScope"]["workspaces"] == [{"id": "ws-1"}]
        assert cloud.count("PUT", r"/scans/nightly$") == 1
        assert cloud.count("POST", r"/scans/nightly/run$") == 1
        assert outcome.outputs["run_id"] != "old-run"
        assert outcome.outputs["run_status"] == "Succeeded"

    def test_named_scan_with_matching_scope_is_left_alone(self, cloud, datasource, run_op):
        run_op(ScanEnsure, {**SCAN_INPUTS, "name": "nightly"})

        outcome, _ = run_op(ScanEnsure, {**SCAN_INPUTS, "name": "nightly"})

        assert outcome.existed
        assert cloud.count("PUT", r"/scans/nightly$") == 1

    def test_latest_run_by_start_time(self):
        runs = [
            {"id": "a", "startTime": "2026-10-18T00:01:00Z"},
            {"id": "b", "startTime": "2026-10-18T00:03:00Z"},
            {"id": "c", "startTime": "2026-10-18T00:02:00Z"},
        ]
        assert latest_run(runs)["id"] == "b"
        assert latest_run([]) is None
