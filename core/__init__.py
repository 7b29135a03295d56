# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core module initialization
# PURPOSE: Export core contracts, errors, and models
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================

from core.contracts import ControlPlane, ErrorClass, PollTolerance, RunOutcome, StepStatus
from core.models import (
    ExecutionRecord,
    PollSettings,
    ProvisioningPlan,
    RetryPolicy,
    RunReport,
    StepDefinition,
)

__all__ = [
    # Enums
    "StepStatus",
    "ErrorClass",
    "RunOutcome",
    "PollTolerance",
    "ControlPlane",
    # Models
    "StepDefinition",
    "RetryPolicy",
    "PollSettings",
    "ProvisioningPlan",
    "ExecutionRecord",
    "RunReport",
]
