# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================

from core.models.step import StepDefinition, RetryPolicy, PollSettings
from core.models.record import ExecutionRecord
from core.models.report import RunReport
from core.models.plan import ProvisioningPlan

__all__ = [
    # Templates
    "StepDefinition",
    "RetryPolicy",
    "PollSettings",
    "ProvisioningPlan",
    # Runtime
    "ExecutionRecord",
    "RunReport",
]
