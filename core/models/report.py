# ============================================================================
# RUN REPORT MODEL
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core model - Execution report
# PURPOSE: Per-step result map plus overall outcome for one run
# CREATED: 18 OCT 2026
# EXPORTS: RunReport
# DEPENDENCIES: pydantic
# ============================================================================
"""
Run Report Model

The only artifact the orchestrator emits. Always complete: every step in
the plan has a record, whatever the outcome. A saved report is the input
to a resumed run (re-run only the failed/skipped subset).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from core.contracts import RunOutcome, StepStatus
from core.models.record import ExecutionRecord


class RunReport(BaseModel):
    """Result of one orchestration run."""

    run_id: str
    plan_id: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    outcome: RunOutcome
    records: Dict[str, ExecutionRecord] = Field(default_factory=dict)

    # Configuration error text (cycle, dangling dependency, ...)
    error: Optional[str] = None
    cancelled: bool = False

    @computed_field
    @property
    def failed_steps(self) -> List[str]:
        """Names of steps that ended FAILED."""
        return [
            name for name, record in self.records.items()
            if record.status == StepStatus.FAILED
        ]

    @computed_field
    @property
    def skipped_steps(self) -> List[str]:
        """Names of steps that ended SKIPPED."""
        return [
            name for name, record in self.records.items()
            if record.status == StepStatus.SKIPPED
        ]

    @property
    def succeeded(self) -> bool:
        return self.outcome == RunOutcome.ALL_SUCCEEDED

    def get(self, step: str) -> ExecutionRecord:
        """Get a record by step name."""
        if step not in self.records:
            raise KeyError(f"Step '{step}' not found in report {self.run_id}")
        return self.records[step]

    def outputs_of(self, step: str) -> Dict[str, Any]:
        return dict(self.get(step).outputs)

    def status_counts(self) -> Dict[str, int]:
        """Count of records per status value."""
        counts: Dict[str, int] = {}
        for record in self.records.values():
            counts[record.status.value] = counts.get(record.status.value, 0) + 1
        return counts


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["RunReport"]
