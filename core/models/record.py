# ============================================================================
# EXECUTION RECORD MODEL
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core model - Step runtime state
# PURPOSE: Track state of each step within one orchestration run
# CREATED: 18 OCT 2026
# EXPORTS: ExecutionRecord
# DEPENDENCIES: pydantic
# ============================================================================
"""
Execution Record Model

ExecutionRecord tracks the runtime state of a single step within a run.

Key concept:
- StepDefinition = TEMPLATE (what to do)
- ExecutionRecord = INSTANCE (what happened in this run)

Only the executor and the retry runner mutate records, and only through
the guarded mark_* methods. A terminal record rejects every further
transition.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from core.contracts import ErrorClass, StepStatus


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionRecord(BaseModel):
    """
    Runtime state of a step within a run.

    Lifecycle:
        1. Created with status=PENDING when the run starts
        2. RUNNING when the executor invokes the step
        3. SUCCEEDED / SUCCEEDED_EXISTING / FAILED when the step returns
        4. SKIPPED if an upstream step failed or the run was cancelled
    """

    step: str
    operation: Optional[str] = None
    status: StepStatus = Field(default=StepStatus.PENDING)

    attempts: int = Field(default=0, ge=0)
    last_error: Optional[ErrorClass] = None
    error_message: Optional[str] = Field(default=None, max_length=2000)

    outputs: Dict[str, Any] = Field(default_factory=dict)
    skipped_because: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    # True when the record was copied from a prior run's report
    carried_over: bool = False

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @computed_field
    @property
    def is_terminal(self) -> bool:
        """Check if step is in a terminal state."""
        return self.status.is_terminal()

    @computed_field
    @property
    def is_successful(self) -> bool:
        """Check if step completed successfully."""
        return self.status.is_successful()

    @computed_field
    @property
    def duration_seconds(self) -> Optional[float]:
        """Wall-clock duration, once started."""
        if not self.started_at:
            return None
        end_time = self.completed_at or _utc_now()
        return (end_time - self.started_at).total_seconds()

    def can_transition_to(self, new_status: StepStatus) -> bool:
        """
        Validate if a status transition is allowed.

        Valid transitions:
            PENDING -> RUNNING, SKIPPED
            RUNNING -> SUCCEEDED, SUCCEEDED_EXISTING, FAILED
            SUCCEEDED, SUCCEEDED_EXISTING, FAILED, SKIPPED -> (none, terminal)
        """
        allowed = {
            StepStatus.PENDING: {StepStatus.RUNNING, StepStatus.SKIPPED},
            StepStatus.RUNNING: {
                StepStatus.SUCCEEDED,
                StepStatus.SUCCEEDED_EXISTING,
                StepStatus.FAILED,
            },
        }
        return new_status in allowed.get(self.status, set())

    def _transition(self, new_status: StepStatus) -> None:
        if not self.can_transition_to(new_status):
            raise ValueError(
                f"Step '{self.step}': cannot transition from {self.status.value} "
                f"to {new_status.value}"
            )
        self.status = new_status

    def mark_running(self) -> None:
        """Mark step as running (executor invoked it)."""
        self._transition(StepStatus.RUNNING)
        self.started_at = _utc_now()

    def record_attempt(self) -> None:
        """
        Count one invocation of the step's operation.

        Called by the retry runner before each attempt; a failed
        attempt's classification is recorded separately via note_error.
        """
        if self.status != StepStatus.RUNNING:
            raise ValueError(f"Step '{self.step}': attempts only counted while RUNNING")
        self.attempts += 1

    def note_error(self, classification: ErrorClass, message: str) -> None:
        """Remember the latest failed attempt without ending the step."""
        if self.status != StepStatus.RUNNING:
            raise ValueError(f"Step '{self.step}': errors only noted while RUNNING")
        self.last_error = classification
        self.error_message = message[:2000]

    def add_warning(self, message: str) -> None:
        """Attach a soft warning (e.g. poll timeout tolerated)."""
        if self.is_terminal:
            raise ValueError(f"Step '{self.step}': record is terminal")
        self.warnings.append(message)

    def mark_succeeded(self, outputs: Dict[str, Any], existing: bool = False) -> None:
        """Mark step succeeded; existing=True when nothing was mutated."""
        self._transition(StepStatus.SUCCEEDED_EXISTING if existing else StepStatus.SUCCEEDED)
        self.outputs = dict(outputs)
        self.completed_at = _utc_now()

    def mark_failed(self, classification: ErrorClass, error_message: str) -> None:
        """Mark step as failed with the deepest classification observed."""
        self._transition(StepStatus.FAILED)
        self.last_error = classification
        self.error_message = error_message[:2000]
        self.completed_at = _utc_now()

    def mark_skipped(self, reason: str) -> None:
        """Mark step as skipped (upstream failed/skipped, or run cancelled)."""
        self._transition(StepStatus.SKIPPED)
        self.skipped_because = reason
        self.completed_at = _utc_now()


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["ExecutionRecord"]
