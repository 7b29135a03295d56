# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Foundation - Core enums
# PURPOSE: Status, error classification, and outcome enums shared by all layers
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: StepStatus, ErrorClass, RunOutcome, PollTolerance, ControlPlane
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the provisioning orchestrator.

These enums cross every boundary:
- Remote client (classification of failed calls)
- Retry policy (decides retry vs abort from the classification)
- Executor (step status, overall outcome)
- Report (serialized to JSON for resumed runs)
"""

from enum import Enum


# ============================================================================
# STATUS ENUMS
# ============================================================================

class StepStatus(str, Enum):
    """
    Step lifecycle states within one run.

    State transitions:
        PENDING -> RUNNING -> SUCCEEDED
                           -> SUCCEEDED_EXISTING
                           -> FAILED
                -> SKIPPED (upstream failed/skipped, or run cancelled)
    """
    PENDING = "pending"                        # Waiting for dependencies
    RUNNING = "running"                        # Operation in progress
    SUCCEEDED = "succeeded"                    # Created or mutated the resource
    SUCCEEDED_EXISTING = "succeeded_existing"  # Found it, changed nothing
    FAILED = "failed"                          # Terminal failure
    SKIPPED = "skipped"                        # Never invoked

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in (
            StepStatus.SUCCEEDED,
            StepStatus.SUCCEEDED_EXISTING,
            StepStatus.FAILED,
            StepStatus.SKIPPED,
        )

    def is_successful(self) -> bool:
        """Check if this represents successful completion."""
        return self in (StepStatus.SUCCEEDED, StepStatus.SUCCEEDED_EXISTING)


class ErrorClass(str, Enum):
    """
    Classification attached to every failed remote call.

    NOT_FOUND and CONFLICT are resolved inside the idempotent step.
    TRANSIENT and NOT_READY are recovered by the retry policy.
    FATAL and CONFIGURATION are never retried.
    TIMEOUT comes from the convergence poller.
    """
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    NOT_READY = "not_ready"
    TRANSIENT = "transient"
    FATAL = "fatal"
    CONFIGURATION = "configuration"
    TIMEOUT = "timeout"

    def is_retryable(self) -> bool:
        """Check if the retry policy may re-invoke the step."""
        return self in (ErrorClass.TRANSIENT, ErrorClass.NOT_READY)


class RunOutcome(str, Enum):
    """Overall result of one orchestration run."""
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL_FAILURE = "partial_failure"
    CONFIGURATION_ERROR = "configuration_error"


class PollTolerance(str, Enum):
    """
    What a step does when its convergence poll times out.

    PROCEED: log a warning and succeed (downstream NOT_READY retries cover it)
    FAIL: fail the step with a TIMEOUT classification
    """
    PROCEED = "proceed"
    FAIL = "fail"


class ControlPlane(str, Enum):
    """Remote control planes the orchestrator talks to."""
    FABRIC = "fabric"
    ARM = "arm"
    PURVIEW = "purview"
