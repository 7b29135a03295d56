# ============================================================================
# ERROR TAXONOMY
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Foundation - Exceptions carrying an ErrorClass
# PURPOSE: One exception hierarchy for remote, step, and graph failures
# CREATED: 18 OCT 2026
# ============================================================================
"""
Error classes for the provisioning orchestrator.

Every exception carries an ErrorClass so the retry policy can decide
without inspecting messages:
- TransientError / NotReadyError: safe to retry within budget
- FatalError / ConfigurationError: never retried
- RemoteCallError: raised by the remote client, classification computed
  from status code and provider error code

Steps raise these; the executor catches them at the step boundary and
records them.
"""

from typing import Any, Optional

from core.contracts import ErrorClass


class ProvisioningError(Exception):
    """Base exception for the orchestrator."""

    classification: ErrorClass = ErrorClass.FATAL

    def __init__(self, message: str, classification: Optional[ErrorClass] = None):
        super().__init__(message)
        if classification is not None:
            self.classification = classification


class RemoteCallError(ProvisioningError):
    """
    A remote control plane rejected or failed a call.

    Attributes:
        status_code: HTTP status (None for transport failures)
        error_code: Provider error code from the response body, if any
        detail: Truncated response body
    """

    def __init__(
        self,
        message: str,
        classification: ErrorClass,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        detail: Any = None,
    ):
        super().__init__(message, classification)
        self.status_code = status_code
        self.error_code = error_code
        self.detail = detail


class TransientError(ProvisioningError):
    """Rate limit, 5xx, network failure. Retried with exponential backoff."""

    classification = ErrorClass.TRANSIENT


class NotReadyError(ProvisioningError):
    """
    A dependency exists but is not usable yet.

    Examples:
    - Capacity not in Active state
    - Workspace not yet visible to a dependent API
    """

    classification = ErrorClass.NOT_READY


class FatalError(ProvisioningError):
    """Auth, permission, or validation failure. Never retried."""

    classification = ErrorClass.FATAL


class ConflictUnresolvedError(FatalError):
    """Creation reported Conflict but the natural-key lookup still finds nothing."""


class BindingError(FatalError):
    """An input binding could not be resolved from config or upstream outputs."""


class OutputAlreadyWrittenError(FatalError):
    """A step tried to write its outputs twice in one run."""

    def __init__(self, step: str):
        self.step = step
        super().__init__(f"Outputs already written for step '{step}'")


class ConfigurationError(ProvisioningError):
    """The step graph is invalid (cycle, dangling dependency, unknown operation)."""

    classification = ErrorClass.CONFIGURATION


class PollTimeoutError(ProvisioningError):
    """The convergence poller ran out of time before a terminal state."""

    classification = ErrorClass.TIMEOUT

    def __init__(self, message: str, last_state: Optional[str] = None):
        super().__init__(message)
        self.last_state = last_state


class ConvergenceFailedError(FatalError):
    """The polled resource reached a failure state (e.g. Failed, Deleting)."""

    def __init__(self, message: str, state: Optional[str] = None):
        super().__init__(message)
        self.state = state


__all__ = [
    "ProvisioningError",
    "RemoteCallError",
    "TransientError",
    "NotReadyError",
    "FatalError",
    "ConflictUnresolvedError",
    "BindingError",
    "OutputAlreadyWrittenError",
    "ConfigurationError",
    "PollTimeoutError",
    "ConvergenceFailedError",
]
