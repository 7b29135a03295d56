# ============================================================================
# STEP DEFINITION MODEL
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core model - Step template
# PURPOSE: Declarative definition of one idempotent provisioning step
# CREATED: 18 OCT 2026
# EXPORTS: StepDefinition, RetryPolicy, PollSettings
# DEPENDENCIES: pydantic
# ============================================================================
"""
Step Definition Models

A StepDefinition is the TEMPLATE for one unit of provisioning work:
- Which registered operation to run
- Input bindings ({{ steps.X.outputs.Y }} / {{ config.Z }} templates)
- Dependencies on other steps
- Declared outputs
- Optional retry and poll overrides

ExecutionRecord (in record.py) is the per-run INSTANCE.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from core.config.defaults import PollDefaults, RetryDefaults
from core.contracts import PollTolerance


class RetryPolicy(BaseModel):
    """
    Per-step retry overrides.

    Unset fields fall back to RetryDefaults from the environment.
    """
    max_attempts: Optional[int] = Field(default=None, ge=1, le=50)
    base_delay_seconds: Optional[float] = Field(default=None, ge=0)
    max_delay_seconds: Optional[float] = Field(default=None, ge=0)
    not_ready_interval_seconds: Optional[float] = Field(default=None, ge=0)
    not_ready_timeout_seconds: Optional[float] = Field(default=None, ge=0)

    def resolve(self, defaults: RetryDefaults) -> RetryDefaults:
        """Merge overrides onto defaults."""
        return RetryDefaults(
            max_attempts=self.max_attempts if self.max_attempts is not None else defaults.max_attempts,
            base_delay_seconds=(
                self.base_delay_seconds if self.base_delay_seconds is not None
                else defaults.base_delay_seconds
            ),
            max_delay_seconds=(
                self.max_delay_seconds if self.max_delay_seconds is not None
                else defaults.max_delay_seconds
            ),
            not_ready_interval_seconds=(
                self.not_ready_interval_seconds if self.not_ready_interval_seconds is not None
                else defaults.not_ready_interval_seconds
            ),
            not_ready_timeout_seconds=(
                self.not_ready_timeout_seconds if self.not_ready_timeout_seconds is not None
                else defaults.not_ready_timeout_seconds
            ),
        )


class PollSettings(BaseModel):
    """
    Per-step convergence polling overrides.

    on_timeout declares what the step does when polling runs out of
    time; unset means the operation's own default tolerance.
    """
    interval_seconds: Optional[float] = Field(default=None, gt=0)
    timeout_seconds: Optional[float] = Field(default=None, ge=0)
    on_timeout: Optional[PollTolerance] = None

    def resolve(
        self,
        defaults: PollDefaults,
        default_tolerance: PollTolerance,
        default_interval: Optional[float] = None,
    ) -> "PollSettings":
        """
        Return a fully populated copy.

        default_interval lets an operation poll faster than the global
        default (scan runs poll every 5s) unless the plan overrides it.
        """
        interval = self.interval_seconds
        if interval is None:
            interval = default_interval if default_interval is not None else defaults.interval_seconds
        return PollSettings(
            interval_seconds=interval,
            timeout_seconds=(
                self.timeout_seconds if self.timeout_seconds is not None
                else defaults.timeout_seconds
            ),
            on_timeout=self.on_timeout or default_tolerance,
        )


class StepDefinition(BaseModel):
    """
    Definition of a single provisioning step.

    The name doubles as the template namespace: downstream steps read
    outputs as {{ steps.<name>.outputs.<key> }}.
    """
    name: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    operation: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None

    inputs: Dict[str, Any] = Field(
        default_factory=dict,
        description="Input bindings with {{ template }} expressions"
    )
    depends_on: List[str] = Field(default_factory=list)
    outputs: List[str] = Field(
        default_factory=list,
        description="Declared output names; empty means the operation's own set"
    )

    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    poll: PollSettings = Field(default_factory=PollSettings)

    @field_validator("depends_on", mode="before")
    @classmethod
    def handle_string_input(cls, v):
        """Allow single string as shorthand for single-item list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("depends_on")
    @classmethod
    def no_duplicate_dependencies(cls, v: List[str]) -> List[str]:
        """Collapse repeated dependency names, keeping first-seen order."""
        return list(dict.fromkeys(v))


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["StepDefinition", "RetryPolicy", "PollSettings"]
