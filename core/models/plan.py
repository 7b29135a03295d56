# ============================================================================
# PROVISIONING PLAN MODEL
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core model - Plan loaded from YAML
# PURPOSE: Static config plus the list of steps for one provisioning run
# CREATED: 18 OCT 2026
# EXPORTS: ProvisioningPlan
# DEPENDENCIES: pydantic
# ============================================================================
"""
Provisioning Plan Model

A plan is what the external configuration loader hands the orchestrator:
static config values (exposed to bindings as {{ config.* }}) and the
step definitions. Structural checks (cycles, dangling dependencies) are
done by the graph builder, not here.
"""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from core.models.step import StepDefinition


class ProvisioningPlan(BaseModel):
    """Complete plan loaded from YAML."""

    plan_id: str = Field(..., max_length=64)
    name: str = Field(..., max_length=128)
    description: Optional[str] = None

    config: Dict[str, Any] = Field(default_factory=dict)
    steps: List[StepDefinition] = Field(..., min_length=1)

    @field_validator("steps")
    @classmethod
    def unique_step_names(cls, v: List[StepDefinition]) -> List[StepDefinition]:
        seen = set()
        duplicates = []
        for step in v:
            if step.name in seen:
                duplicates.append(step.name)
            seen.add(step.name)
        if duplicates:
            raise ValueError(f"Duplicate step names: {sorted(set(duplicates))}")
        return v

    @property
    def step_names(self) -> List[str]:
        return [s.name for s in self.steps]

    def get_step(self, name: str) -> StepDefinition:
        """Get a step definition by name."""
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(f"Step '{name}' not found in plan '{self.plan_id}'")

    def edges(self) -> List[Tuple[str, str]]:
        """(upstream, downstream) pairs declared via depends_on."""
        return [(dep, s.name) for s in self.steps for dep in s.depends_on]


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["ProvisioningPlan"]
