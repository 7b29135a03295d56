# ============================================================================
# OUTPUT STORE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Run-scoped output registry
# PURPOSE: Write-once key/value store feeding downstream input bindings
# CREATED: 18 OCT 2026
# ============================================================================
"""
Output Store

Keys are "step.output". Each step writes its outputs exactly once per
run; downstream bindings read them any number of times. The executor
owns the store for the lifetime of one run.

All access happens on the event loop thread, so the write-once guard is
the only protection needed.
"""

import logging
from typing import Any, Dict, Mapping

from core.errors import OutputAlreadyWrittenError

logger = logging.getLogger(__name__)


class OutputStore:
    """Write-once registry of step outputs for one run."""

    def __init__(self):
        self._outputs: Dict[str, Dict[str, Any]] = {}

    def put(self, step: str, outputs: Mapping[str, Any]) -> None:
        """
        Record a successful step's outputs.

        Raises:
            OutputAlreadyWrittenError: If the step already wrote outputs
        """
        if step in self._outputs:
            raise OutputAlreadyWrittenError(step)
        self._outputs[step] = dict(outputs)
        logger.debug(f"Stored outputs for {step}: {sorted(outputs)}")

    def seed(self, step: str, outputs: Mapping[str, Any]) -> None:
        """Pre-load outputs recorded by a prior run (resume)."""
        self.put(step, outputs)

    def has(self, step: str) -> bool:
        return step in self._outputs

    def get(self, key: str) -> Any:
        """
        Read one value by "step.output" key.

        Raises:
            KeyError: If the step or output is unknown
        """
        step, _, name = key.partition(".")
        if not name:
            raise KeyError(f"Output key must be 'step.output', got '{key}'")
        if step not in self._outputs or name not in self._outputs[step]:
            raise KeyError(f"No output '{key}'")
        return self._outputs[step][name]

    def outputs_of(self, step: str) -> Dict[str, Any]:
        """Copy of one step's outputs."""
        if step not in self._outputs:
            raise KeyError(f"No outputs for step '{step}'")
        return dict(self._outputs[step])

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Copy of every step's outputs, for binding resolution."""
        return {step: dict(values) for step, values in self._outputs.items()}

    def keys(self):
        """All "step.output" keys."""
        return [f"{step}.{name}" for step, values in self._outputs.items() for name in values]

    def __contains__(self, key: str) -> bool:
        try:
            self.get(key)
        except KeyError:
            return False
        return True

    def __len__(self) -> int:
        return len(self._outputs)


__all__ = ["OutputStore"]
