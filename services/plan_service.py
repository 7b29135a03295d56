# ============================================================================
# PLAN SERVICE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Service - Plan definition management
# PURPOSE: Load and cache provisioning plans from YAML
# CREATED: 18 OCT 2026
# ============================================================================
"""
Plan Service

Loads provisioning plans from YAML files and provides lookup by
plan_id. Plan files live in the workflows/ directory by default.

Structural problems a YAML file can express (bad field types, duplicate
step names, malformed YAML) surface as ConfigurationError. Graph-level
problems (cycles, dangling dependencies, unknown operations) are left to
the executor, which reports them without issuing remote calls.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from core.errors import ConfigurationError
from core.models import ProvisioningPlan

logger = logging.getLogger(__name__)

PLAN_SUFFIXES = (".yaml", ".yml")


class PlanService:
    """Service for loading and managing plan definitions."""

    def __init__(self, plans_dir: Optional[Union[str, Path]] = None):
        """
        Args:
            plans_dir: Directory containing plan YAML files.
                       Defaults to ./workflows/
        """
        if plans_dir:
            self.plans_dir = Path(plans_dir)
        else:
            self.plans_dir = Path(__file__).parent.parent / "workflows"

        self._cache: Dict[str, ProvisioningPlan] = {}
        self._loaded = False
        self.load_errors: Dict[str, str] = {}

    def load_all(self) -> int:
        """
        Load every plan in the plans directory.

        Files that fail to load are logged and listed in load_errors;
        they do not stop the others from loading.

        Returns:
            Number of plans loaded
        """
        if not self.plans_dir.exists():
            logger.warning(f"Plans directory not found: {self.plans_dir}")
            return 0

        count = 0
        for path in sorted(self.plans_dir.iterdir()):
            if path.suffix not in PLAN_SUFFIXES:
                continue
            try:
                plan = self.load_file(path)
            except ConfigurationError as e:
                logger.error(f"Failed to load {path}: {e}")
                self.load_errors[str(path)] = str(e)
                continue
            self._cache[plan.plan_id] = plan
            count += 1
            logger.info(f"Loaded plan: {plan.plan_id} ({len(plan.steps)} steps)")

        self._loaded = True
        logger.info(f"Loaded {count} plans from {self.plans_dir}")
        return count

    def get(self, plan_id: str) -> Optional[ProvisioningPlan]:
        if not self._loaded:
            self.load_all()
        return self._cache.get(plan_id)

    def get_or_raise(self, plan_id: str) -> ProvisioningPlan:
        """
        Raises:
            KeyError if plan not found
        """
        plan = self.get(plan_id)
        if plan is None:
            raise KeyError(f"Plan not found: {plan_id}")
        return plan

    def list_all(self) -> List[ProvisioningPlan]:
        if not self._loaded:
            self.load_all()
        return list(self._cache.values())

    def register(self, plan: ProvisioningPlan) -> None:
        """Register a plan programmatically (tests, generated plans)."""
        self._cache[plan.plan_id] = plan
        logger.info(f"Registered plan: {plan.plan_id}")

    def reload(self) -> int:
        self._cache.clear()
        self.load_errors.clear()
        self._loaded = False
        return self.load_all()

    # ------------------------------------------------------------------
    # PARSING
    # ------------------------------------------------------------------

    def load_file(self, path: Union[str, Path]) -> ProvisioningPlan:
        """
        Load a single plan file.

        Raises:
            ConfigurationError: unreadable file, invalid YAML, invalid plan
        """
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read plan file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        return self.parse(data, source=str(path))

    @staticmethod
    def parse(data: Any, source: str = "<plan>") -> ProvisioningPlan:
        """
        Validate an already-parsed plan document.

        Raises:
            ConfigurationError: if the document is not a valid plan
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"Plan {source} must be a mapping, got {type(data).__name__}")
        try:
            return ProvisioningPlan.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid plan {source}: {e}") from e


def apply_overrides(plan: ProvisioningPlan, overrides: Mapping[str, Any]) -> ProvisioningPlan:
    """
    Copy of plan with config values replaced.

    Keys are dotted paths into config ("workspace.name"); intermediate
    mappings are created as needed.
    """
    config = copy.deepcopy(plan.config)
    for dotted, value in overrides.items():
        target = config
        parts = dotted.split(".")
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child
        target[parts[-1]] = value
    return plan.model_copy(update={"config": config})


__all__ = ["PlanService", "apply_overrides"]
