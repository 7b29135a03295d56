# ============================================================================
# INPUT BINDING ENGINE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Template resolution with Jinja2
# PURPOSE: Resolve {{ }} input bindings against the Output Store and config
# CREATED: 18 OCT 2026
# ============================================================================
"""
Input Binding Engine

Resolves template expressions in step inputs.

Supported patterns:
- {{ config.key }} - Static plan configuration
- {{ steps.step_name.outputs.key }} - Output of a completed upstream step

Examples:
    inputs:
      display_name: "{{ config.workspace_name }}"
      capacity_id: "{{ steps.capacity.outputs.capacity_guid }}"
      description: "Lakehouse for {{ config.environment }}"

A value that is exactly one expression keeps its native type (lists,
numbers); mixed content renders to a string. Anything undefined raises
BindingError, so a step never runs with a half-resolved input.
"""

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Set

from jinja2 import (
    BaseLoader,
    Environment,
    StrictUndefined,
    TemplateSyntaxError,
    Undefined,
    UndefinedError,
    nodes,
)

from core.errors import BindingError

logger = logging.getLogger(__name__)


class BindingResolver:
    """
    Jinja2-based resolver for step inputs.

    Stateless, can be reused across steps and runs.
    """

    def __init__(self):
        self._env = Environment(
            loader=BaseLoader(),
            autoescape=False,
            undefined=StrictUndefined,
        )

    # ------------------------------------------------------------------
    # RESOLUTION
    # ------------------------------------------------------------------

    def resolve(self, inputs: Dict[str, Any], context: "BindingContext") -> Dict[str, Any]:
        """
        Resolve all template expressions in an inputs dict.

        Raises:
            BindingError: If any template cannot be resolved
        """
        return self._resolve_value(inputs, context.to_dict())

    def _resolve_value(self, value: Any, context: Dict[str, Any]) -> Any:
        """Recursively resolve template expressions in a value."""
        if isinstance(value, str):
            return self._resolve_string(value, context)
        elif isinstance(value, dict):
            return {k: self._resolve_value(v, context) for k, v in value.items()}
        elif isinstance(value, list):
            return [self._resolve_value(item, context) for item in value]
        else:
            return value

    def _resolve_string(self, value: str, context: Dict[str, Any]) -> Any:
        if "{{" not in value:
            return value

        inner = self._single_expression(value)
        try:
            if inner is not None:
                result = self._env.compile_expression(inner, undefined_to_none=False)(**context)
                if isinstance(result, Undefined):
                    # Force StrictUndefined to raise with its own message
                    str(result)
                return result
            return self._env.from_string(value).render(context)
        except (TemplateSyntaxError, UndefinedError) as e:
            raise BindingError(f"Failed to resolve '{value}': {e}") from e

    @staticmethod
    def _single_expression(value: str) -> Optional[str]:
        """Inner expression if value is exactly one {{ ... }}, else None."""
        stripped = value.strip()
        if stripped.startswith("{{") and stripped.endswith("}}"):
            inner = stripped[2:-2].strip()
            if "{{" not in inner and "}}" not in inner:
                return inner
        return None

    # ------------------------------------------------------------------
    # STATIC ANALYSIS
    # ------------------------------------------------------------------

    def referenced_steps(self, inputs: Any) -> Set[str]:
        """
        Names of steps referenced as steps.<name> anywhere in inputs.

        Used before execution to check every binding points at an
        upstream step.

        Raises:
            BindingError: If a template does not parse
        """
        found: Set[str] = set()
        for template in _iter_strings(inputs):
            if "{{" not in template:
                continue
            try:
                tree = self._env.parse(template)
            except TemplateSyntaxError as e:
                raise BindingError(f"Invalid template '{template}': {e}") from e
            for node in tree.find_all((nodes.Getattr, nodes.Getitem)):
                if not (isinstance(node.node, nodes.Name) and node.node.name == "steps"):
                    continue
                if isinstance(node, nodes.Getattr):
                    found.add(node.attr)
                elif isinstance(node.arg, nodes.Const) and isinstance(node.arg.value, str):
                    found.add(node.arg.value)
        return found


def _iter_strings(value: Any) -> Iterable[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for v in value.values():
            yield from _iter_strings(v)
    elif isinstance(value, list):
        for item in value:
            yield from _iter_strings(item)


class BindingContext:
    """
    Context for binding resolution.

    Provides access to:
    - config: static plan configuration
    - steps: outputs of completed steps (from the Output Store snapshot)
    """

    def __init__(
        self,
        config: Optional[Mapping[str, Any]] = None,
        step_outputs: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ):
        self.config = dict(config or {})
        self.step_outputs = {k: dict(v) for k, v in (step_outputs or {}).items()}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for Jinja2 rendering."""
        return {
            "config": self.config,
            "steps": {
                name: {"outputs": outputs}
                for name, outputs in self.step_outputs.items()
            },
        }


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "BindingResolver",
    "BindingContext",
]
