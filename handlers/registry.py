# ============================================================================
# OPERATION REGISTRY
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Operation registration and lookup
# PURPOSE: Register and discover idempotent step classes by operation name
# CREATED: 18 OCT 2026
# ============================================================================
"""
Operation Registry

Central registry mapping operation names used in plans
(e.g. "fabric.workspace.ensure") to IdempotentStep subclasses.

Design:
- Operations are registered at import time via decorator
- Registry is a simple dict (operation_name -> step class)
- Fail-fast on duplicate registration
- Unknown operations in a plan are a configuration error
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Type

from core.errors import ConfigurationError

logger = logging.getLogger(__name__)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class OperationNotFoundError(ConfigurationError):
    """Raised when a plan names an operation that is not registered."""
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Operation not found: {operation}")


class DuplicateOperationError(Exception):
    """Raised when an operation name is already registered."""
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Operation already registered: {operation}")


# ============================================================================
# REGISTRY
# ============================================================================

_operations: Dict[str, Type[Any]] = {}
_operation_metadata: Dict[str, Dict[str, Any]] = {}


def register_operation(
    name: str,
    *,
    description: str = "",
) -> Callable[[Type[Any]], Type[Any]]:
    """
    Class decorator registering an IdempotentStep subclass.

    Args:
        name: Operation name (must be unique)
        description: Human-readable description

    Example:
        @register_operation("fabric.domain.ensure")
        class DomainStep(IdempotentStep):
            ...
    """
    def decorator(cls: Type[Any]) -> Type[Any]:
        if name in _operations:
            raise DuplicateOperationError(name)

        cls.operation = name
        _operations[name] = cls
        _operation_metadata[name] = {
            "name": name,
            "description": description or (cls.__doc__ or "").strip().split("\n")[0],
            "control_plane": getattr(getattr(cls, "control_plane", None), "value", None),
            "outputs": list(getattr(cls, "outputs", ())),
            "class": cls.__name__,
            "module": cls.__module__,
            "registered_at": datetime.now(timezone.utc).isoformat(),
        }

        logger.debug(f"Registered operation: {name} ({cls.__module__}.{cls.__name__})")
        return cls

    return decorator


def get_operation(name: str) -> Optional[Type[Any]]:
    """Get a step class by operation name, or None."""
    return _operations.get(name)


def get_operation_or_raise(name: str) -> Type[Any]:
    """
    Get a step class by operation name.

    Raises:
        OperationNotFoundError: if not registered
    """
    step_cls = _operations.get(name)
    if step_cls is None:
        raise OperationNotFoundError(name)
    return step_cls


def list_operations() -> List[Dict[str, Any]]:
    """Metadata for every registered operation."""
    return list(_operation_metadata.values())


def get_operation_metadata(name: str) -> Optional[Dict[str, Any]]:
    return _operation_metadata.get(name)


def unregister_operation(name: str) -> None:
    """
    Remove one operation.

    Primarily for tests that register throwaway operations.
    """
    _operations.pop(name, None)
    _operation_metadata.pop(name, None)


def validate_operations(names: Iterable[str]) -> List[str]:
    """
    Check that every operation named in a plan is registered.

    Returns:
        Missing operation names (empty if all valid)
    """
    return [name for name in names if name not in _operations]


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "register_operation",
    "get_operation",
    "get_operation_or_raise",
    "list_operations",
    "get_operation_metadata",
    "unregister_operation",
    "validate_operations",
    "OperationNotFoundError",
    "DuplicateOperationError",
]
