# ============================================================================
# OPERATIONS PACKAGE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Operation registration and lookup
# PURPOSE: Idempotent step base class and the registered operations
# CREATED: 18 OCT 2026
# ============================================================================
"""
Operations

Every plan step names an operation; each operation is an IdempotentStep
subclass registered by name.

Usage:
    from handlers import register_operation, IdempotentStep

    @register_operation("fabric.domain.ensure")
    class DomainEnsure(IdempotentStep):
        ...

    step_cls = get_operation_or_raise("fabric.domain.ensure")
"""

from handlers.registry import (
    register_operation,
    get_operation,
    get_operation_or_raise,
    list_operations,
    get_operation_metadata,
    unregister_operation,
    validate_operations,
    OperationNotFoundError,
    DuplicateOperationError,
)
from handlers.base import IdempotentStep, StepOutcome, StepRuntime

# Import operation modules to trigger registration
import handlers.fabric  # noqa: F401 - import for side effects
import handlers.purview  # noqa: F401 - import for side effects

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
    "IdempotentStep",
    "StepOutcome",
    "StepRuntime",
]
