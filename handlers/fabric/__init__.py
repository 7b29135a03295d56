# ============================================================================
# FABRIC OPERATIONS
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Operations - Fabric / ARM control planes
# PURPOSE: Capacity, workspace, lakehouse and domain steps
# CREATED: 18 OCT 2026
# ============================================================================
"""
Fabric operations.

Registered operations:
    fabric.capacity.ensure_active
    fabric.workspace.ensure
    fabric.lakehouse.ensure
    fabric.domain.ensure
    fabric.domain.assign_workspace
"""

from handlers.fabric.capacity import CapacityEnsureActive
from handlers.fabric.domain import DomainAssignWorkspace, DomainEnsure
from handlers.fabric.lakehouse import LakehouseEnsure
from handlers.fabric.workspace import WorkspaceEnsure

__all__ = [
    "CapacityEnsureActive",
    "WorkspaceEnsure",
    "LakehouseEnsure",
    "DomainEnsure",
    "DomainAssignWorkspace",
]
