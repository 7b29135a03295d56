# ============================================================================
# ORCHESTRATOR ENGINE
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Engine components
# PURPOSE: Dependency graph and input binding
# CREATED: 18 OCT 2026
# ============================================================================
"""
Orchestrator Engine Components

- graph: dependency graph, cycle detection, topological order
- bindings: Jinja2-based input binding against config and step outputs
"""

from orchestrator.engine.graph import (
    DependencyGraph,
    GraphBuilder,
    TopologicalSorter,
    build_execution_order,
)
from orchestrator.engine.bindings import (
    BindingResolver,
    BindingContext,
)

__all__ = [
    # Graph
    "DependencyGraph",
    "GraphBuilder",
    "TopologicalSorter",
    "build_execution_order",
    # Bindings
    "BindingResolver",
    "BindingContext",
]
