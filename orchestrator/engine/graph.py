# ============================================================================
# DEPENDENCY GRAPH
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Core - Step dependency resolution
# PURPOSE: Build the step graph, reject cycles and dangling edges, order steps
# CREATED: 18 OCT 2026
# ============================================================================
"""
Dependency Graph

Structural half of the executor: everything here runs before the first
remote call, so a bad plan fails with ConfigurationError and zero side
effects.

Features:
- Graph construction from depends_on plus optional explicit edges
- Dangling dependency detection
- Topological sort with cycle detection (Kahn)
- Transitive dependency / dependent closures (skip propagation,
  binding validation)

The graph is stateless with respect to a run; execution state lives in
ExecutionRecords owned by the executor.
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from core.errors import ConfigurationError
from core.models import StepDefinition

logger = logging.getLogger(__name__)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class DependencyGraph:
    """
    Dependency graph for a plan.

    A -> B means "B depends on A" (A must be terminal before B starts).
    Node order follows declaration order so sorts are deterministic.
    """
    # Step name -> steps that depend on it
    forward_edges: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    # Step name -> steps it depends on
    backward_edges: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    # All step names, in declaration order
    nodes: List[str] = field(default_factory=list)

    def add_node(self, name: str) -> None:
        if name not in self.nodes:
            self.nodes.append(name)

    def add_edge(self, from_node: str, to_node: str) -> None:
        """Add a dependency edge: to_node depends on from_node."""
        if from_node in self.backward_edges.get(to_node, []):
            return
        self.forward_edges[from_node].append(to_node)
        self.backward_edges[to_node].append(from_node)

    def get_dependencies(self, name: str) -> List[str]:
        """Get steps that this step depends on."""
        return self.backward_edges.get(name, [])

    def get_dependents(self, name: str) -> List[str]:
        """Get steps that depend on this step."""
        return self.forward_edges.get(name, [])

    def transitive_dependencies(self, name: str) -> Set[str]:
        """Every step reachable by walking dependencies upward."""
        return self._closure(name, self.get_dependencies)

    def transitive_dependents(self, name: str) -> Set[str]:
        """Every step that directly or indirectly depends on name."""
        return self._closure(name, self.get_dependents)

    @staticmethod
    def _closure(start: str, neighbours) -> Set[str]:
        seen: Set[str] = set()
        queue = deque(neighbours(start))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(neighbours(current))
        return seen

    def roots(self) -> List[str]:
        """Steps with no dependencies."""
        return [n for n in self.nodes if not self.get_dependencies(n)]


# ============================================================================
# GRAPH BUILDER
# ============================================================================

class GraphBuilder:
    """Builds and validates the dependency graph from step definitions."""

    def build(
        self,
        steps: Sequence[StepDefinition],
        edges: Optional[Iterable[Tuple[str, str]]] = None,
    ) -> DependencyGraph:
        """
        Build dependency graph from steps.

        Args:
            steps: Step definitions (depends_on contributes edges)
            edges: Extra (upstream, downstream) pairs

        Returns:
            DependencyGraph instance

        Raises:
            ConfigurationError: duplicate names or dangling references
        """
        graph = DependencyGraph()
        errors: List[str] = []

        names = [s.name for s in steps]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate step names: {duplicates}")

        known = set(names)
        for step in steps:
            graph.add_node(step.name)

        for step in steps:
            for dep in step.depends_on:
                if dep not in known:
                    errors.append(f"Step '{step.name}' depends on unknown step '{dep}'")
                    continue
                graph.add_edge(dep, step.name)

        for upstream, downstream in edges or ():
            missing = [n for n in (upstream, downstream) if n not in known]
            if missing:
                errors.append(f"Edge {upstream} -> {downstream} references unknown step(s) {missing}")
                continue
            graph.add_edge(upstream, downstream)

        if errors:
            raise ConfigurationError("; ".join(errors))

        return graph


# ============================================================================
# TOPOLOGICAL SORT / CYCLE DETECTION
# ============================================================================

class TopologicalSorter:
    """Validates DAG structure and provides topological ordering."""

    def validate(self, graph: DependencyGraph) -> Tuple[bool, List[str], Optional[str]]:
        """
        Validate that graph is a DAG (no cycles).

        Args:
            graph: Dependency graph

        Returns:
            Tuple of (is_valid, sorted_nodes, error_message)
        """
        in_degree = {node: len(graph.get_dependencies(node)) for node in graph.nodes}

        # Start with steps that have no dependencies
        queue = deque([node for node in graph.nodes if in_degree[node] == 0])
        sorted_nodes = []

        while queue:
            node = queue.popleft()
            sorted_nodes.append(node)

            for dependent in graph.get_dependents(node):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(sorted_nodes) != len(graph.nodes):
            remaining = [n for n in graph.nodes if n not in sorted_nodes]
            return False, sorted_nodes, f"Cycle detected involving steps: {remaining}"

        return True, sorted_nodes, None

    def order(self, graph: DependencyGraph) -> List[str]:
        """
        Topological order of the graph.

        Raises:
            ConfigurationError: if the graph has a cycle
        """
        is_valid, sorted_nodes, error = self.validate(graph)
        if not is_valid:
            raise ConfigurationError(error)
        return sorted_nodes


def build_execution_order(
    steps: Sequence[StepDefinition],
    edges: Optional[Iterable[Tuple[str, str]]] = None,
) -> Tuple[DependencyGraph, List[str]]:
    """
    Convenience: build, validate and sort in one call.

    Raises:
        ConfigurationError: on any structural problem
    """
    graph = GraphBuilder().build(steps, edges)
    order = TopologicalSorter().order(graph)
    logger.debug(f"Execution order: {order}")
    return graph, order


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "DependencyGraph",
    "GraphBuilder",
    "TopologicalSorter",
    "build_execution_order",
]
