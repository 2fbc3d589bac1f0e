"""Dependency graph over resource descriptors."""

import heapq
from typing import Dict, List, Optional, Set
from dataclasses import dataclass, field

from infra_reconciler.catalog.models import ResourceDescriptor
from infra_reconciler.utils.errors import ConfigurationError, ErrorContext


@dataclass
class DependencyNode:
    """Node in the dependency graph."""

    logical_name: str
    descriptor: ResourceDescriptor
    position: int  # Declaration order, used to break ties deterministically
    dependencies: List[str] = field(default_factory=list)
    dependents: List[str] = field(default_factory=list)


class DependencyGraph:
    """Directed acyclic graph (DAG) of descriptor dependencies.

    Orderings are deterministic: among resources whose dependencies are all
    satisfied, the one declared first comes first.
    """

    def __init__(self):
        """Initialize empty dependency graph."""
        self.nodes: Dict[str, DependencyNode] = {}

    def add_descriptor(self, descriptor: ResourceDescriptor) -> None:
        """Add a descriptor to the graph.

        Args:
            descriptor: Descriptor to add

        Raises:
            ConfigurationError: If the logical name is already present
        """
        name = descriptor.logical_name
        if name in self.nodes:
            raise ConfigurationError(
                f"Duplicate logical name in catalog: '{name}'",
                context=ErrorContext(resource_id=name)
            )

        self.nodes[name] = DependencyNode(
            logical_name=name,
            descriptor=descriptor,
            position=len(self.nodes),
            dependencies=list(dict.fromkeys(descriptor.depends_on))
        )

    def _link(self) -> None:
        """Rebuild reverse edges from the declared dependencies."""
        for node in self.nodes.values():
            node.dependents = []
        for node in self.nodes.values():
            for dep_name in node.dependencies:
                if dep_name in self.nodes:
                    self.nodes[dep_name].dependents.append(node.logical_name)

    def get_dependents(self, logical_name: str) -> Set[str]:
        """Get direct dependents of a resource."""
        self._link()
        if logical_name not in self.nodes:
            return set()
        return set(self.nodes[logical_name].dependents)

    def detect_circular_dependencies(self) -> Optional[List[str]]:
        """Detect circular dependencies in the graph.

        Returns:
            List of logical names forming a cycle (first name repeated at the
            end), or None if no cycle exists
        """
        # White (0): unvisited, Gray (1): visiting, Black (2): visited
        color = {name: 0 for name in self.nodes}
        stack: List[str] = []

        def dfs(name: str) -> Optional[List[str]]:
            color[name] = 1
            stack.append(name)

            for dep_name in self.nodes[name].dependencies:
                if dep_name not in self.nodes:
                    continue
                if color[dep_name] == 1:
                    cycle = stack[stack.index(dep_name):]
                    return cycle + [dep_name]
                if color[dep_name] == 0:
                    cycle = dfs(dep_name)
                    if cycle:
                        return cycle

            stack.pop()
            color[name] = 2
            return None

        for name in self.nodes:
            if color[name] == 0:
                cycle = dfs(name)
                if cycle:
                    return cycle

        return None

    def validate(self) -> None:
        """Validate the dependency graph.

        Raises:
            ConfigurationError: On unknown dependencies or cycles
        """
        for name, node in self.nodes.items():
            for dep_name in node.dependencies:
                if dep_name not in self.nodes:
                    raise ConfigurationError(
                        f"Resource '{name}' depends on '{dep_name}' which is not in the catalog",
                        context=ErrorContext(resource_id=name)
                    )

        cycle = self.detect_circular_dependencies()
        if cycle:
            raise ConfigurationError(
                f"Circular dependency detected: {' -> '.join(cycle)}",
                context=ErrorContext(resource_id=cycle[0])
            )

    def topological_sort(self) -> List[str]:
        """Perform topological sort on the dependency graph.

        Returns:
            Logical names in dependency order (dependencies before dependents)

        Raises:
            ConfigurationError: If the graph is invalid
        """
        self.validate()
        self._link()

        # Kahn's algorithm with a heap keyed on declaration order
        in_degree = {name: len(node.dependencies) for name, node in self.nodes.items()}
        ready = [(node.position, name) for name, node in self.nodes.items() if in_degree[name] == 0]
        heapq.heapify(ready)
        result = []

        while ready:
            _, name = heapq.heappop(ready)
            result.append(name)

            for dependent in self.nodes[name].dependents:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, (self.nodes[dependent].position, dependent))

        if len(result) != len(self.nodes):
            raise ConfigurationError("Cannot order catalog: graph contains cycles")

        return result

    def get_waves(self) -> List[List[str]]:
        """Group resources into levels with no dependencies between members.

        Returns:
            List of levels, leaves first
        """
        order = self.topological_sort()
        level: Dict[str, int] = {}
        for name in order:
            deps = self.nodes[name].dependencies
            level[name] = 1 + max((level[dep] for dep in deps), default=-1)

        waves: List[List[str]] = [[] for _ in range(max(level.values(), default=-1) + 1)]
        for name in order:
            waves[level[name]].append(name)
        return waves

    def get_destruction_order(self) -> List[str]:
        """Get destruction order (reverse of creation order)."""
        return list(reversed(self.topological_sort()))
