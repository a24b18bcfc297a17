"""
Plugin Dependency Resolution.

This module maintains the dependency graph of registered plugins and answers
every question the registry asks about it.

Key features:
- Incremental graph maintenance (dependents are never recomputed)
- Circular dependency detection with the exact cycle path
- Dependency ordering (dependencies before dependents)
- Enable/disable safety checks with human-readable reasons
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from lattice.log import get_logger
from lattice.plugin.store import PluginStore, RegisteredPlugin

logger = get_logger(__name__)


@dataclass
class DependencyGraph:
    """
    Adjacency view of the registered plugins.

    Attributes:
        nodes: Plugin name -> registered plugin
        edges: Plugin name -> names it depends on
    """

    nodes: dict[str, RegisteredPlugin] = field(default_factory=dict)
    edges: dict[str, set[str]] = field(default_factory=dict)


@dataclass
class DependencyValidation:
    """
    Result of a dependency validation.

    Attributes:
        valid: True when nothing is missing and there is no cycle
        missing: Dependency names not registered
        circular: Cycle path reachable from the plugin (empty if none)
    """

    valid: bool
    missing: list[str]
    circular: list[str]


@dataclass
class EnableCheck:
    """Whether a plugin may be enabled, with the reasons when it may not."""

    can_enable: bool
    reasons: list[str]


@dataclass
class DisableCheck:
    """Whether a plugin may be disabled, with the enabled dependents blocking it."""

    can_disable: bool
    affected_plugins: list[str]


class DependencyManager:
    """
    Dependency graph over a PluginStore.

    The graph is kept apart from the store's map; the store still holds the
    ``dependents`` back-references so the registry can check them cheaply.
    """

    def __init__(self, store: PluginStore):
        self._store = store
        self._graph = DependencyGraph()

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    def _dependencies_of(self, name: str) -> tuple[str, ...]:
        # Iterate the captured tuple so traversals follow declaration order
        node = self._graph.nodes.get(name)
        return node.dependencies if node is not None else ()

    def update_graph(self, name: str) -> None:
        """
        Insert or refresh a plugin's node and edges.

        Each dependency gets ``name`` as a dependent. Plugins registered
        earlier that depend on ``name`` are linked back to it as well.

        Args:
            name: Registered plugin name (unknown names are ignored)
        """
        registered = self._store.get(name)
        if registered is None:
            logger.debug(f"Cannot update graph for unknown plugin '{name}'")
            return

        self._graph.nodes[name] = registered
        self._graph.edges[name] = set(registered.dependencies)

        for dep in registered.dependencies:
            if dep != name:
                self._store.add_dependent(dep, name)

        for other, deps in self._graph.edges.items():
            if other != name and name in deps:
                self._store.add_dependent(name, other)

    def remove_from_graph(self, name: str) -> None:
        """Unlink a plugin from its dependencies and drop its node (idempotent)."""
        for dep in self._graph.edges.pop(name, set()):
            self._store.remove_dependent(dep, name)
        self._graph.nodes.pop(name, None)

    def get_missing_dependencies(self, dependencies: Iterable[str]) -> list[str]:
        """Names in dependencies that are not registered."""
        return [dep for dep in dependencies if not self._store.has(dep)]

    def detect_circular_dependencies(self, start: str) -> list[str]:
        """
        Find a dependency cycle reachable from a plugin.

        Depth-first search with a recursion stack: reaching a node that is
        still on the stack yields the stack slice from that node onwards.

        Args:
            start: Plugin to start the search from

        Returns:
            Names on the cycle in traversal order (empty if there is none)

        Example:
            a -> b -> c -> a, detect_circular_dependencies("a") == ["a", "b", "c"]
        """
        stack: list[str] = []
        on_stack: set[str] = set()
        visited: set[str] = set()

        def visit(node: str) -> list[str]:
            if node in on_stack:
                return stack[stack.index(node):]
            if node in visited or node not in self._graph.nodes:
                return []

            visited.add(node)
            stack.append(node)
            on_stack.add(node)

            for dep in self._dependencies_of(node):
                cycle = visit(dep)
                if cycle:
                    return cycle

            stack.pop()
            on_stack.discard(node)
            return []

        return visit(start)

    def validate_dependencies(self, name: str) -> DependencyValidation:
        """
        Check a plugin for missing dependencies and cycles.

        Both checks always run. An unknown plugin reports itself as missing.
        """
        registered = self._store.get(name)
        if registered is None:
            return DependencyValidation(valid=False, missing=[name], circular=[])

        missing = self.get_missing_dependencies(registered.dependencies)
        circular = self.detect_circular_dependencies(name)
        return DependencyValidation(
            valid=not missing and not circular, missing=missing, circular=circular
        )

    def _post_order(self, roots: Iterable[str]) -> list[str]:
        visited: set[str] = set()
        order: list[str] = []

        def visit(name: str) -> None:
            if name in visited:
                return
            visited.add(name)

            registered = self._store.get(name)
            if registered is None:
                return

            for dep in registered.dependencies:
                visit(dep)
            order.append(name)

        for root in roots:
            visit(root)
        return order

    def get_dependency_order(self) -> list[str]:
        """
        Order every registered plugin so dependencies come first.

        Edges to unregistered plugins are skipped; cycles do not loop, the
        result is still a permutation of the registered names.
        """
        return self._post_order(self._store.get_names())

    def get_activation_order(self, name: str) -> list[str]:
        """
        Order a plugin's registered dependency sub-tree, dependencies first.

        Returns:
            Names ending with name itself (empty for unknown plugins)
        """
        return self._post_order([name])

    def can_enable(self, name: str) -> EnableCheck:
        """Check whether a plugin's dependencies allow enabling it."""
        validation = self.validate_dependencies(name)

        reasons = []
        if validation.missing:
            reasons.append(f"Missing dependencies: {', '.join(validation.missing)}")
        if validation.circular:
            path = [*validation.circular, validation.circular[0]]
            reasons.append(f"Circular dependency: {' -> '.join(path)}")

        return EnableCheck(can_enable=not reasons, reasons=reasons)

    def can_disable(self, name: str) -> DisableCheck:
        """Check whether disabling a plugin would strand enabled dependents."""
        affected = self._store.get_active_dependents(name)
        return DisableCheck(can_disable=not affected, affected_plugins=affected)
