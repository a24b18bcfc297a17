"""
Tests for Dependency Resolution.

This test suite covers:
1. Graph maintenance (dependents back-references, removal)
2. Missing dependency detection
3. Circular dependency detection
4. Dependency and activation ordering
5. Enable/disable checks
"""

import pytest

from lattice.plugin.dependencies import DependencyManager
from lattice.plugin.store import PluginStore


@pytest.fixture
def store():
    return PluginStore()


@pytest.fixture
def manager(store):
    return DependencyManager(store)


@pytest.fixture
def add(store, manager, make_plugin):
    """Add a plugin to the store and link it into the graph."""

    def _add(name, deps=None):
        store.add(make_plugin(name, deps))
        manager.update_graph(name)
        return store.get(name)

    return _add


class TestGraphMaintenance:
    """Test incremental graph updates."""

    def test_update_graph_links_dependents(self, store, manager, add):
        """update_graph records the new plugin as a dependent of its dependencies."""
        add("plugin-b")
        add("plugin-a", ["plugin-b"])

        assert store.get("plugin-b").dependents == ["plugin-a"]
        assert manager.graph.edges["plugin-a"] == {"plugin-b"}
        assert set(manager.graph.nodes) == {"plugin-a", "plugin-b"}

    def test_dependency_registered_after_dependent(self, store, add):
        """A dependency registered late is back-linked to existing dependents."""
        add("plugin-a", ["plugin-b"])
        add("plugin-b")

        assert store.get("plugin-b").dependents == ["plugin-a"]

    def test_update_graph_unknown_plugin_ignored(self, manager):
        """Unknown names are ignored without raising."""
        manager.update_graph("ghost")
        assert manager.graph.nodes == {}

    def test_update_graph_twice_no_duplicate_dependents(self, store, manager, add):
        """Re-running update_graph keeps dependents unique."""
        add("plugin-b")
        add("plugin-a", ["plugin-b"])
        manager.update_graph("plugin-a")

        assert store.get("plugin-b").dependents == ["plugin-a"]

    def test_remove_from_graph(self, store, manager, add):
        """remove_from_graph unlinks dependents and is idempotent."""
        add("plugin-b")
        add("plugin-a", ["plugin-b"])

        manager.remove_from_graph("plugin-a")
        manager.remove_from_graph("plugin-a")

        assert store.get("plugin-b").dependents == []
        assert "plugin-a" not in manager.graph.nodes
        assert "plugin-a" not in manager.graph.edges

    def test_self_dependency_not_its_own_dependent(self, store, add):
        """A plugin listing itself does not become its own dependent."""
        add("plugin-a", ["plugin-a"])
        assert store.get("plugin-a").dependents == []


class TestValidation:
    """Test missing and circular dependency detection."""

    def test_missing_dependency(self, manager, add):
        """A plugin depending on an unregistered name reports it as missing."""
        add("plugin-a", ["x"])

        result = manager.validate_dependencies("plugin-a")

        assert result.valid is False
        assert result.missing == ["x"]
        assert result.circular == []

    def test_only_plugin_a_registered(self, manager, add):
        """plugin-a alone with a dependency on plugin-b is invalid."""
        add("plugin-a", ["plugin-b"])

        result = manager.validate_dependencies("plugin-a")

        assert (result.valid, result.missing, result.circular) == (False, ["plugin-b"], [])

    def test_get_missing_dependencies(self, manager, add):
        """Only names absent from the store are returned."""
        add("plugin-b")
        assert manager.get_missing_dependencies(["plugin-b", "x", "y"]) == ["x", "y"]

    def test_two_node_cycle(self, manager, add):
        """A->B and B->A report both plugins on the cycle."""
        add("plugin-a", ["plugin-b"])
        add("plugin-b", ["plugin-a"])

        result = manager.validate_dependencies("plugin-a")

        assert result.valid is False
        assert "plugin-a" in result.circular
        assert "plugin-b" in result.circular
        assert result.missing == []

    def test_cycle_path_excludes_entry_nodes(self, manager, add):
        """Only nodes on the cycle are reported, in traversal order."""
        add("entry", ["c1"])
        add("c1", ["c2"])
        add("c2", ["c3"])
        add("c3", ["c1"])

        assert manager.detect_circular_dependencies("entry") == ["c1", "c2", "c3"]

    def test_no_cycle(self, manager, add):
        """A diamond is not a cycle."""
        add("base")
        add("left", ["base"])
        add("right", ["base"])
        add("top", ["left", "right"])

        assert manager.detect_circular_dependencies("top") == []
        assert manager.validate_dependencies("top").valid is True

    def test_unknown_plugin_reports_itself_missing(self, manager):
        """Validating an unknown name reports that name as missing."""
        result = manager.validate_dependencies("ghost")
        assert result.missing == ["ghost"]
        assert result.valid is False


class TestOrdering:
    """Test dependency and activation order."""

    def test_no_edges_is_permutation(self, store, manager, add):
        """Without edges the order holds every name exactly once."""
        for name in ("p1", "p2", "p3", "p4"):
            add(name)

        order = manager.get_dependency_order()

        assert sorted(order) == sorted(store.get_names())
        assert len(order) == len(set(order))

    def test_chain_order(self, manager, add):
        """For A->B->C the order is C, B, A."""
        add("plugin-a", ["plugin-b"])
        add("plugin-b", ["plugin-c"])
        add("plugin-c")

        assert manager.get_dependency_order() == ["plugin-c", "plugin-b", "plugin-a"]

    def test_registration_scenario(self, manager, add):
        """plugin-b then plugin-a (depending on plugin-b) orders b first."""
        add("plugin-b")
        add("plugin-a", ["plugin-b"])

        assert manager.get_dependency_order() == ["plugin-b", "plugin-a"]

    def test_missing_edges_skipped(self, manager, add):
        """Edges to unregistered plugins do not appear in the order."""
        add("plugin-a", ["x"])
        assert manager.get_dependency_order() == ["plugin-a"]

    def test_cycle_still_permutation(self, manager, add):
        """Cycles do not loop or duplicate names."""
        add("plugin-a", ["plugin-b"])
        add("plugin-b", ["plugin-a"])

        assert sorted(manager.get_dependency_order()) == ["plugin-a", "plugin-b"]

    def test_activation_order(self, manager, add):
        """Activation order covers only the plugin's sub-tree."""
        add("base")
        add("unrelated")
        add("mid", ["base"])
        add("top", ["mid", "base"])

        assert manager.get_activation_order("top") == ["base", "mid", "top"]
        assert manager.get_activation_order("ghost") == []


class TestEnableDisableChecks:
    """Test can_enable and can_disable."""

    def test_can_enable_reasons(self, manager, add):
        """Reasons name missing plugins and the cycle path."""
        add("plugin-a", ["plugin-b", "x"])
        add("plugin-b", ["plugin-a"])

        check = manager.can_enable("plugin-a")

        assert check.can_enable is False
        assert check.reasons == [
            "Missing dependencies: x",
            "Circular dependency: plugin-a -> plugin-b -> plugin-a",
        ]

    def test_can_enable_ok(self, manager, add):
        """A plugin with satisfied dependencies can be enabled."""
        add("plugin-b")
        add("plugin-a", ["plugin-b"])

        check = manager.can_enable("plugin-a")

        assert check.can_enable is True
        assert check.reasons == []

    def test_can_disable_lists_enabled_dependents(self, store, manager, add):
        """affected_plugins is exactly the set of enabled dependents."""
        add("base")
        add("d1", ["base"])
        add("d2", ["base"])
        add("d3", ["base"])
        store.set_enabled("d3", False)

        check = manager.can_disable("base")

        assert check.can_disable is False
        assert set(check.affected_plugins) == {"d1", "d2"}

        store.set_enabled("d1", False)
        store.set_enabled("d2", False)

        check = manager.can_disable("base")
        assert check.can_disable is True
        assert check.affected_plugins == []
