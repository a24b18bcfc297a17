"""
Tests for the Service Collector.

This test suite covers:
1. Handler wrapper collection order
2. Service merge (last wins) and lookup (first wins)
3. Per-plugin diagnostic view
4. Command middleware and transforms
"""

import pytest

from lattice.plugin.services import ServiceCollector
from lattice.plugin.store import PluginStore


def make_wrapper(tag):
    def wrapper(handler, context):
        return handler

    wrapper.tag = tag
    return wrapper


@pytest.fixture
def store():
    return PluginStore()


class TestHandlerWrappers:
    """Test get_handler_wrappers."""

    def test_plugin_then_declaration_order(self, store, make_plugin):
        """Wrappers follow plugin order, then each plugin's own order."""
        store.add(make_plugin("plugin-a", wrappers=[make_wrapper("a1"), make_wrapper("a2")]))
        store.add(make_plugin("plugin-b", wrappers=[make_wrapper("b1")]))

        wrappers = ServiceCollector(store).get_handler_wrappers()

        assert [w.tag for w in wrappers] == ["a1", "a2", "b1"]

    def test_disabled_plugin_wrappers_skipped(self, store, make_plugin):
        """Disabled plugins contribute no wrappers."""
        store.add(make_plugin("plugin-a", wrappers=[make_wrapper("a1")]))
        store.set_enabled("plugin-a", False)

        assert ServiceCollector(store).get_handler_wrappers() == []


class TestServices:
    """Test service lookup."""

    def test_get_services_last_wins(self, store, make_plugin):
        """Merged services take the last plugin's value for shared names."""
        store.add(make_plugin("plugin-a", services={"db": "a-db", "cache": "a-cache"}))
        store.add(make_plugin("plugin-b", services={"db": "b-db"}))

        services = ServiceCollector(store).get_services()

        assert services == {"db": "b-db", "cache": "a-cache"}

    def test_get_service_first_wins(self, store, make_plugin):
        """Single lookups return the first enabled provider."""
        store.add(make_plugin("plugin-a", services={"db": "a-db"}))
        store.add(make_plugin("plugin-b", services={"db": "b-db"}))

        collector = ServiceCollector(store)

        assert collector.get_service("db") == "a-db"
        assert collector.get_service("missing") is None
        assert collector.get_service("missing", "fallback") == "fallback"
        assert collector.has_service("db") is True
        assert collector.has_service("missing") is False

    def test_services_by_plugin(self, store, make_plugin):
        """The diagnostic view keeps each plugin's services apart."""
        store.add(make_plugin("plugin-a", services={"db": "a-db"}))
        store.add(make_plugin("plugin-b"))
        store.add(make_plugin("plugin-c", services={"db": "c-db"}))

        assert ServiceCollector(store).get_services_by_plugin() == {
            "plugin-a": {"db": "a-db"},
            "plugin-c": {"db": "c-db"},
        }

    def test_disabling_removes_services(self, store, make_plugin):
        """Results follow the current enabled set."""
        store.add(make_plugin("plugin-a", services={"db": "a-db"}))
        collector = ServiceCollector(store)
        assert collector.get_services() == {"db": "a-db"}

        store.set_enabled("plugin-a", False)

        assert collector.get_services() == {}


class TestMiddleware:
    """Test middleware collection and transforms."""

    def test_get_middleware_by_phase(self, store, make_plugin):
        """Callbacks of a phase are collected in plugin order."""

        def before_a(command, args):
            pass

        def before_b(command, args):
            pass

        def on_error_b(error, command, args):
            pass

        store.add(make_plugin("plugin-a", middleware={"before_command": before_a}))
        store.add(make_plugin("plugin-x"))
        store.add(
            make_plugin(
                "plugin-b", middleware={"before_command": before_b, "on_error": on_error_b}
            )
        )
        collector = ServiceCollector(store)

        assert collector.get_middleware("before") == [before_a, before_b]
        assert collector.get_middleware("after") == []
        assert collector.get_middleware("error") == [on_error_b]

    def test_unknown_phase(self, store):
        """Only before, after and error are phases."""
        with pytest.raises(ValueError, match="Unknown middleware phase"):
            ServiceCollector(store).get_middleware("around")

    def test_transforms_chain_in_order(self, store, make_plugin):
        """Each enabled plugin transforms the previous plugin's output."""
        store.add(
            make_plugin(
                "plugin-a",
                middleware={
                    "transform_args": lambda args, command: {**args, "a": True},
                    "transform_result": lambda result, command: result + "-a",
                },
            )
        )
        store.add(
            make_plugin(
                "plugin-b",
                middleware={
                    "transform_args": lambda args, command: {**args, "cmd": command},
                    "transform_result": lambda result, command: result + "-b",
                },
            )
        )
        collector = ServiceCollector(store)

        assert collector.transform_args({}, ["deploy"]) == {"a": True, "cmd": ["deploy"]}
        assert collector.transform_result("ok", ["deploy"]) == "ok-a-b"

    def test_disabled_plugin_middleware_skipped(self, store, make_plugin):
        """Disabled plugins neither run callbacks nor transform."""
        store.add(
            make_plugin(
                "plugin-a",
                middleware={
                    "before_command": lambda command, args: None,
                    "transform_args": lambda args, command: "changed",
                },
            )
        )
        store.set_enabled("plugin-a", False)
        collector = ServiceCollector(store)

        assert collector.get_middleware("before") == []
        assert collector.transform_args("args", ["cmd"]) == "args"
