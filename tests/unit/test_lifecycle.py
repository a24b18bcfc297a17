"""
Tests for Lifecycle Hook execution.

This test suite covers:
1. Sync and async hooks
2. Error policy per phase (fatal vs swallowed)
3. PluginContext contents and freshness
4. Hook timeout
"""

import asyncio
import logging

import pytest

from lattice.core.event_bus import EventBus
from lattice.plugin.lifecycle import HookType, LifecycleManager, PluginContext
from lattice.plugin.store import PluginStore


@pytest.fixture
def store():
    return PluginStore()


class TestHookExecution:
    """Test running hooks."""

    @pytest.mark.asyncio
    async def test_unknown_plugin_returns_false(self, store):
        """Hooks of unregistered plugins are not run."""
        manager = LifecycleManager(store)
        assert await manager.install("ghost") is False

    @pytest.mark.asyncio
    async def test_missing_hook_returns_true(self, store, make_plugin):
        """A plugin without the hook succeeds without running anything."""
        store.add(make_plugin("plugin-a"))
        manager = LifecycleManager(store)

        for hook_type in HookType:
            assert await manager.run_hook("plugin-a", hook_type) is True

    @pytest.mark.asyncio
    async def test_sync_and_async_hooks(self, store, make_plugin):
        """Both plain functions and coroutines are supported."""
        calls = []

        def install(ctx):
            calls.append(("install", ctx.phase))

        async def activate(ctx):
            await asyncio.sleep(0)
            calls.append(("activate", ctx.phase))

        store.add(make_plugin("plugin-a", install=install, activate=activate))
        manager = LifecycleManager(store)

        assert await manager.install("plugin-a") is True
        assert await manager.activate("plugin-a") is True
        assert calls == [("install", HookType.INSTALL), ("activate", HookType.ACTIVATE)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("phase", ["install", "activate", "update"])
    async def test_fatal_phases_report_failure(self, store, make_plugin, phase, log_records):
        """install, activate and update failures return False and are logged."""

        async def broken(ctx):
            raise RuntimeError("boom")

        store.add(make_plugin("plugin-a", **{phase: broken}))
        manager = LifecycleManager(store)

        assert await manager.run_hook("plugin-a", HookType(phase)) is False

        errors = [r for r in log_records.records if r.levelno == logging.ERROR]
        assert errors
        assert "plugin-a" in errors[-1].getMessage()
        assert phase in errors[-1].getMessage()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("phase", ["deactivate", "uninstall"])
    async def test_teardown_phases_swallow_failure(self, store, make_plugin, phase, log_records):
        """deactivate and uninstall failures are logged but reported as success."""

        def broken(ctx):
            raise RuntimeError("boom")

        store.add(make_plugin("plugin-a", **{phase: broken}))
        manager = LifecycleManager(store)

        assert await manager.run_hook("plugin-a", HookType(phase)) is True
        assert any("plugin-a" in m and phase in m for m in log_records.messages)

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, store, make_plugin):
        """A hook exceeding hook_timeout fails its phase."""

        async def slow(ctx):
            await asyncio.sleep(1)

        store.add(make_plugin("plugin-a", install=slow, uninstall=slow))
        manager = LifecycleManager(store, hook_timeout=0.01)

        assert await manager.install("plugin-a") is False
        assert await manager.uninstall("plugin-a") is True

    @pytest.mark.asyncio
    async def test_zero_timeout_means_no_limit(self, store, make_plugin):
        """hook_timeout=0 disables the limit instead of failing every hook."""
        calls = []

        async def install(ctx):
            await asyncio.sleep(0.01)
            calls.append("install")

        store.add(make_plugin("plugin-a", install=install))
        manager = LifecycleManager(store, hook_timeout=0)

        assert await manager.install("plugin-a") is True
        assert calls == ["install"]


class TestPluginContext:
    """Test the context handed to hooks."""

    @pytest.mark.asyncio
    async def test_context_contents(self, store, make_plugin, monkeypatch):
        """The context exposes config, services, env, plugins and metadata."""
        monkeypatch.setenv("LATTICE_TEST_VAR", "yes")
        seen: list[PluginContext] = []

        store.add(make_plugin("plugin-b"))
        store.add(make_plugin("plugin-a", ["plugin-b"], install=seen.append), config={"level": 2})
        manager = LifecycleManager(
            store,
            host_config={"app": "demo", "level": 1},
            services=lambda: {"db": "conn"},
        )

        assert await manager.install("plugin-a") is True

        ctx = seen[0]
        assert ctx.config == {"app": "demo", "level": 2}
        assert ctx.services == {"db": "conn"}
        assert ctx.env["LATTICE_TEST_VAR"] == "yes"
        assert set(ctx.plugins) == {"plugin-a", "plugin-b"}
        assert ctx.metadata.name == "plugin-a"
        assert ctx.phase is HookType.INSTALL
        assert ctx.storage == {}
        assert isinstance(ctx.events, EventBus)
        assert ctx.logger.name == "lattice.plugins.plugin-a"

    @pytest.mark.asyncio
    async def test_context_is_fresh_per_call(self, store, make_plugin):
        """Each invocation gets new storage, events and config copies."""
        seen: list[PluginContext] = []
        configs_on_entry = []

        def hook(ctx):
            configs_on_entry.append(dict(ctx.config))
            ctx.storage["touched"] = True
            ctx.config["app"] = "changed"
            seen.append(ctx)

        store.add(make_plugin("plugin-a", install=hook, activate=hook))
        host_config = {"app": "demo"}
        manager = LifecycleManager(store, host_config=host_config)

        await manager.install("plugin-a")
        await manager.activate("plugin-a")

        first, second = seen
        assert first.storage is not second.storage
        assert first.events is not second.events
        assert configs_on_entry == [{"app": "demo"}, {"app": "demo"}]
        assert host_config == {"app": "demo"}
