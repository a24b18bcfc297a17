"""
Plugin Lifecycle Hooks.

This module runs the lifecycle hooks a plugin declares in its descriptor.

Key features:
- Fresh PluginContext for every hook invocation
- Sync and async hooks, awaited one at a time
- Optional per-hook timeout
- Error policy per phase: install, activate and update failures are fatal,
  deactivate and uninstall failures are logged and ignored
"""

import asyncio
import copy
import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from lattice.core.event_bus import EventBus
from lattice.core.utils import maybe_await
from lattice.log import get_logger
from lattice.plugin.errors import LifecycleError
from lattice.plugin.manifest import Hook, PluginMetadata
from lattice.plugin.store import PluginStore, RegisteredPlugin

logger = get_logger(__name__)


class HookType(Enum):
    """Hook type enumeration."""

    INSTALL = "install"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    UPDATE = "update"
    UNINSTALL = "uninstall"


# Phases whose failure is reported to the caller
FATAL_HOOKS = frozenset({HookType.INSTALL, HookType.ACTIVATE, HookType.UPDATE})


@dataclass
class PluginContext:
    """
    Everything a lifecycle hook receives.

    Attributes:
        config: Host config snapshot merged with the plugin's instance config
        logger: Logger named after the plugin
        storage: Scratch dict owned by this invocation
        events: Event bus owned by this invocation
        services: Service container handed in by the host
        env: Copy of the process environment
        plugins: Metadata of the plugins enabled when the hook starts, by name.
            A plugin being started is not listed yet; one being stopped still is.
        metadata: The plugin's own metadata
        phase: The lifecycle phase being run
    """

    config: dict[str, Any]
    logger: logging.Logger
    storage: dict[str, Any]
    events: EventBus
    services: Any
    env: dict[str, str]
    plugins: dict[str, PluginMetadata]
    metadata: PluginMetadata
    phase: HookType


class LifecycleManager:
    """
    Runs lifecycle hooks for plugins held by a PluginStore.

    Every method returns a bool and never raises for hook failures.
    """

    def __init__(
        self,
        store: PluginStore,
        host_config: Mapping[str, Any] | None = None,
        services: Callable[[], Any] | None = None,
        hook_timeout: float | None = None,
    ):
        """
        Args:
            store: Store holding the plugins
            host_config: Host config exposed (as a copy) to every hook
            services: Returns the service container passed to hooks
            hook_timeout: Seconds before a hook is abandoned (None or 0 = no limit)
        """
        self._store = store
        self._host_config = dict(host_config or {})
        self._services = services
        # 0 means no limit, as in the options file
        self._hook_timeout = hook_timeout or None

    def create_context(self, registered: RegisteredPlugin, phase: HookType) -> PluginContext:
        """Build a fresh context for one hook invocation."""
        config = copy.deepcopy(self._host_config)
        config.update(copy.deepcopy(registered.config or {}))

        plugins = {
            descriptor.name: descriptor.metadata for descriptor in self._store.get_enabled()
        }

        return PluginContext(
            config=config,
            logger=get_logger(f"lattice.plugins.{registered.name}"),
            storage={},
            events=EventBus(),
            services=self._services() if self._services is not None else {},
            env=dict(os.environ),
            plugins=plugins,
            metadata=registered.descriptor.metadata,
            phase=phase,
        )

    async def _call(self, hook: Hook, context: PluginContext) -> None:
        if self._hook_timeout is None:
            await maybe_await(hook(context))
            return

        try:
            await asyncio.wait_for(maybe_await(hook(context)), self._hook_timeout)
        except asyncio.TimeoutError as e:
            raise LifecycleError(
                f"{context.phase.value} hook timed out after {self._hook_timeout}s"
            ) from e

    async def run_hook(self, name: str, hook_type: HookType) -> bool:
        """
        Run one lifecycle hook of a plugin.

        Args:
            name: Registered plugin name
            hook_type: Phase to run

        Returns:
            False for unknown plugins and for failed fatal phases, True otherwise
        """
        registered = self._store.get(name)
        if registered is None:
            logger.error(f"Cannot run {hook_type.value} hook: plugin '{name}' is not registered")
            return False

        hook = registered.descriptor.get_hook(hook_type.value)
        if hook is None:
            return True

        context = self.create_context(registered, hook_type)
        try:
            await self._call(hook, context)
        except Exception as e:
            if hook_type in FATAL_HOOKS:
                logger.error(f"Plugin '{name}' {hook_type.value} hook failed: {e}", exc_info=True)
                return False
            logger.error(
                f"Plugin '{name}' {hook_type.value} hook failed (ignored): {e}", exc_info=True
            )
            return True

        logger.debug(f"Plugin '{name}' {hook_type.value} hook completed")
        return True

    async def install(self, name: str) -> bool:
        return await self.run_hook(name, HookType.INSTALL)

    async def activate(self, name: str) -> bool:
        return await self.run_hook(name, HookType.ACTIVATE)

    async def deactivate(self, name: str) -> bool:
        return await self.run_hook(name, HookType.DEACTIVATE)

    async def update(self, name: str) -> bool:
        return await self.run_hook(name, HookType.UPDATE)

    async def uninstall(self, name: str) -> bool:
        return await self.run_hook(name, HookType.UNINSTALL)
