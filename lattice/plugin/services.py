"""
Service Collector.

Read-only views over what enabled plugins provide: handler wrappers,
named services and command middleware. Everything is recomputed from the current enabled set on
each call.
"""

from collections.abc import Callable
from typing import Any

from lattice.plugin.manifest import MIDDLEWARE_PHASES, HandlerWrapper
from lattice.plugin.store import PluginStore


class ServiceCollector:
    """Collects wrappers, services and middleware from enabled plugins."""

    def __init__(self, store: PluginStore):
        self._store = store

    def get_handler_wrappers(self) -> list[HandlerWrapper]:
        """
        Concatenate the wrappers of every enabled plugin.

        Plugins contribute in registration order, each in declaration order.
        The first wrapper returned is the outermost one.
        """
        return [
            wrapper for plugin in self._store.get_enabled() for wrapper in plugin.wrappers
        ]

    def get_services(self) -> dict[str, Any]:
        """
        Merge every enabled plugin's services.

        When several plugins provide the same name, the last one wins.
        """
        services: dict[str, Any] = {}
        for plugin in self._store.get_enabled():
            services.update(plugin.services)
        return services

    def get_service(self, name: str, default: Any = None) -> Any:
        """
        Look up one service.

        Unlike get_services, the first enabled plugin providing the name wins.
        """
        for plugin in self._store.get_enabled():
            if name in plugin.services:
                return plugin.services[name]
        return default

    def has_service(self, name: str) -> bool:
        return any(name in plugin.services for plugin in self._store.get_enabled())

    def get_services_by_plugin(self) -> dict[str, dict[str, Any]]:
        """Services of each enabled plugin, unmerged."""
        return {
            plugin.name: dict(plugin.services)
            for plugin in self._store.get_enabled()
            if plugin.services
        }

    def get_middleware(self, phase: str) -> list[Callable[..., Any]]:
        """
        Middleware callbacks of enabled plugins for one command phase.

        Args:
            phase: "before", "after" or "error"

        Returns:
            Callbacks in registration order

        Raises:
            ValueError: If phase is unknown
        """
        if phase not in MIDDLEWARE_PHASES:
            raise ValueError(f"Unknown middleware phase: {phase}")

        callback_name = MIDDLEWARE_PHASES[phase]
        callbacks = []
        for plugin in self._store.get_enabled():
            if plugin.middleware is None:
                continue
            callback = getattr(plugin.middleware, callback_name)
            if callback is not None:
                callbacks.append(callback)
        return callbacks

    def transform_args(self, args: Any, command: Any) -> Any:
        """Pass command args through every enabled plugin's transform_args, in order."""
        for plugin in self._store.get_enabled():
            if plugin.middleware is not None and plugin.middleware.transform_args:
                args = plugin.middleware.transform_args(args, command)
        return args

    def transform_result(self, result: Any, command: Any) -> Any:
        """Pass a command result through every enabled plugin's transform_result, in order."""
        for plugin in self._store.get_enabled():
            if plugin.middleware is not None and plugin.middleware.transform_result:
                result = plugin.middleware.transform_result(result, command)
        return result
