"""
Plugin Store.

Holds every registered plugin together with its per-registration state.

Key features:
- O(1) lookup by name (the most recent registration wins for duplicates)
- Dependency names captured once at registration
- Incrementally maintained dependents back-references
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from lattice.config import RegistryOptions
from lattice.log import get_logger
from lattice.plugin.manifest import PluginDescriptor

logger = get_logger(__name__)


@dataclass
class RegisteredPlugin:
    """
    A plugin held by the store.

    Attributes:
        descriptor: The plugin descriptor as registered
        enabled: Whether the plugin is currently enabled
        load_time: When the plugin was added (UTC)
        dependencies: Dependency names captured at registration
        dependents: Names of registered plugins depending on this one
        config: Instance config supplied at registration
        installed: Whether the install hook has completed successfully
    """

    descriptor: PluginDescriptor
    enabled: bool
    load_time: datetime
    dependencies: tuple[str, ...]
    dependents: list[str] = field(default_factory=list)
    config: dict[str, Any] | None = None
    installed: bool = False

    @property
    def name(self) -> str:
        return self.descriptor.name


def capture_dependencies(descriptor: PluginDescriptor) -> tuple[str, ...]:
    """
    Collect dependency names from ``dependencies`` then ``peer_dependencies``.

    Duplicates are dropped, declaration order is kept.
    """
    metadata = descriptor.metadata
    names = [*metadata.dependencies, *metadata.peer_dependencies]
    return tuple(dict.fromkeys(names))


class PluginStore:
    """
    Registered plugins keyed by name.

    With ``allow_duplicates`` several registrations may share a name; all of
    them are kept in registration order and name lookups resolve to the
    most recently added one.
    """

    def __init__(self, options: RegistryOptions | None = None):
        self._options = options or RegistryOptions()
        self._plugins: dict[str, RegisteredPlugin] = {}
        self._entries: list[RegisteredPlugin] = []

    def get_options(self) -> RegistryOptions:
        """Return the options in force."""
        return self._options

    def add(
        self, descriptor: PluginDescriptor, config: dict[str, Any] | None = None
    ) -> RegisteredPlugin | None:
        """
        Add a plugin.

        Args:
            descriptor: Plugin descriptor
            config: Instance config handed to the plugin's hooks

        Returns:
            The new RegisteredPlugin, or None when the name is taken and
            duplicates are not allowed
        """
        name = descriptor.name
        if name in self._plugins and not self._options.allow_duplicates:
            logger.debug(f"Plugin '{name}' already in store, duplicate rejected")
            return None

        registered = RegisteredPlugin(
            descriptor=descriptor,
            enabled=self._options.auto_enable,
            load_time=datetime.now(timezone.utc),
            dependencies=capture_dependencies(descriptor),
            config=config,
        )
        self._plugins[name] = registered
        self._entries.append(registered)
        return registered

    def remove(self, name: str) -> bool:
        """
        Remove the plugin a name resolves to.

        When duplicates exist, the name then resolves to the previous
        registration.

        Returns:
            False if no plugin is registered under name
        """
        registered = self._plugins.pop(name, None)
        if registered is None:
            return False

        self._entries = [entry for entry in self._entries if entry is not registered]
        for entry in reversed(self._entries):
            if entry.name == name:
                self._plugins[name] = entry
                break
        return True

    def replace(self, name: str, descriptor: PluginDescriptor) -> bool:
        """
        Swap the descriptor of a registered plugin, re-capturing its dependencies.

        Returns:
            False if no plugin is registered under name
        """
        registered = self._plugins.get(name)
        if registered is None:
            return False

        registered.descriptor = descriptor
        registered.dependencies = capture_dependencies(descriptor)
        return True

    def get(self, name: str) -> RegisteredPlugin | None:
        return self._plugins.get(name)

    def get_plugin(self, name: str) -> PluginDescriptor | None:
        registered = self._plugins.get(name)
        return registered.descriptor if registered else None

    def has(self, name: str) -> bool:
        return name in self._plugins

    def get_all(self) -> list[RegisteredPlugin]:
        """All registrations, duplicates included, in registration order."""
        return list(self._entries)

    def get_names(self) -> list[str]:
        return list(self._plugins)

    def get_enabled(self) -> list[PluginDescriptor]:
        """Descriptors of enabled plugins in registration order."""
        return [entry.descriptor for entry in self._entries if entry.enabled]

    def is_enabled(self, name: str) -> bool:
        registered = self._plugins.get(name)
        return registered is not None and registered.enabled

    def set_enabled(self, name: str, enabled: bool) -> bool:
        """
        Set the enabled flag of a plugin.

        Returns:
            False if no plugin is registered under name
        """
        registered = self._plugins.get(name)
        if registered is None:
            return False
        registered.enabled = enabled
        return True

    def add_dependent(self, name: str, dependent: str) -> None:
        """Record that dependent depends on name (no-op for unknown names)."""
        registered = self._plugins.get(name)
        if registered is not None and dependent not in registered.dependents:
            registered.dependents.append(dependent)

    def remove_dependent(self, name: str, dependent: str) -> None:
        registered = self._plugins.get(name)
        if registered is not None and dependent in registered.dependents:
            registered.dependents.remove(dependent)

    def get_active_dependents(self, name: str) -> list[str]:
        """Dependents of name that are currently enabled."""
        registered = self._plugins.get(name)
        if registered is None:
            return []
        return [dep for dep in registered.dependents if self.is_enabled(dep)]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return self.has(name)
