"""
CLI Config Merger.

Folds the contributions of enabled plugins into a host CLI config.

The merge runs three phases in a fixed order over the enabled plugins:
1. Commands: plugin commands are merged into ``commands`` (last write wins)
2. Extensions: existing commands, found by dot path, gain options, args,
   flags and subcommands
3. Fragments: ``global_options``, ``settings`` and ``aliases`` are merged
   at the top level (last write wins)

The base config is deep-copied first and never mutated, so repeated calls
with the same enabled set give equal results.
"""

import copy
from collections.abc import Mapping
from typing import Any

from lattice.core.utils import split_path
from lattice.log import get_logger
from lattice.plugin.manifest import TOP_LEVEL_FRAGMENTS, CommandExtension, PluginDescriptor
from lattice.plugin.store import PluginStore

logger = get_logger(__name__)


def find_command(config: Mapping[str, Any], path: str) -> dict[str, Any] | None:
    """
    Resolve a dot path through ``commands`` and nested ``commands``.

    Args:
        config: CLI config (or command config) to search from
        path: Dot-separated command path, e.g. "db.migrate"

    Returns:
        The command config, or None if any segment is missing
    """
    command: Any = config
    for segment in split_path(path):
        commands = command.get("commands")
        if not isinstance(commands, Mapping):
            return None
        command = commands.get(segment)
        if not isinstance(command, dict):
            return None
    return command if command is not config else None


class ConfigMerger:
    """Applies enabled plugins' contributions to a CLI config."""

    def __init__(self, store: PluginStore):
        self._store = store

    def apply_cli_config(self, base: Mapping[str, Any]) -> dict[str, Any]:
        """
        Merge every enabled plugin into a copy of base.

        Args:
            base: Host CLI config

        Returns:
            The merged config (base itself is left untouched)
        """
        config = copy.deepcopy(dict(base))
        plugins = self._store.get_enabled()

        self._merge_commands(config, plugins)
        self._apply_extensions(config, plugins)
        self._merge_fragments(config, plugins)

        return config

    def _merge_commands(self, config: dict[str, Any], plugins: list[PluginDescriptor]) -> None:
        for plugin in plugins:
            if not plugin.commands:
                continue
            commands = config.get("commands")
            if not isinstance(commands, dict):
                commands = config["commands"] = {}
            # Plugin command objects are copied so extensions never touch descriptors
            commands.update(copy.deepcopy(plugin.commands))

    def _apply_extensions(self, config: dict[str, Any], plugins: list[PluginDescriptor]) -> None:
        for plugin in plugins:
            for path, extension in plugin.extensions.items():
                command = find_command(config, path)
                if command is None:
                    logger.debug(
                        f"Plugin '{plugin.name}' extends unknown command '{path}', skipped"
                    )
                    continue
                self._extend_command(command, extension)

    def _extend_command(self, command: dict[str, Any], extension: CommandExtension) -> None:
        for key in ("options", "args", "flags"):
            addition = getattr(extension, key)
            if addition:
                command[key] = {**(command.get(key) or {}), **copy.deepcopy(addition)}

        if extension.subcommands:
            command["commands"] = {
                **(command.get("commands") or {}),
                **copy.deepcopy(extension.subcommands),
            }

    def _merge_fragments(self, config: dict[str, Any], plugins: list[PluginDescriptor]) -> None:
        for plugin in plugins:
            for key in TOP_LEVEL_FRAGMENTS:
                fragment = getattr(plugin, key)
                if fragment:
                    config[key] = {**(config.get(key) or {}), **copy.deepcopy(fragment)}
