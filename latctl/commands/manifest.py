"""
Manifest loading shared by latctl commands.

A manifest declares plugins under ``[plugins.<name>]`` tables:

    [plugins.auth]
    version = "1.2.0"
    dependencies = { core = "^1.0.0" }
    peer_dependencies = ["logging"]

Dependencies may be a table of constraints or a plain list of names.
"""

from pathlib import Path
from typing import Any

from latctl.cli import LatctlError
from lattice.config import RegistryOptions, TOMLError, read_toml
from lattice.plugin.errors import ValidationError
from lattice.plugin.manifest import parse_descriptor
from lattice.plugin.registry import PluginRegistry


def _normalize_dependencies(value: Any, plugin: str, field_name: str) -> dict[str, str]:
    if value is None:
        return {}
    if isinstance(value, list):
        return {str(name): "*" for name in value}
    if isinstance(value, dict):
        return value
    raise LatctlError(f"Plugin '{plugin}': '{field_name}' must be a table or a list")


def read_manifest(path: Path) -> dict[str, dict[str, Any]]:
    """
    Read the ``[plugins]`` table of a manifest file.

    Raises:
        LatctlError: If the file is missing, malformed or declares no plugins
    """
    try:
        data = read_toml(path)
    except TOMLError as e:
        raise LatctlError(str(e)) from e

    plugins = data.get("plugins")
    if not isinstance(plugins, dict) or not plugins:
        raise LatctlError(f"No [plugins.<name>] tables found in {path}")
    return plugins


async def load_registry(path: Path) -> PluginRegistry:
    """
    Register every plugin of a manifest, disabled and unvalidated.

    Registration never rejects a plugin for its dependencies here, so the
    commands can report every problem at once.

    Args:
        path: Manifest file

    Returns:
        Registry holding the manifest's plugins

    Raises:
        LatctlError: If the manifest or one of its plugins is invalid
    """
    registry = PluginRegistry(
        RegistryOptions(auto_enable=False, validate_dependencies=False)
    )

    for name, table in read_manifest(path).items():
        if not isinstance(table, dict):
            raise LatctlError(f"Plugin '{name}' must be a table")

        metadata = {
            "name": name,
            "version": table.get("version"),
            "description": table.get("description", ""),
            "dependencies": _normalize_dependencies(
                table.get("dependencies"), name, "dependencies"
            ),
            "peer_dependencies": _normalize_dependencies(
                table.get("peer_dependencies"), name, "peer_dependencies"
            ),
        }
        try:
            descriptor = parse_descriptor({"metadata": metadata})
        except ValidationError as e:
            raise LatctlError(f"Plugin '{name}': {e}") from e

        await registry.register(descriptor)

    return registry
