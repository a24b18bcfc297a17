"""
latctl order commands (-O, -A).

Print plugins in the order they can be activated.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any

from latctl.commands.manifest import load_registry
from lattice.plugin.errors import DependencyError


def order_command(args: Any) -> int:
    """
    Print the dependency order of every plugin in a manifest.

    Args:
        args: Parsed command-line arguments (targets: [manifest])

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if len(args.targets) != 1:
        print("Usage: latctl -O <manifest>", file=sys.stderr)
        return 1

    registry = asyncio.run(load_registry(Path(args.targets[0])))
    for name in registry.get_dependency_order():
        print(name)
    return 0


def activation_command(args: Any) -> int:
    """
    Print the activation order of one plugin, dependencies first.

    Args:
        args: Parsed command-line arguments (targets: [plugin, manifest])

    Returns:
        Exit code (0 for success, non-zero for error)

    Raises:
        DependencyError: If the plugin is not declared in the manifest
    """
    if len(args.targets) != 2:
        print("Usage: latctl -A <plugin> <manifest>", file=sys.stderr)
        return 1

    name, manifest = args.targets
    registry = asyncio.run(load_registry(Path(manifest)))
    if not registry.has(name):
        raise DependencyError(f"Plugin '{name}' is not declared in {manifest}")

    for entry in registry.dependencies.get_activation_order(name):
        print(entry)

    missing = registry.validate(name).missing
    if missing:
        print(f"warning: missing dependencies: {', '.join(missing)}", file=sys.stderr)
    return 0
