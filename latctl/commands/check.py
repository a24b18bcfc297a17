"""
latctl check command (-C).

Report missing and circular dependencies of every plugin in a manifest.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any

from latctl.commands.manifest import load_registry


def check_command(args: Any) -> int:
    """
    Execute check command.

    Args:
        args: Parsed command-line arguments (targets: [manifest])

    Returns:
        0 when every plugin can be enabled, 1 otherwise
    """
    if len(args.targets) != 1:
        print("Usage: latctl -C <manifest>", file=sys.stderr)
        return 1

    registry = asyncio.run(load_registry(Path(args.targets[0])))

    problems = 0
    for name in registry.get_dependency_order():
        check = registry.can_enable(name)
        if check.can_enable:
            if args.verbose:
                print(f"{name}: ok")
            continue
        problems += 1
        for reason in check.reasons:
            print(f"{name}: {reason}")

    if args.verbose:
        print(f"\nPlugins: {len(registry)}, with problems: {problems}")

    return 0 if problems == 0 else 1
