"""
latctl generate command (-G).

Write a commented ``[lattice]`` options file with the default values.
"""

import sys
from pathlib import Path
from typing import Any

from latctl.cli import LatctlError
from lattice.config import ConfigError, write_default_config


def generate_command(args: Any) -> int:
    """
    Execute generate command.

    Args:
        args: Parsed command-line arguments (targets: [file])

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if len(args.targets) != 1:
        print("Usage: latctl -G <file>", file=sys.stderr)
        return 1

    path = Path(args.targets[0])
    if path.exists():
        raise LatctlError(f"{path} already exists")

    try:
        write_default_config(path)
    except ConfigError as e:
        raise LatctlError(str(e)) from e

    print(f"Wrote {path}")
    return 0
