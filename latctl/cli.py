"""
latctl CLI - Lattice dependency inspector.

Pacman-style interface for checking the plugins declared in a TOML manifest.

Usage:
    latctl -O <manifest>           Print dependency order
    latctl -C <manifest>           Check for missing and circular dependencies
    latctl -A <plugin> <manifest>  Print activation order of one plugin
    latctl -G <file>               Write a default [lattice] options file
"""

import argparse
import sys

from lattice.log import set_level
from lattice.plugin.errors import PluginError


class LatctlError(Exception):
    """Base exception for latctl errors."""

    pass


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="latctl",
        description="Lattice dependency inspector - Pacman-style plugin manifest checker",
        add_help=False,
    )

    # Operation flags (mutually exclusive)
    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-O", "--order", action="store_true", help="Print dependency order")
    ops.add_argument("-C", "--check", action="store_true", help="Check dependencies")
    ops.add_argument(
        "-A", "--activation", action="store_true", help="Print activation order of a plugin"
    )
    ops.add_argument(
        "-G", "--generate", action="store_true", help="Write a default options file"
    )
    ops.add_argument("-h", "--help", action="store_true", help="Show help")

    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # Positional arguments
    parser.add_argument("targets", nargs="*", help="Plugin names and manifest files")

    return parser


def print_help():
    """Print help message."""
    help_text = """
latctl - Lattice dependency inspector

Usage:
    latctl -O <manifest>           Print dependency order
    latctl -C <manifest>           Check for missing and circular dependencies
    latctl -A <plugin> <manifest>  Print activation order of one plugin
    latctl -G <file>               Write a default [lattice] options file

Manifest format:
    [plugins.<name>]
    version = "1.0.0"
    dependencies = { other = "^1.0.0" }

Options:
    -v, --verbose                  Verbose output
    -h, --help                     Show this help
"""
    print(help_text.strip())


def main(argv: list[str] | None = None) -> int:
    """Main entry point for latctl CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        set_level("DEBUG")

    try:
        # Show help
        if args.help or not (args.order or args.check or args.activation or args.generate):
            print_help()
            return 0

        # Route to appropriate command
        if args.order:
            from latctl.commands.order import order_command

            return order_command(args)

        elif args.check:
            from latctl.commands.check import check_command

            return check_command(args)

        elif args.activation:
            from latctl.commands.order import activation_command

            return activation_command(args)

        elif args.generate:
            from latctl.commands.generate import generate_command

            return generate_command(args)

    except (LatctlError, PluginError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
