"""
Lattice - Plugin dependency resolution and lifecycle engine.

This is the main package that exports the public API for hosts embedding
the plugin registry.
"""

__version__ = "0.1.0"

from lattice.config import ConfigField, RegistryOptions, load_options
from lattice.plugin.lifecycle import HookType, PluginContext
from lattice.plugin.manifest import (
    CommandExtension,
    PluginDescriptor,
    PluginMetadata,
    PluginMiddleware,
    command_plugin,
    compose_plugins,
    define_plugin,
    parse_descriptor,
)
from lattice.plugin.registry import PluginRegistry

__all__ = [
    "__version__",
    "CommandExtension",
    "ConfigField",
    "HookType",
    "PluginContext",
    "PluginDescriptor",
    "PluginMetadata",
    "PluginMiddleware",
    "PluginRegistry",
    "RegistryOptions",
    "command_plugin",
    "compose_plugins",
    "define_plugin",
    "load_options",
    "parse_descriptor",
]
