"""
Lattice Configuration - Registry options loaded from TOML.

This module provides:
- RegistryOptions: policy switches of a PluginRegistry
- load_options / write_default_config: the ``[lattice]`` TOML table
- ConfigField schema validation (also used for plugin instance configs)
"""

from lattice.config.options import (
    CONFIG_SECTION,
    OPTIONS_SCHEMA,
    ConfigError,
    RegistryOptions,
    load_options,
    write_default_config,
)
from lattice.config.schema import ConfigField, SchemaError, ValidationError, resolve_config
from lattice.config.toml_handler import TOMLError, read_toml

__all__ = [
    "CONFIG_SECTION",
    "OPTIONS_SCHEMA",
    "ConfigError",
    "ConfigField",
    "RegistryOptions",
    "SchemaError",
    "TOMLError",
    "ValidationError",
    "load_options",
    "read_toml",
    "resolve_config",
    "write_default_config",
]
