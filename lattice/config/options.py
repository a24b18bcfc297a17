"""
Registry Options.

Policy switches for a PluginRegistry and their TOML representation.

Key features:
- RegistryOptions dataclass with the registry's policy defaults
- ConfigField schema for the ``[lattice]`` table
- Loading from and writing to TOML files
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from lattice.config.schema import (
    ConfigField,
    ValidationError,
    generate_default_config,
    validate_config,
)
from lattice.config.toml_handler import (
    TOMLError,
    generate_toml_from_schema,
    read_toml,
    write_toml,
)

CONFIG_SECTION = "lattice"

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# reject_invalid is tri-state in RegistryOptions; TOML has no null
_REJECT_INVALID_VALUES = {"auto": None, "always": True, "never": False}

OPTIONS_SCHEMA: dict[str, ConfigField] = {
    "auto_enable": ConfigField(
        bool, True, "Enable plugins (install + activate) as soon as they are registered"
    ),
    "validate_dependencies": ConfigField(
        bool, True, "Check for missing and circular dependencies at registration"
    ),
    "allow_duplicates": ConfigField(
        bool, False, "Allow several plugins to be registered under the same name"
    ),
    "reject_invalid": ConfigField(
        str,
        "auto",
        "Roll back registrations failing dependency validation (auto: only when auto_enable is off)",
        choices=list(_REJECT_INVALID_VALUES),
    ),
    "hook_timeout": ConfigField(
        float, 0.0, "Seconds before a lifecycle hook is abandoned (0 disables the timeout)", min=0.0
    ),
    "host_version": ConfigField(
        str, "1.0.0", "Host version checked against plugins' engines.lattice", min=1
    ),
    "log_level": ConfigField(str, "WARNING", "Level of the lattice logger", choices=LOG_LEVELS),
}


class ConfigError(Exception):
    """Raised when registry options cannot be loaded or written."""

    pass


@dataclass
class RegistryOptions:
    """
    Policy switches for a PluginRegistry.

    Attributes:
        auto_enable: New registrations start enabled (install and activate run)
        validate_dependencies: Validate dependencies at registration
        allow_duplicates: Keep several registrations under one name
        reject_invalid: Roll back registrations failing validation instead of
            keeping them disabled. None means ``not auto_enable``.
        hook_timeout: Seconds before a lifecycle hook is abandoned (None = no limit)
        host_version: Version compared with a plugin's ``engines["lattice"]``
        log_level: Level applied to the ``lattice`` logger (None leaves it as
            configured, e.g. by LATTICE_LOG_LEVEL)
    """

    auto_enable: bool = True
    validate_dependencies: bool = True
    allow_duplicates: bool = False
    reject_invalid: bool | None = None
    hook_timeout: float | None = None
    host_version: str = "1.0.0"
    log_level: str | None = None

    @property
    def rejects_invalid(self) -> bool:
        """Whether a registration failing validation is rolled back."""
        if self.reject_invalid is None:
            return not self.auto_enable
        return self.reject_invalid

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "RegistryOptions":
        """
        Build options from a validated ``[lattice]`` table.

        Args:
            data: Table contents using the OPTIONS_SCHEMA encoding

        Returns:
            RegistryOptions instance
        """
        timeout = data.get("hook_timeout", 0.0)
        return cls(
            auto_enable=data.get("auto_enable", True),
            validate_dependencies=data.get("validate_dependencies", True),
            allow_duplicates=data.get("allow_duplicates", False),
            reject_invalid=_REJECT_INVALID_VALUES[data.get("reject_invalid", "auto")],
            hook_timeout=float(timeout) if timeout else None,
            host_version=data.get("host_version", "1.0.0"),
            log_level=data.get("log_level"),
        )

    def to_mapping(self) -> dict[str, Any]:
        """Encode the options as a ``[lattice]`` table."""
        reject = {value: key for key, value in _REJECT_INVALID_VALUES.items()}
        return {
            "auto_enable": self.auto_enable,
            "validate_dependencies": self.validate_dependencies,
            "allow_duplicates": self.allow_duplicates,
            "reject_invalid": reject[self.reject_invalid],
            "hook_timeout": float(self.hook_timeout or 0.0),
            "host_version": self.host_version,
            "log_level": self.log_level or "WARNING",
        }


def load_options(path: Path | str | None = None) -> RegistryOptions:
    """
    Load registry options from the ``[lattice]`` table of a TOML file.

    Keys left out of the table take their schema defaults.

    Args:
        path: TOML file path; None or a missing file yields the defaults

    Returns:
        RegistryOptions instance

    Raises:
        ConfigError: If the file cannot be parsed or the table is invalid
    """
    if path is None:
        return RegistryOptions()

    path = Path(path)
    if not path.exists():
        return RegistryOptions()

    try:
        data = read_toml(path)
    except TOMLError as e:
        raise ConfigError(str(e)) from e

    section = data.get(CONFIG_SECTION, {})
    if not isinstance(section, dict):
        raise ConfigError(f"'{CONFIG_SECTION}' in {path} must be a table")

    merged = {**generate_default_config(OPTIONS_SCHEMA), **section}
    try:
        validate_config(merged, OPTIONS_SCHEMA)
    except ValidationError as e:
        raise ConfigError(f"Invalid [{CONFIG_SECTION}] table in {path}: {e}") from e

    # Only an explicit log_level overrides the environment
    return RegistryOptions.from_mapping({**merged, "log_level": section.get("log_level")})


def write_default_config(path: Path | str, options: RegistryOptions | None = None) -> None:
    """
    Write a commented ``[lattice]`` table to a TOML file.

    Args:
        path: Destination file
        options: Values to write (schema defaults when None)

    Raises:
        ConfigError: If the file cannot be written
    """
    values = options.to_mapping() if options is not None else {}
    content = generate_toml_from_schema(CONFIG_SECTION, OPTIONS_SCHEMA, values)
    try:
        write_toml(Path(path), content)
    except TOMLError as e:
        raise ConfigError(str(e)) from e
