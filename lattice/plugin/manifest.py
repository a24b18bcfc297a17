"""
Plugin Descriptor System.

This module provides the descriptor types a plugin hands to the registry,
together with their parsing and validation.

Key features:
- Descriptor dataclasses validated once at construction
- Parsing from plain mappings (unknown fields pass through untouched)
- Engine compatibility check against the host version
- Helpers to define, wrap and compose plugins
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from lattice.config.schema import ConfigField
from lattice.core.utils import maybe_await
from lattice.plugin.errors import ValidationError

ENGINE_NAME = "lattice"

HOOK_NAMES = ("install", "activate", "deactivate", "update", "uninstall")

# Config fragments merged into the top level of the CLI config
TOP_LEVEL_FRAGMENTS = ("global_options", "settings", "aliases")

# Middleware phase -> PluginMiddleware callback run in that phase
MIDDLEWARE_PHASES = {
    "before": "before_command",
    "after": "after_command",
    "error": "on_error",
}

MIDDLEWARE_CALLBACKS = (*MIDDLEWARE_PHASES.values(), "transform_args", "transform_result")

Hook = Callable[[Any], Any]
HandlerWrapper = Callable[[Callable[..., Any], Any], Callable[..., Any]]

_NAME_RE = re.compile(r"^\S+$")
_EXTENSION_PATH_RE = re.compile(r"^[A-Za-z0-9_:-]+(\.[A-Za-z0-9_:-]+)*$")


@dataclass
class PluginMetadata:
    """
    Identity and dependency declarations of a plugin.

    Attributes:
        name: Plugin name (unique identifier unless duplicates are allowed)
        version: Plugin version (kept as given, never parsed)
        description: Plugin description
        author: Plugin author
        dependencies: Dict of plugin_name -> opaque version constraint
        peer_dependencies: Dependencies the host is expected to provide
        engines: Dict of engine name -> version constraint
        keywords: Free-form search keywords
    """

    name: str
    version: str
    description: str = ""
    author: str = ""
    dependencies: dict[str, str] = field(default_factory=dict)
    peer_dependencies: dict[str, str] = field(default_factory=dict)
    engines: dict[str, str] = field(default_factory=dict)
    keywords: list[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PluginMetadata":
        """Build metadata from a mapping, keeping values as given."""
        return cls(
            name=data.get("name"),
            version=data.get("version"),
            description=data.get("description", ""),
            author=data.get("author", ""),
            dependencies=data.get("dependencies") or {},
            peer_dependencies=data.get("peer_dependencies") or {},
            engines=data.get("engines") or {},
            keywords=data.get("keywords") or [],
        )


@dataclass
class CommandExtension:
    """
    Additions a plugin makes to a command owned by someone else.

    Attributes:
        options: Options merged into the target command
        args: Positional argument definitions merged into the target command
        flags: Flags merged into the target command
        subcommands: Commands added under the target command's ``commands``
    """

    options: dict[str, Any] = field(default_factory=dict)
    args: dict[str, Any] = field(default_factory=dict)
    flags: dict[str, Any] = field(default_factory=dict)
    subcommands: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CommandExtension":
        return cls(
            options=data.get("options") or {},
            args=data.get("args") or {},
            flags=data.get("flags") or {},
            subcommands=data.get("subcommands") or {},
        )


@dataclass
class PluginMiddleware:
    """
    Callbacks a plugin runs around every command the host dispatches.

    The phase callbacks may be sync or async; the transforms are plain calls.

    Attributes:
        before_command: Called as (command, args) before the handler runs
        after_command: Called as (command, args, result) after it returns
        on_error: Called as (error, command, args) when it raises
        transform_args: Called as (args, command), returns the args to use
        transform_result: Called as (result, command), returns the result to use
    """

    before_command: Callable[..., Any] | None = None
    after_command: Callable[..., Any] | None = None
    on_error: Callable[..., Any] | None = None
    transform_args: Callable[[Any, Any], Any] | None = None
    transform_result: Callable[[Any, Any], Any] | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PluginMiddleware":
        return cls(**{name: data.get(name) for name in MIDDLEWARE_CALLBACKS})


@dataclass
class PluginDescriptor:
    """
    A plugin as handed to the registry.

    Construction validates the structure and raises ValidationError listing
    every problem found.

    Attributes:
        metadata: Plugin identity and dependency declarations
        commands: Command name -> command config
        extensions: Dot path of an existing command -> CommandExtension
        wrappers: Handler wrappers, outermost first
        services: Service name -> service object
        global_options: Fragment merged into the CLI config's global_options
        settings: Fragment merged into the CLI config's settings
        aliases: Fragment merged into the CLI config's aliases
        middleware: Command-level callbacks and transforms
        config_schema: Instance config field name -> ConfigField
        install, activate, deactivate, update, uninstall: Lifecycle hooks
        extra: Unrecognised descriptor fields, passed through untouched
    """

    metadata: PluginMetadata
    commands: dict[str, dict[str, Any]] = field(default_factory=dict)
    extensions: dict[str, CommandExtension] = field(default_factory=dict)
    wrappers: list[HandlerWrapper] = field(default_factory=list)
    services: dict[str, Any] = field(default_factory=dict)
    global_options: dict[str, Any] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)
    aliases: dict[str, Any] = field(default_factory=dict)
    middleware: PluginMiddleware | None = None
    config_schema: dict[str, ConfigField] = field(default_factory=dict)
    install: Hook | None = None
    activate: Hook | None = None
    deactivate: Hook | None = None
    update: Hook | None = None
    uninstall: Hook | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Normalise nested mappings and validate the descriptor."""
        if isinstance(self.metadata, Mapping):
            self.metadata = PluginMetadata.from_mapping(self.metadata)

        if isinstance(self.extensions, Mapping):
            self.extensions = {
                path: CommandExtension.from_mapping(ext) if isinstance(ext, Mapping) else ext
                for path, ext in self.extensions.items()
            }

        if isinstance(self.middleware, Mapping):
            self.middleware = PluginMiddleware.from_mapping(self.middleware)

        errors = collect_descriptor_errors(self)
        if errors:
            raise ValidationError(errors)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def version(self) -> str:
        return self.metadata.version

    def get_hook(self, hook_name: str) -> Hook | None:
        """Return the hook registered for a lifecycle phase, if any."""
        if hook_name not in HOOK_NAMES:
            raise ValueError(f"Unknown lifecycle hook: {hook_name}")
        return getattr(self, hook_name)


@dataclass
class DescriptorValidation:
    """
    Result of validate_descriptor.

    Attributes:
        valid: True when no problem was found
        errors: Problems found, in discovery order
    """

    valid: bool
    errors: list[str]


@dataclass
class Compatibility:
    """
    Result of check_compatibility.

    Attributes:
        compatible: Whether the plugin may be registered with this host
        reason: Explanation when not compatible
    """

    compatible: bool
    reason: str = ""


def collect_descriptor_errors(descriptor: PluginDescriptor) -> list[str]:
    """
    Collect every structural problem of a descriptor.

    Args:
        descriptor: Descriptor to check

    Returns:
        Error messages (empty when the descriptor is valid)
    """
    errors: list[str] = []
    metadata = descriptor.metadata

    if not isinstance(metadata, PluginMetadata):
        errors.append("'metadata' field must be a mapping")
    else:
        _check_metadata(metadata, errors)

    if not isinstance(descriptor.commands, Mapping):
        errors.append("'commands' field must be a dictionary")
    else:
        _check_commands(descriptor.commands, "", errors)

    if not isinstance(descriptor.extensions, Mapping):
        errors.append("'extensions' field must be a dictionary")
    else:
        for path, extension in descriptor.extensions.items():
            _check_extension(path, extension, errors)

    if not isinstance(descriptor.wrappers, list):
        errors.append("'wrappers' field must be a list")
    else:
        for index, wrapper in enumerate(descriptor.wrappers):
            if not callable(wrapper):
                errors.append(f"Wrapper at index {index} must be callable")

    if not isinstance(descriptor.services, Mapping):
        errors.append("'services' field must be a dictionary")
    else:
        for service_name, service in descriptor.services.items():
            if service is None:
                errors.append(f"Service '{service_name}' must not be None")

    for fragment in TOP_LEVEL_FRAGMENTS:
        if not isinstance(getattr(descriptor, fragment), Mapping):
            errors.append(f"'{fragment}' field must be a dictionary")

    middleware = descriptor.middleware
    if middleware is not None:
        if not isinstance(middleware, PluginMiddleware):
            errors.append("'middleware' field must be a dictionary")
        else:
            for callback_name in MIDDLEWARE_CALLBACKS:
                callback = getattr(middleware, callback_name)
                if callback is not None and not callable(callback):
                    errors.append(f"Middleware '{callback_name}' must be callable")

    if not isinstance(descriptor.config_schema, Mapping):
        errors.append("'config_schema' field must be a dictionary")
    else:
        for field_name, config_field in descriptor.config_schema.items():
            if not isinstance(config_field, ConfigField):
                errors.append(f"Config field '{field_name}' must be a ConfigField")

    for hook_name in HOOK_NAMES:
        hook = getattr(descriptor, hook_name)
        if hook is not None and not callable(hook):
            errors.append(f"Hook '{hook_name}' must be callable")

    return errors


def _check_metadata(metadata: PluginMetadata, errors: list[str]) -> None:
    name = metadata.name
    if not isinstance(name, str) or not name:
        errors.append("Missing required field: metadata.name")
    elif not _NAME_RE.match(name):
        errors.append(f"Invalid plugin name: {name!r}. Must not contain whitespace.")

    version = metadata.version
    if not isinstance(version, str) or not version:
        errors.append("Missing required field: metadata.version")

    for field_name in ("dependencies", "peer_dependencies", "engines"):
        value = getattr(metadata, field_name)
        if not isinstance(value, Mapping):
            errors.append(f"'metadata.{field_name}' field must be a dictionary")
            continue
        for dep_name, constraint in value.items():
            if not isinstance(dep_name, str) or not dep_name:
                errors.append(f"'metadata.{field_name}' key must be a non-empty string: {dep_name!r}")
            if not isinstance(constraint, str):
                errors.append(
                    f"'metadata.{field_name}' constraint for {dep_name!r} must be a string"
                )


def _check_commands(commands: Mapping[str, Any], prefix: str, errors: list[str]) -> None:
    for command_name, command in commands.items():
        path = f"{prefix}{command_name}"
        if not isinstance(command, Mapping):
            errors.append(f"Command '{path}' must be a dictionary")
            continue

        handler = command.get("handler")
        if handler is not None and not callable(handler):
            errors.append(f"Command '{path}' handler must be callable")

        nested = command.get("commands")
        if nested is not None:
            if isinstance(nested, Mapping):
                _check_commands(nested, f"{path}.", errors)
            else:
                errors.append(f"Command '{path}' field 'commands' must be a dictionary")


def _check_extension(path: Any, extension: Any, errors: list[str]) -> None:
    if not isinstance(path, str) or not _EXTENSION_PATH_RE.match(path):
        errors.append(
            f"Invalid extension path: {path!r}. Must be dot-separated command names."
        )

    if not isinstance(extension, CommandExtension):
        errors.append(f"Extension '{path}' must be a dictionary")
        return

    for field_name in ("options", "args", "flags", "subcommands"):
        if not isinstance(getattr(extension, field_name), Mapping):
            errors.append(f"Extension '{path}' field '{field_name}' must be a dictionary")

    if isinstance(extension.subcommands, Mapping):
        _check_commands(extension.subcommands, f"{path}.", errors)


def parse_descriptor(data: Mapping[str, Any]) -> PluginDescriptor:
    """
    Parse a plugin descriptor from a plain mapping.

    Args:
        data: Descriptor data; unknown keys are kept in ``extra``

    Returns:
        PluginDescriptor object

    Raises:
        ValidationError: If descriptor is invalid
    """
    if not isinstance(data, Mapping):
        raise ValidationError("Plugin descriptor must be a mapping")
    if data.get("metadata") is None:
        raise ValidationError("Missing required field: metadata")

    known = {
        "metadata",
        "commands",
        "extensions",
        "wrappers",
        "services",
        "middleware",
        "config_schema",
    }
    known.update(TOP_LEVEL_FRAGMENTS)
    known.update(HOOK_NAMES)

    # Absent or null fields take their dataclass defaults
    kwargs: dict[str, Any] = {}
    for key in known:
        if key in data and data[key] is not None:
            kwargs[key] = data[key]

    kwargs["extra"] = {key: value for key, value in data.items() if key not in known}
    return PluginDescriptor(**kwargs)


def validate_descriptor(obj: Any) -> DescriptorValidation:
    """
    Validate a descriptor or mapping without raising.

    Args:
        obj: PluginDescriptor or descriptor mapping

    Returns:
        DescriptorValidation with every problem found
    """
    if isinstance(obj, PluginDescriptor):
        errors = collect_descriptor_errors(obj)
        return DescriptorValidation(valid=not errors, errors=errors)

    try:
        parse_descriptor(obj)
    except ValidationError as e:
        return DescriptorValidation(valid=False, errors=e.errors)
    return DescriptorValidation(valid=True, errors=[])


def define_plugin(metadata: PluginMetadata | Mapping[str, Any], **fields: Any) -> PluginDescriptor:
    """
    Define a plugin in code.

    Example:
        plugin = define_plugin(
            {"name": "audit", "version": "1.0.0", "dependencies": {"db": "^2.0.0"}},
            wrappers=[audit_wrapper],
        )

    Raises:
        ValidationError: If descriptor is invalid
    """
    return parse_descriptor({**fields, "metadata": metadata})


def command_plugin(
    name: str,
    command: str,
    config: Mapping[str, Any],
    version: str = "1.0.0",
    **metadata: Any,
) -> PluginDescriptor:
    """
    Define a plugin that contributes a single command.

    Args:
        name: Plugin name
        command: Command name
        config: Command config (handler, options, ...)
        version: Plugin version
        **metadata: Further metadata fields (description, dependencies, ...)

    Returns:
        PluginDescriptor object
    """
    return define_plugin(
        {**metadata, "name": name, "version": version},
        commands={command: dict(config)},
    )


def _chain_hooks(hooks: list[Callable[..., Any]]) -> Callable[..., Any] | None:
    if not hooks:
        return None

    async def chained(*args):
        for hook in hooks:
            await maybe_await(hook(*args))

    return chained


def _chain_transforms(
    transforms: list[Callable[[Any, Any], Any]],
) -> Callable[[Any, Any], Any] | None:
    if not transforms:
        return None

    def chained(value, command):
        for transform in transforms:
            value = transform(value, command)
        return value

    return chained


def _compose_middleware(descriptors: tuple[PluginDescriptor, ...]) -> PluginMiddleware | None:
    members = [d.middleware for d in descriptors if d.middleware is not None]
    if not members:
        return None

    def collect(callback_name: str) -> list[Callable[..., Any]]:
        return [getattr(m, callback_name) for m in members if getattr(m, callback_name)]

    return PluginMiddleware(
        before_command=_chain_hooks(collect("before_command")),
        after_command=_chain_hooks(collect("after_command")),
        on_error=_chain_hooks(collect("on_error")),
        transform_args=_chain_transforms(collect("transform_args")),
        transform_result=_chain_transforms(collect("transform_result")),
    )


def compose_plugins(
    *descriptors: PluginDescriptor,
    name: str = "composed-plugin",
    version: str = "1.0.0",
) -> PluginDescriptor:
    """
    Combine several descriptors into one plugin.

    Commands, extensions, services, config schemas and fragments are merged
    (later descriptors win), wrappers and dependencies are concatenated. Each
    lifecycle hook runs
    the members' hooks in order; deactivate and uninstall run in reverse.
    Middleware callbacks and transforms run in member order.

    Args:
        *descriptors: Descriptors to combine
        name: Name of the composed plugin
        version: Version of the composed plugin

    Returns:
        PluginDescriptor object
    """
    fields: dict[str, Any] = {
        "commands": {},
        "extensions": {},
        "wrappers": [],
        "services": {},
        "config_schema": {},
        **{fragment: {} for fragment in TOP_LEVEL_FRAGMENTS},
    }
    dependencies: dict[str, str] = {}
    peer_dependencies: dict[str, str] = {}

    for descriptor in descriptors:
        fields["commands"].update(descriptor.commands)
        fields["extensions"].update(descriptor.extensions)
        fields["wrappers"].extend(descriptor.wrappers)
        fields["services"].update(descriptor.services)
        fields["config_schema"].update(descriptor.config_schema)
        for fragment in TOP_LEVEL_FRAGMENTS:
            fields[fragment].update(getattr(descriptor, fragment))
        dependencies.update(descriptor.metadata.dependencies)
        peer_dependencies.update(descriptor.metadata.peer_dependencies)

    for hook_name in HOOK_NAMES:
        hooks = [d.get_hook(hook_name) for d in descriptors if d.get_hook(hook_name)]
        if hook_name in ("deactivate", "uninstall"):
            hooks.reverse()
        fields[hook_name] = _chain_hooks(hooks)

    fields["middleware"] = _compose_middleware(descriptors)

    # A composed plugin never depends on one of its own members
    member_names = {d.name for d in descriptors}
    metadata = PluginMetadata(
        name=name,
        version=version,
        description=f"Composition of {', '.join(d.name for d in descriptors)}",
        dependencies={k: v for k, v in dependencies.items() if k not in member_names},
        peer_dependencies={k: v for k, v in peer_dependencies.items() if k not in member_names},
    )
    return PluginDescriptor(metadata=metadata, **fields)


def check_compatibility(descriptor: PluginDescriptor, host_version: str) -> Compatibility:
    """
    Check a plugin's ``engines.lattice`` constraint against the host version.

    Only the major version is compared; a plugin without the constraint is
    always compatible.

    Args:
        descriptor: Plugin to check
        host_version: Version of the host engine (e.g. "1.4.0")

    Returns:
        Compatibility result
    """
    constraint = descriptor.metadata.engines.get(ENGINE_NAME)
    if not constraint:
        return Compatibility(compatible=True)

    required = re.search(r"\d+", constraint)
    host = re.search(r"\d+", host_version)
    if required is None or host is None:
        return Compatibility(
            compatible=False,
            reason=f"Cannot compare engine constraint {constraint!r} with host {host_version!r}",
        )

    if int(required.group()) != int(host.group()):
        return Compatibility(
            compatible=False,
            reason=(
                f"Plugin '{descriptor.name}' requires {ENGINE_NAME} {constraint}, "
                f"host is {host_version}"
            ),
        )
    return Compatibility(compatible=True)
