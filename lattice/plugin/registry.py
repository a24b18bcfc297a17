"""
Plugin Registry.

The facade a host uses to register, enable, disable, update and remove
plugins, and to read what the enabled plugins contribute.

Key features:
- Dependency validation at registration (roll back or keep disabled)
- Recursive enabling of dependencies, bottom-up
- Disabling refused while enabled dependents remain
- Ordered shutdown (dependents before their dependencies)
- Per-plugin config schemas and command middleware
"""

from collections.abc import Callable, Mapping
from typing import Any

from lattice.config import RegistryOptions
from lattice.config.schema import ValidationError as ConfigValidationError
from lattice.config.schema import resolve_config
from lattice.core.pipeline import build_handler_chain
from lattice.core.utils import maybe_await
from lattice.log import get_logger, set_level
from lattice.plugin.dependencies import (
    DependencyManager,
    DependencyValidation,
    DisableCheck,
    EnableCheck,
)
from lattice.plugin.errors import ValidationError
from lattice.plugin.lifecycle import LifecycleManager
from lattice.plugin.manifest import (
    HandlerWrapper,
    PluginDescriptor,
    check_compatibility,
    parse_descriptor,
)
from lattice.plugin.merger import ConfigMerger
from lattice.plugin.services import ServiceCollector
from lattice.plugin.store import PluginStore, RegisteredPlugin

logger = get_logger(__name__)


class PluginRegistry:
    """
    Plugin registry owned by a host application.

    Calls are expected to be serialized by the host: the registry holds no
    locks and awaits hooks one at a time.

    Example:
        registry = PluginRegistry(RegistryOptions(auto_enable=False))
        await registry.register(database_plugin)
        await registry.register(audit_plugin)
        await registry.enable("audit")  # enables "database" first
        cli = registry.apply_cli_config(base_cli)
    """

    def __init__(
        self,
        options: RegistryOptions | None = None,
        host_config: Mapping[str, Any] | None = None,
    ):
        """
        Args:
            options: Registry policy (defaults when None)
            host_config: Config snapshot handed to every lifecycle hook
        """
        self.options = options or RegistryOptions()
        if self.options.log_level:
            set_level(self.options.log_level)

        self._store = PluginStore(self.options)
        self._dependencies = DependencyManager(self._store)
        self._services = ServiceCollector(self._store)
        self._merger = ConfigMerger(self._store)
        self._lifecycle = LifecycleManager(
            self._store,
            host_config=host_config,
            services=self._services.get_services,
            hook_timeout=self.options.hook_timeout,
        )

    @property
    def store(self) -> PluginStore:
        return self._store

    @property
    def dependencies(self) -> DependencyManager:
        return self._dependencies

    @property
    def lifecycle(self) -> LifecycleManager:
        return self._lifecycle

    def _detach(self, name: str) -> None:
        """Drop the registration a name resolves to from the graph and the store."""
        self._dependencies.remove_from_graph(name)
        self._store.remove(name)
        # An older duplicate now answers to the name
        if self._store.has(name):
            self._dependencies.update_graph(name)

    def _swap(
        self,
        registered: RegisteredPlugin,
        descriptor: PluginDescriptor,
        config: dict[str, Any] | None,
    ) -> None:
        """Put a descriptor and config in place and relink the plugin in the graph."""
        self._dependencies.remove_from_graph(registered.name)
        self._store.replace(registered.name, descriptor)
        registered.config = config
        self._dependencies.update_graph(registered.name)

    @staticmethod
    def _resolve_config(
        descriptor: PluginDescriptor, config: dict[str, Any] | None
    ) -> dict[str, Any] | None:
        """Apply a plugin's config schema (defaults, then validation) to its instance config."""
        if not descriptor.config_schema:
            return config
        try:
            return resolve_config(config, descriptor.config_schema)
        except ConfigValidationError as e:
            raise ValidationError(f"Plugin '{descriptor.name}' config: {e}") from e

    async def register(
        self,
        descriptor: PluginDescriptor | Mapping[str, Any],
        config: dict[str, Any] | None = None,
    ) -> bool:
        """
        Register a plugin.

        With ``auto_enable`` the plugin is enabled (dependencies first, then
        install and activate) before this returns; a failure leaves it
        registered but disabled.

        Args:
            descriptor: PluginDescriptor or descriptor mapping
            config: Instance config handed to the plugin's hooks

        Returns:
            True if the plugin is registered when the call returns

        Raises:
            ValidationError: If the descriptor is structurally invalid or the
                config does not satisfy its config_schema
        """
        if isinstance(descriptor, Mapping):
            descriptor = parse_descriptor(descriptor)
        elif not isinstance(descriptor, PluginDescriptor):
            raise ValidationError(
                f"Expected a PluginDescriptor or mapping, got {type(descriptor).__name__}"
            )

        name = descriptor.name

        compatibility = check_compatibility(descriptor, self.options.host_version)
        if not compatibility.compatible:
            logger.error(f"Plugin '{name}' rejected: {compatibility.reason}")
            return False

        config = self._resolve_config(descriptor, config)

        registered = self._store.add(descriptor, config)
        if registered is None:
            logger.warning(f"Plugin '{name}' is already registered")
            return False

        self._dependencies.update_graph(name)

        if self.options.validate_dependencies:
            check = self._dependencies.can_enable(name)
            if not check.can_enable:
                problems = check.reasons
                if self.options.rejects_invalid:
                    logger.error(f"Plugin '{name}' rejected: {'; '.join(problems)}")
                    self._detach(name)
                    return False
                logger.warning(f"Plugin '{name}' registered disabled: {'; '.join(problems)}")
                registered.enabled = False

        # Auto-enable goes through enable so dependencies start first
        if registered.enabled:
            registered.enabled = False
            await self.enable(name)

        logger.info(
            f"Registered plugin '{name}' v{descriptor.version} "
            f"({'enabled' if registered.enabled else 'disabled'})"
        )
        return True

    async def _start(self, registered: RegisteredPlugin) -> bool:
        """Install (once) and activate a plugin; True when both hooks succeed."""
        name = registered.name

        if not registered.installed:
            if not await self._lifecycle.install(name):
                logger.warning(f"Plugin '{name}' install failed, plugin left disabled")
                return False
            registered.installed = True

        if not await self._lifecycle.activate(name):
            logger.warning(f"Plugin '{name}' activation failed, plugin left disabled")
            return False

        return True

    async def unregister(self, name: str) -> bool:
        """
        Remove a plugin.

        Refused while any enabled plugin depends on it. The uninstall hook
        runs first; its failure does not stop the removal.

        Returns:
            True if the plugin was removed
        """
        if not self._store.has(name):
            logger.warning(f"Cannot unregister unknown plugin '{name}'")
            return False

        active = self._store.get_active_dependents(name)
        if active:
            logger.warning(
                f"Cannot unregister plugin '{name}': required by enabled plugins {', '.join(active)}"
            )
            return False

        await self._lifecycle.uninstall(name)
        self._detach(name)
        logger.info(f"Unregistered plugin '{name}'")
        return True

    async def enable(self, name: str) -> bool:
        """
        Enable a plugin and, first, every dependency it has.

        Dependencies are enabled depth-first, one at a time. The plugin's flag
        only flips once its activate hook has succeeded.

        Returns:
            True if the plugin is enabled when the call returns
        """
        registered = self._store.get(name)
        if registered is None:
            logger.error(f"Cannot enable unknown plugin '{name}'")
            return False

        if registered.enabled:
            return True

        check = self._dependencies.can_enable(name)
        if not check.can_enable:
            logger.error(f"Cannot enable plugin '{name}': {'; '.join(check.reasons)}")
            return False

        for dep in registered.dependencies:
            if not await self.enable(dep):
                logger.error(f"Cannot enable plugin '{name}': dependency '{dep}' failed to enable")
                return False

        if not await self._start(registered):
            return False

        registered.enabled = True
        logger.info(f"Enabled plugin '{name}'")
        return True

    async def disable(self, name: str) -> bool:
        """
        Disable a plugin.

        Refused while enabled plugins depend on it; disabling is never forced.

        Returns:
            True if the plugin is disabled when the call returns
        """
        registered = self._store.get(name)
        if registered is None:
            logger.error(f"Cannot disable unknown plugin '{name}'")
            return False

        if not registered.enabled:
            return True

        check = self._dependencies.can_disable(name)
        if not check.can_disable:
            logger.warning(
                f"Cannot disable plugin '{name}': required by enabled plugins "
                f"{', '.join(check.affected_plugins)}"
            )
            return False

        await self._lifecycle.deactivate(name)
        registered.enabled = False
        logger.info(f"Disabled plugin '{name}'")
        return True

    def _update_problems(self, registered: RegisteredPlugin) -> list[str]:
        """Reasons the plugin's current descriptor cannot stay in place."""
        reasons = []
        if self.options.validate_dependencies:
            reasons.extend(self._dependencies.can_enable(registered.name).reasons)
        if registered.enabled:
            idle = [dep for dep in registered.dependencies if not self._store.is_enabled(dep)]
            if idle:
                reasons.append(f"Dependencies not enabled: {', '.join(idle)}")
        return reasons

    async def update(
        self,
        name: str,
        descriptor: PluginDescriptor | Mapping[str, Any] | None = None,
        config: dict[str, Any] | None = None,
    ) -> bool:
        """
        Run a plugin's update hook, optionally swapping in a new descriptor.

        The new descriptor must keep the plugin's name. Its dependencies are
        checked the way registration checks them, and an enabled plugin may
        only depend on enabled plugins. When the check or the update hook
        fails, the previous descriptor and config are put back.

        Args:
            name: Registered plugin name
            descriptor: Replacement descriptor (None keeps the current one)
            config: Replacement instance config (None keeps the current one)

        Returns:
            False for unknown plugins, a refused descriptor or a failed update hook

        Raises:
            ValidationError: If the new descriptor or config is invalid, or the
                descriptor renames the plugin
        """
        registered = self._store.get(name)
        if registered is None:
            logger.error(f"Cannot update unknown plugin '{name}'")
            return False

        previous = None
        if descriptor is not None or config is not None:
            if descriptor is None:
                descriptor = registered.descriptor
            elif isinstance(descriptor, Mapping):
                descriptor = parse_descriptor(descriptor)
            elif not isinstance(descriptor, PluginDescriptor):
                raise ValidationError(
                    f"Expected a PluginDescriptor or mapping, got {type(descriptor).__name__}"
                )
            if descriptor.name != name:
                raise ValidationError(
                    f"Update for plugin '{name}' carries a descriptor named '{descriptor.name}'"
                )

            resolved = self._resolve_config(
                descriptor, config if config is not None else registered.config
            )
            previous = (registered.descriptor, registered.config)
            self._swap(registered, descriptor, resolved)

            problems = self._update_problems(registered)
            if problems:
                logger.error(f"Update of plugin '{name}' refused: {'; '.join(problems)}")
                self._swap(registered, *previous)
                return False

        if not await self._lifecycle.update(name):
            if previous is not None:
                logger.warning(f"Plugin '{name}' update failed, previous descriptor restored")
                self._swap(registered, *previous)
            return False

        logger.info(f"Updated plugin '{name}'")
        return True

    async def shutdown(self) -> list[str]:
        """
        Disable every enabled plugin, dependents before their dependencies.

        Returns:
            Names of the plugins disabled, in the order they were disabled
        """
        disabled = []
        for name in reversed(self._dependencies.get_dependency_order()):
            if self._store.is_enabled(name) and await self.disable(name):
                disabled.append(name)
        return disabled

    # Read API

    def get(self, name: str) -> PluginDescriptor | None:
        return self._store.get_plugin(name)

    def get_all(self) -> list[RegisteredPlugin]:
        return self._store.get_all()

    def get_enabled(self) -> list[PluginDescriptor]:
        return self._store.get_enabled()

    def has(self, name: str) -> bool:
        return self._store.has(name)

    def is_enabled(self, name: str) -> bool:
        return self._store.is_enabled(name)

    def apply_cli_config(self, base: Mapping[str, Any]) -> dict[str, Any]:
        return self._merger.apply_cli_config(base)

    def get_handler_wrappers(self) -> list[HandlerWrapper]:
        return self._services.get_handler_wrappers()

    def wrap_handler(self, handler: Callable[..., Any], context: Any = None) -> Callable[..., Any]:
        """Compose the enabled plugins' wrappers around a command handler."""
        return build_handler_chain(self.get_handler_wrappers(), handler, context)

    def get_middleware(self, phase: str) -> list[Callable[..., Any]]:
        return self._services.get_middleware(phase)

    async def run_middleware(
        self,
        phase: str,
        command: Any,
        args: Any,
        result: Any = None,
        error: BaseException | None = None,
    ) -> None:
        """
        Run the enabled plugins' callbacks for one command phase, in order.

        Callbacks receive (command, args) before the handler,
        (command, args, result) after it and (error, command, args) on failure.
        Errors raised by a callback propagate to the caller.
        """
        for callback in self._services.get_middleware(phase):
            if phase == "before":
                await maybe_await(callback(command, args))
            elif phase == "after":
                await maybe_await(callback(command, args, result))
            else:
                await maybe_await(callback(error, command, args))

    def transform_args(self, args: Any, command: Any) -> Any:
        return self._services.transform_args(args, command)

    def transform_result(self, result: Any, command: Any) -> Any:
        return self._services.transform_result(result, command)

    def get_services(self) -> dict[str, Any]:
        return self._services.get_services()

    def get_service(self, name: str, default: Any = None) -> Any:
        return self._services.get_service(name, default)

    def get_dependency_order(self) -> list[str]:
        return self._dependencies.get_dependency_order()

    def validate(self, name: str) -> DependencyValidation:
        return self._dependencies.validate_dependencies(name)

    def can_enable(self, name: str) -> EnableCheck:
        return self._dependencies.can_enable(name)

    def can_disable(self, name: str) -> DisableCheck:
        return self._dependencies.can_disable(name)

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, name: str) -> bool:
        return self._store.has(name)

    def __repr__(self) -> str:
        enabled = len(self._store.get_enabled())
        return f"PluginRegistry(plugins={len(self._store)}, enabled={enabled})"
