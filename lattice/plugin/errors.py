"""
Plugin Error Types.

Exceptions raised by the plugin subsystem. Dependency problems and dependent
conflicts are reported as structured results; only structural descriptor
problems and CLI lookups surface as exceptions.
"""


class PluginError(Exception):
    """Base exception for plugin-related errors."""

    pass


class ManifestError(PluginError):
    """Raised when a plugin descriptor cannot be read."""

    pass


class ValidationError(ManifestError):
    """
    Raised when a descriptor, or a plugin instance config, is invalid.

    Attributes:
        errors: Every problem found, in discovery order
    """

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class DependencyError(PluginError):
    """Raised when a dependency query names an unknown plugin."""

    pass


class LifecycleError(PluginError):
    """Raised inside a lifecycle hook run, e.g. when a hook times out."""

    pass
