"""Shared fixtures for the lattice unit tests."""

import logging

import pytest

from lattice.config import RegistryOptions
from lattice.plugin.manifest import PluginDescriptor, define_plugin
from lattice.plugin.registry import PluginRegistry


def build_plugin(name: str, deps: list[str] | None = None, **fields) -> PluginDescriptor:
    """Descriptor with the given dependency names (constraint "^1.0.0")."""
    metadata = {
        "name": name,
        "version": "1.0.0",
        "dependencies": {dep: "^1.0.0" for dep in deps or []},
    }
    return define_plugin(metadata, **fields)


@pytest.fixture
def make_plugin():
    return build_plugin


@pytest.fixture
def registry():
    """Registry that leaves plugins disabled until enabled explicitly."""
    return PluginRegistry(RegistryOptions(auto_enable=False))


@pytest.fixture
def auto_registry():
    """Registry with the default policy (auto-enable on register)."""
    return PluginRegistry()


class RecordingHandler(logging.Handler):
    """Keeps every record emitted to the logger it is attached to."""

    def __init__(self):
        super().__init__(logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record):
        self.records.append(record)

    @property
    def messages(self) -> list[str]:
        return [record.getMessage() for record in self.records]


@pytest.fixture
def log_records():
    """Capture records of the lattice package logger (which does not propagate)."""
    lattice_logger = logging.getLogger("lattice")
    handler = RecordingHandler()
    previous = lattice_logger.level
    lattice_logger.addHandler(handler)
    lattice_logger.setLevel(logging.DEBUG)
    yield handler
    lattice_logger.removeHandler(handler)
    lattice_logger.setLevel(previous)
