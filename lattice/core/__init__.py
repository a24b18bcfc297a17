"""
Lattice core - Messaging and handler composition primitives.

This module provides:
- EventBus: per-context event emitter handed to plugin hooks
- build_handler_chain: wrapper composition for command handlers
"""

from lattice.core.event_bus import EventBus
from lattice.core.pipeline import build_handler_chain

__all__ = ["EventBus", "build_handler_chain"]
