"""
Event Bus - Messaging between a plugin's hooks and the code it sets up.

Every PluginContext carries its own EventBus, so subscriptions made while a
hook runs never leak into another plugin or another hook invocation.

All subscriptions support:
- Priority-based execution (higher priority = earlier execution)
- Glob pattern matching for event IDs (``*`` stays within a dot segment)
- One-shot handlers that unsubscribe after their first dispatch
"""

import inspect
import re
from collections.abc import Callable
from dataclasses import dataclass

from lattice.log import get_logger

logger = get_logger(__name__)


class EventBusError(Exception):
    """Base exception for event bus errors."""

    pass


class RegistrationError(EventBusError):
    """Raised when handler registration fails."""

    pass


@dataclass
class Handler:
    """
    Represents a registered event handler.

    Attributes:
        callback: The handler function
        priority: Higher priority executes first
        registration_order: Tie-breaker for same priority (lower = earlier)
        requires_src: Whether handler expects the event ID first (pattern variants)
        once: Remove the handler after its first dispatch
    """

    callback: Callable
    priority: int
    registration_order: int
    requires_src: bool = False
    once: bool = False

    def __call__(self, event_id: str, *args):
        """Execute the handler."""
        if self.requires_src:
            return self.callback(event_id, *args)
        return self.callback(*args)


class EventBus:
    """
    Event emitter with exact and pattern routes.

    Example:
        bus = EventBus()
        bus.on("config.reloaded", refresh)
        bus.emit("config.reloaded", new_config)
    """

    def __init__(self):
        # Exact route storage: event_id -> list of handlers
        self._routes: dict[str, list[Handler]] = {}

        # Pattern route storage: (glob, compiled regex, handler)
        self._patterns: list[tuple[str, re.Pattern, Handler]] = []

        # Registration order counter for tie-breaking
        self._registration_counter = 0

    def _next_registration_order(self) -> int:
        """Get next registration order number."""
        order = self._registration_counter
        self._registration_counter += 1
        return order

    def _glob_to_regex(self, pattern: str) -> re.Pattern:
        """
        Convert glob pattern to compiled regex.

        ``*`` matches any characters within a segment (not across dots).
        """
        escaped = re.escape(pattern)
        regex_pattern = escaped.replace(r"\*", "[^.]*")
        return re.compile(f"^{regex_pattern}$")

    def _sort_handlers(self, handlers: list[Handler]) -> list[Handler]:
        """Sort by priority (descending) then registration order (ascending)."""
        return sorted(handlers, key=lambda h: (-h.priority, h.registration_order))

    def on(
        self, event_id: str, callback: Callable, priority: int = 0, once: bool = False
    ) -> Callable[[], bool]:
        """
        Subscribe to an exact event ID.

        Args:
            event_id: Exact event ID to match
            callback: Handler called with the emitted arguments
            priority: Execution priority (higher = earlier)
            once: Unsubscribe after the first dispatch

        Returns:
            A function that removes the subscription
        """
        if not callable(callback):
            raise RegistrationError(f"Handler for '{event_id}' must be callable")

        handler = Handler(
            callback=callback,
            priority=priority,
            registration_order=self._next_registration_order(),
            once=once,
        )
        self._routes.setdefault(event_id, []).append(handler)
        return lambda: self._remove_handler(handler)

    def once(self, event_id: str, callback: Callable, priority: int = 0) -> Callable[[], bool]:
        """Subscribe to the next emission of an event ID only."""
        return self.on(event_id, callback, priority=priority, once=True)

    def on_pattern(
        self, pattern: str, callback: Callable, priority: int = 0
    ) -> Callable[[], bool]:
        """
        Subscribe to every event ID matching a glob pattern.

        Args:
            pattern: Glob pattern to match event IDs
            callback: Handler taking (src: str, *args)
            priority: Execution priority (higher = earlier)

        Returns:
            A function that removes the subscription

        Raises:
            RegistrationError: If callback doesn't accept 'src' parameter
        """
        sig = inspect.signature(callback)
        params = list(sig.parameters.keys())
        if len(params) < 1 or params[0] != "src":
            raise RegistrationError(
                f"Pattern-based handler must have 'src' as first parameter. "
                f"Got: {params}"
            )

        handler = Handler(
            callback=callback,
            priority=priority,
            registration_order=self._next_registration_order(),
            requires_src=True,
        )
        self._patterns.append((pattern, self._glob_to_regex(pattern), handler))
        return lambda: self._remove_handler(handler)

    def off(self, event_id: str, callback: Callable | None = None) -> int:
        """
        Remove subscriptions for an event ID or glob pattern.

        Args:
            event_id: Exact event ID or the glob the handler was registered with
            callback: Remove only this callback (all handlers when None)

        Returns:
            Number of handlers removed
        """
        removed = 0

        handlers = self._routes.get(event_id, [])
        kept = [h for h in handlers if callback is not None and h.callback is not callback]
        removed += len(handlers) - len(kept)
        if kept:
            self._routes[event_id] = kept
        else:
            self._routes.pop(event_id, None)

        patterns = [
            entry
            for entry in self._patterns
            if entry[0] != event_id
            or (callback is not None and entry[2].callback is not callback)
        ]
        removed += len(self._patterns) - len(patterns)
        self._patterns = patterns

        return removed

    def _remove_handler(self, handler: Handler) -> bool:
        for event_id, handlers in list(self._routes.items()):
            if handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    del self._routes[event_id]
                return True

        for entry in self._patterns:
            if entry[2] is handler:
                self._patterns.remove(entry)
                return True

        return False

    def _find_handlers(self, event_id: str) -> list[Handler]:
        """Collect exact and pattern handlers for an event, in dispatch order."""
        handlers = list(self._routes.get(event_id, []))
        for _, regex, handler in self._patterns:
            if regex.match(event_id):
                handlers.append(handler)
        return self._sort_handlers(handlers)

    def emit(self, event_id: str, *args) -> int:
        """
        Dispatch an event to its handlers synchronously.

        Handler errors are logged and do not stop the remaining handlers.
        Coroutine handlers are not awaited here; use emit_async for those.

        Returns:
            Number of handlers invoked
        """
        handlers = self._find_handlers(event_id)
        for handler in handlers:
            if handler.once:
                self._remove_handler(handler)
            try:
                result = handler(event_id, *args)
            except Exception as e:
                logger.warning(f"Handler for event '{event_id}' failed: {e}", exc_info=True)
                continue

            if inspect.iscoroutine(result):
                result.close()
                logger.warning(
                    f"Coroutine handler for event '{event_id}' was skipped; use emit_async"
                )
        return len(handlers)

    async def emit_async(self, event_id: str, *args) -> int:
        """
        Dispatch an event, awaiting coroutine handlers one after another.

        Returns:
            Number of handlers invoked
        """
        handlers = self._find_handlers(event_id)
        for handler in handlers:
            if handler.once:
                self._remove_handler(handler)
            try:
                result = handler(event_id, *args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Handler for event '{event_id}' failed: {e}", exc_info=True)
        return len(handlers)

    def listener_count(self, event_id: str) -> int:
        """Number of handlers an emission of event_id would reach."""
        return len(self._find_handlers(event_id))

    def clear(self) -> None:
        """Remove every subscription."""
        self._routes.clear()
        self._patterns.clear()
