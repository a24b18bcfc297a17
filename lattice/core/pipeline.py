"""
Pipeline - Handler wrapper composition.

A handler wrapper takes the next handler and a context and returns a new
handler. Wrappers compose as a right fold, so the first wrapper in the list
is the outermost one and runs first:

    build_handler_chain([a, b], h, ctx) == a(b(h, ctx), ctx)
"""

from collections.abc import Callable, Sequence
from typing import Any

Handler = Callable[..., Any]
HandlerWrapper = Callable[[Handler, Any], Handler]


class PipelineError(Exception):
    """Raised when a wrapper does not produce a callable handler."""

    pass


def build_handler_chain(
    wrappers: Sequence[HandlerWrapper], handler: Handler, context: Any = None
) -> Handler:
    """
    Compose wrappers around a handler, first wrapper outermost.

    Args:
        wrappers: Wrappers in outermost-first order
        handler: The innermost command handler
        context: Value passed as the second argument to every wrapper

    Returns:
        The composed handler (the handler itself when there are no wrappers)

    Raises:
        PipelineError: If the handler or any wrapper result is not callable
    """
    if not callable(handler):
        raise PipelineError(f"Handler must be callable, got {type(handler).__name__}")

    chained = handler
    for wrapper in reversed(wrappers):
        chained = wrapper(chained, context)
        if not callable(chained):
            raise PipelineError(
                f"Wrapper {getattr(wrapper, '__name__', wrapper)!r} returned "
                f"{type(chained).__name__}, expected a callable"
            )
    return chained
