"""
Utils Module - Helper functions shared by the core and plugin packages.

This module provides:
- maybe_await(): Await a value only when it is awaitable
- split_path(): Split a dot-separated command path
"""

import inspect
from typing import Any


async def maybe_await(value: Any) -> Any:
    """
    Resolve the result of a callback that may be sync or async.

    Args:
        value: Return value of a hook, handler or event callback

    Returns:
        The awaited result for awaitables, the value itself otherwise
    """
    if inspect.isawaitable(value):
        return await value
    return value


def split_path(path: str) -> list[str]:
    """
    Split a dot-separated command path into its segments.

    Example:
        split_path("db.migrate") -> ["db", "migrate"]
    """
    return [segment for segment in path.split(".") if segment]
