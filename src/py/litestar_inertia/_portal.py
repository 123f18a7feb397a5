"""Sync-to-async bridging for prop callbacks.

Prop resolution happens inside synchronous response rendering, while callbacks may be
``async def`` functions. They are run through an anyio :class:`~anyio.from_thread.BlockingPortal`.
"""

import inspect
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, TypeVar

from anyio.from_thread import BlockingPortal, start_blocking_portal

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

T = TypeVar("T")

__all__ = ("call_maybe_async", "is_async_callable", "with_portal")


@contextmanager
def with_portal(portal: "BlockingPortal | None" = None) -> "Generator[BlockingPortal, None, None]":
    """Get or create a blocking portal for async execution.

    Args:
        portal: Optional existing portal to reuse. If None, a short-lived one is started.

    Yields:
        A BlockingPortal for executing async code from sync context.
    """
    if portal is None:
        with start_blocking_portal() as p:
            yield p
    else:
        yield portal


def is_async_callable(value: "Callable[..., Any]") -> bool:
    return inspect.iscoroutinefunction(value)


def call_maybe_async(callback: "Callable[[], Any]", portal: "BlockingPortal | None" = None) -> Any:
    """Invoke a zero-argument callback, awaiting it through a portal when it is async.

    Args:
        callback: The callback to invoke.
        portal: Optional portal to run async callbacks on.

    Returns:
        The callback result.
    """
    if is_async_callable(callback):
        with with_portal(portal) as p:
            return p.call(callback)
    return callback()
