"""Page props and the visibility rules deciding which of them are sent.

A page is rendered from a :data:`PropertyTable`: a mapping of prop names to values. Values may be
wrapped in one of four prop kinds that control when they are included and evaluated:

============== ================== ===================================== =================
Kind           Standard visit     Partial reload                        Evaluated
============== ================== ===================================== =================
AlwaysProp     included           included, filters ignored             eagerly
DataProp       included           included when selected                eagerly
LazyProp       included           included when selected                only when included
OnDemandProp   never              included when selected                only when included
============== ================== ===================================== =================

A plain value in the table behaves as a :class:`DataProp`.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Generic, TypeVar, cast

from litestar_inertia._portal import call_maybe_async
from litestar_inertia.types import PartialReload

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from anyio.from_thread import BlockingPortal

    from litestar_inertia.types import RequestKind

__all__ = (
    "AlwaysProp",
    "DataProp",
    "InertiaProp",
    "LazyProp",
    "OnDemandProp",
    "PropertyTable",
    "always",
    "data",
    "lazy",
    "merge_props",
    "on_demand",
    "resolve_props",
)

T = TypeVar("T")

PropertyTable = Mapping[str, Any]
"""Named props for a page. Values are prop kinds or plain values."""


class InertiaProp(Generic[T]):
    """Base class of all prop kinds."""

    __slots__ = ()

    def render(self, portal: "BlockingPortal | None" = None) -> T:
        """Produce the prop value.

        Args:
            portal: Optional portal used to await async callbacks.

        Returns:
            The prop value.
        """
        raise NotImplementedError


class _ValueProp(InertiaProp[T]):
    __slots__ = ("_value",)

    def __init__(self, value: T) -> None:
        self._value = value

    @property
    def value(self) -> T:
        return self._value

    def render(self, portal: "BlockingPortal | None" = None) -> T:
        return self._value

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and cast("_ValueProp[Any]", other)._value == self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"


class _CallbackProp(InertiaProp[T]):
    __slots__ = ("_callback",)

    def __init__(self, callback: "Callable[[], T | Awaitable[T]]") -> None:
        if not callable(callback):
            msg = f"{type(self).__name__} expects a zero-argument callable, got {type(callback).__name__}."
            raise TypeError(msg)
        self._callback = callback

    @property
    def callback(self) -> "Callable[[], T | Awaitable[T]]":
        return self._callback

    def render(self, portal: "BlockingPortal | None" = None) -> T:
        """Invoke the callback.

        The result is never cached on the prop, so a table shared between requests is evaluated
        afresh for each of them.

        Args:
            portal: Optional portal used to await an async callback.

        Returns:
            The callback result.
        """
        return cast("T", call_maybe_async(self._callback, portal))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._callback!r})"


class AlwaysProp(_ValueProp[T]):
    """Included on every visit, even when a partial reload filters it out."""

    __slots__ = ()


class DataProp(_ValueProp[T]):
    """Included on standard visits and on partial reloads that select it."""

    __slots__ = ()


class LazyProp(_CallbackProp[T]):
    """Like :class:`DataProp`, but the value is computed only when the prop is included."""

    __slots__ = ()


class OnDemandProp(_CallbackProp[T]):
    """Never sent on standard visits; computed only for partial reloads that select it."""

    __slots__ = ()


def always(value: T) -> "AlwaysProp[T]":
    return AlwaysProp(value)


def data(value: T) -> "DataProp[T]":
    return DataProp(value)


def lazy(callback: "Callable[[], T | Awaitable[T]]") -> "LazyProp[T]":
    """Wrap a callback as a :class:`LazyProp`.

    Example::

        @get("/dashboard", component="Dashboard")
        async def dashboard() -> dict[str, Any]:
            return {"stats": lazy(compute_stats)}

    Args:
        callback: A zero-argument callable, sync or async.

    Returns:
        The lazy prop.
    """
    return LazyProp(callback)


def on_demand(callback: "Callable[[], T | Awaitable[T]]") -> "OnDemandProp[T]":
    """Wrap a callback as an :class:`OnDemandProp`.

    Args:
        callback: A zero-argument callable, sync or async.

    Returns:
        The on-demand prop.
    """
    return OnDemandProp(callback)


def resolve_props(
    table: "PropertyTable",
    kind: "RequestKind",
    portal: "BlockingPortal | None" = None,
) -> "dict[str, Any]":
    """Resolve the props that must be sent for a request.

    On a standard visit on-demand props are skipped, lazy props are invoked and every other
    value is taken as is. On a partial reload always-props are inserted unconditionally and every
    other prop only when :meth:`~litestar_inertia.types.PartialReloadSpec.includes` selects it.
    A callback is invoked at most once per call, and only for a prop that ends up in the result.

    Args:
        table: The props to resolve. It is never mutated.
        kind: The request kind computed by :func:`~litestar_inertia.request.classify_request`.
        portal: Optional portal for async callbacks.

    Returns:
        A fresh dict of resolved prop values.
    """
    resolved: "dict[str, Any]" = {}
    spec = kind.spec if isinstance(kind, PartialReload) else None

    for key, value in table.items():
        if isinstance(value, AlwaysProp):
            resolved[key] = value.value
            continue
        if spec is None:
            if isinstance(value, OnDemandProp):
                continue
        elif not spec.includes(key):
            continue
        resolved[key] = value.render(portal) if isinstance(value, InertiaProp) else value
    return resolved


def merge_props(shared: "dict[str, Any]", route: "dict[str, Any]") -> "dict[str, Any]":
    """Merge resolved shared props with resolved route props.

    Route props win on key collision.

    Args:
        shared: Resolved shared props.
        route: Resolved route props.

    Returns:
        A new dict holding both.
    """
    return {**shared, **route}
