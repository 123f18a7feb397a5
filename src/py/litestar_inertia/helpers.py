from typing import TYPE_CHECKING, Any, cast

from litestar import get
from litestar.exceptions import ImproperlyConfiguredException

from litestar_inertia.props import AlwaysProp
from litestar_inertia.session import ERRORS_SESSION_KEY

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from litestar import Request
    from litestar.connection import ASGIConnection
    from litestar.handlers import HTTPRouteHandler

    from litestar_inertia.config import InertiaConfig
    from litestar_inertia.session import TemporarySessionStore
    from litestar_inertia.types import TemporarySession

__all__ = (
    "SHARED_SESSION_KEY",
    "LitestarBinding",
    "create_inertia_route",
    "error",
    "get_relative_url",
    "get_shared_props",
    "share",
)

SHARED_SESSION_KEY = "_shared"
_TEMPORARY_SESSION_STATE_KEY = "_inertia_temporary_session"
_ASSET_VERSION_STATE_KEY = "_inertia_asset_version"


def get_relative_url(connection: "ASGIConnection[Any, Any, Any, Any]") -> str:
    """Return the relative URL including query string for Inertia page props.

    The Inertia.js protocol requires the ``url`` property to include query parameters
    so that page state (e.g., filters, pagination) is preserved on refresh.

    Args:
        connection: The ASGI connection.

    Returns:
        The path with query string if present, e.g., ``/reports?page=1&status=active``.
    """
    path = connection.url.path
    query = connection.url.query
    return f"{path}?{query}" if query else path


class LitestarBinding:
    """Exposes a Litestar request to :class:`~litestar_inertia.protocol.InertiaProtocol`.

    The temporary session and the asset version are loaded on first use and kept in the scope
    state, so the middleware and the response see the same values within one request.
    """

    __slots__ = ("request", "store")

    def __init__(self, request: "Request[Any, Any, Any]", store: "TemporarySessionStore | None") -> None:
        self.request = request
        self.store = store

    @property
    def headers(self) -> "Mapping[str, Any]":
        return self.request.headers

    @property
    def url(self) -> str:
        return get_relative_url(self.request)

    def _state(self) -> "dict[str, Any]":
        return cast("dict[str, Any]", self.request.scope.setdefault("state", {}))  # pyright: ignore[reportUnknownMemberType]

    def temporary_session(self) -> "TemporarySession | None":
        state = self._state()
        if _TEMPORARY_SESSION_STATE_KEY not in state:
            state[_TEMPORARY_SESSION_STATE_KEY] = self.store.load(self.request) if self.store is not None else None
        return cast("TemporarySession | None", state[_TEMPORARY_SESSION_STATE_KEY])

    def asset_version(self, resolve: "Callable[[], str | None]") -> "str | None":
        state = self._state()
        if _ASSET_VERSION_STATE_KEY not in state:
            state[_ASSET_VERSION_STATE_KEY] = resolve()
        return cast("str | None", state[_ASSET_VERSION_STATE_KEY])

    def reflash(self, session: "TemporarySession | None") -> None:
        if session is not None and self.store is not None:
            self.store.reflash(self.request, session)

    def remember(self) -> None:
        if self.store is not None:
            self.store.remember(self.request, self.url)


def get_shared_props(
    request: "ASGIConnection[Any, Any, Any, Any]",
    config: "InertiaConfig",
) -> "dict[str, Any]":
    """Return the shared props table for a request.

    The table combines, in increasing precedence: ``extra_static_page_props`` (as always-props),
    values stored with :func:`share` and the props returned by the ``shared_props`` callback.
    The values stored with :func:`share` are consumed.

    Args:
        request: The ASGI connection.
        config: The Inertia configuration.

    Returns:
        The shared props, not yet resolved.
    """
    props: "dict[str, Any]" = {key: AlwaysProp(value) for key, value in config.extra_static_page_props.items()}

    try:
        props.update(cast("dict[str, Any]", request.session.pop(SHARED_SESSION_KEY, {})))
    except (AttributeError, ImproperlyConfiguredException):
        pass

    if config.shared_props is not None:
        props.update(config.shared_props(request))
    return props


def share(
    connection: "ASGIConnection[Any, Any, Any, Any]",
    key: "str",
    value: "Any",
) -> "None":
    """Share a value in the session.

    The value is added to the props of the next rendered page.

    Args:
        connection: The ASGI connection.
        key: The key to store the value under.
        value: The value to store.
    """
    try:
        connection.session.setdefault(SHARED_SESSION_KEY, {}).update({key: value})
    except (AttributeError, ImproperlyConfiguredException):
        msg = "Unable to set `share` session state.  A valid session was not found for this request."
        connection.logger.warning(msg)


def error(
    connection: "ASGIConnection[Any, Any, Any, Any]",
    key: "str",
    message: "str",
) -> "None":
    """Set an error message in the session.

    The next rendered page receives it in its ``errors`` prop.

    Args:
        connection: The ASGI connection.
        key: The key to store the error under.
        message: The error message.
    """
    try:
        connection.session.setdefault(ERRORS_SESSION_KEY, {}).update({key: message})
    except (AttributeError, ImproperlyConfiguredException):
        msg = "Unable to set `error` session state.  A valid session was not found for this request."
        connection.logger.warning(msg)


def create_inertia_route(path: str, component: str, *, name: "str | None" = None, **kwargs: Any) -> "HTTPRouteHandler":
    """Create a GET handler rendering ``component`` without route props.

    Example::

        app = Litestar(route_handlers=[create_inertia_route("/about", "About")], ...)

    Args:
        path: The route path.
        component: Name of the client-side page component.
        name: Optional route name.
        **kwargs: Extra keyword arguments passed to :func:`litestar.get`.

    Returns:
        The route handler.
    """

    async def inertia_page() -> "dict[str, Any]":
        return {}

    return get(path, name=name, component=component, **kwargs)(inertia_page)
