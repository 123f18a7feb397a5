from enum import Enum
from functools import cached_property
from typing import TYPE_CHECKING, Any, cast
from urllib.parse import unquote

from litestar import Request
from litestar.connection.base import AuthT, StateT, UserT, empty_receive, empty_send

from litestar_inertia.exceptions import HeaderError
from litestar_inertia.types import STANDARD_VISIT, PartialReload, PartialReloadSpec

if TYPE_CHECKING:
    from collections.abc import Mapping

    from litestar.types import Receive, Scope, Send

    from litestar_inertia.plugin import InertiaPlugin
    from litestar_inertia.types import RequestKind

__all__ = (
    "InertiaDetails",
    "InertiaHeaders",
    "InertiaRequest",
    "classify_request",
    "is_inertia_request",
    "read_header",
)

_DEFAULT_COMPONENT_OPT_KEYS: "tuple[str, ...]" = ("component", "page")


class InertiaHeaders(str, Enum):
    """Enum for Inertia Headers.

    See: https://inertiajs.com/the-protocol
    """

    ENABLED = "X-Inertia"
    VERSION = "X-Inertia-Version"
    LOCATION = "X-Inertia-Location"

    PARTIAL_DATA = "X-Inertia-Partial-Data"
    PARTIAL_COMPONENT = "X-Inertia-Partial-Component"
    PARTIAL_EXCEPT = "X-Inertia-Partial-Except"


def _is_visible_ascii(value: str) -> bool:
    return all(ch == "\t" or " " <= ch <= "~" for ch in value)


def _lookup(headers: "Mapping[str, Any]", name: str) -> Any:
    value = headers.get(name)
    if value is not None:
        return value
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None


def read_header(headers: "Mapping[str, Any]", name: "InertiaHeaders | str") -> "str | None":
    """Read an Inertia header as text.

    Header names are matched case-insensitively. When the companion ``<name>-uri-autoencoded``
    header is ``true`` the value is percent-decoded before it is returned.

    Args:
        headers: The request headers.
        name: The header name.

    Raises:
        HeaderError: If the value holds characters outside printable ASCII.

    Returns:
        The header value, or None if the header is absent.
    """
    header = (name.value if isinstance(name, InertiaHeaders) else name).lower()
    value = _lookup(headers, header)
    if value is None:
        return None
    if isinstance(value, bytes):
        try:
            value = value.decode("ascii")
        except UnicodeDecodeError as exc:
            raise HeaderError(header) from exc
    if not _is_visible_ascii(value):
        raise HeaderError(header)
    if _lookup(headers, f"{header}-uri-autoencoded") in {"true", b"true"}:
        return unquote(value)
    return cast("str", value)


def _split_names(value: "str | None") -> "frozenset[str]":
    if not value:
        return frozenset()
    return frozenset(name for part in value.split(",") if (name := part.strip()))


def is_inertia_request(headers: "Mapping[str, Any]") -> bool:
    """Return True when the request was sent by a hydrated Inertia client.

    Args:
        headers: The request headers.

    Returns:
        True if the ``X-Inertia`` header is present and non-empty.
    """
    return bool(read_header(headers, InertiaHeaders.ENABLED))


def classify_request(headers: "Mapping[str, Any]") -> "RequestKind":
    """Determine whether a request is a standard visit or a partial reload.

    A request is a partial reload when it carries ``X-Inertia-Partial-Component``. Its ``only``
    and ``except`` sets are the comma separated, trimmed names of ``X-Inertia-Partial-Data`` and
    ``X-Inertia-Partial-Except``.

    Args:
        headers: The request headers.

    Raises:
        HeaderError: If a consulted header is not printable ASCII.

    Returns:
        The request kind.
    """
    component = read_header(headers, InertiaHeaders.PARTIAL_COMPONENT)
    if component is None:
        return STANDARD_VISIT
    return PartialReload(
        PartialReloadSpec(
            component=component,
            only=_split_names(read_header(headers, InertiaHeaders.PARTIAL_DATA)),
            except_=_split_names(read_header(headers, InertiaHeaders.PARTIAL_EXCEPT)),
        )
    )


class InertiaDetails:
    """InertiaDetails holds all the values sent by Inertia client in headers and provide convenient properties."""

    def __init__(self, request: "Request[UserT, AuthT, StateT]") -> None:
        """Initialize :class:`InertiaDetails`"""
        self.request = request

    def _get_route_component(self) -> "str | None":
        """Return the route component from handler opts if present.

        Returns:
            The route component name, or None if not configured on the handler.
        """
        rh = self.request.scope.get("route_handler")  # pyright: ignore[reportUnknownMemberType]
        if rh:
            component_opt_keys: "tuple[str, ...]" = _DEFAULT_COMPONENT_OPT_KEYS
            try:
                inertia_plugin: "InertiaPlugin" = self.request.app.plugins.get("InertiaPlugin")
                component_opt_keys = inertia_plugin.config.component_opt_keys
            except KeyError:
                pass

            for key in component_opt_keys:
                if (value := rh.opt.get(key)) is not None:
                    return cast("str", value)
        return None

    def __bool__(self) -> bool:
        return is_inertia_request(self.request.headers)

    @cached_property
    def route_component(self) -> "str | None":
        """Return the route component name.

        Returns:
            The route component name, or None if not configured.
        """
        return self._get_route_component()

    @cached_property
    def version(self) -> "str | None":
        """Return the Inertia asset version sent by the client.

        Returns:
            The version string, or None if not present.
        """
        return read_header(self.request.headers, InertiaHeaders.VERSION)

    @cached_property
    def kind(self) -> "RequestKind":
        """Return the request kind, computed once per request.

        Returns:
            A standard visit or a partial reload.
        """
        return classify_request(self.request.headers)


class InertiaRequest(Request[UserT, AuthT, StateT]):
    """Inertia Request class to work with Inertia client."""

    __slots__ = ("inertia",)

    def __init__(self, scope: "Scope", receive: "Receive" = empty_receive, send: "Send" = empty_send) -> None:
        """Initialize :class:`InertiaRequest`"""
        super().__init__(scope=scope, receive=receive, send=send)
        self.inertia = InertiaDetails(self)

    @property
    def is_inertia(self) -> bool:
        """True if the request was sent by a hydrated Inertia client.

        Returns:
            True if the request contains a non-empty ``X-Inertia`` header, otherwise False.
        """
        return bool(self.inertia)

    @property
    def inertia_enabled(self) -> bool:
        """True if the route handler contains an inertia enabled configuration.

        Returns:
            True if the route is configured with an Inertia component, otherwise False.
        """
        return bool(self.inertia.route_component is not None)

    @property
    def request_kind(self) -> "RequestKind":
        """The request kind derived from the partial-reload headers."""
        return self.inertia.kind

    @property
    def is_partial_render(self) -> bool:
        """True if the request is a partial reload."""
        return isinstance(self.inertia.kind, PartialReload)

    @property
    def inertia_version(self) -> "str | None":
        """Get the Inertia asset version sent by the client.

        Returns:
            The version string sent by the client, or None if not present.
        """
        return self.inertia.version
