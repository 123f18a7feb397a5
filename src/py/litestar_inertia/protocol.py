"""Framework-agnostic Inertia protocol controller.

:class:`InertiaProtocol` turns a request, a page component and its props into one of three
outcomes:

- :class:`ForcedRefresh` when the client holds stale assets,
- :class:`JsonPage` for hydrated clients (``X-Inertia`` set),
- :class:`HtmlPage` for full page loads, optionally pre-rendered by the SSR renderer.

Web framework bindings implement :class:`InertiaBinding` to expose the few request capabilities
the controller needs, and turn the outcome into their own response type.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, Union

from litestar_inertia._portal import with_portal
from litestar_inertia.page import build_page
from litestar_inertia.props import AlwaysProp, merge_props, resolve_props
from litestar_inertia.request import InertiaHeaders, classify_request, is_inertia_request, read_header
from litestar_inertia.version import VersionCheck, negotiate_version

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from anyio.from_thread import BlockingPortal
    from litestar.types import TypeEncodersMap

    from litestar_inertia.page import Page, SsrResult
    from litestar_inertia.props import PropertyTable
    from litestar_inertia.ssr import SSRClient
    from litestar_inertia.types import TemporarySession
    from litestar_inertia.version import InertiaVersion

__all__ = ("ForcedRefresh", "HtmlPage", "InertiaBinding", "InertiaProtocol", "JsonPage", "Outcome")

logger = logging.getLogger(__name__)


class InertiaBinding(Protocol):
    """Request capabilities a web framework exposes to :class:`InertiaProtocol`."""

    @property
    def headers(self) -> "Mapping[str, Any]":
        """The request headers, looked up case-insensitively."""
        ...

    @property
    def url(self) -> str:
        """The request path with its query string."""
        ...

    def temporary_session(self) -> "TemporarySession | None":
        """The temporary session loaded for this request, if any."""
        ...

    def reflash(self, session: "TemporarySession | None") -> None:
        """Persist ``session`` again so it survives a forced refresh."""
        ...

    def asset_version(self, resolve: "Callable[[], str | None]") -> "str | None":
        """Return the asset version for this request, calling ``resolve`` at most once per request."""
        ...


@dataclass(frozen=True)
class ForcedRefresh:
    """The client must reload ``location``.

    ``conflict`` is True for hydrated clients, answered with ``409`` and ``X-Inertia-Location``.
    Other clients get an ordinary redirect.
    """

    location: str
    conflict: bool


@dataclass(frozen=True)
class JsonPage:
    """Answer with the page object as JSON."""

    page: "Page"


@dataclass(frozen=True)
class HtmlPage:
    """Answer with the root template; ``ssr`` holds pre-rendered markup when available."""

    page: "Page"
    ssr: "SsrResult | None" = None


Outcome = Union[ForcedRefresh, JsonPage, HtmlPage]


class InertiaProtocol:
    """Runs the Inertia protocol for one request at a time.

    Instances keep no per-request state and are shared by all requests.

    Args:
        version: The asset version, or None to disable version negotiation.
        ssr_client: Client for the SSR renderer, or None to always render on the client.
    """

    __slots__ = ("ssr_client", "version")

    def __init__(self, version: "InertiaVersion | None" = None, ssr_client: "SSRClient | None" = None) -> None:
        self.version = version
        self.ssr_client = ssr_client

    @property
    def current_version(self) -> "str | None":
        return self.version.get() if self.version is not None else None

    def request_version(self, binding: "InertiaBinding") -> "str | None":
        """Return the asset version of a request.

        A per-request resolver runs once per request, so the version checked against the client
        is the version written into the page.

        Args:
            binding: The request.

        Returns:
            The current asset version, or None when none is configured.
        """
        return binding.asset_version(lambda: self.current_version)

    def check_version(self, binding: "InertiaBinding") -> "ForcedRefresh | None":
        """Compare asset versions and decide whether the client must reload.

        On mismatch the temporary session is reflashed so that it survives the reload. A failure
        to persist it is logged and otherwise ignored.

        Args:
            binding: The request.

        Raises:
            HeaderError: If an Inertia header is not printable ASCII.

        Returns:
            A :class:`ForcedRefresh` on mismatch, otherwise None.
        """
        headers = binding.headers
        is_inertia = is_inertia_request(headers)
        check = negotiate_version(
            read_header(headers, InertiaHeaders.VERSION), self.request_version(binding), is_inertia=is_inertia
        )
        if check is VersionCheck.FRESH:
            return None
        try:
            binding.reflash(binding.temporary_session())
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to reflash the temporary session on asset version change: %s", exc)
        return ForcedRefresh(location=binding.url, conflict=check is VersionCheck.FORCED_REFRESH)

    def shared_table(
        self, binding: "InertiaBinding", shared_props: "PropertyTable | None" = None
    ) -> "dict[str, Any]":
        """Return the shared props table for a request.

        Errors found in the temporary session are added as an always-prop named ``errors``.

        Args:
            binding: The request.
            shared_props: Props shared by every page.

        Returns:
            The shared props table.
        """
        table: "dict[str, Any]" = dict(shared_props or {})
        session = binding.temporary_session()
        if session is not None:
            table["errors"] = AlwaysProp(session.errors or {})
        return table

    def decide(
        self,
        binding: "InertiaBinding",
        component: str,
        props: "PropertyTable | None" = None,
        shared_props: "PropertyTable | None" = None,
        portal: "BlockingPortal | None" = None,
    ) -> "JsonPage | HtmlPage":
        """Resolve props and build the page, without calling the SSR renderer.

        Shared and route props are resolved the same way. Route props win on key collision.

        Args:
            binding: The request.
            component: Name of the client-side page component.
            props: Route props.
            shared_props: Props shared by every page.
            portal: Optional portal for async prop callbacks.

        Raises:
            HeaderError: If an Inertia header is not printable ASCII.

        Returns:
            A :class:`JsonPage` for hydrated clients, otherwise an :class:`HtmlPage`.
        """
        headers = binding.headers
        kind = classify_request(headers)
        resolved = merge_props(
            resolve_props(self.shared_table(binding, shared_props), kind, portal),
            resolve_props(props or {}, kind, portal),
        )
        page = build_page(component, binding.url, self.request_version(binding), resolved)
        if is_inertia_request(headers):
            return JsonPage(page)
        return HtmlPage(page)

    def prerender(
        self,
        page: "Page",
        portal: "BlockingPortal | None" = None,
        type_encoders: "TypeEncodersMap | None" = None,
    ) -> "SsrResult | None":
        """Call the SSR renderer for a full page load.

        Args:
            page: The page to render.
            portal: Optional portal to run the HTTP call on.
            type_encoders: Extra type encoders for prop values.

        Returns:
            The rendered markup, or None when SSR is disabled or failed.
        """
        if self.ssr_client is None:
            return None
        with with_portal(portal) as p:
            return self.ssr_client.render_sync(page, p, type_encoders)

    def handle(
        self,
        binding: "InertiaBinding",
        component: str,
        props: "PropertyTable | None" = None,
        shared_props: "PropertyTable | None" = None,
        portal: "BlockingPortal | None" = None,
    ) -> Outcome:
        """Run the full protocol for a request.

        Args:
            binding: The request.
            component: Name of the client-side page component.
            props: Route props.
            shared_props: Props shared by every page.
            portal: Optional portal for async callbacks and the SSR call.

        Raises:
            HeaderError: If an Inertia header is not printable ASCII.

        Returns:
            The outcome.
        """
        refresh = self.check_version(binding)
        if refresh is not None:
            return refresh
        outcome = self.decide(binding, component, props, shared_props, portal)
        if isinstance(outcome, HtmlPage):
            return HtmlPage(outcome.page, self.prerender(outcome.page, portal))
        return outcome
