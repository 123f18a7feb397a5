"""Inertia.js configuration classes."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from litestar_inertia.ssr import DEFAULT_SSR_TIMEOUT, DEFAULT_SSR_URL
from litestar_inertia.version import InertiaVersion

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from litestar.connection import ASGIConnection

    from litestar_inertia.props import PropertyTable
    from litestar_inertia.session import TemporarySessionStore

__all__ = ("InertiaConfig", "InertiaSSRConfig")


def _empty_dict_factory() -> "dict[str, Any]":
    return {}


@dataclass
class InertiaSSRConfig:
    """Server-side rendering settings for Inertia.js.

    Litestar sends the page object to the SSR renderer at ``{url}/render`` and injects the
    returned head tags and body markup into the root template. When the renderer cannot be
    reached, answers too slowly or answers garbage, the page falls back to client-side
    rendering and a warning is logged.

    When ``script_path`` is set the plugin manages the renderer process itself: it is started
    with ``{runtime} {script_path} --port {port}`` during app startup and stopped after the
    server shut down.
    """

    enabled: bool = True
    url: str = DEFAULT_SSR_URL
    """Base URL of the renderer."""
    timeout: float = DEFAULT_SSR_TIMEOUT
    """Seconds to wait for a render. There are no retries."""
    script_path: "Path | str | None" = None
    """Server bundle to run, e.g. ``bootstrap/ssr/ssr.js``. The renderer is not managed when None."""
    runtime: str = "node"
    """JavaScript runtime used to run ``script_path``."""
    shutdown_timeout: float = 5.0
    """Seconds to wait for the renderer to exit before it is terminated."""
    startup_timeout: float = 10.0
    """Seconds to wait for a managed renderer to report healthy."""


@dataclass
class InertiaConfig:
    """Configuration for InertiaJS support.

    Attributes:
        root_template: Name of the root template to use.
        component_opt_keys: Identifiers for getting inertia component from route opts.
        version: The asset version.
        version_per_request: Resolve a callable version on every request.
        ssr: Server-side rendering settings.
        shared_props: Callback returning props shared by every page.
        extra_static_page_props: Static props added to every page response.
        session_store: Storage for the temporary session.
        app_selector: Id of the element the client app is mounted on.
        view_data: Extra context passed to the root template.
    """

    root_template: str = "index.html"
    """Name of the root template to use.

    This must be a path that is found by the app's template config.
    """
    component_opt_keys: "tuple[str, ...]" = ("component", "page")
    """Identifiers to use on routes to get the inertia component to render.

    The first key found in the route handler opts will be used.

    Example:
        # All equivalent:
        @get("/", component="Home")
        @get("/", page="Home")
    """
    version: "str | Callable[[], str] | InertiaVersion | None" = None
    """The current asset version.

    A string, a resolver callable or an :class:`~litestar_inertia.version.InertiaVersion`. Version
    negotiation is disabled when None.
    """
    version_per_request: bool = False
    """Call a resolver on every request instead of once per process."""
    ssr: "InertiaSSRConfig | bool | None" = None
    """Enable server-side rendering (SSR) for Inertia responses.

    Supports:
        - True: enable with defaults -> ``InertiaSSRConfig()``
        - False/None: disabled -> ``None``
        - InertiaSSRConfig: use as-is
    """
    shared_props: "Callable[[ASGIConnection[Any, Any, Any, Any]], PropertyTable] | None" = None
    """Called for every request; its props are merged into every page."""
    extra_static_page_props: "dict[str, Any]" = field(default_factory=_empty_dict_factory)
    """A dictionary of values to automatically add in to page props on every response."""
    session_store: "TemporarySessionStore | None" = None
    """Storage for the temporary session. Defaults to the Litestar session."""
    app_selector: str = "app"
    """Id of the hydration container element."""
    view_data: "dict[str, Any]" = field(default_factory=_empty_dict_factory)
    """Extra context passed to the root template on full page loads."""

    def __post_init__(self) -> None:
        """Normalize optional sub-configs."""
        if self.ssr is True:
            self.ssr = InertiaSSRConfig()
        elif self.ssr is False:
            self.ssr = None
        if self.version is not None and not isinstance(self.version, InertiaVersion):
            self.version = InertiaVersion(self.version, per_request=self.version_per_request)
        if self.session_store is None:
            from litestar_inertia.session import SessionTemporaryStore

            self.session_store = SessionTemporaryStore()

    @property
    def ssr_config(self) -> "InertiaSSRConfig | None":
        """Return the SSR config when enabled, otherwise None.

        Returns:
            The resolved SSR config when enabled, otherwise None.
        """
        if isinstance(self.ssr, InertiaSSRConfig) and self.ssr.enabled:
            return self.ssr
        return None

    @property
    def asset_version(self) -> "InertiaVersion | None":
        return self.version if isinstance(self.version, InertiaVersion) else None
