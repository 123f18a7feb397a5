import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import httpx
from anyio import to_thread
from anyio.from_thread import start_blocking_portal
from litestar.plugins import CLIPluginProtocol, InitPluginProtocol

from litestar_inertia.protocol import InertiaProtocol
from litestar_inertia.ssr import SSRClient

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from anyio.from_thread import BlockingPortal
    from click import Group
    from litestar import Litestar
    from litestar.config.app import AppConfig

    from litestar_inertia.config import InertiaConfig, InertiaSSRConfig
    from litestar_inertia.process import RendererHandle, SSRProcess

__all__ = ("InertiaPlugin",)

logger = logging.getLogger(__name__)


async def _create_ssr_client() -> httpx.AsyncClient:
    limits = httpx.Limits(max_keepalive_connections=10, max_connections=20, keepalive_expiry=30.0)
    return httpx.AsyncClient(limits=limits)


class InertiaPlugin(InitPluginProtocol, CLIPluginProtocol):
    """Inertia plugin.

    This plugin configures Litestar for Inertia.js support, including:
    - InertiaRequest and InertiaResponse as default classes
    - InertiaMiddleware for asset version negotiation
    - Exception handler for Inertia errors
    - Type encoders for prop classes
    - The ``litestar inertia`` CLI group

    BlockingPortal Behavior:
        Page props are resolved while the response is rendered, which happens synchronously,
        but lazy props may hold async callables. The plugin starts a BlockingPortal during its
        lifespan and shares it across all requests to run them, together with the SSR calls.

    SSR:
        When SSR is enabled the plugin keeps a pooled ``httpx.AsyncClient`` living on the portal's
        event loop. When ``InertiaSSRConfig.script_path`` is set it also starts the renderer
        process at startup, and stops it during shutdown, once the server stopped serving requests.

    Example::

        from litestar_inertia import InertiaConfig, InertiaPlugin

        app = Litestar(
            plugins=[InertiaPlugin(InertiaConfig(version="1.0", ssr=True))],
            middleware=[ServerSideSessionConfig().middleware],
        )
    """

    __slots__ = ("_portal", "_process", "config", "protocol")

    def __init__(self, config: "InertiaConfig") -> "None":
        """Initialize the plugin with Inertia configuration."""
        self.config = config
        self.protocol = InertiaProtocol(version=config.asset_version)
        self._portal: "BlockingPortal | None" = None  # pyright: ignore[reportInvalidTypeForm]
        self._process: "SSRProcess | None" = None

    @asynccontextmanager
    async def lifespan(self, app: "Litestar") -> "AsyncGenerator[None, None]":
        """Resolve the asset version and own the SSR resources for the app lifetime.

        Args:
            app: The :class:`Litestar <litestar.app.Litestar>` instance.

        Yields:
            An asynchronous context manager.
        """
        version = self.config.asset_version
        if version is not None and not version.per_request:
            logger.debug("Inertia asset version: %s", await to_thread.run_sync(version.get))

        ssr_config = self.config.ssr_config
        with start_blocking_portal() as portal:
            self._portal = portal
            client: "httpx.AsyncClient | None" = None
            handle: "RendererHandle | None" = None
            try:
                if ssr_config is not None:
                    client = portal.call(_create_ssr_client)
                    self.protocol.ssr_client = SSRClient(ssr_config.url, ssr_config.timeout, client)
                    if ssr_config.script_path is not None:
                        handle = await self._start_renderer(ssr_config)
                yield
            finally:
                if handle is not None and self._process is not None:
                    await to_thread.run_sync(self._process.stop, handle)
                self.protocol.ssr_client = None
                if client is not None:
                    portal.call(client.aclose)
                self._portal = None

    async def _start_renderer(self, ssr_config: "InertiaSSRConfig") -> "RendererHandle":
        from litestar_inertia.process import SSRProcess

        process = self._process or SSRProcess(ssr_config.runtime, shutdown_timeout=ssr_config.shutdown_timeout)
        self._process = process
        handle = await to_thread.run_sync(process.start, ssr_config.script_path, ssr_config.url)
        await to_thread.run_sync(process.wait_until_ready, handle, ssr_config.startup_timeout)
        return handle

    @property
    def portal(self) -> "BlockingPortal":
        """Return the blocking portal used for async prop resolution.

        Returns:
            The BlockingPortal instance.

        Raises:
            RuntimeError: If accessed before app lifespan is active.
        """
        if self._portal is None:
            msg = "BlockingPortal not available. Ensure app lifespan is active."
            raise RuntimeError(msg)
        return self._portal

    @property
    def portal_or_none(self) -> "BlockingPortal | None":
        return self._portal

    @property
    def ssr_client(self) -> "SSRClient | None":
        return self.protocol.ssr_client

    def on_cli_init(self, cli: "Group") -> None:
        from litestar_inertia.cli import inertia_group

        cli.add_command(inertia_group)

    def on_app_init(self, app_config: "AppConfig") -> "AppConfig":
        """Configure application for use with Inertia.

        Args:
            app_config: The :class:`AppConfig <litestar.config.app.AppConfig>` instance.

        Returns:
            The :class:`AppConfig <litestar.config.app.AppConfig>` instance.
        """
        from litestar.middleware import DefineMiddleware
        from litestar.middleware.session import SessionMiddleware
        from litestar.security.session_auth.middleware import MiddlewareWrapper
        from litestar.utils.predicates import is_class_and_subclass

        from litestar_inertia.exception_handler import exception_to_http_response
        from litestar_inertia.exceptions import InertiaError
        from litestar_inertia.middleware import InertiaMiddleware
        from litestar_inertia.props import InertiaProp
        from litestar_inertia.request import InertiaRequest
        from litestar_inertia.response import InertiaBack, InertiaResponse

        for mw in app_config.middleware:
            if isinstance(mw, DefineMiddleware) and is_class_and_subclass(
                mw.middleware, (MiddlewareWrapper, SessionMiddleware)
            ):
                break
        else:
            logger.warning(
                "No session middleware configured: validation errors and shared session props are disabled."
            )

        exception_handlers: "dict[type[Exception] | int, Any]" = {InertiaError: exception_to_http_response}
        app_config.exception_handlers.update(exception_handlers)  # pyright: ignore[reportUnknownMemberType]
        app_config.request_class = InertiaRequest
        app_config.response_class = InertiaResponse
        app_config.middleware.append(InertiaMiddleware)
        app_config.signature_types.extend([InertiaRequest, InertiaResponse, InertiaBack, InertiaProp])
        app_config.type_encoders = {
            InertiaProp: lambda val: val.render(portal=self._portal),
            **(app_config.type_encoders or {}),
        }
        app_config.lifespan.append(self.lifespan)  # pyright: ignore[reportUnknownMemberType]
        return app_config
