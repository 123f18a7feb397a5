from typing import TYPE_CHECKING, Any

from litestar.enums import ScopeType
from litestar.middleware import AbstractMiddleware
from litestar.status_codes import HTTP_301_MOVED_PERMANENTLY, HTTP_302_FOUND, HTTP_303_SEE_OTHER

from litestar_inertia.helpers import LitestarBinding
from litestar_inertia.request import InertiaRequest
from litestar_inertia.response import location

if TYPE_CHECKING:
    from litestar.types import ASGIApp, Message, Receive, Scope, Send

    from litestar_inertia.plugin import InertiaPlugin

__all__ = ("InertiaMiddleware", "redirect_on_asset_version_mismatch")

_SEE_OTHER_METHODS = frozenset({"PUT", "PATCH", "DELETE"})


def redirect_on_asset_version_mismatch(request: "InertiaRequest[Any, Any, Any]") -> "Any | None":
    """Return a forced-refresh response when client and server asset versions differ.

    The temporary session is reflashed before the response is built.

    Returns:
        A 409 (hydrated client) or 302 (plain request) response on mismatch, otherwise None.
    """
    inertia_plugin: "InertiaPlugin" = request.app.plugins.get("InertiaPlugin")
    binding = LitestarBinding(request, inertia_plugin.config.session_store)
    refresh = inertia_plugin.protocol.check_version(binding)
    if refresh is None:
        return None
    return location(request, refresh.location)


class InertiaMiddleware(AbstractMiddleware):
    """Middleware for handling Inertia.js protocol requirements.

    This middleware:
    1. Detects version mismatches between client and server assets
    2. Returns 409 Conflict with X-Inertia-Location header when versions differ
    3. Rewrites 301/302 redirects answering PUT, PATCH and DELETE requests to 303
    """

    scopes = {ScopeType.HTTP}

    def __init__(self, app: "ASGIApp") -> None:
        super().__init__(app)
        self.app = app

    async def __call__(self, scope: "Scope", receive: "Receive", send: "Send") -> None:
        request: InertiaRequest[Any, Any, Any] = InertiaRequest(scope=scope)
        redirect = redirect_on_asset_version_mismatch(request)
        if redirect is not None:
            response = redirect.to_asgi_response(app=None, request=request)  # pyright: ignore[reportUnknownMemberType]
            await response(scope, receive, send)
            return

        if request.method not in _SEE_OTHER_METHODS:
            await self.app(scope, receive, send)
            return

        async def send_wrapper(message: "Message") -> None:
            if message["type"] == "http.response.start" and message["status"] in {
                HTTP_301_MOVED_PERMANENTLY,
                HTTP_302_FOUND,
            }:
                message["status"] = HTTP_303_SEE_OTHER
            await send(message)

        await self.app(scope, receive, send_wrapper)
