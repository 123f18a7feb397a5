import itertools
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar, cast
from urllib.parse import quote, urlparse

from litestar import Litestar, MediaType, Request, Response
from litestar.datastructures.cookie import Cookie
from litestar.exceptions import ImproperlyConfiguredException
from litestar.response import Redirect
from litestar.response.base import ASGIResponse
from litestar.serialization import get_serializer
from litestar.status_codes import (
    HTTP_200_OK,
    HTTP_302_FOUND,
    HTTP_303_SEE_OTHER,
    HTTP_307_TEMPORARY_REDIRECT,
    HTTP_409_CONFLICT,
)
from litestar.utils.empty import value_or_default
from litestar.utils.helpers import get_enum_string_value
from litestar.utils.scope.state import ScopeState
from markupsafe import Markup

from litestar_inertia.exceptions import RenderError
from litestar_inertia.helpers import LitestarBinding, get_shared_props
from litestar_inertia.page import encode_page
from litestar_inertia.protocol import JsonPage
from litestar_inertia.request import InertiaDetails, InertiaHeaders, InertiaRequest, is_inertia_request

if TYPE_CHECKING:
    from litestar.background_tasks import BackgroundTask, BackgroundTasks
    from litestar.connection.base import AuthT, StateT, UserT
    from litestar.types import ResponseCookies, ResponseHeaders, TypeEncodersMap

    from litestar_inertia.page import Page, SsrResult
    from litestar_inertia.plugin import InertiaPlugin

__all__ = (
    "InertiaBack",
    "InertiaExternalRedirect",
    "InertiaRedirect",
    "InertiaResponse",
    "location",
)

T = TypeVar("T")

_LOCATION_SAFE_CHARS = "/#%[]=:;$&()+,!?*@'~"


def _get_route_component(request: "Request[Any, Any, Any]") -> "str | None":
    if isinstance(request, InertiaRequest):
        return request.inertia.route_component
    return InertiaDetails(request).route_component


def _get_redirect_url(request: "Request[Any, Any, Any]", url: str | None) -> str:
    """Return a safe redirect URL, falling back to base_url when invalid.

    Args:
        request: The request object.
        url: Candidate redirect URL.

    Returns:
        A safe redirect URL (same-origin absolute, or relative), otherwise the request base URL.
    """
    base_url = str(request.base_url)

    if not url:
        return base_url

    parsed = urlparse(url)
    base = urlparse(base_url)

    if not parsed.scheme and not parsed.netloc:
        return url

    if parsed.scheme not in {"http", "https"}:
        return base_url

    if parsed.netloc != base.netloc:
        return base_url

    return url


def _route_props(content: Any) -> "Mapping[str, Any]":
    if content is None:
        return {}
    if isinstance(content, Mapping):
        return cast("Mapping[str, Any]", content)
    return {"content": content}


class InertiaResponse(Response[T]):
    """Inertia Response

    For handlers declaring a component (``@get("/", component="Home")``) the content is taken as
    the page props: a mapping is used as the props table, anything else is sent as the ``content``
    prop. Hydrated clients receive the page object as JSON; full page loads render the root
    template.
    """

    def __init__(
        self,
        content: T,
        *,
        template_name: "str | None" = None,
        background: "BackgroundTask | BackgroundTasks | None" = None,
        context: "dict[str, Any] | None" = None,
        cookies: "ResponseCookies | None" = None,
        encoding: "str" = "utf-8",
        headers: "ResponseHeaders | None" = None,
        media_type: "MediaType | str | None" = None,
        status_code: "int" = HTTP_200_OK,
        type_encoders: "TypeEncodersMap | None" = None,
    ) -> None:
        """Handle the rendering of a given template into a bytes string.

        Args:
            content: A value for the response body that will be rendered into bytes string.
            template_name: Path-like name for the root template, overriding ``InertiaConfig.root_template``.
            background: A :class:`BackgroundTask <.background_tasks.BackgroundTask>` instance or
                :class:`BackgroundTasks <.background_tasks.BackgroundTasks>` to execute after the response is finished.
                Defaults to ``None``.
            context: A dictionary of key/value pairs to be passed to the temple engine's render method.
            cookies: A list of :class:`Cookie <.datastructures.Cookie>` instances to be set under the response
                ``Set-Cookie`` header.
            encoding: Content encoding
            headers: A string keyed dictionary of response headers. Header keys are insensitive.
            media_type: A string or member of the :class:`MediaType <.enums.MediaType>` enum.
            status_code: A value for the response HTTP status code.
            type_encoders: A mapping of types to callables that transform them into types supported for serialization.
        """
        self.content = content
        self.background = background
        self.cookies: list[Cookie] = (
            [Cookie(key=key, value=value) for key, value in cookies.items()]
            if isinstance(cookies, Mapping)
            else list(cookies or [])
        )
        self.encoding = encoding
        self.headers: dict[str, Any] = (
            dict(headers) if isinstance(headers, Mapping) else {h.name: h.value for h in headers or {}}
        )
        self.media_type = media_type
        self.status_code = status_code
        self.response_type_encoders = {**(self.type_encoders or {}), **(type_encoders or {})}
        self.context = context or {}
        self.template_name = template_name

    def create_template_context(
        self,
        request: "Request[UserT, AuthT, StateT]",
        page: "Page",
        ssr: "SsrResult | None",
        inertia_plugin: "InertiaPlugin",
        type_encoders: "TypeEncodersMap | None" = None,
    ) -> "dict[str, Any]":
        """Create a context object for the root template.

        ``inertia_head`` and ``inertia_body`` hold the SSR markup when available. Otherwise the head
        is empty and the body is the hydration container carrying the page in ``data-page``.

        Args:
            request: A :class:`Request <.connection.Request>` instance.
            page: The page to render.
            ssr: Pre-rendered markup, if any.
            inertia_plugin: The Inertia plugin instance.
            type_encoders: A mapping of types to callables that transform them into types supported for serialization.

        Returns:
            A dictionary holding the template context
        """
        csrf_token = value_or_default(ScopeState.from_scope(request.scope).csrf_token, "")
        inertia_props = encode_page(page, type_encoders).decode()
        if ssr is not None:
            head = Markup(ssr.head_html)  # noqa: S704
            body = Markup(ssr.body)  # noqa: S704
        else:
            head = Markup("")
            body = Markup('<div id="{}" data-page="{}"></div>').format(
                inertia_plugin.config.app_selector, inertia_props
            )
        return {
            **inertia_plugin.config.view_data,
            **self.context,
            "inertia": inertia_props,
            "inertia_head": head,
            "inertia_body": body,
            "page": page.to_dict(),
            "request": request,
            "csrf_input": Markup('<input type="hidden" name="_csrf_token" value="{}" />').format(csrf_token),
        }

    def _render_template(
        self,
        request: "Request[UserT, AuthT, StateT]",
        context: "dict[str, Any]",
        inertia_plugin: "InertiaPlugin",
    ) -> bytes:
        """Render the root template to bytes.

        Raises:
            ImproperlyConfiguredException: If the template engine is not configured.
            RenderError: If the template cannot be loaded or rendered.

        Returns:
            The rendered template as bytes.
        """
        template_engine = request.app.template_engine  # pyright: ignore[reportUnknownVariableType,reportUnknownMemberType]
        if not template_engine:
            msg = "Template engine is not configured"
            raise ImproperlyConfiguredException(msg)

        template_name = self.template_name or inertia_plugin.config.root_template
        try:
            template = template_engine.get_template(template_name)  # pyright: ignore[reportUnknownMemberType,reportUnknownVariableType]
            return template.render(**context).encode(self.encoding)  # pyright: ignore[reportUnknownVariableType,reportUnknownMemberType,reportReturnType]
        except Exception as exc:
            raise RenderError(template_name, str(exc)) from exc

    def to_asgi_response(
        self,
        app: "Litestar | None",
        request: "Request[UserT, AuthT, StateT]",
        *,
        background: "BackgroundTask | BackgroundTasks | None" = None,
        cookies: "Iterable[Cookie] | None" = None,
        encoded_headers: "Iterable[tuple[bytes, bytes]] | None" = None,
        headers: "dict[str, str] | None" = None,
        is_head_response: "bool" = False,
        media_type: "MediaType | str | None" = None,
        status_code: "int | None" = None,
        type_encoders: "TypeEncodersMap | None" = None,
    ) -> "ASGIResponse":
        headers = {**headers, **self.headers} if headers is not None else self.headers
        cookies = self.cookies if cookies is None else itertools.chain(self.cookies, cookies)
        type_encoders = (
            {**type_encoders, **(self.response_type_encoders or {})} if type_encoders else self.response_type_encoders
        )

        component = _get_route_component(cast("Request[Any, Any, Any]", request))
        if component is None:
            resolved_media_type = get_enum_string_value(self.media_type or media_type or MediaType.JSON)
            return ASGIResponse(
                background=self.background or background,
                body=self.render(self.content, resolved_media_type, get_serializer(type_encoders)),
                cookies=cookies,
                encoded_headers=encoded_headers,
                encoding=self.encoding,
                headers=headers,
                is_head_response=is_head_response,
                media_type=resolved_media_type,
                status_code=self.status_code or status_code,
            )

        inertia_plugin: "InertiaPlugin" = request.app.plugins.get("InertiaPlugin")
        binding = LitestarBinding(cast("Request[Any, Any, Any]", request), inertia_plugin.config.session_store)
        portal = inertia_plugin.portal_or_none
        outcome = inertia_plugin.protocol.decide(
            binding,
            component,
            _route_props(self.content),
            get_shared_props(request, inertia_plugin.config),
            portal,
        )
        if request.method == "GET":
            binding.remember()
        headers.update({InertiaHeaders.ENABLED.value: "true", "Vary": InertiaHeaders.ENABLED.value})

        if isinstance(outcome, JsonPage):
            return ASGIResponse(  # pyright: ignore[reportUnknownMemberType]
                background=self.background or background,
                body=encode_page(outcome.page, type_encoders),
                cookies=cookies,
                encoded_headers=encoded_headers,
                encoding=self.encoding,
                headers=headers,
                is_head_response=is_head_response,
                media_type=get_enum_string_value(self.media_type or MediaType.JSON),
                status_code=self.status_code or status_code,
            )

        ssr = inertia_plugin.protocol.prerender(outcome.page, portal, type_encoders)
        context = self.create_template_context(request, outcome.page, ssr, inertia_plugin, type_encoders)
        return ASGIResponse(  # pyright: ignore[reportUnknownMemberType]
            background=self.background or background,
            body=self._render_template(request, context, inertia_plugin),
            cookies=cookies,
            encoded_headers=encoded_headers,
            encoding=self.encoding,
            headers=headers,
            is_head_response=is_head_response,
            media_type=get_enum_string_value(self.media_type or MediaType.HTML),
            status_code=self.status_code or status_code,
        )


def location(request: "Request[Any, Any, Any]", url: str) -> "Response[Any]":
    """Make the client visit ``url`` with a full page load.

    Hydrated Inertia clients receive ``409 Conflict`` with ``X-Inertia-Location``; any other client
    receives an ordinary ``302 Found`` redirect.

    Args:
        request: The request object.
        url: The URL to visit.

    Returns:
        The response.
    """
    if is_inertia_request(request.headers):
        return InertiaExternalRedirect(request, redirect_to=url)
    return Response(content=b"", status_code=HTTP_302_FOUND, headers={"Location": quote(url, safe=_LOCATION_SAFE_CHARS)})


class InertiaExternalRedirect(Response[Any]):
    """External redirect via Inertia protocol (409 + X-Inertia-Location).

    This response type triggers a client-side hard redirect in Inertia.js.
    Unlike InertiaRedirect, this does NOT validate the redirect URL as same-origin
    because external redirects are explicitly intended for cross-origin navigation
    (e.g., OAuth callbacks, external payment pages).
    """

    def __init__(self, request: "Request[Any, Any, Any]", redirect_to: "str", **kwargs: "Any") -> None:
        """Initialize external redirect with 409 status and X-Inertia-Location header.

        Args:
            request: The request object.
            redirect_to: The URL to redirect to (can be external).
            **kwargs: Additional keyword arguments passed to the Response constructor.
        """
        super().__init__(
            content=b"",
            status_code=HTTP_409_CONFLICT,
            headers={InertiaHeaders.LOCATION.value: quote(redirect_to, safe=_LOCATION_SAFE_CHARS)},
            **kwargs,
        )


class InertiaRedirect(Redirect):
    """Redirect to a specified URL with same-origin validation.

    If the URL is not same-origin, it falls back to the application's base URL.
    """

    def __init__(self, request: "Request[Any, Any, Any]", redirect_to: "str", **kwargs: "Any") -> None:
        """Initialize redirect with safe URL validation.

        Args:
            request: The request object.
            redirect_to: The URL to redirect to. Must be same-origin or relative.
            **kwargs: Additional keyword arguments passed to the Redirect constructor.
        """
        safe_url = _get_redirect_url(request, redirect_to)
        super().__init__(  # pyright: ignore[reportUnknownMemberType]
            path=safe_url,
            status_code=HTTP_307_TEMPORARY_REDIRECT if request.method == "GET" else HTTP_303_SEE_OTHER,
            **kwargs,
        )


class InertiaBack(Redirect):
    """Redirect back to the previous page.

    The target is the Referer header when it is same-origin, otherwise the last page recorded in
    the temporary session, otherwise the application's base URL.
    """

    def __init__(self, request: "Request[Any, Any, Any]", **kwargs: "Any") -> None:
        """Initialize back redirect with safe URL validation.

        Args:
            request: The request object.
            **kwargs: Additional keyword arguments passed to the Redirect constructor.
        """
        referer = request.headers.get("Referer")
        if referer is None:
            inertia_plugin: "InertiaPlugin | None"
            try:
                inertia_plugin = request.app.plugins.get("InertiaPlugin")
            except KeyError:
                inertia_plugin = None
            store = inertia_plugin.config.session_store if inertia_plugin is not None else None
            if store is not None:
                referer = store.previous_url(request)
        safe_url = _get_redirect_url(request, referer)
        super().__init__(  # pyright: ignore[reportUnknownMemberType]
            path=safe_url,
            status_code=HTTP_307_TEMPORARY_REDIRECT if request.method == "GET" else HTTP_303_SEE_OTHER,
            **kwargs,
        )
