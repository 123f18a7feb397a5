"""Litestar-Inertia: the server side of the Inertia.js protocol for Litestar.

Basic usage:
    from litestar import Litestar, get
    from litestar.contrib.jinja import JinjaTemplateEngine
    from litestar.middleware.session.server_side import ServerSideSessionConfig
    from litestar.template.config import TemplateConfig
    from litestar_inertia import InertiaConfig, InertiaPlugin, lazy, on_demand

    @get("/events", component="Events")
    async def events() -> dict[str, Any]:
        return {"events": lazy(load_events), "stats": on_demand(load_stats)}

    app = Litestar(
        route_handlers=[events],
        plugins=[InertiaPlugin(InertiaConfig(version="1.0.0", ssr=True))],
        middleware=[ServerSideSessionConfig().middleware],
        template_config=TemplateConfig(directory="templates", engine=JinjaTemplateEngine),
    )
"""

from litestar_inertia.__metadata__ import __version__
from litestar_inertia.config import InertiaConfig, InertiaSSRConfig
from litestar_inertia.exceptions import (
    HeaderError,
    InertiaError,
    ProcessError,
    RenderError,
    SerializationError,
    SsrError,
)
from litestar_inertia.helpers import create_inertia_route, error, get_shared_props, share
from litestar_inertia.middleware import InertiaMiddleware
from litestar_inertia.page import Page, SsrResult, build_page
from litestar_inertia.plugin import InertiaPlugin
from litestar_inertia.process import RendererHandle, SSRProcess
from litestar_inertia.props import (
    AlwaysProp,
    DataProp,
    InertiaProp,
    LazyProp,
    OnDemandProp,
    PropertyTable,
    always,
    data,
    lazy,
    on_demand,
    resolve_props,
)
from litestar_inertia.protocol import ForcedRefresh, HtmlPage, InertiaBinding, InertiaProtocol, JsonPage
from litestar_inertia.request import InertiaDetails, InertiaHeaders, InertiaRequest, classify_request
from litestar_inertia.response import (
    InertiaBack,
    InertiaExternalRedirect,
    InertiaRedirect,
    InertiaResponse,
    location,
)
from litestar_inertia.session import SessionTemporaryStore, TemporarySessionStore
from litestar_inertia.ssr import SSRClient
from litestar_inertia.types import PartialReload, PartialReloadSpec, StandardVisit, TemporarySession
from litestar_inertia.version import InertiaVersion, VersionCheck, negotiate_version

__all__ = (
    "AlwaysProp",
    "DataProp",
    "ForcedRefresh",
    "HeaderError",
    "HtmlPage",
    "InertiaBack",
    "InertiaBinding",
    "InertiaConfig",
    "InertiaDetails",
    "InertiaError",
    "InertiaExternalRedirect",
    "InertiaHeaders",
    "InertiaMiddleware",
    "InertiaPlugin",
    "InertiaProp",
    "InertiaProtocol",
    "InertiaRedirect",
    "InertiaRequest",
    "InertiaResponse",
    "InertiaSSRConfig",
    "InertiaVersion",
    "JsonPage",
    "LazyProp",
    "OnDemandProp",
    "Page",
    "PartialReload",
    "PartialReloadSpec",
    "ProcessError",
    "PropertyTable",
    "RenderError",
    "RendererHandle",
    "SSRClient",
    "SSRProcess",
    "SerializationError",
    "SessionTemporaryStore",
    "SsrError",
    "SsrResult",
    "StandardVisit",
    "TemporarySession",
    "TemporarySessionStore",
    "VersionCheck",
    "__version__",
    "always",
    "build_page",
    "classify_request",
    "create_inertia_route",
    "data",
    "error",
    "get_shared_props",
    "lazy",
    "location",
    "negotiate_version",
    "on_demand",
    "resolve_props",
    "share",
)
