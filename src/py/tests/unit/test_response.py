"""Tests for InertiaResponse rendering and the redirect helpers."""

import json
from html import unescape
from typing import Any

import httpx
import pytest
from litestar import Request, get, post
from litestar.middleware.session.server_side import ServerSideSessionConfig
from litestar.stores.memory import MemoryStore
from litestar.template.config import TemplateConfig
from litestar.testing import create_test_client

from litestar_inertia import (
    InertiaBack,
    InertiaConfig,
    InertiaExternalRedirect,
    InertiaHeaders,
    InertiaPlugin,
    InertiaResponse,
    InertiaSSRConfig,
    create_inertia_route,
    lazy,
    on_demand,
    share,
)
from tests.conftest import TEST_VERSION


def _page_from_html(html: str) -> "dict[str, Any]":
    start = html.index('data-page="') + len('data-page="')
    return json.loads(unescape(html[start : html.index('"', start)]))


async def test_full_page_load_renders_the_root_template(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    """Without X-Inertia the root template embeds the page in the hydration container."""

    @get("/", component="Home")
    async def handler() -> dict[str, Any]:
        return {"greeting": "<hello>"}

    with create_test_client(
        route_handlers=[handler],
        template_config=template_config,
        plugins=[inertia_plugin],
        middleware=[ServerSideSessionConfig().middleware],
        stores={"sessions": MemoryStore()},
    ) as client:
        response = client.get("/")
        assert response.status_code == 200
        assert response.text.startswith("<!DOCTYPE html>")
        assert response.headers["content-type"].startswith("text/html")
        assert response.headers[InertiaHeaders.ENABLED.value] == "true"
        assert '<div id="app" data-page="' in response.text
        assert "<hello>" not in response.text
        assert _page_from_html(response.text) == {
            "component": "Home",
            "props": {"errors": {}, "greeting": "<hello>"},
            "url": "/",
            "version": TEST_VERSION,
        }


async def test_inertia_request_returns_json_with_protocol_headers(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    """A hydrated client receives the page object as JSON."""

    @get("/reports", component="Reports")
    async def handler() -> dict[str, Any]:
        return {"reports": [1, 2]}

    with create_test_client(
        route_handlers=[handler],
        template_config=template_config,
        plugins=[inertia_plugin],
    ) as client:
        response = client.get("/reports?status=open", headers={InertiaHeaders.ENABLED.value: "true"})
        assert response.status_code == 200
        assert response.headers[InertiaHeaders.ENABLED.value] == "true"
        assert response.headers["vary"] == InertiaHeaders.ENABLED.value
        assert response.headers["content-type"].startswith("application/json")
        assert response.json() == {
            "component": "Reports",
            "props": {"reports": [1, 2]},
            "url": "/reports?status=open",
            "version": TEST_VERSION,
        }


async def test_partial_reload_only_evaluates_selected_props(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    """Dropped lazy props are never invoked and on-demand props need an explicit selection."""
    calls: "list[str]" = []

    async def load_events() -> "list[str]":
        calls.append("events")
        return ["launch"]

    def load_stats() -> "dict[str, int]":
        calls.append("stats")
        return {"total": 1}

    @get("/events", component="Events")
    async def handler() -> dict[str, Any]:
        return {"auth": {"user": "ada"}, "events": lazy(load_events), "stats": on_demand(load_stats)}

    with create_test_client(
        route_handlers=[handler],
        template_config=template_config,
        plugins=[inertia_plugin],
    ) as client:
        full = client.get("/events", headers={InertiaHeaders.ENABLED.value: "true"})
        assert full.json()["props"] == {"auth": {"user": "ada"}, "events": ["launch"]}
        assert calls == ["events"]

        calls.clear()
        partial = client.get(
            "/events",
            headers={
                InertiaHeaders.ENABLED.value: "true",
                InertiaHeaders.PARTIAL_COMPONENT.value: "Events",
                InertiaHeaders.PARTIAL_DATA.value: "stats",
            },
        )
        assert partial.json()["props"] == {"stats": {"total": 1}}
        assert calls == ["stats"]


async def test_non_mapping_content_is_sent_as_content_prop(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/tags", component="Tags")
    async def handler() -> "list[str]":
        return ["a", "b"]

    with create_test_client(
        route_handlers=[handler], template_config=template_config, plugins=[inertia_plugin]
    ) as client:
        response = client.get("/tags", headers={InertiaHeaders.ENABLED.value: "true"})
        assert response.json()["props"] == {"content": ["a", "b"]}


async def test_routes_without_component_are_plain_responses(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/api/health")
    async def handler() -> dict[str, Any]:
        return {"ok": True}

    with create_test_client(
        route_handlers=[handler], template_config=template_config, plugins=[inertia_plugin]
    ) as client:
        response = client.get("/api/health", headers={InertiaHeaders.ENABLED.value: "true"})
        assert response.json() == {"ok": True}
        assert InertiaHeaders.ENABLED.value not in response.headers


async def test_invalid_partial_header_returns_400(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/", component="Home")
    async def handler() -> dict[str, Any]:
        return {}

    with create_test_client(
        route_handlers=[handler], template_config=template_config, plugins=[inertia_plugin]
    ) as client:
        response = client.get(
            "/",
            headers={InertiaHeaders.ENABLED.value: "true", InertiaHeaders.PARTIAL_COMPONENT.value: b"Caf\xc3\xa9"},
        )
        assert response.status_code == 400
        assert "x-inertia-partial-component" in response.text


async def test_template_failure_returns_500(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/", component="Home")
    async def handler() -> InertiaResponse[dict[str, Any]]:
        return InertiaResponse({}, template_name="broken.html")

    with create_test_client(
        route_handlers=[handler], template_config=template_config, plugins=[inertia_plugin]
    ) as client:
        assert client.get("/").status_code == 500


async def test_view_data_and_context_reach_the_template(
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    plugin = InertiaPlugin(InertiaConfig(view_data={"title": "Dashboard"}))

    @get("/", component="Home")
    async def handler() -> dict[str, Any]:
        return {}

    @get("/other", component="Other")
    async def other() -> InertiaResponse[dict[str, Any]]:
        return InertiaResponse({}, context={"title": "Other page"})

    with create_test_client(
        route_handlers=[handler, other], template_config=template_config, plugins=[plugin]
    ) as client:
        assert "<title>Dashboard</title>" in client.get("/").text
        assert "<title>Other page</title>" in client.get("/other").text


async def test_shared_props_are_merged_into_every_page(
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    """Static props, shared session values and the shared props callback all reach the page."""

    def shared(request: Request[Any, Any, Any]) -> "dict[str, Any]":
        return {"path": request.url.path, "title": "Shared"}

    plugin = InertiaPlugin(
        InertiaConfig(version=TEST_VERSION, shared_props=shared, extra_static_page_props={"locale": "en"})
    )

    @post("/flash")
    async def flash(request: Request[Any, Any, Any]) -> None:
        share(request, "notice", "Saved.")

    @get("/", component="Home")
    async def handler() -> dict[str, Any]:
        return {"title": "Route"}

    with create_test_client(
        route_handlers=[flash, handler],
        template_config=template_config,
        plugins=[plugin],
        middleware=[ServerSideSessionConfig().middleware],
        stores={"sessions": MemoryStore()},
    ) as client:
        client.post("/flash")
        first = client.get("/", headers={InertiaHeaders.ENABLED.value: "true"})
        assert first.json()["props"] == {
            "errors": {},
            "locale": "en",
            "notice": "Saved.",
            "path": "/",
            "title": "Route",
        }

        second = client.get("/", headers={InertiaHeaders.ENABLED.value: "true"})
        assert "notice" not in second.json()["props"]


async def test_create_inertia_route(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    with create_test_client(
        route_handlers=[create_inertia_route("/about", "About", name="about")],
        template_config=template_config,
        plugins=[inertia_plugin],
    ) as client:
        response = client.get("/about", headers={InertiaHeaders.ENABLED.value: "true"})
        assert response.json()["component"] == "About"
        assert response.json()["props"] == {}


async def test_back_uses_the_referer_or_the_previous_page(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/contacts", component="Contacts")
    async def contacts() -> dict[str, Any]:
        return {}

    @post("/contacts")
    async def store(request: Request[Any, Any, Any]) -> InertiaBack:
        return InertiaBack(request)

    with create_test_client(
        route_handlers=[contacts, store],
        template_config=template_config,
        plugins=[inertia_plugin],
        middleware=[ServerSideSessionConfig().middleware],
        stores={"sessions": MemoryStore()},
    ) as client:
        response = client.post(
            "/contacts", headers={"Referer": "http://testserver.local/contacts/new"}, follow_redirects=False
        )
        assert response.status_code == 303
        assert response.headers["location"] == "http://testserver.local/contacts/new"

        client.get("/contacts?page=3", headers={InertiaHeaders.ENABLED.value: "true"})
        response = client.post("/contacts", follow_redirects=False)
        assert response.headers["location"] == "/contacts?page=3"

        response = client.post(
            "/contacts", headers={"Referer": "https://evil.example/phish"}, follow_redirects=False
        )
        assert response.headers["location"] == "http://testserver.local/"


async def test_external_redirect(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/login")
    async def login(request: Request[Any, Any, Any]) -> InertiaExternalRedirect:
        return InertiaExternalRedirect(request, "https://auth.example/authorize?client=app")

    with create_test_client(
        route_handlers=[login], template_config=template_config, plugins=[inertia_plugin]
    ) as client:
        response = client.get("/login")
        assert response.status_code == 409
        assert response.headers[InertiaHeaders.LOCATION.value] == "https://auth.example/authorize?client=app"


@pytest.fixture
def ssr_responses(monkeypatch: pytest.MonkeyPatch) -> "list[Any]":
    """Answers served by a fake renderer, consumed in order.

    An answer is a response, or a callable receiving the request that returns or raises.
    """
    answers: "list[Any]" = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/render"
        assert json.loads(request.content)["component"] == "Home"
        answer = answers.pop(0)
        return answer(request) if callable(answer) else answer

    async def create_client() -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    monkeypatch.setattr("litestar_inertia.plugin._create_ssr_client", create_client)
    return answers


async def test_ssr_markup_is_injected(
    ssr_responses: "list[Any]",
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    ssr_responses.append(
        httpx.Response(200, json={"head": ["<title inertia>Home</title>"], "body": '<div id="app">Rendered</div>'})
    )
    plugin = InertiaPlugin(InertiaConfig(ssr=InertiaSSRConfig(url="http://ssr.test")))

    @get("/", component="Home")
    async def handler() -> dict[str, Any]:
        return {}

    with create_test_client(route_handlers=[handler], template_config=template_config, plugins=[plugin]) as client:
        response = client.get("/")
        assert response.status_code == 200
        assert "<title inertia>Home</title>" in response.text
        assert '<div id="app">Rendered</div>' in response.text
        assert "data-page" not in response.text


async def test_ssr_failure_falls_back_to_client_rendering(
    ssr_responses: "list[Any]",
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
    caplog: pytest.LogCaptureFixture,
) -> None:
    ssr_responses.append(httpx.Response(500, text="renderer crashed"))
    plugin = InertiaPlugin(InertiaConfig(ssr=True))

    @get("/", component="Home")
    async def handler() -> dict[str, Any]:
        return {"greeting": "hi"}

    with create_test_client(
        route_handlers=[handler], template_config=template_config, plugins=[plugin], logging_config=None
    ) as client:
        response = client.get("/")
        assert response.status_code == 200
        assert _page_from_html(response.text)["props"] == {"greeting": "hi"}
    assert "SSR failed, falling back to client-side rendering" in caplog.text


async def test_ssr_timeout_falls_back_to_client_rendering(
    ssr_responses: "list[Any]",
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A renderer that does not answer in time leaves the page to the client."""

    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    ssr_responses.append(timeout)
    plugin = InertiaPlugin(InertiaConfig(ssr=InertiaSSRConfig(timeout=0.5)))

    @get("/", component="Home")
    async def handler() -> dict[str, Any]:
        return {"greeting": "hi"}

    with create_test_client(
        route_handlers=[handler], template_config=template_config, plugins=[plugin], logging_config=None
    ) as client:
        response = client.get("/")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert '<div id="app" data-page="' in response.text
        assert _page_from_html(response.text)["component"] == "Home"
    assert "did not answer within 0.5s" in caplog.text
