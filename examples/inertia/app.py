"""Inertia example - server-driven SPA with optional server-side rendering.

Run with ``litestar --app examples.inertia.app:app run``. Set ``INERTIA_SSR_SCRIPT`` to the path of
a built SSR bundle (for example ``bootstrap/ssr/ssr.js``) to let the plugin start the renderer
itself; without it pages hydrate on the client.
"""

import os
from pathlib import Path
from typing import Any

from litestar import Litestar, Request, get, post
from litestar.contrib.jinja import JinjaTemplateEngine
from litestar.middleware.session.server_side import ServerSideSessionConfig
from litestar.stores.memory import MemoryStore
from litestar.template import TemplateConfig
from msgspec import Struct

from litestar_inertia import (
    InertiaConfig,
    InertiaPlugin,
    InertiaRedirect,
    InertiaSSRConfig,
    InertiaVersion,
    create_inertia_route,
    error,
    lazy,
    on_demand,
    share,
)

here = Path(__file__).parent
SSR_SCRIPT = os.environ.get("INERTIA_SSR_SCRIPT")


class Event(Struct):
    id: int
    title: str
    category: str


EVENTS: list[Event] = [
    Event(id=80, title="Litestar meetup", category="community"),
    Event(id=81, title="Release party", category="release"),
]


async def _load_events() -> list[Event]:
    return EVENTS


def _load_statistics() -> dict[str, int]:
    return {"total": len(EVENTS), "categories": len({event.category for event in EVENTS})}


def shared_props(request: Request[Any, Any, Any]) -> dict[str, Any]:
    return {"app": "Litestar Inertia"}


@get("/", component="Home")
async def index() -> dict[str, Any]:
    """Serve the home page."""
    return {"message": "Welcome to Inertia!"}


@get("/events", component="Events")
async def events() -> dict[str, Any]:
    """Events page; statistics are only sent when a partial reload asks for them."""
    return {"events": lazy(_load_events), "statistics": on_demand(_load_statistics)}


@post("/events")
async def create_event(request: Request[Any, Any, Any]) -> InertiaRedirect:
    """Validate a new event and go back to the list."""
    form = await request.form()
    if not form.get("title"):
        error(request, "title", "The title field is required.")
    else:
        share(request, "notice", f"Created {form['title']}.")
    return InertiaRedirect(request, "/events")


inertia = InertiaPlugin(
    config=InertiaConfig(
        root_template="index.html",
        version=InertiaVersion.from_manifest(here / "public" / "manifest.json"),
        ssr=InertiaSSRConfig(script_path=SSR_SCRIPT) if SSR_SCRIPT else None,
        shared_props=shared_props,
        view_data={"title": "Litestar Inertia"},
    )
)
templates = TemplateConfig(engine=JinjaTemplateEngine(directory=here / "templates"))

app = Litestar(
    route_handlers=[index, events, create_event, create_inertia_route("/about", "About")],
    plugins=[inertia],
    template_config=templates,
    middleware=[ServerSideSessionConfig().middleware],
    stores={"sessions": MemoryStore()},
    debug=True,
)
