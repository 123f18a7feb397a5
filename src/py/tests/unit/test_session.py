from typing import Any

from litestar import Request, get, post
from litestar.middleware.session.server_side import ServerSideSessionConfig
from litestar.stores.memory import MemoryStore
from litestar.testing import RequestFactory, create_test_client

from litestar_inertia import InertiaConfig, InertiaPlugin
from litestar_inertia.helpers import SHARED_SESSION_KEY, LitestarBinding, error, get_relative_url, share
from litestar_inertia.session import (
    ERRORS_SESSION_KEY,
    PREVIOUS_URL_SESSION_KEY,
    SessionTemporaryStore,
    TemporarySessionStore,
)
from litestar_inertia.types import TemporarySession


def _request_with_session(session: "dict[str, Any]") -> Request[Any, Any, Any]:
    request = RequestFactory().get("/")
    request.scope["session"] = session
    return request


def test_store_satisfies_the_protocol() -> None:
    assert isinstance(SessionTemporaryStore(), TemporarySessionStore)


def test_load_consumes_errors() -> None:
    session = {ERRORS_SESSION_KEY: {"name": "required"}, PREVIOUS_URL_SESSION_KEY: "/form"}
    request = _request_with_session(session)
    store = SessionTemporaryStore()

    assert store.load(request) == TemporarySession(errors={"name": "required"}, prev_req_url="/form")
    assert store.load(request) == TemporarySession(errors=None, prev_req_url="/form")


def _request_without_session() -> Request[Any, Any, Any]:
    scope = {key: value for key, value in RequestFactory().get("/").scope.items() if key != "session"}
    return Request(scope=scope)  # type: ignore[arg-type]


def test_load_without_session_middleware() -> None:
    assert SessionTemporaryStore().load(_request_without_session()) is None


def test_reflash_writes_the_session_back() -> None:
    request = _request_with_session({})
    store = SessionTemporaryStore()

    store.reflash(request, TemporarySession(errors={"email": "invalid"}, prev_req_url="/signup"))

    assert request.session == {ERRORS_SESSION_KEY: {"email": "invalid"}, PREVIOUS_URL_SESSION_KEY: "/signup"}


def test_remember_and_previous_url() -> None:
    request = _request_with_session({})
    store = SessionTemporaryStore()

    assert store.previous_url(request) is None
    store.remember(request, "/contacts?page=2")
    assert store.previous_url(request) == "/contacts?page=2"
    assert store.previous_url(_request_without_session()) is None


def test_binding_loads_the_session_once() -> None:
    request = _request_with_session({ERRORS_SESSION_KEY: {"name": "required"}})
    binding = LitestarBinding(request, SessionTemporaryStore())

    first = binding.temporary_session()
    assert first is not None
    assert first.errors == {"name": "required"}
    assert LitestarBinding(request, SessionTemporaryStore()).temporary_session() is first


def test_binding_url_keeps_the_query_string() -> None:
    request = RequestFactory().get("/reports", query_params={"page": "1"})

    assert get_relative_url(request) == "/reports?page=1"
    assert LitestarBinding(request, None).url == "/reports?page=1"
    assert LitestarBinding(request, None).temporary_session() is None


def test_share_and_error_store_values_in_the_session() -> None:
    request = _request_with_session({})

    share(request, "notice", "Saved.")
    error(request, "name", "required")

    assert request.session == {SHARED_SESSION_KEY: {"notice": "Saved."}, ERRORS_SESSION_KEY: {"name": "required"}}


def test_share_without_session_does_not_fail() -> None:
    @post("/")
    async def handler(request: Request[Any, Any, Any]) -> None:
        share(request, "notice", "Saved.")
        error(request, "name", "required")

    with create_test_client(route_handlers=[handler]) as client:
        assert client.post("/").status_code == 201


def test_errors_are_consumed_by_the_next_page() -> None:
    @post("/")
    async def submit(request: Request[Any, Any, Any]) -> None:
        error(request, "name", "required")

    @get("/", component="Home")
    async def show() -> "dict[str, Any]":
        return {}

    with create_test_client(
        route_handlers=[submit, show],
        plugins=[InertiaPlugin(InertiaConfig())],
        middleware=[ServerSideSessionConfig().middleware],
        stores={"sessions": MemoryStore()},
    ) as client:
        client.post("/")
        assert client.get("/", headers={"X-Inertia": "true"}).json()["props"] == {"errors": {"name": "required"}}
        assert client.get("/", headers={"X-Inertia": "true"}).json()["props"] == {"errors": {}}
