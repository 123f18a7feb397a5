from typing import Any

import pytest
from litestar import get
from litestar.template.config import TemplateConfig
from litestar.testing import create_test_client

from litestar_inertia import InertiaHeaders, InertiaPlugin
from litestar_inertia.exception_handler import status_code_for
from litestar_inertia.exceptions import (
    HeaderError,
    InertiaError,
    ProcessError,
    RenderError,
    SerializationError,
    SsrError,
)


@pytest.mark.parametrize(
    ("exc", "status_code"),
    [
        (HeaderError("x-inertia-partial-data"), 400),
        (SerializationError("cannot encode"), 500),
        (RenderError("index.html", "unexpected end of template"), 500),
        (SsrError("renderer down"), 500),
        (ProcessError("exited"), 500),
    ],
)
def test_status_code_for(exc: InertiaError, status_code: int) -> None:
    assert status_code_for(exc) == status_code


def test_header_error_message() -> None:
    exc = HeaderError("x-inertia-version")

    assert exc.header == "x-inertia-version"
    assert "x-inertia-version" in str(exc)


@pytest.mark.parametrize("debug", [True, False])
def test_unencodable_prop_returns_500(
    debug: bool,
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/", component="Home")
    async def handler() -> dict[str, Any]:
        return {"handle": object()}

    with create_test_client(
        route_handlers=[handler], template_config=template_config, plugins=[inertia_plugin], debug=debug
    ) as client:
        response = client.get("/", headers={InertiaHeaders.ENABLED.value: "true"})
        assert response.status_code == 500
        if not debug:
            assert response.json() == {"status_code": 500, "detail": "Internal Server Error"}
