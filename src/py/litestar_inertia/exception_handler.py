import logging
from typing import TYPE_CHECKING, Any, cast

from litestar.exceptions import HTTPException
from litestar.exceptions.responses import (
    create_debug_response,  # pyright: ignore[reportUnknownVariableType]
    create_exception_response,  # pyright: ignore[reportUnknownVariableType]
)
from litestar.status_codes import HTTP_400_BAD_REQUEST, HTTP_500_INTERNAL_SERVER_ERROR

from litestar_inertia.exceptions import HeaderError, InertiaError

if TYPE_CHECKING:
    from litestar.connection import Request
    from litestar.connection.base import AuthT, StateT, UserT
    from litestar.response import Response

__all__ = ("exception_to_http_response", "status_code_for")

logger = logging.getLogger(__name__)


class _InertiaHTTPException(HTTPException):
    """HTTP rendition of an :class:`~litestar_inertia.exceptions.InertiaError`."""


def status_code_for(exc: "InertiaError") -> int:
    """Return the HTTP status code an Inertia error maps to.

    Args:
        exc: The error.

    Returns:
        ``400`` for malformed request headers, ``500`` for everything else.
    """
    if isinstance(exc, HeaderError):
        return HTTP_400_BAD_REQUEST
    return HTTP_500_INTERNAL_SERVER_ERROR


def exception_to_http_response(request: "Request[UserT, AuthT, StateT]", exc: "InertiaError") -> "Response[Any]":
    """Handler for all exceptions subclassed from InertiaError.

    Header errors answer ``400 Bad Request`` with the error message. Serialization and render
    errors answer ``500 Internal Server Error`` and are logged with their traceback.

    Args:
        request: The request object.
        exc: The exception to handle.

    Returns:
        The response object.
    """
    status_code = status_code_for(exc)
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Inertia error while handling %s", request.url.path, exc_info=exc)
        if request.app.debug:
            return cast("Response[Any]", create_debug_response(request, exc))
        return cast(
            "Response[Any]",
            create_exception_response(request, _InertiaHTTPException(status_code=status_code)),
        )
    return cast(
        "Response[Any]",
        create_exception_response(request, _InertiaHTTPException(status_code=status_code, detail=str(exc))),
    )
