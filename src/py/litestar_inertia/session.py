"""Temporary session storage: validation errors and the last visited URL.

Errors written by :func:`~litestar_inertia.helpers.error` are consumed by the next request. When
that request is answered with a forced refresh they are written back ("reflashed") so that the
reloaded page still receives them.
"""

import logging
from typing import TYPE_CHECKING, Any, Protocol, cast, runtime_checkable

from litestar.exceptions import ImproperlyConfiguredException

from litestar_inertia.types import TemporarySession

if TYPE_CHECKING:
    from litestar.connection import ASGIConnection

__all__ = ("ERRORS_SESSION_KEY", "PREVIOUS_URL_SESSION_KEY", "SessionTemporaryStore", "TemporarySessionStore")

logger = logging.getLogger(__name__)

ERRORS_SESSION_KEY = "_errors"
PREVIOUS_URL_SESSION_KEY = "_previous_url"


@runtime_checkable
class TemporarySessionStore(Protocol):
    """Loads and persists the :class:`~litestar_inertia.types.TemporarySession` of a connection."""

    def load(self, connection: "ASGIConnection[Any, Any, Any, Any]") -> "TemporarySession | None":
        """Take the temporary session for this request, or None when there is no session."""
        ...

    def reflash(self, connection: "ASGIConnection[Any, Any, Any, Any]", session: "TemporarySession") -> None:
        """Persist ``session`` again so the next request sees it."""
        ...

    def remember(self, connection: "ASGIConnection[Any, Any, Any, Any]", url: str) -> None:
        """Record ``url`` as the last page rendered for this client."""
        ...

    def previous_url(self, connection: "ASGIConnection[Any, Any, Any, Any]") -> "str | None":
        """Return the last page recorded with :meth:`remember`, without consuming anything."""
        ...


class SessionTemporaryStore:
    """Store backed by the Litestar session middleware."""

    def load(self, connection: "ASGIConnection[Any, Any, Any, Any]") -> "TemporarySession | None":
        try:
            session = connection.session
        except (AttributeError, ImproperlyConfiguredException):
            return None
        errors = cast("dict[str, Any] | None", session.pop(ERRORS_SESSION_KEY, None))
        return TemporarySession(errors=errors or None, prev_req_url=session.get(PREVIOUS_URL_SESSION_KEY) or "/")

    def reflash(self, connection: "ASGIConnection[Any, Any, Any, Any]", session: "TemporarySession") -> None:
        store = connection.session
        if session.errors:
            store.setdefault(ERRORS_SESSION_KEY, {}).update(session.errors)
        store[PREVIOUS_URL_SESSION_KEY] = session.prev_req_url

    def remember(self, connection: "ASGIConnection[Any, Any, Any, Any]", url: str) -> None:
        try:
            connection.session[PREVIOUS_URL_SESSION_KEY] = url
        except (AttributeError, ImproperlyConfiguredException):
            logger.debug("No session available, previous URL not recorded.")

    def previous_url(self, connection: "ASGIConnection[Any, Any, Any, Any]") -> "str | None":
        try:
            return cast("str | None", connection.session.get(PREVIOUS_URL_SESSION_KEY))
        except (AttributeError, ImproperlyConfiguredException):
            return None
