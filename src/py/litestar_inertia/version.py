"""Asset version state and negotiation."""

import hashlib
import threading
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = ("InertiaVersion", "VersionCheck", "VersionSource", "negotiate_version")

VersionSource = Union[str, "Callable[[], str]"]

_NOT_RESOLVED = object()


class VersionCheck(str, Enum):
    """Outcome of comparing the client's asset version with the server's."""

    FRESH = "fresh"
    """Versions match, or there is nothing to compare: render normally."""
    FORCED_REFRESH = "forced_refresh"
    """A hydrated client holds stale assets: answer 409 with ``X-Inertia-Location``."""
    REDIRECT = "redirect"
    """A plain browser request holds stale assets: answer with an ordinary redirect."""


class InertiaVersion:
    """The current asset version.

    The version is either a literal string or a resolver callable. By default a resolver is
    invoked once, on first read, and its result is kept for the lifetime of the process. With
    ``per_request=True`` it is invoked on every read instead.

    Example::

        InertiaVersion("1.0.0")
        InertiaVersion(lambda: os.environ["GIT_SHA"])
        InertiaVersion.from_manifest("public/build/.vite/manifest.json")
    """

    __slots__ = ("_lock", "_resolved", "_source", "per_request")

    def __init__(self, source: "VersionSource", *, per_request: bool = False) -> None:
        self._source = source
        self.per_request = per_request
        self._resolved: "object | str" = source if isinstance(source, str) else _NOT_RESOLVED
        self._lock = threading.Lock()

    @classmethod
    def from_manifest(cls, manifest_path: "Path | str", *, per_request: bool = False) -> "InertiaVersion":
        """Derive the version from the contents of a Vite manifest.

        The version is the sha256 hex digest of the manifest file, or ``"1.0"`` when the file does
        not exist.

        Args:
            manifest_path: Path to the manifest file.
            per_request: Re-read the manifest on every lookup.

        Returns:
            The version.
        """
        path = Path(manifest_path)

        def _resolve() -> str:
            if not path.is_file():
                return "1.0"
            return hashlib.sha256(path.read_bytes()).hexdigest()

        return cls(_resolve, per_request=per_request)

    @property
    def is_literal(self) -> bool:
        return isinstance(self._source, str)

    def get(self) -> str:
        """Return the current version, resolving it if needed.

        Returns:
            The version string.
        """
        if isinstance(self._source, str):
            return self._source
        if self.per_request:
            return self._source()
        if self._resolved is _NOT_RESOLVED:
            with self._lock:
                if self._resolved is _NOT_RESOLVED:
                    self._resolved = self._source()
        return str(self._resolved)

    def __str__(self) -> str:
        return self.get()

    def __repr__(self) -> str:
        return f"InertiaVersion({self._source!r}, per_request={self.per_request!r})"


def negotiate_version(
    client_version: "str | None",
    current_version: "str | None",
    *,
    is_inertia: bool,
) -> VersionCheck:
    """Compare the client's asset version with the current one.

    Args:
        client_version: Value of the ``X-Inertia-Version`` header, if sent.
        current_version: The server's version, or None if none is configured.
        is_inertia: Whether the request came from a hydrated client (``X-Inertia`` set).

    Returns:
        :attr:`VersionCheck.FRESH` when the client version is absent or equal, or when the server
        has no version. Otherwise :attr:`VersionCheck.FORCED_REFRESH` for hydrated clients and
        :attr:`VersionCheck.REDIRECT` for everyone else.
    """
    if client_version is None or current_version is None or client_version == current_version:
        return VersionCheck.FRESH
    return VersionCheck.FORCED_REFRESH if is_inertia else VersionCheck.REDIRECT
