"""The Inertia page object and its JSON encoding."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from litestar.exceptions import SerializationException
from litestar.serialization import decode_json, encode_json, get_serializer

from litestar_inertia.exceptions import SerializationError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from litestar.types import TypeEncodersMap

__all__ = ("Page", "SsrResult", "build_page", "decode_page", "encode_page")


@dataclass(frozen=True)
class Page:
    """The page object sent to the client, as JSON or embedded in the root template.

    Two pages are equal when component, props, url and version are all equal.
    """

    component: str
    props: "dict[str, Any]"
    url: str
    version: "str | None" = None

    def to_dict(self) -> "dict[str, Any]":
        """Return the wire representation of the page.

        Returns:
            A dict with the ``component``, ``props``, ``url`` and ``version`` keys.
        """
        return {"component": self.component, "props": self.props, "url": self.url, "version": self.version}

    @classmethod
    def from_dict(cls, data: "Mapping[str, Any]") -> "Page":
        """Build a page from its wire representation.

        Args:
            data: A mapping shaped like :meth:`to_dict` output.

        Raises:
            SerializationError: If a required key is missing or has the wrong type.

        Returns:
            The page.
        """
        try:
            component = data["component"]
            props = data.get("props") or {}
            url = data["url"]
        except KeyError as exc:
            msg = f"Page object is missing the {exc.args[0]!r} key."
            raise SerializationError(msg) from exc
        version = data.get("version")
        if not isinstance(component, str) or not isinstance(url, str) or not isinstance(props, dict):
            msg = "Page object has an invalid shape."
            raise SerializationError(msg)
        if version is not None and not isinstance(version, str):
            msg = "Page version must be a string or null."
            raise SerializationError(msg)
        return cls(component=component, props=props, url=url, version=version)


@dataclass(frozen=True)
class SsrResult:
    """Markup returned by the SSR renderer."""

    head: "tuple[str, ...]"
    body: str

    @property
    def head_html(self) -> str:
        return "\n".join(self.head)


def build_page(component: str, url: str, version: "str | None", props: "dict[str, Any]") -> Page:
    """Assemble a page from its parts.

    Args:
        component: Name of the client-side page component.
        url: The request path, including the query string.
        version: The current asset version.
        props: The resolved props.

    Returns:
        The page.
    """
    return Page(component=component, props=props, url=url, version=version)


def encode_page(page: Page, type_encoders: "TypeEncodersMap | None" = None) -> bytes:
    """Serialize a page to JSON bytes.

    Args:
        page: The page to encode.
        type_encoders: Extra type encoders for values Litestar cannot encode by default.

    Raises:
        SerializationError: If a prop value cannot be encoded.

    Returns:
        The JSON document.
    """
    try:
        return encode_json(page.to_dict(), get_serializer(type_encoders))
    except (SerializationException, TypeError) as exc:
        msg = f"Failed to serialize page for component {page.component!r}: {exc!s}"
        raise SerializationError(msg) from exc


def decode_page(raw: "bytes | str") -> Page:
    """Read a page back from JSON.

    Args:
        raw: The JSON document.

    Raises:
        SerializationError: If the document is not valid JSON or not a page object.

    Returns:
        The page.
    """
    try:
        data = decode_json(raw)
    except SerializationException as exc:
        msg = f"Invalid page JSON: {exc!s}"
        raise SerializationError(msg) from exc
    if not isinstance(data, dict):
        msg = "Page JSON must be an object."
        raise SerializationError(msg)
    return Page.from_dict(data)
