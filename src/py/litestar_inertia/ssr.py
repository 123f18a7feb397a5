"""Client for the SSR renderer.

The renderer is an HTTP server (usually Node running the app's ``ssr`` bundle) that accepts the
page object as JSON on ``POST /render`` and answers ``{"head": [str, ...], "body": str}``. Any
failure degrades to client-side rendering: :meth:`SSRClient.render` logs a warning and returns
None, and the caller falls back to the hydration container.
"""

import logging
from typing import TYPE_CHECKING, Any, cast

import httpx

from litestar_inertia.exceptions import SsrError
from litestar_inertia.page import Page, SsrResult, encode_page

if TYPE_CHECKING:
    from anyio.from_thread import BlockingPortal
    from litestar.types import TypeEncodersMap

__all__ = ("DEFAULT_SSR_TIMEOUT", "DEFAULT_SSR_URL", "SSRClient", "parse_ssr_payload")

logger = logging.getLogger(__name__)

DEFAULT_SSR_URL = "http://127.0.0.1:13714"
DEFAULT_SSR_TIMEOUT = 5.0


def parse_ssr_payload(payload: Any, url: str) -> SsrResult:
    """Validate a renderer answer.

    Args:
        payload: The decoded JSON answer.
        url: The renderer URL, for error messages.

    Raises:
        SsrError: If the payload is not shaped like ``{"head": [str], "body": str}``.

    Returns:
        The SSR result.
    """
    if not isinstance(payload, dict):
        msg = f"SSR renderer at {url!r} returned unexpected payload type: {type(payload)!r}."
        raise SsrError(msg, url)

    payload_dict = cast("dict[str, Any]", payload)

    body = payload_dict.get("body")
    if not isinstance(body, str):
        msg = f"SSR renderer at {url!r} returned invalid 'body' (expected string)."
        raise SsrError(msg, url)

    head_raw: Any = payload_dict.get("head")
    if head_raw is None:
        head_raw = []
    if not isinstance(head_raw, list) or any(not isinstance(item, str) for item in cast("list[Any]", head_raw)):
        msg = f"SSR renderer at {url!r} returned invalid 'head' (expected list[str])."
        raise SsrError(msg, url)

    return SsrResult(head=tuple(cast("list[str]", head_raw)), body=body)


class SSRClient:
    """Posts pages to the SSR renderer.

    Args:
        url: Base URL of the renderer, e.g. ``http://127.0.0.1:13714``.
        timeout: Seconds to wait for an answer. There are no retries.
        client: Optional pooled ``httpx.AsyncClient``. A client per call is used when omitted.
    """

    __slots__ = ("client", "timeout", "url")

    def __init__(
        self,
        url: str = DEFAULT_SSR_URL,
        timeout: float = DEFAULT_SSR_TIMEOUT,
        client: "httpx.AsyncClient | None" = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.client = client

    @property
    def render_url(self) -> str:
        return f"{self.url}/render"

    async def _post(self, client: "httpx.AsyncClient", body: bytes) -> SsrResult:
        url = self.render_url
        try:
            response = await client.post(
                url, content=body, headers={"Content-Type": "application/json"}, timeout=self.timeout
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            msg = f"SSR renderer at {url!r} did not answer within {self.timeout}s."
            raise SsrError(msg, url) from exc
        except httpx.RequestError as exc:
            msg = f"SSR renderer is not reachable at {url!r}."
            raise SsrError(msg, url) from exc
        except httpx.HTTPStatusError as exc:
            msg = f"SSR renderer at {url!r} returned HTTP {exc.response.status_code}."
            raise SsrError(msg, url) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            msg = f"SSR renderer at {url!r} returned invalid JSON."
            raise SsrError(msg, url) from exc

        return parse_ssr_payload(payload, url)

    @staticmethod
    def _encode(page: "Page | dict[str, Any]", type_encoders: "TypeEncodersMap | None") -> bytes:
        return encode_page(page if isinstance(page, Page) else Page.from_dict(page), type_encoders)

    async def _fetch_encoded(self, body: bytes) -> SsrResult:
        if self.client is not None:
            return await self._post(self.client, body)
        async with httpx.AsyncClient() as client:
            return await self._post(client, body)

    async def _render_encoded(self, body: bytes) -> "SsrResult | None":
        try:
            return await self._fetch_encoded(body)
        except SsrError as exc:
            logger.warning("SSR failed, falling back to client-side rendering: %s", exc)
            return None

    async def fetch(
        self, page: "Page | dict[str, Any]", type_encoders: "TypeEncodersMap | None" = None
    ) -> SsrResult:
        """Render a page, raising on failure.

        Args:
            page: The page, or its wire representation.
            type_encoders: Extra type encoders for prop values.

        Raises:
            SsrError: If the renderer is unreachable, too slow or answers garbage.

        Returns:
            The SSR result.
        """
        return await self._fetch_encoded(self._encode(page, type_encoders))

    async def render(
        self, page: "Page | dict[str, Any]", type_encoders: "TypeEncodersMap | None" = None
    ) -> "SsrResult | None":
        """Render a page, falling back to None on failure.

        Args:
            page: The page, or its wire representation.
            type_encoders: Extra type encoders for prop values.

        Returns:
            The SSR result, or None when the page must be rendered on the client.
        """
        return await self._render_encoded(self._encode(page, type_encoders))

    def render_sync(
        self,
        page: "Page | dict[str, Any]",
        portal: "BlockingPortal",
        type_encoders: "TypeEncodersMap | None" = None,
    ) -> "SsrResult | None":
        """Render a page from synchronous code through the app's portal.

        The page is encoded in the calling thread, so type encoders may use the portal themselves.

        Args:
            page: The page, or its wire representation.
            portal: BlockingPortal for sync-to-async bridging.
            type_encoders: Extra type encoders for prop values.

        Returns:
            The SSR result, or None when the page must be rendered on the client.
        """
        return portal.call(self._render_encoded, self._encode(page, type_encoders))
