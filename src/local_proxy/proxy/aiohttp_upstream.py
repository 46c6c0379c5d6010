"""
Upstream proxy implementation using the aiohttp library.

This module provides an implementation of the UpstreamProxy interface that
forwards requests to the origin with a shared aiohttp ClientSession, and adapts
the origin's response so the browser keeps talking to the proxy: redirects to
the origin are rewritten, cookie domains are dropped and HTML pages load the
reload client.
"""

import asyncio
import logging
import re
from typing import Callable, List, Optional, Tuple

import aiohttp
from aiohttp import web
from yarl import URL

from local_proxy.config.logging_config import SPAM
from local_proxy.contracts import UpstreamProxy

# Module logger
logger = logging.getLogger(__name__)

# Set on the request by the override middleware when the body will be mirrored to disk.
# Older aiohttp releases only accept string request keys.
if hasattr(web, "RequestKey"):
    SKIP_INJECTION_KEY = web.RequestKey("skip_injection", bool)
else:
    SKIP_INJECTION_KEY = "local_proxy.skip_injection"

_HOP_BY_HOP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)
_REQUEST_DROP = _HOP_BY_HOP | {"host", "content-length", "accept-encoding"}
# The session decompresses bodies, so the encoding and length no longer apply
_RESPONSE_DROP = _HOP_BY_HOP | {"content-length", "content-encoding"}

_COOKIE_DOMAIN = re.compile(r";\s*domain=[^;]*", re.IGNORECASE)


class AiohttpUpstreamProxy(UpstreamProxy):
    """
    A concrete implementation of UpstreamProxy using the aiohttp library.

    Bodies are fully buffered in both directions; this is a development proxy
    for pages and static assets, not a streaming gateway.
    """

    def __init__(
        self,
        target: str,
        session: aiohttp.ClientSession,
        injector: Optional[Callable[[str], str]] = None,
    ) -> None:
        """
        Initializes the proxy with a shared aiohttp ClientSession.

        Args:
            target: The origin URL, scheme included, without trailing slash.
            session: An active aiohttp.ClientSession to be used for requests.
            injector: Optional function adding the reload client to HTML pages.
        """
        self._target: str = target.rstrip("/")
        self._target_url: URL = URL(self._target)
        self._session: aiohttp.ClientSession = session
        self._injector: Optional[Callable[[str], str]] = injector

    @property
    def target(self) -> str:
        return self._target

    def upstream_url(self, request: web.Request) -> URL:
        """The origin URL for the request: same raw path and query string."""
        return URL(f"{self._target}{request.raw_path}", encoded=True)

    async def handle(self, request: web.Request) -> web.StreamResponse:
        """Route handler forwarding every request that reaches it."""
        return await self.forward(request)

    async def forward(self, request: web.Request) -> web.Response:
        """
        Forwards the request to the origin and builds the client response.

        Args:
            request: The inbound request.

        Returns:
            web.Response: The adapted origin response, or a 502 response when the
                origin cannot be reached.
        """
        url = self.upstream_url(request)
        headers = self._request_headers(request)
        data = await request.read() if request.body_exists else None

        logger.debug(f"Forwarding {request.method} {url}")
        try:
            async with self._session.request(
                request.method,
                url,
                headers=headers,
                data=data,
                allow_redirects=False,
            ) as upstream:
                body: bytes = await upstream.read()
                status: int = upstream.status
                charset: Optional[str] = upstream.charset
                content_type: str = upstream.headers.get("Content-Type", "")
                response_headers = self._response_headers(request, upstream.headers.items())

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error forwarding {request.method} {url}: {e!r}")
            return web.Response(status=502, text=f"Bad gateway: could not reach {self._target}\n")

        if (
            self._injector is not None
            and content_type.lower().startswith("text/html")
            and request.method != "HEAD"
            and body
            and not request.get(SKIP_INJECTION_KEY, False)
        ):
            encoding = charset or "utf-8"
            body = self._injector(body.decode(encoding, errors="replace")).encode(
                encoding, errors="replace"
            )

        logger.log(SPAM, f"{status} {url}")
        return web.Response(status=status, headers=response_headers, body=body)

    def _request_headers(self, request: web.Request) -> List[Tuple[str, str]]:
        headers = [
            (name, value)
            for name, value in request.headers.items()
            if name.lower() not in _REQUEST_DROP
        ]
        # Only encodings the session can always decode
        headers.append(("Accept-Encoding", "gzip, deflate"))

        origin = request.headers.get("Origin")
        if origin:
            headers = [(n, v) for n, v in headers if n.lower() != "origin"]
            headers.append(("Origin", str(self._target_url.origin())))
        return headers

    def _response_headers(self, request: web.Request, items) -> List[Tuple[str, str]]:
        proxy_origin = f"{request.scheme}://{request.host}"
        origins = {
            str(self._target_url.origin()),
            str(self._target_url.with_scheme("http").origin()),
            str(self._target_url.with_scheme("https").origin()),
        }

        headers: List[Tuple[str, str]] = []
        for name, value in items:
            lower = name.lower()
            if lower in _RESPONSE_DROP:
                continue
            if lower == "location":
                for origin in origins:
                    if value == origin or value.startswith(origin + "/"):
                        value = proxy_origin + value[len(origin):]
                        break
            elif lower == "set-cookie":
                value = _COOKIE_DOMAIN.sub("", value)
            headers.append((name, value))
        return headers
