"""
Per-request override decision for the local override proxy.

For every inbound request the middleware decides between three outcomes:
- PassThrough: the path does not match (or is excluded); the request goes upstream untouched
- Served: the path matches and the local file is readable; its bytes are returned
- Fallback: the path matches but no readable local file exists; the request goes upstream

The decision is a plain coroutine returning a ServeOutcome, so it can be tested
without an HTTP server. The aiohttp middleware wrapper only acts on it.
"""

import asyncio
import errno
import logging
import mimetypes
import os
import tempfile
from typing import Awaitable, Callable, Optional

from aiohttp import web

from local_proxy.config.constants import INTERNAL_ROUTE_PREFIX
from local_proxy.config.logging_config import CHATTY
from local_proxy.contracts import ReloadNotifier
from local_proxy.domain import OutcomeKind, ReadResult, Resolution, ServeOutcome
from local_proxy.matcher.pattern_compiler import CompiledMatcher
from local_proxy.proxy.aiohttp_upstream import SKIP_INJECTION_KEY
from local_proxy.resolver.path_resolver import clean_path, resolve

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Only reads are answered from disk
_OVERRIDABLE_METHODS = frozenset({"GET", "HEAD"})

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def content_type_for(path: str) -> str:
    """
    Derives a content type from the extension of ``path``.
    """
    content_type, _ = mimetypes.guess_type(path)
    return content_type or DEFAULT_CONTENT_TYPE


def read_local_file(path: str) -> ReadResult:
    """
    Reads a whole local file.

    Never raises for I/O problems: a missing path, a directory or an unreadable
    file all come back as a ReadResult holding the error.

    Args:
        path: The candidate path produced by the resolver.

    Returns:
        ReadResult: The bytes, or the error that prevented reading them.
    """
    try:
        if not os.path.isfile(path):
            return ReadResult(None, FileNotFoundError(errno.ENOENT, "No such file", path))
        with open(path, "rb") as f:
            return ReadResult(f.read(), None)
    except OSError as e:
        return ReadResult(None, e)


def write_atomically(path: str, data: bytes) -> None:
    """
    Writes ``data`` to ``path`` through a temporary file and a rename.

    Readers see either the previous file or the complete new one. Missing
    parent directories are created.

    Raises:
        OSError: If the directory cannot be created or the file cannot be written.
    """
    directory = os.path.dirname(path)
    os.makedirs(directory, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(temp_path, path)
    except BaseException:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


class OverrideMiddleware:
    """
    Decides, for each request, whether to serve a local file or delegate upstream.

    The instance holds only read-only state after construction, so it handles
    concurrent requests without locking.
    """

    # Marks the instance as a new-style aiohttp middleware
    __middleware_version__ = 1

    def __init__(
        self,
        matcher: CompiledMatcher,
        root: str,
        notifier: Optional[ReloadNotifier] = None,
        mirror: bool = False,
        internal_prefix: str = INTERNAL_ROUTE_PREFIX,
    ) -> None:
        """
        Initializes the middleware.

        Args:
            matcher: The matcher compiled at startup.
            root: The local root directory.
            notifier: Optional reload channel used to tell browsers a file was injected.
            mirror: Whether to persist upstream bodies on a fallback.
            internal_prefix: Path prefix of the proxy's own routes, never overridden.
        """
        self._matcher: CompiledMatcher = matcher
        self._prefix: str = matcher.spec.prefix
        self._root: str = os.path.abspath(root)
        self._notifier: Optional[ReloadNotifier] = notifier
        self._mirror: bool = mirror
        self._internal_prefix: str = internal_prefix

    @property
    def root(self) -> str:
        return self._root

    def resolve(self, request_path: str, cleaned_path: Optional[str] = None) -> Resolution:
        """
        Maps a request path to a local candidate. Pure: no filesystem access.

        Args:
            request_path: The request path, possibly with a query string.
            cleaned_path: The decoded path without query or fragment, when the caller
                already has it. Derived from ``request_path`` otherwise.

        Returns:
            Resolution: matched is False when the path does not satisfy the
                matcher, is excluded or ignored, or would escape the root.
        """
        cleaned = clean_path(request_path) if cleaned_path is None else cleaned_path
        unmatched = Resolution(request_path, cleaned, None, False)

        if cleaned.startswith(self._internal_prefix) or not self._matcher.accepts(cleaned):
            return unmatched

        candidate = resolve(cleaned, self._prefix, self._root)
        if candidate is None:
            logger.debug(f"Rejected {cleaned}: resolves outside {self._root}")
            return unmatched

        relative = os.path.relpath(candidate, self._root).replace(os.sep, "/")
        if self._matcher.is_ignored(relative):
            return unmatched

        return Resolution(request_path, cleaned, candidate, True)

    async def decide(self, request_path: str, cleaned_path: Optional[str] = None) -> ServeOutcome:
        """
        Resolves the request path and tries to read the local file.

        Args:
            request_path: The request path, possibly with a query string.
            cleaned_path: The decoded path without query or fragment, if already known.

        Returns:
            ServeOutcome: Served with the file bytes, Fallback when the file is
                missing or unreadable, PassThrough when the path is not matched.
        """
        resolution = self.resolve(request_path, cleaned_path)
        if not resolution.matched or resolution.candidate_path is None:
            return ServeOutcome.pass_through(resolution)

        result: ReadResult = await asyncio.to_thread(read_local_file, resolution.candidate_path)
        if not result.ok:
            return ServeOutcome.fallback(resolution, result.error)

        return ServeOutcome.served(
            resolution, result.data, content_type_for(resolution.candidate_path)
        )

    async def __call__(self, request: web.Request, handler: Handler) -> web.StreamResponse:
        if request.method not in _OVERRIDABLE_METHODS:
            return await handler(request)

        # request.path is already decoded, so an encoded "?" or "#" stays part of the file name
        outcome = await self.decide(request.path_qs, request.path)

        if outcome.kind is OutcomeKind.PASS_THROUGH:
            logger.debug(f"{request.method} {request.path_qs}")
            return await handler(request)

        logger.log(CHATTY, f"Match: {outcome.resolution.cleaned_path}")
        local_path = outcome.resolution.candidate_path

        if outcome.kind is OutcomeKind.SERVED:
            response = web.Response(
                body=outcome.body,
                headers={"Content-Type": outcome.content_type, "Cache-Control": "no-cache"},
            )
            logger.info(f"200 {local_path}")
            await self._notify(f"Injected: {self._relative(local_path)}")
            return response

        # HEAD responses carry no body to persist
        if not self._mirror or request.method != "GET":
            logger.debug(f"Read of {local_path} failed: {outcome.error}")
            logger.info(f"{local_path} (local file not found, serving original)")
            return await handler(request)

        request[SKIP_INJECTION_KEY] = True
        response = await handler(request)
        await self._mirror_response(local_path, response)
        return response

    async def _mirror_response(self, local_path: str, response: web.StreamResponse) -> None:
        """
        Persists a successful upstream body to the local path. Failures are logged only.
        """
        body = getattr(response, "body", None)
        if response.status != 200 or not isinstance(body, (bytes, bytearray)):
            logger.info(f"{local_path} (not mirrored, upstream answered {response.status})")
            return

        try:
            await asyncio.to_thread(write_atomically, local_path, bytes(body))
        except OSError as e:
            logger.warning(f"Could not mirror {local_path}: {e}")
            return
        logger.info(f"201 {local_path} (created)")

    async def _notify(self, message: str) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify(message)
        except Exception as e:
            logger.debug(f"Browser notification failed: {e}")

    def _relative(self, path: Optional[str]) -> str:
        if path is None:
            return ""
        return os.path.relpath(path, self._root).replace(os.sep, "/")
