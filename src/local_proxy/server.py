"""
Proxy server orchestration for the local override proxy.

This module provides the ProxyServer class, which wires the override
middleware, the upstream proxy, the reload channel and the change dispatcher
into one aiohttp application, and manages their start and graceful shutdown.
"""

import asyncio
import logging
import webbrowser
from asyncio import Task
from typing import List, Optional

import aiohttp
from aiohttp import web

from local_proxy.config import ProxyContext
from local_proxy.config.constants import IGNORE_PATTERNS
from local_proxy.contracts import ChangeSource
from local_proxy.matcher.pattern_compiler import CompiledMatcher
from local_proxy.middleware.override_middleware import OverrideMiddleware
from local_proxy.notifier.change_notifier import ChangeNotifier
from local_proxy.proxy.aiohttp_upstream import AiohttpUpstreamProxy
from local_proxy.watcher.polling_watcher import ChangeDispatcher, PollingChangeSource


class ProxyServer:
    """
    Coordinates the listener, the override pipeline and the reload channel.
    """

    def __init__(
        self,
        context: ProxyContext,
        matcher: CompiledMatcher,
        session: aiohttp.ClientSession,
        notifier: Optional[ChangeNotifier] = None,
        change_source: Optional[ChangeSource] = None,
    ) -> None:
        """
        Initializes a new ProxyServer instance.

        Args:
            context: The configuration context.
            matcher: The matcher compiled at startup.
            session: Shared HTTP client session for upstream requests.
            notifier: Reload channel; a websocket ChangeNotifier by default.
            change_source: Source of change events; a PollingChangeSource by default.
        """
        self._context: ProxyContext = context
        self._logger: logging.Logger = logging.getLogger(__name__)
        self._notifier: ChangeNotifier = notifier or ChangeNotifier()
        self._upstream: AiohttpUpstreamProxy = AiohttpUpstreamProxy(
            target=context.target,
            session=session,
            injector=self._notifier.inject_client,
        )
        self._middleware: OverrideMiddleware = OverrideMiddleware(
            matcher=matcher,
            root=context.directory,
            notifier=self._notifier,
            mirror=context.mirror,
        )
        self._source: ChangeSource = change_source or PollingChangeSource(
            root=context.directory,
            pattern=context.files,
            ignore=IGNORE_PATTERNS,
            interval=context.watch_interval,
        )
        self._runner: Optional[web.AppRunner] = None
        self._dispatch_task: Optional[Task] = None
        self._closed: asyncio.Event = asyncio.Event()

    @property
    def url(self) -> str:
        return f"http://{self._context.host}:{self._context.port}"

    def build_app(self) -> web.Application:
        """
        Builds the aiohttp application: reload routes first, then the catch-all upstream route.
        """
        app = web.Application(middlewares=[self._middleware])
        self._notifier.add_routes(app)
        app.router.add_route("*", "/{tail:.*}", self._upstream.handle)
        return app

    async def start(self, files: Optional[List[str]] = None) -> None:
        """
        Binds the listener, starts watching the local tree and optionally opens a browser.

        Args:
            files: Files found by the startup enumeration, used to seed the watcher.

        Raises:
            OSError: If the listener cannot be bound.
        """
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._context.host, self._context.port)
        await site.start()
        self._logger.info(f"Proxying {self._context.target} at {self.url}")

        await self._source.start(files)
        self._dispatch_task = asyncio.create_task(
            ChangeDispatcher(self._source, self._notifier).run()
        )

        if self._context.open_browser:
            await asyncio.to_thread(webbrowser.open, self.url)

    async def wait_closed(self) -> None:
        """Waits until stop() is called."""
        await self._closed.wait()

    async def stop(self) -> None:
        """
        Gracefully stops the watcher, closes browser sessions and the listener.
        """
        self._logger.info("Initiating graceful shutdown...")
        await self._source.stop()

        if self._dispatch_task is not None:
            self._dispatch_task.cancel()
            await asyncio.gather(self._dispatch_task, return_exceptions=True)
            self._dispatch_task = None

        await self._notifier.close()

        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

        self._closed.set()
        self._logger.info("Server shutdown complete")
