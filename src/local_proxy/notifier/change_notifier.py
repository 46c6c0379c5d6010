"""
Reload channel towards connected browser sessions.

Pages served through the proxy load a small client script that opens a
websocket back to the proxy. When a local file changes, one reload message is
pushed to every session connected at that moment. Sessions that connect later
get no replay.
"""

import logging
import re
from typing import Any, Dict, Set

import aiohttp
from aiohttp import web

from local_proxy.config.constants import INTERNAL_ROUTE_PREFIX
from local_proxy.contracts import ReloadNotifier
from local_proxy.domain import ChangeEvent

# Module logger
logger = logging.getLogger(__name__)

_BODY_CLOSE = re.compile(r"</body\s*>", re.IGNORECASE)

CLIENT_SCRIPT = """(function () {
  var url = (location.protocol === "https:" ? "wss://" : "ws://") + location.host + "%(socket_path)s";
  function toast(text) {
    var el = document.createElement("div");
    el.textContent = text;
    el.style.cssText = "position:fixed;top:0;right:0;z-index:2147483647;padding:8px 12px;" +
      "background:#1e1e1e;color:#fff;font:12px sans-serif;border-bottom-left-radius:4px";
    document.body.appendChild(el);
    setTimeout(function () { el.remove(); }, 2000);
  }
  function connect() {
    var ws = new WebSocket(url);
    ws.onmessage = function (event) {
      var message = JSON.parse(event.data);
      if (message.type === "reload") {
        location.reload();
      } else if (message.type === "notify" && document.body) {
        toast(message.text);
      }
    };
    ws.onclose = function () { setTimeout(connect, 1000); };
  }
  connect();
})();
"""


class ChangeNotifier(ReloadNotifier):
    """
    A ReloadNotifier pushing messages over aiohttp websockets.

    The instance owns the set of open sessions and the two internal routes:
    the websocket endpoint and the client script.
    """

    def __init__(self, route_prefix: str = INTERNAL_ROUTE_PREFIX) -> None:
        self._route_prefix: str = route_prefix.rstrip("/")
        self._sessions: Set[web.WebSocketResponse] = set()

    @property
    def socket_path(self) -> str:
        return f"{self._route_prefix}/ws"

    @property
    def script_path(self) -> str:
        return f"{self._route_prefix}/client.js"

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def add_routes(self, app: web.Application) -> None:
        """Registers the websocket endpoint and the client script on the application."""
        app.router.add_get(self.socket_path, self.websocket_handler)
        app.router.add_get(self.script_path, self.client_script_handler)

    def inject_client(self, html: str) -> str:
        """
        Adds the client script tag before the last ``</body>``, or at the end of the page.

        Args:
            html: The page as received from the origin.

        Returns:
            str: The page loading the reload client.
        """
        tag = f'<script async src="{self.script_path}"></script>'
        matches = list(_BODY_CLOSE.finditer(html))
        if not matches:
            return html + tag
        index = matches[-1].start()
        return html[:index] + tag + html[index:]

    async def client_script_handler(self, request: web.Request) -> web.Response:
        return web.Response(
            text=CLIENT_SCRIPT % {"socket_path": self.socket_path},
            content_type="application/javascript",
            headers={"Cache-Control": "no-cache"},
        )

    async def websocket_handler(self, request: web.Request) -> web.WebSocketResponse:
        """
        Holds one browser session open until it disconnects.
        """
        ws = web.WebSocketResponse(heartbeat=30)
        await ws.prepare(request)
        self._sessions.add(ws)
        logger.debug(f"Browser session connected ({len(self._sessions)} open)")

        try:
            async for message in ws:
                if message.type == aiohttp.WSMsgType.ERROR:
                    logger.debug(f"Browser session closed with error: {ws.exception()}")
        finally:
            self._sessions.discard(ws)
            logger.debug(f"Browser session disconnected ({len(self._sessions)} open)")

        return ws

    async def on_change(self, event: ChangeEvent) -> None:
        logger.info(f"{event.kind.value}: {event.path}, reloading {len(self._sessions)} session(s)")
        await self._broadcast({"type": "reload", "path": event.path})

    async def notify(self, message: str) -> None:
        await self._broadcast({"type": "notify", "text": message})

    async def close(self) -> None:
        for ws in list(self._sessions):
            await ws.close(code=aiohttp.WSCloseCode.GOING_AWAY, message=b"Server shutdown")
        self._sessions.clear()

    async def _broadcast(self, payload: Dict[str, Any]) -> None:
        """
        Sends the payload to a snapshot of the open sessions; failed sessions are dropped.
        """
        for ws in list(self._sessions):
            if ws.closed:
                self._sessions.discard(ws)
                continue
            try:
                await ws.send_json(payload)
            except (ConnectionError, RuntimeError) as e:
                logger.debug(f"Dropping browser session after send failure: {e}")
                self._sessions.discard(ws)
