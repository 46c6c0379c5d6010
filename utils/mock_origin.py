#!/usr/bin/env python3
"""
Mock origin for trying the local override proxy by hand.

This server simulates a small WordPress-like site:
- /                                      an HTML page linking a theme stylesheet
- /wp-content/themes/demo/style.css      the "production" stylesheet
- /wp-content/themes/demo/style.css.map  a source map
- anything else                          404

Run it, then in a directory containing style.css:
    local-proxy --prefix wp-content/themes/demo localhost:8080
"""

from aiohttp import web

# Constants
PORT = 8080
HOST = "localhost"
THEME = "/wp-content/themes/demo"

PAGE = f"""<!doctype html>
<html>
  <head>
    <title>Mock origin</title>
    <link rel="stylesheet" href="{THEME}/style.css?ver=1.0">
  </head>
  <body>
    <h1>Mock origin</h1>
    <p>Edit style.css locally to restyle this page.</p>
  </body>
</html>
"""

STYLESHEET = "body { font-family: serif; color: #333; }\n"


async def handle_page(request: web.Request) -> web.Response:
    return web.Response(text=PAGE, content_type="text/html")


async def handle_stylesheet(request: web.Request) -> web.Response:
    return web.Response(text=STYLESHEET, content_type="text/css")


async def handle_source_map(request: web.Request) -> web.Response:
    return web.json_response({"version": 3, "sources": ["style.scss"], "mappings": ""})


async def init_app() -> web.Application:
    """
    Initialize the web application.

    Returns:
        Configured aiohttp web Application
    """
    app = web.Application()
    app.add_routes(
        [
            web.get("/", handle_page),
            web.get(f"{THEME}/style.css", handle_stylesheet),
            web.get(f"{THEME}/style.css.map", handle_source_map),
        ]
    )
    return app


def run_server() -> None:
    """Run the mock origin on HOST:PORT."""
    web.run_app(init_app(), host=HOST, port=PORT)


if __name__ == "__main__":
    print(f"Starting mock origin at http://{HOST}:{PORT}")
    run_server()
