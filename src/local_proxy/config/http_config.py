"""
HTTP client configuration module for the local override proxy.

This module creates the aiohttp client session used to forward requests that
are not overridden to the origin.
"""

import logging

import aiohttp

from local_proxy.config import ProxyContext

# Module logger
logger = logging.getLogger(__name__)


def get_http_session(context: ProxyContext) -> aiohttp.ClientSession:
    """
    Create and configure an HTTP client session based on the provided configuration.

    Cookies are not stored by the session: the browser owns them and sends them
    with every request. Request timeouts are left to aiohttp's defaults.

    Args:
        context: Configuration context containing the target.

    Returns:
        aiohttp.ClientSession: A configured HTTP client session.
    """
    logger.debug(f"Creating HTTP session for {context.target}")
    return aiohttp.ClientSession(cookie_jar=aiohttp.DummyCookieJar(), auto_decompress=True)
