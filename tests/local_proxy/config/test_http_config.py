"""
Tests for the http_config module in the local_proxy.config package.

This module contains tests for the get_http_session function, which creates
the aiohttp client session used to reach the origin.
"""

from unittest.mock import MagicMock, patch

import aiohttp
import pytest

from local_proxy.config.http_config import get_http_session
from local_proxy.config.proxy_context import ProxyContext


@pytest.fixture
def mock_context() -> ProxyContext:
    """Fixture that provides a ProxyContext for testing."""
    return ProxyContext(
        target="http://example.com",
        directory=".",
        files="**/*.css",
        prefix="",
        port=3000,
        host="localhost",
        open_browser=False,
        mirror=False,
        verbose=0,
        logging_type="dev",
        logging_config_file="",
        watch_interval=0.5,
    )


class TestGetHttpSession:
    """Tests for the get_http_session function."""

    @pytest.mark.asyncio
    async def test_get_http_session_should_create_client_session(
        self, mock_context: ProxyContext
    ) -> None:
        """
        Test that get_http_session creates an aiohttp.ClientSession.
        """
        # Arrange
        mock_client_session = MagicMock()
        with patch("aiohttp.ClientSession", return_value=mock_client_session) as mock_session_class:
            # Act
            result = get_http_session(mock_context)

            # Assert
            mock_session_class.assert_called_once()
            assert result == mock_client_session

    @pytest.mark.asyncio
    async def test_get_http_session_should_not_store_cookies(self, mock_context: ProxyContext) -> None:
        """
        Test that the session leaves cookies to the browser and decompresses bodies.
        """
        # Arrange
        with patch("aiohttp.ClientSession") as mock_session_class:
            # Act
            get_http_session(mock_context)

            # Assert
            kwargs = mock_session_class.call_args.kwargs
            assert isinstance(kwargs["cookie_jar"], aiohttp.DummyCookieJar)
            assert kwargs["auto_decompress"] is True

    @pytest.mark.asyncio
    async def test_get_http_session_should_propagate_creation_error(
        self, mock_context: ProxyContext
    ) -> None:
        """
        Test that errors while creating the session are not swallowed.
        """
        # Arrange
        with patch("aiohttp.ClientSession", side_effect=Exception("Session creation error")):
            # Act & Assert
            with pytest.raises(Exception, match="Session creation error"):
                get_http_session(mock_context)
