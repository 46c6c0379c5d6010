"""
Core interfaces for the local override proxy.

This module defines the abstract base classes for the collaborators around the
override pipeline: the upstream proxy that answers whatever is not overridden,
the reload channel towards connected browsers, and the source of file change
events.
"""

import abc
from typing import AsyncIterator, List, Optional

from aiohttp import web

from .domain import ChangeEvent


class UpstreamProxy(abc.ABC):
    """
    Abstract interface for the component that forwards a request to the origin.

    It is invoked only when the override middleware declines to serve a local file.
    """

    @abc.abstractmethod
    async def forward(self, request: web.Request) -> web.Response:
        """
        Forwards the request to the origin and returns its response.

        The whole body is buffered so that callers (mirror mode) can reuse it.

        Args:
            request: The inbound request, unmodified.

        Returns:
            web.Response: The origin's response adapted for the client.

        Raises:
            Exception: Implementations should turn network errors into an error
                response rather than raising them.
        """
        pass


class ReloadNotifier(abc.ABC):
    """
    Abstract interface for the push channel to connected browser sessions.
    """

    @abc.abstractmethod
    async def on_change(self, event: ChangeEvent) -> None:
        """
        Emits one reload instruction to every session connected right now.

        Args:
            event: The change that triggered the reload.

        Returns:
            None
        """
        pass

    @abc.abstractmethod
    async def notify(self, message: str) -> None:
        """
        Shows an informational message in the connected sessions.

        Args:
            message: Text to display.

        Returns:
            None
        """
        pass

    @abc.abstractmethod
    async def close(self) -> None:
        """
        Closes every open session.

        Returns:
            None
        """
        pass


class ChangeSource(abc.ABC):
    """
    Abstract interface for a source of file change events.

    Its responsibility is to provide an asynchronous stream of batches of
    'ChangeEvent' objects. The implementation can poll, use OS notifications,
    or anything else.
    """

    @abc.abstractmethod
    async def start(self, files: Optional[List[str]] = None) -> None:
        """
        Prepares the source to start yielding events, e.g. takes the initial snapshot.

        Args:
            files: Root-relative paths already enumerated, used to seed the snapshot.

        Returns:
            None
        """
        pass

    @abc.abstractmethod
    async def stop(self) -> None:
        """
        Stops the source; pending iterations end with StopAsyncIteration.

        Returns:
            None
        """
        pass

    def __aiter__(self) -> AsyncIterator[List[ChangeEvent]]:
        return self

    @abc.abstractmethod
    async def __anext__(self) -> List[ChangeEvent]:
        """
        Waits for and returns the next batch of changes.

        Returns:
            List[ChangeEvent]: The changes observed since the previous batch.

        Raises:
            StopAsyncIteration: When the source has been stopped.
        """
        raise StopAsyncIteration
