"""
Domain models for the local override proxy.

This module defines the core data structures used throughout the application:
the immutable match configuration, the per-request resolution, the outcome of
trying to serve a local file, and the change events emitted by the watcher.
"""

from enum import Enum
from typing import NamedTuple, Optional, Tuple

DEFAULT_EXCLUDED_SUFFIXES: Tuple[str, ...] = (".map",)


class MatchSpec(NamedTuple):
    """
    Immutable configuration describing which requests are intercepted.

    Built once at startup from the configuration context and never mutated.

    Attributes:
        pattern: Glob pattern selecting the eligible paths, e.g. ``**/*.css``.
        prefix: Path segment between the domain and the local tree, e.g.
            ``wp-content/themes/my-theme``. Empty when the tree mirrors the site root.
        ignore: Gitignore-style patterns excluded from enumeration and matching.
        excluded_suffixes: Request path suffixes never overridden (source maps by default).
    """

    pattern: str
    prefix: str = ""
    ignore: Tuple[str, ...] = ()
    excluded_suffixes: Tuple[str, ...] = DEFAULT_EXCLUDED_SUFFIXES


class Resolution(NamedTuple):
    """
    The result of mapping one request path to a local candidate.

    Attributes:
        request_path: The raw path received (may include a query string).
        cleaned_path: The path component only, query string and fragment removed.
        candidate_path: Absolute local path inside the root, or None.
        matched: Whether the cleaned path satisfied the compiled matcher.
    """

    request_path: str
    cleaned_path: str
    candidate_path: Optional[str]
    matched: bool


class OutcomeKind(str, Enum):
    """
    The three ways a request can be handled.

    Inheriting from 'str' keeps the values readable in log output.
    """

    SERVED = "served"
    FALLBACK = "fallback"
    PASS_THROUGH = "pass-through"


class ServeOutcome(NamedTuple):
    """
    The decision taken for a single request.

    Attributes:
        kind: Served, Fallback or PassThrough.
        resolution: The resolution the decision was based on.
        body: The local file bytes when served, otherwise None.
        content_type: Content type derived from the resolved path when served.
        error: The read error behind a fallback, if any.
    """

    kind: OutcomeKind
    resolution: Resolution
    body: Optional[bytes] = None
    content_type: Optional[str] = None
    error: Optional[Exception] = None

    @classmethod
    def served(cls, resolution: Resolution, body: bytes, content_type: str) -> "ServeOutcome":
        return cls(OutcomeKind.SERVED, resolution, body=body, content_type=content_type)

    @classmethod
    def fallback(cls, resolution: Resolution, error: Optional[Exception] = None) -> "ServeOutcome":
        return cls(OutcomeKind.FALLBACK, resolution, error=error)

    @classmethod
    def pass_through(cls, resolution: Resolution) -> "ServeOutcome":
        return cls(OutcomeKind.PASS_THROUGH, resolution)


class ReadResult(NamedTuple):
    """
    Outcome of reading a local file: either data or the error that prevented it.
    """

    data: Optional[bytes]
    error: Optional[Exception]

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None


class ChangeKind(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


class ChangeEvent(NamedTuple):
    """
    A file inside the watched tree changed.

    Attributes:
        path: Path relative to the watched root, POSIX separators.
        kind: What happened to the file.
    """

    path: str
    kind: ChangeKind
