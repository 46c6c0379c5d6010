"""
Configuration context for the local override proxy.

This module defines the immutable value holding every configuration parameter.
It is built once at startup and passed explicitly to every component; no
component reads process-wide state.
"""

from typing import NamedTuple

from local_proxy.config.constants import EXCLUDED_SUFFIXES, IGNORE_PATTERNS
from local_proxy.domain import MatchSpec


class ProxyContext(NamedTuple):
    """
    A data structure containing all configuration parameters of the proxy.

    Attributes:
        target: Origin URL proxied when a request is not overridden, scheme included.
        directory: Root of the local override tree.
        files: Glob pattern selecting the paths eligible for override.
        prefix: Path segment stripped from the request path before joining onto directory.
        port: Listening port of the proxy.
        host: Listening interface of the proxy.
        open_browser: Whether to open a browser pointed at the proxy on startup.
        mirror: Whether to persist upstream bytes to the local path on a fallback.
        verbose: Verbosity tier: 0 quiet, 1 debug, 2 chatty, 3 spam.
        logging_type: Type of logging configuration to use (dev, prod, or custom).
        logging_config_file: Path to custom logging configuration file (if logging_type is 'custom').
        watch_interval: Seconds between two scans of the local tree.
    """

    target: str
    directory: str
    files: str
    prefix: str
    port: int
    host: str
    open_browser: bool
    mirror: bool
    verbose: int
    logging_type: str
    logging_config_file: str
    watch_interval: float

    def match_spec(self) -> MatchSpec:
        """Builds the immutable match configuration for the override pipeline."""
        return MatchSpec(
            pattern=self.files,
            prefix=self.prefix,
            ignore=IGNORE_PATTERNS,
            excluded_suffixes=EXCLUDED_SUFFIXES,
        )
