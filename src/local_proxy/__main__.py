"""
Main entry point for the local override proxy.

This module parses the configuration, sets up logging, compiles the match
pattern, reports the local files that can be served, and runs the proxy until
it is interrupted. Configuration errors end the process with status 1 before
any listener is bound.
"""

import asyncio
import logging
import sys
from typing import List, Optional, Sequence, Tuple

import aiohttp

from local_proxy.config import ConfigurationError, ProxyContext, get_context
from local_proxy.config.constants import IGNORE_PATTERNS
from local_proxy.config.http_config import get_http_session
from local_proxy.config.logging_config import SPAM, configure_logging
from local_proxy.matcher.file_enumerator import EnumerationError, enumerate_files
from local_proxy.matcher.pattern_compiler import CompiledMatcher, PatternError, compile_match_spec
from local_proxy.server import ProxyServer

logger = logging.getLogger("local_proxy")


def prepare(context: ProxyContext) -> Tuple[CompiledMatcher, List[str]]:
    """
    Compiles the matcher and enumerates the local files, reporting both.

    Args:
        context: Configuration context.

    Returns:
        Tuple[CompiledMatcher, List[str]]: The matcher and the files found.

    Raises:
        PatternError: If the files pattern is invalid.
        EnumerationError: If the directory cannot be read.
    """
    logger.info(f"Target: {context.target}")
    logger.info(f"Directory: {context.directory}")
    logger.info(f"Path prefix: {context.prefix or '(none)'}")
    logger.info(f"Files to inject: {context.files}")
    logger.info(f"Mirror matching files: {context.mirror}")

    matcher = compile_match_spec(context.match_spec())
    logger.log(SPAM, f"Compiled patterns to proxy: {matcher.alternatives}")

    files = enumerate_files(context.directory, context.files, IGNORE_PATTERNS)
    logger.info(f"Found {len(files)} files to serve:")
    for file in files:
        logger.info(f"  {file}")

    return matcher, files


async def main(context: ProxyContext, matcher: CompiledMatcher, files: List[str]) -> None:
    """
    Run the proxy until cancelled.

    Args:
        context: Configuration context containing all application settings.
        matcher: The compiled matcher.
        files: Files found at startup, used to seed the watcher.

    Returns:
        None
    """
    http_session: aiohttp.ClientSession = get_http_session(context)
    logger.debug("configured: http_session")

    server = ProxyServer(context=context, matcher=matcher, session=http_session)
    try:
        await server.start(files)
        await server.wait_closed()
    except asyncio.CancelledError:
        logger.info("Application shutdown requested.")
    finally:
        logger.info("Shutting down resources...")
        await server.stop()
        await http_session.close()
        logger.info("Shutdown complete.")


def run(argv: Optional[Sequence[str]] = None) -> int:
    """
    Console entry point.

    Returns:
        int: 0 on normal shutdown, 1 on a configuration or startup error.
    """
    try:
        context: ProxyContext = get_context(argv)
    except ConfigurationError as e:
        logging.error(str(e))
        return 1

    try:
        configure_logging(context)
    except (ValueError, RuntimeError) as e:
        logging.error(str(e))
        return 1

    try:
        matcher, files = prepare(context)
    except PatternError as e:
        logger.error(f"That's not a valid pattern, please check --files and --prefix: {e}")
        return 1
    except EnumerationError as e:
        logger.error(str(e))
        return 1

    try:
        asyncio.run(main(context, matcher, files))
    except KeyboardInterrupt:
        logger.info("Shutdown initiated by user (Ctrl+C).")
    except OSError as e:
        logger.error(f"Could not start the proxy: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(run())
