"""
Local file enumeration for the override proxy.

Walks the local root once at startup and lists the files eligible for
override. The list is only used for operator reporting and to seed the watcher;
the request path always reads the filesystem directly.
"""

import logging
import os
from typing import List, Optional, Sequence

import pathspec

from local_proxy.matcher.pattern_compiler import compile_glob, compile_ignore

# Module logger
logger = logging.getLogger(__name__)


class EnumerationError(OSError):
    """Raised when the local root cannot be read."""


def enumerate_files(root: str, pattern: str, ignore: Sequence[str] = ()) -> List[str]:
    """
    Lists the files under ``root`` that match ``pattern`` and no ignore entry.

    Args:
        root: The local directory mirroring the site.
        pattern: Glob pattern relative to the root, e.g. ``**/*.css``.
        ignore: Gitignore-style patterns, e.g. ``node_modules/**``.

    Returns:
        List[str]: Root-relative POSIX paths in discovery order.

    Raises:
        EnumerationError: If the root is missing, not a directory, or unreadable.
        PatternError: If the pattern is invalid.
    """
    patterns = compile_glob(pattern)
    ignore_spec = compile_ignore(ignore)

    try:
        # Fail fast on the root itself; os.walk would silently yield nothing
        with os.scandir(root):
            pass
    except OSError as err:
        raise EnumerationError(err.errno, f"Cannot read directory {root}: {err.strerror}") from err

    def _on_error(err: OSError) -> None:
        logger.warning(f"Skipping unreadable directory {err.filename}: {err.strerror}")

    found: List[str] = []
    for current, dirs, files in os.walk(root, onerror=_on_error):
        relative_dir = os.path.relpath(current, root)
        relative_dir = "" if relative_dir == "." else relative_dir.replace(os.sep, "/")

        # Prune ignored directories so they are never descended into
        dirs[:] = [
            d for d in dirs if not _is_ignored(ignore_spec, _join(relative_dir, d) + "/")
        ]

        for name in files:
            relative = _join(relative_dir, name)
            if _is_ignored(ignore_spec, relative):
                continue
            if any(glob.match(relative) for glob in patterns):
                found.append(relative)

    logger.debug(f"Enumerated {len(found)} files under {root} matching {pattern!r}")
    return found


def _join(directory: str, name: str) -> str:
    return f"{directory}/{name}" if directory else name


def _is_ignored(ignore_spec: Optional[pathspec.GitIgnoreSpec], relative: str) -> bool:
    return ignore_spec is not None and ignore_spec.match_file(relative)
