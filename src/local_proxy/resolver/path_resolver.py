"""
Request path to local path resolution.

Pure path arithmetic: no function in this module touches the filesystem. The
resolver guarantees that any path it returns lies inside the local root; a
request crafted to escape the root resolves to None and is passed through.
"""

import os
import posixpath
from typing import Optional


def clean_path(raw_path: str) -> str:
    """
    Returns the path component of a request target, without query string or fragment.

    Cache-busting query strings such as ``?ver=1.2`` never take part in matching.

    Args:
        raw_path: The request target, e.g. ``/a/b.css?cachebust=123``.

    Returns:
        str: The path component, e.g. ``/a/b.css``.
    """
    for separator in ("?", "#"):
        index = raw_path.find(separator)
        if index != -1:
            raw_path = raw_path[:index]
    return raw_path


def strip_prefix(path: str, prefix: str) -> str:
    """
    Removes the first textual occurrence of ``prefix`` from ``path``.

    This is deliberately a plain substring replacement: when the prefix text
    also appears earlier in the path (for instance a repeated directory name),
    that earlier occurrence is the one removed.

    Args:
        path: The cleaned request path.
        prefix: The configured prefix; an empty prefix leaves the path unchanged.

    Returns:
        str: The path with the prefix removed.
    """
    if not prefix:
        return path
    return path.replace(prefix, "", 1)


def resolve(cleaned_path: str, prefix: str, root: str) -> Optional[str]:
    """
    Maps a cleaned request path to a candidate file inside ``root``.

    Args:
        cleaned_path: Request path without query string.
        prefix: Configured prefix, stripped before joining.
        root: The local root directory.

    Returns:
        Optional[str]: The absolute candidate path, or None if the path would
            escape the root (or designates the root itself).
    """
    if "\x00" in cleaned_path:
        return None

    remainder = strip_prefix(cleaned_path, prefix)
    # Request paths always use '/', whatever the host OS
    relative = posixpath.normpath(remainder.replace("\\", "/").lstrip("/"))
    if relative == ".":
        return None

    base = os.path.abspath(root)
    candidate = os.path.normpath(os.path.join(base, *relative.split("/")))
    if not is_inside(candidate, base):
        return None
    return candidate


def is_inside(candidate: str, root: str) -> bool:
    """
    Whether ``candidate`` lies strictly inside ``root`` (both normalized, absolute).
    """
    try:
        common = os.path.commonpath([candidate, root])
    except ValueError:
        # Different drives on Windows
        return False
    return common == root and candidate != root
