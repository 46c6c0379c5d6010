"""
Glob pattern compiler for the local override proxy.

This module turns the configured glob pattern and path prefix into a single
compiled matcher that is evaluated against request paths. Compilation happens
once at startup; an invalid pattern raises PatternError so that the process can
refuse to start instead of silently intercepting the wrong requests.

Wildcards, classes and escapes are evaluated by pathspec with gitignore
semantics, one path segment at a time. Brace ``{a,b}`` and group ``(a|b)`` alternatives are expanded here
first, since gitignore has no alternation.
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple

import pathspec

from local_proxy.domain import MatchSpec

# Module logger
logger = logging.getLogger(__name__)

_MULTIPLE_SLASHES = re.compile(r"/{2,}")

_GROUP_CLOSERS = {"{": "}", "(": ")"}
_GROUP_SEPARATORS = {"{": ",", "(": "|"}


class PatternError(ValueError):
    """Raised when a glob pattern cannot be compiled."""


def build_match_expression(prefix: str, pattern: str) -> str:
    """
    Concatenates a path prefix and a glob pattern into one absolute expression.

    Args:
        prefix: Path segment between the domain and the assets, may be empty.
        pattern: Glob pattern relative to the prefix.

    Returns:
        str: An expression such as ``/wp-content/themes/demo/**/*.css``.

    Raises:
        PatternError: If the pattern is empty.
    """
    if not pattern or not pattern.strip("/"):
        raise PatternError("The files pattern must not be empty.")
    parts = [part.strip("/") for part in (prefix, pattern) if part and part.strip("/")]
    return _MULTIPLE_SLASHES.sub("/", "/" + "/".join(parts))


def expand_alternatives(expression: str) -> List[str]:
    """
    Expands ``{a,b}`` and ``(a|b)`` alternatives into plain glob expressions.

    Groups nest, ``\\`` escapes the next character and character classes are
    copied through untouched. The class syntax is validated on the way, so the
    expansions handed to pathspec are well formed.

    Args:
        expression: The glob expression.

    Returns:
        List[str]: One expression per alternative, in declaration order.

    Raises:
        PatternError: If a class, brace or group is unbalanced, a class is invalid
            or the pattern ends with ``\\``.
    """
    alternatives, _ = _expand(expression, 0, None)
    return alternatives


def _expand(expression: str, start: int, opener: Optional[str]) -> Tuple[List[str], int]:
    """
    Expands from ``start`` up to the closer of ``opener``.

    Returns the alternatives and the index right after the closer.
    """
    options: List[str] = []
    current = [""]
    i = start
    length = len(expression)

    while i < length:
        char = expression[i]

        if char == "\\":
            if i + 1 >= length:
                raise PatternError(f"Dangling escape at the end of pattern: {expression!r}")
            piece = expression[i : i + 2]
            current = [prefix + piece for prefix in current]
            i += 2
        elif char == "[":
            end = _class_end(expression, i)
            piece = expression[i:end]
            current = [prefix + piece for prefix in current]
            i = end
        elif char in _GROUP_CLOSERS:
            inner, i = _expand(expression, i + 1, char)
            current = [prefix + option for prefix in current for option in inner]
        elif opener and char == _GROUP_CLOSERS[opener]:
            return options + current, i + 1
        elif opener and char == _GROUP_SEPARATORS[opener]:
            options.extend(current)
            current = [""]
            i += 1
        elif char in "})":
            raise PatternError(f"Unbalanced {char!r} in pattern: {expression!r}")
        else:
            current = [prefix + char for prefix in current]
            i += 1

    if opener:
        raise PatternError(f"Unbalanced {opener!r} in pattern: {expression!r}")
    return current, i


def _class_end(expression: str, start: int) -> int:
    """
    Validates the character class opening at ``start`` and returns the index after it.
    """
    i = start + 1
    negate = i < len(expression) and expression[i] in "!^"
    if negate:
        i += 1
    body_start = i
    # A ']' right after the opening bracket is a literal member
    if i < len(expression) and expression[i] == "]":
        i += 1
    end = expression.find("]", i)
    if end == -1:
        raise PatternError(f"Unbalanced character class in pattern: {expression!r}")

    body = expression[body_start:end]
    if "/" in body:
        raise PatternError(f"A character class cannot contain '/': {expression!r}")
    for k in range(len(body) - 2):
        if body[k + 1] == "-" and body[k] > body[k + 2]:
            raise PatternError(f"Invalid range {body[k:k + 3]!r} in pattern: {expression!r}")
    return end + 1


class GlobPattern:
    """
    One expanded glob alternative.

    The expression is split into path segments. A ``**`` segment spans any
    number of path segments; every other segment is compiled on its own by
    pathspec and must match exactly one path segment. Matching whole paths with
    gitignore rules instead would also accept everything below a matching
    directory.
    """

    def __init__(self, expression: str) -> None:
        anchored = "/" + expression.lstrip("/")
        segments = anchored[1:].split("/")
        if not segments[-1]:
            raise PatternError(f"Pattern must name files, not a directory: {expression!r}")

        self._expression: str = anchored
        # None stands for a '**' segment
        self._segments: List[Optional[pathspec.GitIgnoreSpec]] = [
            None if segment == "**" else _compile_lines(["/" + segment], expression)
            for segment in segments
        ]

    @property
    def expression(self) -> str:
        return self._expression

    def match(self, path: str) -> bool:
        """Whether a POSIX file path, with or without its leading '/', matches."""
        relative = path.lstrip("/")
        if not relative or relative.endswith("/"):
            return False
        names = relative.split("/")

        # Indexes into names reachable after the segments seen so far
        positions = {0}
        for segment in self._segments:
            if segment is None:
                positions = set(range(min(positions), len(names) + 1))
            else:
                positions = {
                    i + 1 for i in positions if i < len(names) and segment.match_file(names[i])
                }
            if not positions:
                return False
        return len(names) in positions

    def __repr__(self) -> str:
        return f"GlobPattern({self._expression!r})"


def _compile_lines(lines: List[str], expression: str) -> pathspec.GitIgnoreSpec:
    try:
        return pathspec.GitIgnoreSpec.from_lines(lines)
    except (ValueError, TypeError, re.error) as err:
        raise PatternError(f"Invalid pattern {expression!r}: {err}") from err


def compile_glob(expression: str) -> List[GlobPattern]:
    """
    Compiles a glob expression into one GlobPattern per alternative.

    Raises:
        PatternError: If the glob is invalid.
    """
    return [GlobPattern(alternative) for alternative in expand_alternatives(expression)]


def compile_ignore(ignore: Sequence[str]) -> Optional[pathspec.GitIgnoreSpec]:
    """
    Builds a gitignore-style matcher for the ignore list, or None when empty.
    """
    if not ignore:
        return None
    return pathspec.GitIgnoreSpec.from_lines(ignore)


class CompiledMatcher:
    """
    The runnable form of a MatchSpec.

    Instances are read-only after construction and safe to share between
    concurrent requests.
    """

    def __init__(
        self,
        spec: MatchSpec,
        expression: str,
        patterns: List[GlobPattern],
        ignore_spec: Optional[pathspec.GitIgnoreSpec],
    ) -> None:
        self._spec: MatchSpec = spec
        self._expression: str = expression
        self._patterns: List[GlobPattern] = patterns
        self._ignore_spec: Optional[pathspec.GitIgnoreSpec] = ignore_spec

    @property
    def spec(self) -> MatchSpec:
        return self._spec

    @property
    def expression(self) -> str:
        """The glob expression, prefix included."""
        return self._expression

    @property
    def alternatives(self) -> List[str]:
        """The expanded expressions, one per brace or group alternative."""
        return [pattern.expression for pattern in self._patterns]

    def matches(self, path: str) -> bool:
        """Whether the whole cleaned request path satisfies the pattern."""
        return any(pattern.match(path) for pattern in self._patterns)

    def is_excluded(self, path: str) -> bool:
        """Whether the path ends with one of the excluded suffixes (source maps by default)."""
        return bool(self._spec.excluded_suffixes) and path.endswith(
            tuple(self._spec.excluded_suffixes)
        )

    def is_ignored(self, relative_path: str) -> bool:
        """Whether a root-relative POSIX path matches the ignore list."""
        if self._ignore_spec is None:
            return False
        return self._ignore_spec.match_file(relative_path)

    def accepts(self, path: str) -> bool:
        """Matches the pattern and is not excluded."""
        return self.matches(path) and not self.is_excluded(path)

    def __repr__(self) -> str:
        return f"CompiledMatcher(expression={self._expression!r}, alternatives={self.alternatives!r})"


def compile_match_spec(spec: MatchSpec) -> CompiledMatcher:
    """
    Compiles a MatchSpec into a CompiledMatcher.

    Args:
        spec: The immutable match configuration.

    Returns:
        CompiledMatcher: The matcher for cleaned request paths.

    Raises:
        PatternError: If the pattern or an ignore entry is invalid.
    """
    expression = build_match_expression(spec.prefix, spec.pattern)
    patterns = compile_glob(expression)
    try:
        ignore_spec = compile_ignore(spec.ignore)
    except (ValueError, TypeError) as err:
        raise PatternError(f"Invalid ignore pattern: {err}") from err

    logger.debug(f"Compiled {expression!r} to {len(patterns)} pattern(s)")
    return CompiledMatcher(spec, expression, patterns, ignore_spec)
