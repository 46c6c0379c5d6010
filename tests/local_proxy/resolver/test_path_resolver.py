"""
Unit tests for the path resolver.

The resolver is pure path arithmetic, so these tests need no files on disk:
they check query stripping, prefix removal, and that no request path can
resolve outside the local root.

The tests follow the Arrange-Act-Assert (AAA) pattern.
"""

import os

import pytest

from local_proxy.resolver.path_resolver import clean_path, is_inside, resolve, strip_prefix

ROOT = os.path.abspath("local")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("/a/b.css", "/a/b.css"),
        ("/a/b.css?cachebust=123", "/a/b.css"),
        ("/a/b.css?ver=1?x=2", "/a/b.css"),
        ("/a/b.css#section", "/a/b.css"),
        ("/", "/"),
    ],
)
def test_clean_path_should_drop_query_and_fragment(raw: str, expected: str) -> None:
    """
    Tests that only the path component is kept.
    """
    # Act & Assert
    assert clean_path(raw) == expected


def test_strip_prefix_should_remove_first_occurrence_only() -> None:
    """
    Tests the documented first-occurrence behavior when the prefix text repeats.
    """
    # Act
    stripped = strip_prefix("/theme/assets/theme/style.css", "theme")

    # Assert
    assert stripped == "//assets/theme/style.css"


def test_strip_prefix_should_keep_path_without_prefix() -> None:
    """
    Tests that an empty prefix leaves the path unchanged.
    """
    # Act & Assert
    assert strip_prefix("/a/b.css", "") == "/a/b.css"


def test_resolve_should_join_path_onto_root() -> None:
    """
    Tests that a plain request path maps onto the root.
    """
    # Act
    candidate = resolve("/a/b.css", "", ROOT)

    # Assert
    assert candidate == os.path.join(ROOT, "a", "b.css")


def test_resolve_should_strip_prefix() -> None:
    """
    Tests that the prefix is removed before joining onto the root.
    """
    # Act
    candidate = resolve("/wp-content/themes/demo/style.css", "wp-content/themes/demo", "./local")

    # Assert
    assert candidate == os.path.join(ROOT, "style.css")


def test_resolve_should_canonicalize_dot_segments_inside_root() -> None:
    """
    Tests that '..' segments staying inside the root are collapsed.
    """
    # Act
    candidate = resolve("/a/../b/./c.css", "", ROOT)

    # Assert
    assert candidate == os.path.join(ROOT, "b", "c.css")


@pytest.mark.parametrize(
    "path",
    [
        "/../secret.css",
        "/a/../../secret.css",
        "/../../../../etc/passwd",
        "/..\\..\\secret.css",
        "/a/b.css\x00.png",
        "/",
        "/a/..",
    ],
)
def test_resolve_should_reject_paths_outside_root(path: str) -> None:
    """
    Tests that traversal attempts, NUL bytes and the root itself resolve to None.
    """
    # Act & Assert
    assert resolve(path, "", ROOT) is None


def test_resolve_should_always_stay_inside_root() -> None:
    """
    Tests the containment guarantee over a set of crafted paths.
    """
    # Arrange
    paths = ["/x.css", "/a/../x.css", "/./a/./b.css", "//double//slash.css", "/a/b/../../c.css"]

    # Act
    candidates = [resolve(path, "", ROOT) for path in paths]

    # Assert
    for candidate in candidates:
        assert candidate is not None
        assert is_inside(candidate, ROOT)


def test_resolve_should_be_deterministic() -> None:
    """
    Tests that resolution is a pure function of its inputs.
    """
    # Act
    first = resolve("/a/b.css", "", ROOT)
    second = resolve("/a/b.css", "", ROOT)

    # Assert
    assert first == second


def test_is_inside_should_not_confuse_sibling_directories() -> None:
    """
    Tests that a sibling sharing the root's name as a prefix is outside.
    """
    # Act & Assert
    assert not is_inside(ROOT + "-other" + os.sep + "x.css", ROOT)
    assert not is_inside(ROOT, ROOT)
