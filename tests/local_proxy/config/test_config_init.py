"""
Unit tests for the configuration module's initialization.

This module contains tests for the configuration module, ensuring that it
merges command-line arguments, environment variables, the JSON config file and
the built-in defaults with one precedence rule, and that invalid configuration
is rejected before anything starts.

The tests follow the Arrange-Act-Assert (AAA) pattern.
"""

import json
from pathlib import Path
from typing import Any, Dict

import pytest

from local_proxy.config import (
    ConfigurationError,
    get_context,
    load_config_file,
    merge_settings,
    read_environment,
    validate_target,
)
from local_proxy.config.constants import EXCLUDED_SUFFIXES, IGNORE_PATTERNS
from local_proxy.config.proxy_context import ProxyContext


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    Runs every test in an empty working directory so no real config file is found.

    Returns:
        Path: The working directory.
    """
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _write_config(directory: Path, content: Dict[str, Any], name: str = ".local-proxyrc.json") -> Path:
    path = directory / name
    path.write_text(json.dumps(content))
    return path


def test_merge_settings_should_prefer_earlier_layers() -> None:
    """
    Tests that the first layer holding a value wins.
    """
    # Act
    merged = merge_settings({"a": 1, "b": None}, {"a": 2, "b": 3, "c": 4}, {"d": None})

    # Assert
    assert merged == {"a": 1, "b": 3, "c": 4, "d": None}


def test_merge_settings_should_honor_explicit_falsy_values() -> None:
    """
    Tests that 0, "" and False are values, not gaps.
    """
    # Act
    merged = merge_settings({"port": 0, "prefix": "", "mirror": False}, {"port": 3000, "prefix": "x", "mirror": True})

    # Assert
    assert merged == {"port": 0, "prefix": "", "mirror": False}


def test_get_context_should_return_context_with_default_values() -> None:
    """
    Tests that get_context fills everything but the target with defaults.
    """
    # Act
    context = get_context(["example.com"], environ={})

    # Assert
    assert isinstance(context, ProxyContext)
    assert context.target == "http://example.com"
    assert context.directory == "."
    assert context.files == "**/*.css"
    assert context.prefix == ""
    assert context.port == 3000
    assert context.host == "localhost"
    assert context.open_browser is False
    assert context.mirror is False
    assert context.verbose == 0
    assert context.logging_type == "dev"
    assert context.logging_config_file == ""
    assert context.watch_interval == 0.5


def test_get_context_should_use_command_line_arguments() -> None:
    """
    Tests that every command-line option reaches the context.
    """
    # Act
    context = get_context(
        [
            "-d", "site",
            "-f", "**/*.{css,js}",
            "-p", "wp-content/themes/demo",
            "-P", "4000",
            "--host", "0.0.0.0",
            "-o",
            "-m",
            "-vv",
            "-lt", "prod",
            "--watch-interval", "2",
            "https://example.com:8443",
        ],
        environ={},
    )

    # Assert
    assert context.target == "https://example.com:8443"
    assert context.directory == "site"
    assert context.files == "**/*.{css,js}"
    assert context.prefix == "wp-content/themes/demo"
    assert context.port == 4000
    assert context.host == "0.0.0.0"
    assert context.open_browser is True
    assert context.mirror is True
    assert context.verbose == 2
    assert context.logging_type == "prod"
    assert context.watch_interval == 2.0


def test_get_context_should_use_environment_variables() -> None:
    """
    Tests that LOCAL_PROXY_* variables are used when no argument is given.
    """
    # Arrange
    environ = {
        "LOCAL_PROXY_TARGET": "localhost:8080",
        "LOCAL_PROXY_PORT": "3100",
        "LOCAL_PROXY_MIRROR": "true",
        "LOCAL_PROXY_OPEN": "no",
        "LOCAL_PROXY_PREFIX": "theme",
    }

    # Act
    context = get_context([], environ=environ)

    # Assert
    assert context.target == "http://localhost:8080"
    assert context.port == 3100
    assert context.mirror is True
    assert context.open_browser is False
    assert context.prefix == "theme"


def test_get_context_should_read_default_config_file(isolated_cwd: Path) -> None:
    """
    Tests that .local-proxyrc.json in the working directory is picked up, camelCase keys included.
    """
    # Arrange
    _write_config(
        isolated_cwd,
        {"target": "example.com", "files": "**/*.js", "loggingType": "prod", "port": 3200},
    )

    # Act
    context = get_context([], environ={})

    # Assert
    assert context.target == "http://example.com"
    assert context.files == "**/*.js"
    assert context.logging_type == "prod"
    assert context.port == 3200


def test_get_context_should_apply_precedence_cli_env_file_default(isolated_cwd: Path) -> None:
    """
    Tests the single precedence rule across all layers.
    """
    # Arrange
    _write_config(
        isolated_cwd,
        {"target": "file.example.com", "port": 1111, "prefix": "file-prefix", "files": "file/*.css"},
    )
    environ = {"LOCAL_PROXY_PORT": "2222", "LOCAL_PROXY_PREFIX": "env-prefix"}

    # Act
    context = get_context(["-p", "cli-prefix"], environ=environ)

    # Assert
    assert context.prefix == "cli-prefix"
    assert context.port == 2222
    assert context.files == "file/*.css"
    assert context.target == "http://file.example.com"
    assert context.directory == "."


def test_get_context_should_let_explicit_cli_false_beat_config_file(isolated_cwd: Path) -> None:
    """
    Tests that --no-open overrides "open": true from the config file.
    """
    # Arrange
    _write_config(isolated_cwd, {"target": "example.com", "open": True})

    # Act
    context = get_context(["-n"], environ={})

    # Assert
    assert context.open_browser is False


def test_get_context_should_read_explicit_config_file(tmp_path: Path) -> None:
    """
    Tests that -c points at another config file.
    """
    # Arrange
    path = _write_config(tmp_path, {"target": "example.org"}, name="custom.json")

    # Act
    context = get_context(["-c", str(path)], environ={})

    # Assert
    assert context.target == "http://example.org"


def test_get_context_should_raise_for_missing_explicit_config_file(tmp_path: Path) -> None:
    """
    Tests that a missing config file is an error only when it was asked for.
    """
    # Act & Assert
    with pytest.raises(ConfigurationError):
        get_context(["-c", str(tmp_path / "missing.json"), "example.com"], environ={})


@pytest.mark.parametrize("argv", [[], ["not-a-host"], ["ftp://example.com"]])
def test_get_context_should_raise_for_missing_or_invalid_target(argv) -> None:
    """
    Tests that the target is required and must look like a host name or localhost.
    """
    # Act & Assert
    with pytest.raises(ConfigurationError):
        get_context(argv, environ={})


def test_get_context_should_raise_for_invalid_environment_value() -> None:
    """
    Tests that values are validated whatever layer they come from.
    """
    # Act & Assert
    with pytest.raises(ConfigurationError):
        get_context(["example.com"], environ={"LOCAL_PROXY_PORT": "http"})


def test_get_context_should_raise_for_out_of_range_port() -> None:
    """
    Tests that the port must be a valid TCP port.
    """
    # Act & Assert
    with pytest.raises(ConfigurationError):
        get_context(["-P", "70000", "example.com"], environ={})


def test_load_config_file_should_reject_invalid_json(tmp_path: Path) -> None:
    """
    Tests that a malformed config file is a configuration error.
    """
    # Arrange
    path = tmp_path / "broken.json"
    path.write_text("{not json")

    # Act & Assert
    with pytest.raises(ConfigurationError):
        load_config_file(str(path), explicit=True)


def test_load_config_file_should_reject_non_object(tmp_path: Path) -> None:
    """
    Tests that the config file must hold a JSON object.
    """
    # Arrange
    path = tmp_path / "list.json"
    path.write_text("[1, 2]")

    # Act & Assert
    with pytest.raises(ConfigurationError):
        load_config_file(str(path), explicit=True)


def test_load_config_file_should_map_keys_and_let_no_open_win(tmp_path: Path) -> None:
    """
    Tests camelCase mapping, unknown keys being dropped, and noOpen beating open.
    """
    # Arrange
    path = _write_config(
        tmp_path,
        {"noOpen": True, "open": True, "loggingConfigFile": "log.json", "unknown": 1},
        name="c.json",
    )

    # Act
    settings = load_config_file(str(path), explicit=True)

    # Assert
    assert settings == {"open_browser": False, "logging_config_file": "log.json"}


def test_load_config_file_should_skip_missing_default_file(tmp_path: Path) -> None:
    """
    Tests that an absent default config file yields no settings.
    """
    # Act & Assert
    assert load_config_file(str(tmp_path / "absent.json"), explicit=False) == {}


def test_read_environment_should_only_pick_prefixed_variables() -> None:
    """
    Tests that unrelated variables are ignored.
    """
    # Act
    settings = read_environment({"LOCAL_PROXY_FILES": "*.js", "PORT": "80", "LOCAL_PROXY_OPEN": "1"})

    # Assert
    assert settings == {"files": "*.js", "open_browser": "1"}


@pytest.mark.parametrize(
    "target, expected",
    [
        ("example.com", "http://example.com"),
        ("localhost", "http://localhost"),
        ("localhost:8080", "http://localhost:8080"),
        ("https://www.example.com/", "https://www.example.com"),
        ("  example.com  ", "http://example.com"),
    ],
)
def test_validate_target_should_normalize(target: str, expected: str) -> None:
    """
    Tests that a scheme is added and the trailing slash dropped.
    """
    # Act & Assert
    assert validate_target(target) == expected


def test_proxy_context_should_build_match_spec() -> None:
    """
    Tests that the match configuration carries the ignore list and excluded suffixes.
    """
    # Arrange
    context = get_context(["-p", "theme", "-f", "**/*.js", "example.com"], environ={})

    # Act
    spec = context.match_spec()

    # Assert
    assert spec.pattern == "**/*.js"
    assert spec.prefix == "theme"
    assert spec.ignore == IGNORE_PATTERNS
    assert spec.excluded_suffixes == EXCLUDED_SUFFIXES
