"""
Configuration module for the local override proxy.

This module parses command-line arguments, environment variables and the JSON
config file, and merges them into a single ProxyContext. There is exactly one
precedence rule, implemented by merge_settings: command line, then environment,
then config file, then built-in defaults.
"""

import argparse
import json
import os
import re
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from yarl import URL

from local_proxy.config.constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_DIRECTORY,
    DEFAULT_FILES,
    DEFAULT_HOST,
    DEFAULT_LOGGING_CONFIG_FILE,
    DEFAULT_LOGGING_TYPE,
    DEFAULT_MIRROR,
    DEFAULT_OPEN,
    DEFAULT_PORT,
    DEFAULT_PREFIX,
    DEFAULT_VERBOSE,
    DEFAULT_WATCH_INTERVAL,
    ENV_PREFIX,
)
from local_proxy.config.proxy_context import ProxyContext

_TARGET_PATTERN = re.compile(r"(localhost|.+\..+)")
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class ConfigurationError(ValueError):
    """Raised when the configuration is missing a value or holds an invalid one."""


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    return int(value)


# Every setting and the converter applied to values coming from any layer
_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "target": str,
    "directory": str,
    "files": str,
    "prefix": str,
    "port": _parse_int,
    "host": str,
    "open_browser": _parse_bool,
    "mirror": _parse_bool,
    "verbose": _parse_int,
    "logging_type": str,
    "logging_config_file": str,
    "watch_interval": float,
}

DEFAULTS: Dict[str, Any] = {
    "target": None,
    "directory": DEFAULT_DIRECTORY,
    "files": DEFAULT_FILES,
    "prefix": DEFAULT_PREFIX,
    "port": DEFAULT_PORT,
    "host": DEFAULT_HOST,
    "open_browser": DEFAULT_OPEN,
    "mirror": DEFAULT_MIRROR,
    "verbose": DEFAULT_VERBOSE,
    "logging_type": DEFAULT_LOGGING_TYPE,
    "logging_config_file": DEFAULT_LOGGING_CONFIG_FILE,
    "watch_interval": DEFAULT_WATCH_INTERVAL,
}

# Config file keys that do not follow the camelCase -> snake_case rule
_FILE_ALIASES: Dict[str, str] = {"open": "open_browser"}


def merge_settings(*layers: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merges configuration layers, highest precedence first.

    For every key, the first layer holding a value other than None wins.
    Explicit falsy values (0, "", False) are values and do win.

    Args:
        *layers: Mappings of setting name to value, highest precedence first.

    Returns:
        Dict[str, Any]: The merged settings.
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            if merged.get(key) is None and value is not None:
                merged[key] = value
            elif key not in merged:
                merged[key] = None
    return merged


def validate_target(target: Optional[str]) -> str:
    """
    Checks that the target looks like a host name or localhost and normalizes it.

    Args:
        target: The origin as given by the user, with or without scheme.

    Returns:
        str: The origin URL with a scheme and without trailing slash.

    Raises:
        ConfigurationError: If the target is missing or does not look like a host.
    """
    if not target or not _TARGET_PATTERN.search(target.strip()):
        raise ConfigurationError("Please specify a URL to proxy, e.g. example.com or localhost:8080")

    target = target.strip()
    if "://" not in target:
        target = f"http://{target}"

    try:
        url = URL(target)
    except ValueError as err:
        raise ConfigurationError(f"Invalid target URL {target!r}: {err}") from err
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"Invalid target URL {target!r}: expected http(s)://host[:port]")

    return str(url).rstrip("/")


def load_config_file(path: str, explicit: bool) -> Dict[str, Any]:
    """
    Reads the JSON config file and maps its camelCase keys to setting names.

    Args:
        path: Path of the config file.
        explicit: Whether the user asked for this file. A missing default file
            is not an error; a missing explicit file is.

    Returns:
        Dict[str, Any]: Settings found in the file; unknown keys are dropped.

    Raises:
        ConfigurationError: If the file is unreadable, not JSON, or not an object.
    """
    if not explicit and not os.path.isfile(path):
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            content: Any = json.load(f)
    except FileNotFoundError as err:
        raise ConfigurationError(f"Config file not found: {path}") from err
    except json.JSONDecodeError as err:
        raise ConfigurationError(f"Invalid JSON format in config file {path}: {err}") from err
    except OSError as err:
        raise ConfigurationError(f"Cannot read config file {path}: {err}") from err

    if not isinstance(content, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")

    settings: Dict[str, Any] = {}
    no_open = False
    for key, value in content.items():
        name = _FILE_ALIASES.get(key, _CAMEL_BOUNDARY.sub("_", key).lower())
        if name == "no_open":
            no_open = value is not None and _convert("noOpen", _parse_bool, value)
        elif name in _CONVERTERS:
            settings[name] = value

    # noOpen wins over open
    if no_open:
        settings["open_browser"] = False
    return settings


def read_environment(environ: Mapping[str, str]) -> Dict[str, Any]:
    """
    Collects the settings given as LOCAL_PROXY_* environment variables.

    Args:
        environ: The process environment.

    Returns:
        Dict[str, Any]: Raw string values keyed by setting name.
    """
    settings: Dict[str, Any] = {}
    for name in _CONVERTERS:
        env_name = "OPEN" if name == "open_browser" else name.upper()
        value = environ.get(f"{ENV_PREFIX}{env_name}")
        if value is not None:
            settings[name] = value
    return settings


def _convert(name: str, converter: Callable[[Any], Any], value: Any) -> Any:
    try:
        return converter(value)
    except (TypeError, ValueError) as err:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from err


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="local-proxy",
        description="Proxy a remote site and serve matching files from a local directory.",
        epilog="Example: local-proxy --prefix wp-content/themes/my-theme example.com",
    )

    # Every default is None so that lower layers can fill the gaps
    parser.add_argument(
        "target",
        nargs="?",
        default=None,
        help="The site to proxy, e.g. example.com or http://localhost:8080.\n"
        f"Also read from {ENV_PREFIX}TARGET or the config file's \"target\".",
    )

    parser.add_argument(
        "-c",
        "--config-file",
        type=str,
        default=None,
        help="Path to a JSON config file with camelCase keys, "
        f'e.g. {{"noOpen": true, "target": "example.com"}}.\n'
        f"Defaults to {DEFAULT_CONFIG_FILE} when present.",
    )

    parser.add_argument(
        "-d",
        "--directory",
        type=str,
        default=None,
        help="Path to the directory where local files are stored.\n"
        f"Defaults to {DEFAULT_DIRECTORY!r}.",
    )

    parser.add_argument(
        "-f",
        "--files",
        type=str,
        default=None,
        help="Proxy (and watch) files matching this glob pattern, "
        "e.g. '**/*.css' or 'dist/*.{css,js}'.\n"
        f"Defaults to {DEFAULT_FILES!r}.",
    )

    parser.add_argument(
        "-p",
        "--prefix",
        type=str,
        default=None,
        help="The path components between the domain and the local files.\n"
        "For example.com/wp-content/themes/my-theme/styles.css the prefix is "
        "'wp-content/themes/my-theme'.",
    )

    parser.add_argument(
        "-P",
        "--port",
        type=int,
        default=None,
        help=f"Port to serve the proxied site on. Defaults to {DEFAULT_PORT}.",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help=f"Interface to listen on. Defaults to {DEFAULT_HOST}.",
    )

    parser.add_argument(
        "-o",
        "--open",
        dest="open_browser",
        action="store_const",
        const=True,
        default=None,
        help="Auto-open the proxied site in the browser.",
    )

    parser.add_argument(
        "-n",
        "--no-open",
        dest="open_browser",
        action="store_const",
        const=False,
        help="Don't auto-open the proxied site in the browser.",
    )

    parser.add_argument(
        "-m",
        "--mirror",
        action="store_const",
        const=True,
        default=None,
        help="Save remote files matching the prefix / files pattern that have no "
        "local copy yet, so they are served locally next time.",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=None,
        help="Print extra detail in the console (-v debug, -vv chatty, -vvv spam).",
    )

    parser.add_argument(
        "-lt",
        "--logging-type",
        type=str,
        default=None,
        help="Specifies the logging configuration type to use.\n"
        "Allowed values: dev, prod, custom (case insensitive).\n"
        "For 'custom', the --logging-config-file argument is required.",
    )

    parser.add_argument(
        "-lcf",
        "--logging-config-file",
        type=str,
        default=None,
        help="Path to custom logging configuration file.\n"
        "Required when --logging-type is set to 'custom'.",
    )

    parser.add_argument(
        "--watch-interval",
        type=float,
        default=None,
        help=f"Seconds between two scans of the local directory. Defaults to {DEFAULT_WATCH_INTERVAL}.",
    )

    return parser


def get_context(
    argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None
) -> ProxyContext:
    """
    Parse command-line arguments, environment variables and the config file into a context.

    Args:
        argv: Command-line arguments without the program name; sys.argv when None.
        environ: Environment variables; os.environ when None.

    Returns:
        ProxyContext: A configuration context object containing all merged settings.

    Raises:
        ConfigurationError: If the config file or any value is invalid, or the target is missing.
    """
    environ = os.environ if environ is None else environ
    args: Any = _build_parser().parse_args(argv)

    cli: Dict[str, Any] = {name: getattr(args, name, None) for name in _CONVERTERS}
    env: Dict[str, Any] = read_environment(environ)

    env_config_file = environ.get(f"{ENV_PREFIX}CONFIG_FILE")
    config_file = args.config_file or env_config_file or DEFAULT_CONFIG_FILE
    explicit = bool(args.config_file or env_config_file)
    from_file: Dict[str, Any] = load_config_file(config_file, explicit=explicit)

    settings = merge_settings(cli, env, from_file, DEFAULTS)
    converted: Dict[str, Any] = {
        name: None if settings[name] is None else _convert(name, converter, settings[name])
        for name, converter in _CONVERTERS.items()
    }

    if converted["port"] is not None and not 0 <= converted["port"] <= 65535:
        raise ConfigurationError(f"Invalid port: {converted['port']}")

    converted["target"] = validate_target(converted["target"])
    return ProxyContext(**converted)
