"""
Constants for the local override proxy.

This module defines default values for all configurable parameters. These
constants are used as fallback values when neither command-line arguments,
environment variables nor the config file provide a value.
"""

# Prefix of the environment variables read by the configuration layer
ENV_PREFIX = "LOCAL_PROXY_"

# Config file searched in the working directory when none is given explicitly
DEFAULT_CONFIG_FILE = ".local-proxyrc.json"

# Override defaults
DEFAULT_DIRECTORY = "."
DEFAULT_FILES = "**/*.css"
DEFAULT_PREFIX = ""
DEFAULT_MIRROR = False

# Server defaults
DEFAULT_PORT = 3000
DEFAULT_HOST = "localhost"
DEFAULT_OPEN = False
DEFAULT_WATCH_INTERVAL = 0.5

# Logging configuration defaults
DEFAULT_VERBOSE = 0
DEFAULT_LOGGING_TYPE = "dev"
DEFAULT_LOGGING_CONFIG_FILE = ""

# Never enumerated nor overridden
IGNORE_PATTERNS = (
    "node_modules/**",
    "bower_components/**",
    ".git/**",
    "**/.DS_Store",
)

# Requested by browser tooling, never overridden
EXCLUDED_SUFFIXES = (".map",)

# Routes owned by the reload channel
INTERNAL_ROUTE_PREFIX = "/__local_proxy__"
