"""
Logging configuration module for the local override proxy.

This module configures logging from a JSON dictConfig file (built-in dev and
prod files, or a custom one) and then applies the verbosity tier chosen on the
command line: quiet, debug, chatty or spam.
"""

import json
import logging.config
import os
from typing import Any, Dict

from local_proxy.config import ProxyContext

# Levels below DEBUG for the two most talkative tiers
CHATTY = 7
SPAM = 5

logging.addLevelName(CHATTY, "CHATTY")
logging.addLevelName(SPAM, "SPAM")

_VERBOSITY_LEVELS = {0: logging.INFO, 1: logging.DEBUG, 2: CHATTY, 3: SPAM}


def verbosity_to_level(verbose: int) -> int:
    """
    Maps the verbosity tier (number of -v flags) to a logging level.

    Args:
        verbose: 0 quiet, 1 debug, 2 chatty, 3 or more spam.

    Returns:
        int: The logging level for the root logger.
    """
    if verbose <= 0:
        return logging.INFO
    return _VERBOSITY_LEVELS.get(verbose, SPAM)


def configure_logging(context: ProxyContext) -> None:
    """
    Configure logging for the application based on the provided configuration.

    This function sets up logging based on the logging type specified in the
    configuration context. It supports three types of logging configurations:
    - dev: Development logging configuration
    - prod: Production logging configuration
    - custom: Custom logging configuration from a specified file

    The root level then follows the verbosity tier, and a filter adds the
    proxied target to all log records.

    Args:
        context: Configuration context containing logging settings.

    Raises:
        ValueError: If the logging type is invalid or if a custom logging
            configuration file is not provided when using the 'custom' type.
    """
    logging_type: str = context.logging_type.lower()
    if not logging_type:
        raise ValueError("Logging type must be provided.")
    elif logging_type == "dev":
        file_path = _get_local_package_file_path("logging-config-dev.json")
        _load_logging_config(file_path)
    elif logging_type == "prod":
        file_path = _get_local_package_file_path("logging-config-prod.json")
        _load_logging_config(file_path)
    elif logging_type == "custom":
        if not context.logging_config_file:
            raise ValueError("Custom logging configuration file must be provided.")
        else:
            _load_logging_config(context.logging_config_file)
    else:
        raise ValueError(
            f"Invalid logging type: {context.logging_type}. Allowed values are: dev, prod, custom"
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(verbosity_to_level(context.verbose))
    target_filter = _TargetFilter(target=context.target)
    root_logger.addFilter(target_filter)
    for handler in root_logger.handlers:
        handler.addFilter(target_filter)

    # aiohttp's access log duplicates our own request lines unless asked for
    if context.verbose < 3:
        logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    logging.debug("Logging configured and TargetFilter added.")


def _load_logging_config(config_file: str) -> None:
    """
    Load logging configuration from a JSON file.

    Args:
        config_file: Path to the JSON file containing logging configuration.

    Raises:
        RuntimeError: If the file is not found, contains invalid JSON, or
            if there is any other error loading the configuration.
    """
    try:
        with open(config_file) as f:
            config: Dict[str, Any] = json.load(f)
            logging.config.dictConfig(config)
    except FileNotFoundError as err:
        raise RuntimeError(f"Logging config file not found: {config_file}") from err
    except json.JSONDecodeError as err:
        raise RuntimeError(f"Invalid JSON format in logging config file: {config_file}") from err
    except Exception as err:
        raise RuntimeError(f"Error loading logging config: {str(err)}") from err


def _get_local_package_file_path(config_file: str) -> str:
    """
    Get the absolute path to a file in the same directory as this module.
    """
    return os.path.join(os.path.dirname(__file__), config_file)


class _TargetFilter(logging.Filter):
    """
    A logging filter that injects the proxied target into every log record.

    Formatters can use ``%(target)s`` to show which origin a line refers to.
    """

    def __init__(self, target: str) -> None:
        super().__init__()
        self._target: str = target

    def filter(self, record: logging.LogRecord) -> bool:
        record.target = self._target
        return True
