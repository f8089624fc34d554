"""Settings and logging setup for asyncarray.

Settings come from ``~/.asyncarray.toml`` overlaid with ``ASYNCARRAY_*``
environment variables.  The keys read by the package are ``logger_levels``
and ``logger_files`` (see configure_logger) and ``demo_delay`` (seconds
between simulated completions in the demo CLI).
"""
import logging
import os
import tomllib
from logging.handlers import TimedRotatingFileHandler
from typing import Dict, Optional

logger = logging.getLogger(__name__)

_config = None

ENV_PREFIX = "ASYNCARRAY_"
DEFAULT_CONFIG_PATH = "~/.asyncarray.toml"
PACKAGE_LOGGER = "asyncarray"
LOG_FORMAT = '%(asctime)s - %(levelname)s:%(name)s:%(message)s'


def parse_key_value_str(field_list: str, require_value: bool = False) -> Dict[str, str]:
    """Parse "key:value,key:value" into a dictionary.

    A key without a value maps to the last dotted part of the key, unless
    ``require_value`` is set, in which case a ValueError is raised.
    """
    result = {}
    for prop in field_list.split(","):
        key, *value = prop.split(":", 1)
        key = key.strip()
        value = value[0].strip() if len(value) > 0 else None

        if value is None:
            if require_value:
                raise ValueError(f"Value required for property '{key}'")
            value = key.rsplit(".", 1)[-1]

        result[key] = value

    return result


def reset_config():
    """Reset the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None


def _read_file(path: str) -> dict:
    config_path = os.path.expanduser(path)
    if not os.path.exists(config_path):
        logger.debug(f"Config file {config_path} not found, using empty config")
        return {}
    logger.info(f"Reading config from {config_path}")
    with open(config_path, 'rb') as f:
        return tomllib.load(f)


def _env_overrides() -> dict:
    return {name[len(ENV_PREFIX):].lower(): value
            for name, value in os.environ.items() if name.startswith(ENV_PREFIX)}


def get_config(reload=False, path=DEFAULT_CONFIG_PATH, ignore_env=False):
    """Return the cached settings, loading them on first use or when ``reload`` is set.

    Args:
        reload (bool, optional): Force reload config from disk. Defaults to False.
        path (str, optional): TOML file to read. A missing file gives an empty config.
        ignore_env (bool, optional): Skip the ``ASYNCARRAY_*`` environment overlay.
            Environment values are strings and replace file values of the same key.
    """
    global _config
    if _config is None or reload:
        _config = _read_file(path)
        if not ignore_env:
            overrides = _env_overrides()
            if overrides:
                logger.debug(f"Environment overrides: {sorted(overrides)}")
            _config.update(overrides)
    return _config


def _named_logger(name: str) -> logging.Logger:
    return logging.getLogger(None if name == "root" else name)


def configure_logger(logger_levels: Optional[str] = None, base_level="WARNING", logger_files: Optional[str] = None):
    """Attach handlers and levels to loggers.

    Args:
        logger_levels (str): Pairs such as "root:INFO,asyncarray.chain:DEBUG".
            Each named logger gets its level and a single console handler.
            Falls back to the ``logger_levels`` setting, and when neither is
            given the ``asyncarray`` logger is configured at ``base_level``.
        base_level (str, optional): Level for basicConfig and for files of
            loggers without an explicit level. Defaults to "WARNING".
        logger_files (str, optional): Pairs such as "asyncarray:/tmp/chain.log",
            falling back to the ``logger_files`` setting.  Files rotate at
            midnight and keep a week of backups.
    """
    settings = get_config()
    logger_levels = logger_levels or settings.get("logger_levels") or f"{PACKAGE_LOGGER}:{base_level}"
    logger_files = logger_files or settings.get("logger_files")

    logging.basicConfig(level=base_level.upper())
    formatter = logging.Formatter(LOG_FORMAT)

    levels = {}
    for name, level in parse_key_value_str(logger_levels, require_value=True).items():
        levels[name] = level.upper()
        target = _named_logger(name)
        target.setLevel(levels[name])
        # Replace rather than stack handlers when called more than once.
        target.handlers.clear()
        console_handler = logging.StreamHandler()
        console_handler.setLevel(levels[name])
        console_handler.setFormatter(formatter)
        target.addHandler(console_handler)

    if logger_files:
        for name, file_name in parse_key_value_str(logger_files, require_value=True).items():
            file_handler = TimedRotatingFileHandler(file_name, when='midnight', backupCount=7)
            file_handler.setLevel(levels.get(name, base_level.upper()))
            file_handler.setFormatter(formatter)
            _named_logger(name).addHandler(file_handler)
