# -*- coding: utf-8 -*-
"""Logging for fusionfeed.

Everything logs under the ``fusionfeed`` logger: modules take a child from
``get_logger('timeline')`` and so on. ``setup_logging`` attaches a rotating
file in the app directory plus an errors-only stderr handler; until it is
called, records go nowhere.
"""

import logging
import logging.handlers
import os
import sys
from typing import Optional

from version import APP_NAME, APP_VERSION

LOGGER_NAME = 'fusionfeed'
LOG_FILENAME = 'fusionfeed.log'
# 5MB per file, 3 backups
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3

FILE_FORMAT = '%(asctime)s %(levelname)-7s %(name)s:%(lineno)d %(message)s'

_log_dir: Optional[str] = None


def _file_level(debug):
    return logging.DEBUG if debug else logging.INFO


def setup_logging(config_dir: str, debug: bool = False) -> logging.Logger:
    """Point the package logger at ``config_dir/fusionfeed.log``.

    Safe to call again (e.g. after the config dir changes); the previous
    handlers are replaced.
    """
    global _log_dir

    root = logging.getLogger(LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG)
    root.propagate = False

    os.makedirs(config_dir, exist_ok=True)
    path = os.path.join(config_dir, LOG_FILENAME)
    try:
        file_handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding='utf-8'
        )
    except OSError as e:
        print(f"Warning: Could not create log file {path}: {e}", file=sys.stderr)
    else:
        file_handler.setLevel(_file_level(debug))
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        root.addHandler(file_handler)
        _log_dir = config_dir

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    root.addHandler(stderr_handler)

    root.info(f"{APP_NAME} {APP_VERSION} started, debug={debug}")
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if name:
        return logging.getLogger(f'{LOGGER_NAME}.{name}')
    return logging.getLogger(LOGGER_NAME)


def set_debug_mode(enabled: bool) -> None:
    """Switch the log file between DEBUG and INFO without restarting."""
    root = logging.getLogger(LOGGER_NAME)
    for handler in root.handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            handler.setLevel(_file_level(enabled))
            root.info(f"Debug logging {'enabled' if enabled else 'disabled'}")


def get_log_file_path() -> Optional[str]:
    if _log_dir:
        return os.path.join(_log_dir, LOG_FILENAME)
    return None
