from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

DEFAULT_BUILD_LOG = "logs/mapnames-build.log"
DEFAULT_INSTALL_LOG = "mapnames-install.log"
LOG_LEVEL_ENV = "MAPNAMES_LOG_LEVEL"

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"


def _level_from_env(default: int) -> int:
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def _open_file_handler(log_path: str) -> tuple[logging.Handler, str]:
    """File handler at *log_path*, or in the cwd when that is not writable.

    Installs often run from a read-only game folder.
    """

    try:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, encoding="utf-8"), log_path
    except OSError:
        fallback = str(Path.cwd() / Path(log_path).name)
        return logging.FileHandler(fallback, encoding="utf-8"), fallback


def configure_logging(
    log_path: str = DEFAULT_BUILD_LOG,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Send every build and install decision to *log_path* (and the console).

    ``MAPNAMES_LOG_LEVEL`` overrides *level*. Calling this again is a no-op.
    Returns the file path actually used.
    """

    root = logging.getLogger()
    if getattr(root, "_mapnames_configured", False):
        return getattr(root, "_mapnames_log_path", log_path)

    root.setLevel(_level_from_env(level))
    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    file_handler, chosen_path = _open_file_handler(log_path)
    handlers: List[logging.Handler] = [file_handler]
    if also_console:
        handlers.append(logging.StreamHandler())

    for h in handlers:
        h.setFormatter(fmt)
        root.addHandler(h)

    # requests/urllib3 log every connection at DEBUG.
    logging.getLogger("urllib3").setLevel(max(root.level, logging.WARNING))

    setattr(root, "_mapnames_configured", True)
    setattr(root, "_mapnames_log_path", chosen_path)

    logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", log_path, chosen_path)
    return chosen_path
