"""
core/logging_setup.py

Central logging configuration.
Console + leafscan.log under logs_dir; level comes from cfg.runtime.log_level.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILE_NAME = "leafscan.log"


def _resolve_level(level: Union[int, str]) -> int:
    """Accept logging.INFO or a YAML string such as "debug"."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def setup_logging(
    logs_dir: Union[str, Path],
    level: Union[int, str] = logging.INFO,
    console: bool = True,
) -> Path:
    """
    Initialise root logging for LeafScan.

    Parameters
    ----------
    logs_dir : str or Path
        Directory for leafscan.log (created if missing).
    level : int or str
        Root level, e.g. logging.DEBUG or "debug".
    console : bool
        Also log to stderr (the CLI and live runner both do).

    Returns
    -------
    Path
        Location of the log file.

    Calling this twice replaces the previous handlers instead of stacking
    duplicates.
    """
    level_no = _resolve_level(level)
    log_file = Path(logs_dir) / LOG_FILE_NAME
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(level_no)

    fmt = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.FileHandler(log_file, encoding="utf-8")]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setFormatter(fmt)
        root.addHandler(handler)

    logging.getLogger(__name__).debug("Logging to %s", log_file)
    return log_file
