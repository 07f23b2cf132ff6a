"""Logging setup: one file per day plus stdout."""

from __future__ import annotations

import logging
import os
import platform
import sys
from datetime import date
from pathlib import Path

from config import APP_NAME, CONFIG_DIR

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DIR = CONFIG_DIR / "logs"

__version__ = "0.1.0"


def configure_logging(log_dir: Path | None = None, level: str | None = None) -> Path:
    """Install file and stream handlers on the root logger. Returns the log path."""
    log_dir = log_dir or LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"{APP_NAME}-{date.today().isoformat()}.log"
    level_name = (level or os.getenv("HOLDTALK_LOG_LEVEL", "INFO")).upper()

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    # Only replace handlers installed by an earlier call.
    for handler in list(root.handlers):
        if (handler.get_name() or "").startswith(f"{APP_NAME}-"):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.set_name(f"{APP_NAME}-file")
    file_handler.setFormatter(formatter)
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.set_name(f"{APP_NAME}-stdout")
    stream_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    root.addHandler(stream_handler)
    return log_path


def log_session_start(log_path: Path) -> None:
    logger = logging.getLogger(APP_NAME)
    logger.info("=" * 50)
    logger.info("%s v%s starting", APP_NAME, __version__)
    logger.info("Python %s on %s %s", sys.version.split()[0], platform.system(), platform.release())
    logger.info("Log file: %s", log_path)
    logger.info("=" * 50)
