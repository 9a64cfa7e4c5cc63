"""Logging setup for dealsync.

Every module does::

    from dealsync.core.logging import get_logger
    logger = get_logger(__name__)

and inherits the handlers installed on the ``dealsync`` logger once the app
calls ``setup_logging()`` (the FastAPI lifespan in ``main.py`` does).
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from dealsync.core.config import get_settings

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """Configure the ``dealsync`` logger (console + daily rotating file).

    Only the first call has an effect.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return
    _CONFIGURED = True

    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    target_dir = log_dir if log_dir is not None else settings.log_dir

    root = logging.getLogger("dealsync")
    root.setLevel(level_name)
    root.propagate = False

    fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(fmt)
    root.addHandler(console)

    if not target_dir:
        return

    try:
        path = Path(target_dir)
        path.mkdir(parents=True, exist_ok=True)
        # rotates at midnight, keeps a week
        fh = TimedRotatingFileHandler(
            path / "dealsync.log",
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
            delay=True,
        )
        fh.setFormatter(fmt)
        root.addHandler(fh)
    except OSError as exc:
        root.warning("File logging disabled (%s): %s", target_dir, exc)


def get_logger(name: str) -> logging.Logger:
    if not name.startswith("dealsync"):
        name = f"dealsync.{name}"
    return logging.getLogger(name)
