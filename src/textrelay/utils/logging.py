"""Logging setup for the TextRelay command line tools."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["setup_logging", "LOG_FILE_NAME"]

LOG_FILE_NAME = "textrelay.log"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3
_DEFAULT_LOG_DIR = Path.home() / ".textrelay" / "logs"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
) -> Path:
    """Send records to a rotating ``textrelay.log`` and, optionally, to stderr.

    ``log_dir`` wins over ``TEXTRELAY_LOG_DIR``, which wins over
    ``~/.textrelay/logs``. Once configured, later calls return the active
    log path without touching the handlers.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and _LOG_PATH is not None:
        return _LOG_PATH

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / LOG_FILE_NAME

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _quiet_dependencies(level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("TEXTRELAY_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()


def _quiet_dependencies(root_level: int) -> None:
    # Client libraries log every request at DEBUG.
    quiet_level = max(root_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
