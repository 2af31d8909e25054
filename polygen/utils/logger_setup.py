"""Loguru configuration for polygen runs.

Console output always; a rotating file log when ``log_dir`` is given.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<yellow>{line}</yellow> | "
    "<level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


def setup_logger(level: str = "INFO", log_dir: str | Path | None = None,
                 rotation: str = "50 MB", retention: str = "30 days") -> Path | None:
    """Replace loguru's default handler.

    Args:
        level: minimum level (DEBUG shows every mutation event).
        log_dir: directory for a timestamped log file; None disables it.
        rotation: loguru rotation policy for the file sink.
        retention: loguru retention policy for the file sink.

    Returns:
        Path to the log file, or None.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=_CONSOLE_FORMAT,
        colorize=sys.stderr.isatty(),
    )

    if log_dir is None:
        return None

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"polygen_{timestamp}.log"
    logger.add(
        log_file,
        level=level,
        format=_FILE_FORMAT,
        rotation=rotation,
        retention=retention,
        encoding="utf-8",
    )
    logger.debug("Logging to {}", log_file)
    return log_file
