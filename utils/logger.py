# utils/logger.py
import os
import sys
from datetime import datetime
from pathlib import Path

from loguru import logger

LOG_LEVEL = os.getenv("APCA_LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("APCA_LOG_DIR")

logger.remove()

logger.add(
    sys.stdout,
    level=LOG_LEVEL,
    enqueue=True,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | {level} | {message}",
)

if LOG_DIR:
    log_dir = Path(LOG_DIR).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    start_time = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"apca_{start_time}.log"

    logger.add(
        log_file,
        level="DEBUG",
        rotation="100 MB",
        retention="30 days",
        enqueue=True,
        encoding="utf-8",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{line} | {message}",
    )
    logger.debug(f"Logger initialized. Writing logs to {log_file}")


def mask(s: str | None) -> str:
    """Render a credential so it can be logged: first and last four characters only."""
    if not s:
        return ""
    if len(s) <= 8:
        return "*" * len(s)
    return s[:4] + "*" * (len(s) - 8) + s[-4:]
