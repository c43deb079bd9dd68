"""
Logging setup for PlanMatch.
Configures loguru sinks for console, JSON and rotating file output.
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def _json_sink(message) -> None:
    """Write a log record to stderr as a single JSON line."""
    record = message.record
    payload: Dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }

    exception = record["exception"]
    if exception is not None:
        payload["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
        }

    payload.update(record["extra"])
    sys.stderr.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")


def setup_logging(level: str = "INFO",
                  json_format: bool = False,
                  log_file: Optional[Union[str, Path]] = None) -> None:
    """
    Configure logging for the application.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Emit one JSON object per line instead of coloured text
        log_file: Optional path of a rotating log file
    """
    logger.remove()

    if json_format:
        logger.add(_json_sink, level=level)
    else:
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=CONSOLE_FORMAT,
            level=level,
            colorize=False,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
        )


def setup_logging_from_config(config: Dict[str, Any]) -> None:
    """Configure logging from the ``logging`` section of a config dict."""
    section = config.get('logging', {}) or {}
    setup_logging(
        level=section.get('level', 'INFO'),
        json_format=bool(section.get('json', False)),
        log_file=section.get('file'),
    )
