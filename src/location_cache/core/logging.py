"""Loguru sinks for the cache CLI.

Operational records go to stderr as single text lines. Audit summaries from
the drift and integrity scans are bound with an ``audit`` key and written as
serialized JSON lines instead. With a ``log_dir``, each stream also gets its
own rotating file.
"""

import sys
from pathlib import Path
from typing import Any

from loguru import logger

AUDIT_KEY = "audit"
AUDIT_LOG_NAME = "audit.jsonl"
CACHE_LOG_NAME = "location-cache.log"

_TEXT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} | {message}"


def _is_audit(record: dict[str, Any]) -> bool:
    return AUDIT_KEY in record["extra"]


def _is_operational(record: dict[str, Any]) -> bool:
    return AUDIT_KEY not in record["extra"]


def audit_logger(kind: str, **fields: Any):  # type: ignore[no-untyped-def]
    """Return a logger whose records land on the JSON audit sinks.

    Args:
        kind: Audit name, e.g. ``drift`` or ``integrity``.
        **fields: Summary values carried in the record's ``extra``.
    """
    return logger.bind(**{AUDIT_KEY: kind}, **fields)


def setup_logging(log_level: str = "INFO", log_dir: str | None = None) -> None:
    """Configure Loguru sinks.

    Args:
        log_level: Minimum log level to emit.
        log_dir: Optional directory for log files. Operational logs rotate
            at 10 MB (5 kept); audit lines rotate weekly and are kept 8 weeks.
    """
    level = log_level.upper()
    logger.remove()
    logger.add(sys.stderr, level=level, format=_TEXT_FORMAT, filter=_is_operational)
    logger.add(sys.stderr, level=level, serialize=True, filter=_is_audit)

    if not log_dir:
        return

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_path / CACHE_LOG_NAME,
        level=level,
        format=_TEXT_FORMAT,
        filter=_is_operational,
        rotation="10 MB",
        retention=5,
    )
    logger.add(
        log_path / AUDIT_LOG_NAME,
        level=level,
        serialize=True,
        filter=_is_audit,
        rotation="1 week",
        retention="8 weeks",
    )
