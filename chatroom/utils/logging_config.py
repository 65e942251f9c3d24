"""
Logging setup for the chat server.

Text output with coloured levels for local runs, JSON lines (via
python-json-logger) for `LOG_FORMAT=json` and for the optional log file.
Reasoning calls and store writes are timed through structlog at DEBUG.
"""

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from pythonjsonlogger import jsonlogger

from chatroom import __version__

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
JSON_FORMAT = '%(asctime)s %(name)s %(levelname)s %(message)s'

# Record attributes callers may attach with `extra=`; copied into JSON output
CONTEXT_FIELDS = ('connection_id', 'message_id', 'event')

QUIET_LOGGERS = ('httpx', 'httpcore', 'uvicorn.access')


class StructuredFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps every line with the service identity."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        log_record['service'] = 'chatroom'
        log_record['version'] = __version__
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_record[field] = value


class ColoredFormatter(logging.Formatter):
    """Colours the level name for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        # Colour a copy so other handlers still see the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        log_color = self.COLORS.get(colored.levelname, '')
        colored.levelname = f"{log_color}{colored.levelname}{self.RESET}"
        return super().format(colored)


def build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return StructuredFormatter(JSON_FORMAT)
    return ColoredFormatter(TEXT_FORMAT)


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "text",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure structlog and the root logger.

    Args:
        log_level: Level name; unknown names fall back to INFO
        log_format: 'json' for JSON lines, anything else for coloured text
        log_file: Optional path; the file always receives JSON lines
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(build_formatter(log_format))
    handlers = [console_handler]

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(build_formatter("json"))
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=handlers,
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class PerformanceLogger:
    """Timings for the two slow paths: reasoning calls and store rewrites."""

    def __init__(self):
        self.logger = structlog.get_logger("chatroom.performance")

    def log_ai_generation(self, model: str, tokens: int, duration_ms: float, success: bool):
        self.logger.debug(
            "ai_generation",
            model=model,
            tokens=tokens,
            duration_ms=round(duration_ms, 2),
            success=success,
        )

    def log_storage_write(self, operation: str, duration_ms: float, records: int = 0):
        """One full rewrite of the store document."""
        self.logger.debug(
            "storage_write",
            operation=operation,
            duration_ms=round(duration_ms, 2),
            records=records,
        )


performance_logger = PerformanceLogger()
