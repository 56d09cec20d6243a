"""
Structured Logging Configuration for torrent-queue
Console and rotating file output, in text or JSON, with per-download context
(client, download id, title) attached to every record logged inside a
LogContext.
"""

import json
import logging
import logging.handlers
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord carries; anything else was added as context or extra
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class ContextFilter(logging.Filter):
    """
    Copies the current thread's download context onto each record.
    """

    _local = threading.local()

    @classmethod
    def _context(cls) -> Dict[str, Any]:
        if not hasattr(cls._local, "context"):
            cls._local.context = {}
        return cls._local.context

    @classmethod
    def set_context(cls, **kwargs) -> None:
        cls._context().update(kwargs)

    @classmethod
    def clear_context(cls, *keys) -> None:
        """Drop the given keys, or everything when called without any."""
        context = cls._context()
        if not keys:
            context.clear()
        for key in keys:
            context.pop(key, None)

    @classmethod
    def get_context(cls) -> Dict[str, Any]:
        return dict(cls._context())

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self._context().items():
            setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line. Known context fields are emitted after the
    message; other non-standard record attributes follow when include_extra
    is set.
    """

    CONTEXT_FIELDS = (
        "client",
        "download_id",
        "title",
        "status",
        "operation",
        "error",
        "duration_ms",
        "items",
    )

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    def _extra_fields(self, record: logging.LogRecord) -> Dict[str, Any]:
        extra = {}
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key in self.CONTEXT_FIELDS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            extra[key] = value
        return extra

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self._timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({
            name: getattr(record, name)
            for name in self.CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        })

        if record.exc_info:
            exc_type = record.exc_info[0]
            entry["exception"] = self.formatException(record.exc_info)
            entry["exception_type"] = exc_type.__name__ if exc_type else None

        if self.include_extra:
            for key, value in self._extra_fields(record).items():
                entry.setdefault(key, value)

        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """
    Human readable console output; the level name is coloured on a terminal
    and the download context is appended in brackets.
    """

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    SUFFIX_FIELDS = ("client", "title", "status")

    def __init__(self, use_colors: bool = True):
        super().__init__(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        color = self.COLORS.get(record.levelname) if self.use_colors else None
        if color:
            message = message.replace(record.levelname, f"{color}{record.levelname}{self.RESET}", 1)

        suffix = ", ".join(
            f"{name}={getattr(record, name)}"
            for name in self.SUFFIX_FIELDS
            if getattr(record, name, None)
        )
        return f"{message} [{suffix}]" if suffix else message


# Component-specific log levels
COMPONENT_LOG_LEVELS = {
    "torrent_queue": "INFO",
    "torrent_queue.client": "INFO",
    "torrent_queue.transmission_proxy": "INFO",
    "torrent_queue.seeding": "INFO",
    "torrent_queue.monitor": "INFO",
    "torrent_queue.retry": "INFO",
    "aiohttp": "WARNING",
    "aiohttp.client": "WARNING",
}


def _make_handler(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.addFilter(ContextFilter())
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: str = "text",
    max_file_size_mb: int = 10,
    backup_count: int = 5,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        log_level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to a log file; enables size based rotation
        log_format: "text" for human-readable, "json" for structured
        max_file_size_mb: Size of each log file before it is rotated
        backup_count: Number of rotated files to keep
        use_colors: Colour the console level names when stdout is a terminal

    Returns:
        The configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    structured = log_format == "json"

    root_logger.addHandler(_make_handler(
        logging.StreamHandler(sys.stdout),
        JSONFormatter() if structured else ColoredFormatter(use_colors=use_colors),
    ))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_make_handler(
            logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            ),
            JSONFormatter() if structured else logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT),
        ))

    # Debug at the root should reach our own modules
    debug = root_logger.level <= logging.DEBUG
    for logger_name, level in COMPONENT_LOG_LEVELS.items():
        if debug and logger_name.startswith("torrent_queue"):
            level = "DEBUG"
        logging.getLogger(logger_name).setLevel(getattr(logging, level))

    logging.getLogger(__name__).info(
        f"Logging configured: level={log_level}, format={log_format}, "
        f"file={log_file or 'none'}"
    )

    return root_logger


class LogContext:
    """
    Context manager for setting log context fields.

    Usage:
        with LogContext(download_id="ABC123", title="Movie.mkv"):
            logger.info("Download ready for import")
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self.previous_context = {}

    def __enter__(self):
        self.previous_context = ContextFilter.get_context()
        ContextFilter.set_context(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        ContextFilter.clear_context()
        ContextFilter.set_context(**self.previous_context)
        return False


def log_operation(
    logger: logging.Logger,
    operation: str,
    download_id: str = None,
    title: str = None,
    client: str = None,
    level: int = logging.INFO,
    **extra,
) -> None:
    """Log a single line describing ``operation`` with download context attached."""
    with LogContext(download_id=download_id, title=title, client=client, operation=operation, **extra):
        logger.log(level, operation)
