"""Logging setup for the importer: colored console, rotating log file, progress summaries."""

import copy
import logging
import logging.handlers
import time
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'drive_content_importer'

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LEVEL_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

# Substrings of config keys whose string values are never logged
SENSITIVE_KEYS = ('access_token', 'refresh_token', 'secret', 'password', 'api_key')

# Loggers of the HTTP stack; their retry chatter only shows at -vvv
HTTP_LOGGERS = ('urllib3', 'requests')


def _resolve_level(verbosity: int, level: Optional[str]) -> int:
    if level:
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL"
            )
        return numeric

    return {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    level: Optional[str] = None,
    settings: Optional[Dict[str, Any]] = None
) -> logging.Logger:
    """
    Configure the importer's logger hierarchy.

    Args:
        verbosity: -v count (0=WARNING, 1=INFO, 2+=DEBUG)
        log_file: Optional path of a rotating log file
        level: Explicit level name; wins over verbosity
        settings: The 'logging' config section (format, date_format,
            max_bytes, backup_count)

    Returns:
        The 'drive_content_importer' logger
    """
    settings = settings or {}
    log_level = _resolve_level(verbosity, level)
    log_format = settings.get('format', DEFAULT_FORMAT)
    date_format = settings.get('date_format', DEFAULT_DATE_FORMAT)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(log_level)
    console.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors=LEVEL_COLORS
    ))
    logger.addHandler(console)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=settings.get('max_bytes', 10 * 1024 * 1024),
                backupCount=settings.get('backup_count', 5),
                encoding='utf-8'
            )
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {e}")
        else:
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
            logger.addHandler(file_handler)
            logger.info(f"Logging to file: {log_file}")

    http_level = logging.DEBUG if verbosity >= 3 else logging.WARNING
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)

    logger.info(f"Log level: {logging.getLevelName(log_level)}")
    return logger


class ProgressTracker:
    """
    Context manager that follows containers through an import run.

    Each processed container contributes its ImportResult counts; the
    accumulated totals are logged when the context exits.
    """

    def __init__(self, total: int, item_type: str = "containers"):
        self.total = total
        self.item_type = item_type
        self.processed = 0
        self.failed = 0
        self.counts: Dict[str, int] = {}
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(LOGGER_NAME)

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.info(f"Starting import of {self.total} {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return

        log = self.logger.warning if self.failed or exc_type is not None else self.logger.info
        log(f"=== {self.item_type.upper()}: {self.processed}/{self.total} processed, {self.failed} failed ===")
        for key, value in sorted(self.counts.items()):
            log(f"{key.replace('_', ' ').capitalize()}: {value}")
        log(f"Elapsed: {format_elapsed(time.time() - self.start_time)}")

    def record(self, counts: Dict[str, int], success: bool = True) -> None:
        """
        Add one container's outcome.

        Args:
            counts: The container's ImportResult counts
            success: Whether the container imported cleanly
        """
        self.processed += 1
        if not success:
            self.failed += 1

        for key, value in counts.items():
            self.counts[key] = self.counts.get(key, 0) + value

        if self.processed % 10 == 0 or not success:
            self.logger.info(
                f"{self.processed}/{self.total} {self.item_type} done "
                f"({self.counts.get('files_uploaded', 0)} files uploaded)"
                + ("" if success else " - last one FAILED")
            )


def format_elapsed(seconds: float) -> str:
    """Format a duration as 4.2s, 3m 5s or 1h 2m 5s."""
    if seconds < 60:
        return f"{seconds:.1f}s"

    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"

    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m {secs}s"


def log_section(title: str) -> None:
    """Log a banner line around a title."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.info("=" * 60)
    logger.info(f"  {title.upper()}")
    logger.info("=" * 60)


def log_config(config: Dict[str, Any]) -> None:
    """Log the effective configuration with secrets masked."""
    logger = logging.getLogger(LOGGER_NAME)
    safe = sanitize_config(config)

    log_section("Configuration")
    for section in ('drive', 'auth', 'job_store', 'import', 'advanced', 'logging'):
        values = safe.get(section)
        if not values:
            continue
        for key, value in values.items():
            logger.info(f"{section}.{key}: {value}")


def sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy of ``config`` with secret string values replaced."""
    def mask(data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key: "***REDACTED***"
                if isinstance(value, str) and any(s in key.lower() for s in SENSITIVE_KEYS)
                else mask(value)
                for key, value in data.items()
            }
        if isinstance(data, list):
            return [mask(item) for item in data]
        return data

    return mask(copy.deepcopy(config))


__all__ = [
    'setup_logging',
    'ProgressTracker',
    'format_elapsed',
    'log_section',
    'log_config',
    'sanitize_config'
]
