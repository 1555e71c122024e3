"""
Logging configuration for context-ignore.

Provides environment-aware logging that:
- Writes to stderr by default so host processes keep stdout for themselves
- Outputs JSON in container environments
- Supports log rotation for file-based logging
- Includes custom TRACE level for per-path match decisions
"""

import sys
import logging
import json
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional, Any

# Define TRACE level (lower number = more detailed)
TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")


def trace(self, message, *args, **kwargs):
    if self.isEnabledFor(TRACE_LEVEL):
        self._log(TRACE_LEVEL, message, args, **kwargs)


def add_trace_to_logger():
    """Ensure trace method is available on all logger instances"""
    if not hasattr(logging.Logger, 'trace'):
        logging.Logger.trace = trace


add_trace_to_logger()


class ContainerFormatter(logging.Formatter):
    """JSON formatter optimized for container logs"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'component': record.name,
            'message': record.getMessage(),
            'pid': os.getpid(),
        }

        if hasattr(record, 'extra'):
            log_data.update(record.extra)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def _resolve_level(level_str: str) -> int:
    if level_str.upper() == 'TRACE':
        return TRACE_LEVEL
    return getattr(logging, level_str.upper(), logging.INFO)


def configure_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    enable_rotation: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    quiet_libraries: bool = True,
) -> None:
    """
    Configure logging based on environment.

    Args:
        log_level: Override log level (defaults to CONTEXT_IGNORE_LOG_LEVEL,
            then LOG_LEVEL, then INFO)
        log_file: Path to log file; when omitted logs go to stderr
        enable_rotation: Enable log rotation for file handler
        max_bytes: Maximum size of log file before rotation
        backup_count: Number of backup files to keep
        quiet_libraries: Suppress verbose third-party library logs
    """
    level_str = (
        log_level
        or os.environ.get('CONTEXT_IGNORE_LOG_LEVEL')
        or os.environ.get('LOG_LEVEL', 'INFO')
    )
    level = _resolve_level(level_str)

    root_logger = logging.getLogger()
    root_logger.handlers = []

    in_container = (
        os.path.exists('/.dockerenv') or
        os.environ.get('DOCKER_CONTAINER', '').lower() == 'true'
    )

    if log_file:
        if enable_rotation:
            handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count
            )
        else:
            handler = logging.FileHandler(log_file)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
    else:
        handler = logging.StreamHandler(sys.stderr)
        if in_container:
            handler.setFormatter(ContainerFormatter())
        else:
            handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            ))

    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    if quiet_libraries:
        # watchdog logs every inotify event at DEBUG
        for lib in ('watchdog', 'asyncio'):
            logging.getLogger(lib).setLevel(logging.WARNING)

    logger = logging.getLogger('context-ignore')
    logger.debug(f"Logging configured - Level: {level_str.upper()}, Container: {in_container}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance with the trace() method available
    """
    add_trace_to_logger()
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    **context: Any
) -> None:
    """
    Log a message with additional context fields.

    Args:
        logger: Logger instance
        level: Log level (e.g., logging.INFO)
        message: Log message
        **context: Additional fields to include in structured logs
    """
    extra = {'extra': context} if context else {}
    logger.log(level, message, extra=extra)
