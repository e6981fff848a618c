#!/usr/bin/env python3
"""
🔍 Centralized Logging System for Pomofy
Console logging with colors in development, structured JSON in production,
plus rotating log files under the data directory.
"""

import json
import logging
import logging.handlers
import os
import platform
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Set, Union

import psutil

IS_DEV_MODE = '--dev' in sys.argv or os.getenv('POMOFY_DEV') == '1'
IS_PRODUCTION = os.getenv('POMOFY_ENV', 'development') == 'production'

# JSON logging for production observability
ENABLE_JSON_LOGS = os.getenv('POMOFY_JSON_LOGS', '1' if IS_PRODUCTION else '0') == '1'

if IS_PRODUCTION and not IS_DEV_MODE:
    LOG_LEVEL = logging.WARNING
    MAX_LOG_SIZE = 1 * 1024 * 1024
    BACKUP_COUNT = 2
else:
    LOG_LEVEL = logging.INFO
    MAX_LOG_SIZE = 10 * 1024 * 1024
    BACKUP_COUNT = 5

ENABLE_FILE_LOGGING = os.getenv('POMOFY_FILE_LOGS', '1') == '1'
ENABLE_ERROR_LOGS = ENABLE_FILE_LOGGING


def _get_app_log_dir() -> Path:
    """Get application log directory path-agnostically"""
    env_log_dir = os.getenv('POMOFY_LOG_DIR')
    if env_log_dir:
        return Path(env_log_dir)
    data_dir = os.getenv('POMOFY_DATA_DIR')
    if data_dir:
        return Path(data_dir).expanduser() / "logs"
    app_name = os.getenv("POMOFY_APP_NAME", "pomofy")
    return Path.home() / f".{app_name}" / "logs"


LOG_DIR = _get_app_log_dir()

# ---- Environment overrides ----
_env_level = os.getenv('POMOFY_LOG_LEVEL')
if _env_level:
    LOG_LEVEL = getattr(logging, _env_level.upper(), LOG_LEVEL)

if ENABLE_FILE_LOGGING:
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
    except OSError:
        # Fallback to console-only logging if directory is not writable
        ENABLE_FILE_LOGGING = False
        ENABLE_ERROR_LOGS = False

FILE_FORMAT = '%(asctime)s | %(name)s | %(levelname)s | %(filename)s:%(lineno)d | %(message)s'

# Loggers built by setup_logger, and their error-only handlers
_CONFIGURED_LOGGERS: Set[str] = set()
_ERROR_HANDLERS: Set[logging.Handler] = set()

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'taskName', 'no_color',
})


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record: logging.LogRecord) -> str:
        if getattr(record, 'no_color', False):
            return super().format(record)

        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset = self.COLORS['RESET']
        original = record.levelname
        record.levelname = f"{color}{record.levelname}{reset}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JSONFormatter(logging.Formatter):
    """Structured JSON formatter for production observability.

    Extra fields passed via ``logger.info("msg", extra={...})`` become
    top-level JSON keys.

    Example output:
        {"timestamp": "2026-10-18T10:30:00.123000Z", "level": "WARNING",
         "logger": "spotify", "message": "token.refresh.fail", "status": 400}
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data: Dict[str, Any] = {
            'timestamp': created.isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if record.levelno >= logging.WARNING:
            log_data['source'] = f"{record.filename}:{record.lineno}"
            log_data['function'] = record.funcName

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in log_data:
                continue
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        return json.dumps(log_data, ensure_ascii=True, sort_keys=True)


def _file_formatter() -> logging.Formatter:
    return JSONFormatter() if ENABLE_JSON_LOGS else logging.Formatter(FILE_FORMAT)


def setup_logging() -> logging.Logger:
    """Initialize logging system for the application.

    Returns:
        logging.Logger: The main logger instance
    """
    return setup_logger("pomofy")


def setup_logger(name: str) -> logging.Logger:
    """
    Sets up a logger with appropriate handlers based on environment

    Args:
        name: Logger name (usually module name)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    _CONFIGURED_LOGGERS.add(name)

    # Prevent duplicate handlers if logger already exists
    if logger.handlers:
        return logger

    logger.setLevel(LOG_LEVEL)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(LOG_LEVEL)
    if ENABLE_JSON_LOGS:
        console_handler.setFormatter(JSONFormatter())
    elif IS_PRODUCTION and not IS_DEV_MODE:
        console_handler.setFormatter(logging.Formatter('%(asctime)s | %(levelname)s | %(message)s'))
    else:
        console_handler.setFormatter(ColoredFormatter('%(asctime)s | %(name)s | %(levelname)s | %(message)s'))
    logger.addHandler(console_handler)

    if ENABLE_FILE_LOGGING:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                LOG_DIR / "pomofy.log",
                maxBytes=MAX_LOG_SIZE,
                backupCount=BACKUP_COUNT,
                encoding='utf-8'
            )
            file_handler.setLevel(LOG_LEVEL)
            file_handler.setFormatter(_file_formatter())
            logger.addHandler(file_handler)
        except OSError:
            pass

    # Error-only log file
    if ENABLE_ERROR_LOGS:
        try:
            error_handler = logging.handlers.RotatingFileHandler(
                LOG_DIR / "pomofy_errors.log",
                maxBytes=MAX_LOG_SIZE,
                backupCount=BACKUP_COUNT,
                encoding='utf-8'
            )
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(_file_formatter())
            logger.addHandler(error_handler)
            _ERROR_HANDLERS.add(error_handler)
        except OSError:
            pass

    return logger


def set_log_level(level: Union[str, int]) -> int:
    """Apply a level to every logger built by ``setup_logger``.

    Loggers set up afterwards pick the level up as well. Error-only
    file handlers keep ERROR.

    Args:
        level: Level name (``"DEBUG"``) or number

    Returns:
        int: The numeric level now in effect

    Raises:
        ValueError: If the level name is unknown
    """
    global LOG_LEVEL
    numeric = level if isinstance(level, int) else getattr(logging, str(level).upper(), None)
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level!r}")

    LOG_LEVEL = numeric
    for name in _CONFIGURED_LOGGERS:
        configured = logging.getLogger(name)
        configured.setLevel(numeric)
        for handler in configured.handlers:
            if handler not in _ERROR_HANDLERS:
                handler.setLevel(numeric)
    return numeric


def get_log_level() -> int:
    return LOG_LEVEL


def log_startup(module_name: str) -> None:
    """Log startup information for a module.

    Args:
        module_name: Name of the module being started
    """
    logger = logging.getLogger(module_name)
    logger.info(f"🍅 Starting {module_name}")

    if IS_PRODUCTION and not IS_DEV_MODE:
        logger.info(f"📂 Logs: {LOG_DIR}")
        return

    try:
        logger.info("=" * 50)
        logger.info(f"🖥️  Platform: {platform.platform()}")
        logger.info(f"🐍 Python: {platform.python_version()}")
        memory_gb = psutil.virtual_memory().available / (1024 ** 3)
        logger.info(f"💾 Memory: {memory_gb:.1f}GB available")
        disk_gb = psutil.disk_usage('/').free / (1024 ** 3)
        logger.info(f"💽 Disk: {disk_gb:.1f}GB free")
        logger.info(f"📂 Log Directory: {LOG_DIR}")
        logger.info("=" * 50)
    except (OSError, psutil.Error) as e:
        logger.warning(f"Could not gather system info: {e}")


def log_shutdown(logger: logging.Logger, component_name: str) -> None:
    """Log component shutdown and flush handlers."""
    logger.info(f"🛑 Shutting down {component_name}")
    for handler in logger.handlers:
        handler.flush()


def log_structured(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Log a message with structured context fields.

    In JSON mode, context fields appear as separate JSON keys. In traditional
    mode, they're appended to the message.

    Example:
        >>> log_structured(logger, logging.INFO, "Session changed",
        ...                from_kind="work", to_kind="short_break", completed=1)
    """
    if ENABLE_JSON_LOGS:
        logger.log(level, message, extra=context)
    elif context:
        context_str = " ".join(f"{k}={v}" for k, v in context.items())
        logger.log(level, f"{message} | {context_str}")
    else:
        logger.log(level, message)
