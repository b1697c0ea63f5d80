"""Logging configuration for fair_tool.

All package loggers live under the ``fair_tool`` namespace. Records carry the
run they belong to (audit entry id and variant) through ``LoggingContext``,
which works for both the synchronous and the asyncio runners because it is
backed by a context variable rather than global logging state.
"""

import functools
import json
import logging
import logging.config
import sys
import time
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

PACKAGE_LOGGER = 'fair_tool'

# Fields stamped on every record; '-' when no run is active
CONTEXT_FIELDS = ('simulation_id', 'variant', 'component', 'operation')

_run_context: ContextVar[Dict[str, Any]] = ContextVar('fair_tool_run_context', default={})


class RunContextFilter(logging.Filter):
    """Stamp the active run context and elapsed time onto each record."""

    def __init__(self, track_elapsed: bool = True):
        super().__init__()
        self.track_elapsed = track_elapsed
        self.started = time.perf_counter()

    def filter(self, record):
        context = _run_context.get()
        for key in CONTEXT_FIELDS:
            if not hasattr(record, key):
                setattr(record, key, context.get(key, '-'))
        if self.track_elapsed and not hasattr(record, 'elapsed'):
            record.elapsed = time.perf_counter() - self.started
        return True


class FairToolFormatter(logging.Formatter):
    """One JSON object per record, with run context when present."""

    def __init__(self, include_performance: bool = True, indent: Optional[int] = None):
        super().__init__()
        self.include_performance = include_performance
        self.indent = indent

    def format(self, record):
        payload = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, '-')
            if value != '-':
                payload[key] = value
        if self.include_performance and hasattr(record, 'elapsed'):
            payload['elapsed'] = round(record.elapsed, 3)
        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)
        return json.dumps(payload, indent=self.indent, default=str)


def _resolve_level(level: Union[str, int]) -> str:
    if isinstance(level, int):
        return logging.getLevelName(level)
    name = str(level).strip().upper()
    if name in ('WARN', 'FATAL'):
        name = {'WARN': 'WARNING', 'FATAL': 'CRITICAL'}[name]
    if name not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        return 'WARNING'
    return name


def setup_logging(
    log_level: Union[str, int] = "INFO",
    log_file: Optional[Path] = None,
    enable_performance: bool = True,
    enable_structured: bool = False
) -> logging.Logger:
    """Setup logging for fair_tool.

    Console output goes to stderr so CLI tables on stdout stay clean. Unknown
    level names fall back to WARNING.

    Args:
        log_level: Logging level name or number
        log_file: Optional file path for log output (rotated at 10MB)
        enable_performance: Stamp elapsed seconds since setup on each record
        enable_structured: Emit JSON records instead of plain text

    Returns:
        Configured package logger
    """
    level = _resolve_level(log_level)
    text_format = 'structured' if enable_structured else 'run'

    config: Dict[str, Any] = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'run': {
                'format': '%(levelname)s [%(variant)s] %(message)s'
            },
            'detailed': {
                'format': '%(asctime)s %(name)s %(levelname)s [%(simulation_id)s/%(variant)s] %(message)s'
            },
            'structured': {
                '()': FairToolFormatter,
                'include_performance': enable_performance
            }
        },
        'filters': {
            'run_context': {
                '()': RunContextFilter,
                'track_elapsed': enable_performance
            }
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'stream': sys.stderr,
                'formatter': text_format,
                'filters': ['run_context'],
                'level': level
            }
        },
        'loggers': {
            PACKAGE_LOGGER: {
                'level': level,
                'handlers': ['console'],
                'propagate': False
            }
        },
    }

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        config['handlers']['file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': str(log_path),
            'maxBytes': 10 * 1024 * 1024,
            'backupCount': 5,
            'encoding': 'utf-8',
            'formatter': 'structured' if enable_structured else 'detailed',
            'filters': ['run_context'],
            'level': level
        }
        config['loggers'][PACKAGE_LOGGER]['handlers'].append('file')

    logging.config.dictConfig(config)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.debug(f"Logging configured at {level}" + (f", file {log_file}" if log_file else ""))
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``fair_tool`` namespace.

    ``get_logger(__name__)`` inside the package returns the module logger
    unchanged; any other name is prefixed.
    """
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + '.'):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


def current_context() -> Dict[str, Any]:
    """Run context fields active in the current task or thread."""
    return dict(_run_context.get())


class LoggingContext:
    """Attach run context (e.g. ``simulation_id``, ``variant``) to log records.

    Contexts nest; inner values override outer ones until the inner block
    exits.
    """

    def __init__(self, logger: logging.Logger, **context):
        self.logger = logger
        self.context = context
        self._token = None

    def __enter__(self):
        merged = {**_run_context.get(), **self.context}
        self._token = _run_context.set(merged)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _run_context.reset(self._token)
        self._token = None


def log_performance(func):
    """Decorator logging start, duration and failure of a call at debug level."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        start = time.perf_counter()
        with LoggingContext(logger, component=func.__module__, operation=func.__name__):
            logger.debug(f"Starting {func.__name__}")
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.warning(f"{func.__name__} failed after {time.perf_counter() - start:.3f}s: {e}")
                raise
            logger.debug(f"Completed {func.__name__} in {time.perf_counter() - start:.3f}s")
            return result

    return wrapper
