"""
Logging configuration for the Community API
Provides structured logging with JSON format, proper levels, and performance monitoring
"""
import os
import sys
import time
import logging
import logging.config
from typing import Dict, Any
from datetime import datetime, timezone
import json

import psutil

from .config import settings

_configured = False


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON"""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        # Request and domain context
        for field in ("request_id", "user_id", "course_id", "post_id", "project_id", "resource_id"):
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if hasattr(record, "duration_ms"):
            log_entry["duration_ms"] = record.duration_ms
        if hasattr(record, "memory_mb"):
            log_entry["memory_mb"] = record.memory_mb

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ContextFilter(logging.Filter):
    """Filter to add contextual information to log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = settings.APP_NAME
        record.version = settings.VERSION
        record.environment = "production" if not settings.DEBUG else "development"
        return True


def _build_config() -> Dict[str, Any]:
    log_dir = settings.LOG_DIR
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": StructuredFormatter,
            },
            "simple": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "filters": {
            "context": {
                "()": ContextFilter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "structured" if not settings.DEBUG else "simple",
                "filters": ["context"],
                "level": settings.LOG_LEVEL,
            },
            "error_file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": os.path.join(log_dir, "error.log"),
                "maxBytes": 10485760,  # 10MB
                "backupCount": 5,
                "formatter": "structured",
                "filters": ["context"],
                "level": "ERROR",
            },
            "app_file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": os.path.join(log_dir, "app.log"),
                "maxBytes": 10485760,  # 10MB
                "backupCount": 10,
                "formatter": "structured",
                "filters": ["context"],
                "level": settings.LOG_LEVEL,
            },
        },
        "loggers": {
            "community": {
                "handlers": ["console", "app_file", "error_file"],
                "level": settings.LOG_LEVEL,
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "handlers": ["console"] if settings.DEBUG else ["app_file"],
                "level": "INFO" if settings.DEBUG else "WARNING",
                "propagate": False,
            },
            "aiobotocore": {
                "handlers": ["console"] if settings.DEBUG else ["app_file"],
                "level": "WARNING",
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["console"] if settings.DEBUG else ["app_file"],
                "level": "INFO",
                "propagate": False,
            },
        },
        "root": {
            "handlers": ["console"],
            "level": "WARNING",
        },
    }


def setup_logging(name: str = None) -> logging.Logger:
    """
    Setup logging configuration once per process

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    global _configured

    if not _configured:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        logging.config.dictConfig(_build_config())
        _configured = True

    return logging.getLogger(name if name else "community")


class PerformanceLogger:
    """Context manager for performance logging"""

    def __init__(self, logger: logging.Logger, operation: str, **context):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug(f"Starting {self.operation}", extra={"extra_fields": self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.perf_counter() - self.start_time) * 1000
        memory_mb = psutil.Process().memory_info().rss / 1024 / 1024
        fields = {
            **self.context,
            "duration_ms": round(duration_ms, 2),
            "memory_mb": round(memory_mb, 2),
        }

        if exc_type is None:
            self.logger.info(f"Completed {self.operation}", extra={"extra_fields": fields})
        else:
            self.logger.error(
                f"Failed {self.operation}: {exc_val}",
                exc_info=True,
                extra={"extra_fields": fields}
            )


def get_logger(name: str = None) -> logging.Logger:
    """Get a configured logger instance"""
    return setup_logging(name)


__all__ = [
    "setup_logging",
    "get_logger",
    "PerformanceLogger",
    "StructuredFormatter",
    "ContextFilter"
]
