"""
Logging configuration. Console output, JSON lines (python-json-logger) or plain text
depending on LOG_JSON.
"""

import logging
import logging.config
from datetime import datetime
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from app.core.config import settings


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, level and logger name to every record."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.utcnow().isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name


def build_logging_config(level: str, json_output: bool) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"},
            "json": {
                "()": ServiceJsonFormatter,
                "format": "%(timestamp)s %(level)s %(logger)s %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json" if json_output else "standard",
            },
        },
        "loggers": {
            "app": {"handlers": ["console"], "level": level, "propagate": False},
            # SQL echo stays off unless explicitly raised
            "sqlalchemy.engine": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        },
    }


def setup_logging() -> logging.Logger:
    """Configure application logging. Safe to call more than once."""
    logging.config.dictConfig(build_logging_config(settings.log_level.upper(), settings.log_json))
    logger = logging.getLogger("app")
    logger.debug("Logging initialized with level: %s", settings.log_level)
    return logger
