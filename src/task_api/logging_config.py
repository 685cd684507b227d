from __future__ import annotations

import json
import logging
from logging.config import dictConfig
from traceback import format_exception

from .settings import get_settings


class JsonFormatter(logging.Formatter):
    """Structured JSON formatter for hosted log collectors."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: dict[str, object] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Task/object context (only when present)
        for key in ("task_id", "object_path"):
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        if record.exc_info:
            exc_type = record.exc_info[0].__name__ if record.exc_info[0] else None
            payload["error"] = {
                "type": exc_type,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stack": "".join(format_exception(*record.exc_info)),
            }

        return json.dumps(payload, ensure_ascii=False)


# PUBLIC_INTERFACE
def setup_logging() -> None:
    """
    Configure root logging from LOG_LEVEL / LOG_FORMAT.

    Safe to call more than once; each call replaces the root handler.
    """
    settings = get_settings()
    formatter_name = "json" if settings.log_format == "json" else "plain"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,  # keep uvicorn & friends
            "formatters": {
                "plain": {
                    "format": "%(asctime)s %(levelname)-5s %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                },
                "json": {
                    "()": JsonFormatter,
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                },
            },
            "handlers": {
                "stream": {
                    "class": "logging.StreamHandler",
                    "level": settings.log_level,
                    "formatter": formatter_name,
                }
            },
            "root": {
                "level": settings.log_level,
                "handlers": ["stream"],
            },
            "loggers": {
                "uvicorn": {"level": "INFO", "handlers": [], "propagate": True},
                "uvicorn.error": {"level": "INFO", "handlers": [], "propagate": True},
                "uvicorn.access": {"level": "INFO", "handlers": [], "propagate": True},
            },
        }
    )
