"""Logging setup for the planner service.

Every record carries the request id so store mutations, model calls and
reconciliation steps can be followed per request.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig

from dayplanner.core.context import get_request_id

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s] %(name)s: %(message)s"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


def configure_logging(*, log_level: str = "INFO") -> None:
    """Install the console handler; later calls are ignored."""
    if getattr(configure_logging, "_configured", False):
        return

    level = log_level.upper()
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"planner": {"format": LOG_FORMAT}},
            "filters": {"request_id": {"()": RequestIdFilter}},
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "planner",
                    "filters": ["request_id"],
                    "level": level,
                }
            },
            "loggers": {
                "dayplanner": {"level": level},
                "httpx": {"level": "WARNING"},
                "openai": {"level": "WARNING"},
                "opik": {"level": "WARNING"},
            },
            "root": {"handlers": ["stderr"], "level": level},
        }
    )

    logging.getLogger(__name__).debug("Logging configured at %s", level)
    setattr(configure_logging, "_configured", True)
