"""Logging bootstrap for the intake service.

One stdout handler on the root logger; `intake.*` modules log through it at
the configured level. SQLAlchemy engine chatter stays at WARNING and
uvicorn keeps its own propagation-free loggers.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict

LOG_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"


def build_logging_config(level: str = "INFO") -> Dict[str, Any]:
    level = level.upper()
    server_logger = {"level": level, "handlers": ["stdout"], "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"event": {"format": LOG_FORMAT}},
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "event",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": "WARNING", "handlers": ["stdout"]},
        "loggers": {
            "intake": {"level": level, "propagate": True},
            "sqlalchemy.engine": {"level": "WARNING", "propagate": True},
            "uvicorn": dict(server_logger),
            "uvicorn.error": dict(server_logger),
            "uvicorn.access": dict(server_logger),
        },
    }


def configure_logging(level: str = "INFO") -> None:
    """Apply the logging config unless the root logger is already wired.

    Reloaders and test runners that install their own handlers keep them.
    """
    if logging.getLogger().handlers:
        logging.getLogger("intake").setLevel(level.upper())
        return
    dictConfig(build_logging_config(level))


__all__ = ["LOG_FORMAT", "build_logging_config", "configure_logging"]
