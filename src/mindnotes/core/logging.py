"""
Logging Configuration

One stdout handler for the whole process (API, background tasks and the
re-index script). Application loggers follow ``LOG_LEVEL``; chatty
third-party loggers are capped so request logs stay readable.
"""

import sys
from logging.config import dictConfig

from mindnotes.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party logger -> maximum verbosity
THIRD_PARTY_LEVELS = {
    "uvicorn": "INFO",
    "uvicorn.access": "INFO",
    "sqlalchemy.engine": "WARNING",
    # openai and the auth/ollama clients log every request at INFO
    "httpx": "WARNING",
    "openai": "WARNING",
    "sentence_transformers": "WARNING",
}


def setup_logging(level: str | None = None) -> None:
    """
    Configure logging for ``mindnotes.*`` and known third-party loggers.

    Args:
        level: Override for ``settings.LOG_LEVEL`` (the CLI script uses it).
    """
    app_level = (level or settings.LOG_LEVEL).upper()

    loggers = {
        name: {"level": lvl, "handlers": ["console"], "propagate": False}
        for name, lvl in THIRD_PARTY_LEVELS.items()
    }
    loggers["mindnotes"] = {"level": app_level, "handlers": ["console"], "propagate": False}

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                    "formatter": "default",
                },
            },
            "root": {"level": app_level, "handlers": ["console"]},
            "loggers": loggers,
        }
    )
