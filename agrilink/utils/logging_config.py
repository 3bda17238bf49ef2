import logging
from logging.config import dictConfig

from agrilink.utils.env_helper import env_bool, env_none_or_str

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging():
    level = (env_none_or_str("LOG_LEVEL", "INFO") or "INFO").upper()
    formatter = "json" if env_bool("LOG_JSON") else "default"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": LOG_FORMAT,
                },
                "json": {  # structured logs for prod
                    "format": '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter,
                },
            },
            "loggers": {
                # supabase-py logs every request at INFO through httpx
                "httpx": {"level": "WARNING"},
            },
            "root": {
                "level": level,
                "handlers": ["console"],
            },
        }
    )
    logging.getLogger(__name__).debug("logging configured level=%s", level)
