import os
import sys
from logging.config import dictConfig
from lensmanager.core.config import APP_ENV, EMAIL_LOG_FILE

LOG_LEVEL = "DEBUG" if APP_ENV == "development" else "INFO"


def setup_logging():
    email_log_dir = os.path.dirname(EMAIL_LOG_FILE)
    if email_log_dir:
        os.makedirs(email_log_dir, exist_ok=True)

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,

            # -----------------
            # FORMATTERS
            # -----------------
            "formatters": {
                "default": {
                    "format": (
                        "%(asctime)s | %(levelname)s | "
                        "%(name)s | %(message)s"
                    ),
                },
                "access": {
                    "format": (
                        "%(asctime)s | ACCESS | "
                        "%(client_addr)s | %(method)s | "
                        "%(path)s | %(status_code)s | "
                        "%(process_time_ms)sms"
                    ),
                },
                "email": {
                    "format": "%(asctime)s | EMAIL LOGGED\n%(message)s",
                },
            },

            # -----------------
            # HANDLERS
            # -----------------
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                    "formatter": "default",
                },
                "access_console": {
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                    "formatter": "access",
                },
                "email_file": {
                    "class": "logging.FileHandler",
                    "filename": EMAIL_LOG_FILE,
                    "encoding": "utf-8",
                    "delay": True,
                    "formatter": "email",
                },
            },

            # -----------------
            # LOGGERS
            # -----------------
            "loggers": {
                # Used by request_logging_middleware
                "access": {
                    "handlers": ["access_console"],
                    "level": "INFO",
                    "propagate": False,
                },
                # Used by EmailNotifier
                "email": {
                    "handlers": ["email_file"],
                    "level": "INFO",
                    "propagate": False,
                },
            },

            # -----------------
            # ROOT LOGGER
            # -----------------
            "root": {
                "level": LOG_LEVEL,
                "handlers": ["console"],
            },
        }
    )
