"""
Logging configuration for the resume service.

One stdout handler on the root logger; service modules log through
get_logger("services.resume") -> "jobtracker.services.resume".
"""
import logging
import sys

from jobtracker.app.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Client libraries that log every request at DEBUG/INFO
_NOISY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "sqlalchemy.engine", "multipart")


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure application logging. Returns the jobtracker package logger."""
    level_val = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    logging.basicConfig(
        level=level_val,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level_val, logging.WARNING))

    logger = logging.getLogger("jobtracker")
    logger.info(
        "Logging configured level=%s environment=%s storage=%s",
        logging.getLevelName(level_val),
        settings.environment,
        settings.file_storage_type,
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"jobtracker.{name}")
