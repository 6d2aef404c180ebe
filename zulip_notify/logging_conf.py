"""Logging setup: stderr, a rotating file, and BetterStack when a token is configured."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from logtail import LogtailHandler

from zulip_notify import settings


LOG_FORMAT = "%(asctime)s - %(threadName)s - %(levelname)s - %(message)s"


def _betterstack_handler():
    kwargs = {"source_token": settings.BETTERSTACK_SOURCE_TOKEN}
    if settings.BETTERSTACK_INGEST_HOST:
        kwargs["host"] = settings.BETTERSTACK_INGEST_HOST
    return LogtailHandler(**kwargs)


def setup_logging():
    level = getattr(logging, settings.LOG_LEVEL, logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    # stdout is reserved for the message lines
    handlers = [
        logging.StreamHandler(sys.stderr),
        RotatingFileHandler(settings.LOGS_DIR / "zulip-notify.log", maxBytes=5 * 1024 * 1024, backupCount=3),
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    if settings.BETTERSTACK_SOURCE_TOKEN:
        try:
            handlers.append(_betterstack_handler())
        except Exception as e:
            root_logger.warning(f"BetterStack logging disabled: {e}")

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return root_logger


logger = setup_logging()
