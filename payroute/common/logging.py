"""Structured JSON logging with request/payment context fields."""

import logging
import sys
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path

from pythonjsonlogger.json import JsonFormatter

from payroute.common.config import settings


request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
payment_id_ctx: ContextVar[str] = ContextVar("payment_id", default="")

LOG_FORMAT = "%(asctime)s %(levelname)s %(service_name)s %(request_id)s %(payment_id)s %(message)s"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class ContextFilter(logging.Filter):
    """Inject service and correlation identifiers into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.request_id = request_id_ctx.get()
        record.payment_id = payment_id_ctx.get()
        return True


def _file_handler(path: Path, level: int, context_filter: ContextFilter) -> logging.Handler:
    handler = RotatingFileHandler(path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS)
    handler.setLevel(level)
    handler.addFilter(context_filter)
    handler.setFormatter(JsonFormatter(LOG_FORMAT))
    return handler


def configure_logging() -> None:
    """Configure root logger once per process.

    Logs always go to stdout as JSON. When `LOG_DIR` is set, errors are also
    written to `error.log` and everything to `combined.log`, both rotated.
    """

    context_filter = ContextFilter()
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(context_filter)
    handler.setFormatter(JsonFormatter(LOG_FORMAT))
    handlers: list[logging.Handler] = [handler]

    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(_file_handler(log_dir / "error.log", logging.ERROR, context_filter))
        handlers.append(_file_handler(log_dir / "combined.log", logging.NOTSET, context_filter))

    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(settings.log_level)
    root.addFilter(context_filter)


logger = logging.getLogger("payroute")
