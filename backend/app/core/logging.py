"""Structured JSON logging configuration."""
import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger import jsonlogger

from app.core.config import settings

# Set by RequestIdMiddleware for the lifetime of each request
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """Stamp every record with the current request id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def setup_logging() -> None:
    """JSON lines on stdout in production, human-readable lines everywhere else."""
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    if settings.APP_ENV == "production":
        handler.setFormatter(
            jsonlogger.JsonFormatter(
                "%(asctime)s %(name)s %(levelname)s %(request_id)s %(message)s",
                rename_fields={"asctime": "timestamp", "levelname": "level"},
            )
        )
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(name)s %(levelname)s [%(request_id)s] %(message)s")
        )
    handler.addFilter(RequestIdFilter())

    logging.root.handlers = [handler]
    logging.root.setLevel(level)

    # SQL echo is noisy; the engine logs at WARNING unless asked otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
