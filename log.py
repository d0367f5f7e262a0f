import logging
from contextvars import ContextVar

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="-")


class CorrelationIdFilter(logging.Filter):
    """Stamp every record with the correlation id of the current request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id.get()
        return True


def configure_logging(service_name: str, level: str = "INFO"):
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(logging.Formatter(
        f"%(asctime)s [%(levelname)s] [{service_name}] [cid=%(correlation_id)s] %(message)s"
    ))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


def mask(value: str | None, keep: int = 5) -> str:
    """Shorten identifiers and tokens before they reach the logs."""
    if not value:
        return ""
    return value[:keep] + "..."
