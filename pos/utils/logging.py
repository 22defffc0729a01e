import logging
import sys

from pythonjsonlogger import jsonlogger

from pos.middleware.request_id import request_id_var


class RequestIDFilter(logging.Filter):
    """Attach the current request id unless the call site passed one in ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            request_id = request_id_var.get()
            if request_id is not None:
                record.request_id = request_id
        return True


def setup_logging(log_level: str = "INFO", service: str = "pos") -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if root_logger.handlers:
        root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDFilter())
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%SZ",
            rename_fields={"levelname": "level"},
            static_fields={"service": service},
        )
    )
    root_logger.addHandler(handler)

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "aiokafka"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
