"""Observability: logging, correlation IDs, metrics and health checks"""

from .logging_config import configure_logging, get_logger
from .request_id import generate_request_id, get_request_id, set_request_id

__all__ = [
    "configure_logging",
    "get_logger",
    "generate_request_id",
    "get_request_id",
    "set_request_id",
]
