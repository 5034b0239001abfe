"""
Shared logging configuration for the Posts service.

Log lines are JSON objects rendered by structlog on top of the standard
library handlers. Per-request correlation fields (``request_id``,
``client_ip``) live in structlog's context variables and are merged into
every event logged while the request is being handled.
"""

import logging
import sys
import uuid
from typing import Any, Callable, Dict, List, Optional

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars

Processor = Callable[[Any, str, Dict[str, Any]], Dict[str, Any]]


def service_name_adder(service_name: str) -> Processor:
    """Processor stamping ``service`` on events that don't already carry one."""

    def add_service_name(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return add_service_name


def build_processors(service_name: str) -> List[Processor]:
    """Processor chain, ending in the JSON renderer."""
    return [
        merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        service_name_adder(service_name),
        structlog.processors.JSONRenderer(),
    ]


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=build_processors(service_name),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind the request id for the rest of the request, generating one if absent."""
    if not request_id:
        request_id = str(uuid.uuid4())
    bind_contextvars(request_id=request_id)
    return request_id


def set_client_context(client_ip: Optional[str] = None):
    if client_ip:
        bind_contextvars(client_ip=client_ip)


def clear_context():
    clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
