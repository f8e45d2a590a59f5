"""
Structured logging for the Workflow Gateway.

Every event is rendered as one JSON line carrying the service name and, when
set, the correlation fields of the current request (``request_id``,
``user_id``, ``workflow_id``). The fields live in context variables, so
background tasks spawned while handling a request (audit writes) keep them.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)
workflow_id_var: ContextVar[Optional[str]] = ContextVar('workflow_id', default=None)

# Event keys whose values must never reach the log output
REDACTED_KEYS = frozenset({"authorization", "token", "raw_credential", "jwt_secret", "password"})
REDACTED = "[redacted]"

_service_name: Optional[str] = None


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structlog and the stdlib root logger for ``service_name``."""
    global _service_name
    _service_name = service_name

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_service_context,
            add_correlation_context,
            redact_secrets,
            structlog.processors.JSONRenderer(default=str),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # uvicorn's access log duplicates the request middleware's line
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Tag the event with the configured service, or the logger's prefix."""
    if _service_name:
        event_dict.setdefault("service", _service_name)
    else:
        logger_name = event_dict.get("logger", "")
        if "." in logger_name:
            event_dict.setdefault("service", logger_name.split(".")[0])
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy request correlation fields from the current context."""
    for key, var in (("request_id", request_id_var), ("user_id", user_id_var), ("workflow_id", workflow_id_var)):
        value = var.get()
        if value and key not in event_dict:
            event_dict[key] = value
    return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key in list(event_dict):
        if key.lower() in REDACTED_KEYS and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set (or generate) the request id for the current context."""
    if not request_id:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_user_context(user_id: Optional[str] = None):
    """Attach the authenticated console user to subsequent events."""
    if user_id:
        user_id_var.set(user_id)


def set_workflow_context(workflow_id: Optional[str] = None):
    """Attach the workflow being executed to subsequent events."""
    if workflow_id:
        workflow_id_var.set(workflow_id)


def clear_context():
    request_id_var.set(None)
    user_id_var.set(None)
    workflow_id_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
