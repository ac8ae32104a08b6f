"""JSON logging for podhub.

Every record carries service, schema_version and, when known, the trace ID
of the request and the component that emitted it. Component is derived from
the logger name, so call sites only pass what varies (event, pod_id, ...).
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pythonjsonlogger.json import JsonFormatter

from podhub.app.config import get_settings
from podhub.core.logging_schema import Component

trace_id_ctx: ContextVar[str | None] = ContextVar("trace_id", default=None)

_COMPONENTS: tuple[tuple[str, Component], ...] = (
    ("podhub.control.lifecycle", Component.LIFECYCLE),
    ("podhub.control.reaper", Component.REAPER),
    ("podhub.core.timers", Component.LIFECYCLE),
    ("podhub.core.retryable", Component.PROVIDER),
    ("podhub.provider", Component.PROVIDER),
    ("podhub.services", Component.API),
    ("podhub.app", Component.API),
)


def get_trace_id() -> str | None:
    return trace_id_ctx.get()


def set_trace_id(trace_id: str | None = None) -> str:
    """Bind a trace ID to the current context, generating one if absent."""
    tid = trace_id or str(uuid4())
    trace_id_ctx.set(tid)
    return tid


def clear_trace_context() -> None:
    trace_id_ctx.set(None)


def component_for(logger_name: str) -> Component | None:
    """Map a podhub logger name to its component."""
    for prefix, component in _COMPONENTS:
        if logger_name == prefix or logger_name.startswith(prefix + "."):
            return component
    return None


class PodHubJsonFormatter(JsonFormatter):
    """JSON formatter adding podhub's standard fields."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        settings = get_settings().logging
        self._static = {
            "service": settings.service_name,
            "schema_version": settings.schema_version,
        }

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record.update(self._static)

        if "component" not in log_record and (
            component := component_for(record.name)
        ):
            log_record["component"] = component
        if trace_id := get_trace_id():
            log_record["trace_id"] = trace_id
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        # Unset optional extras (pod_id of an empty slot, provider_status of
        # a transport error) are noise
        for key in [k for k, v in log_record.items() if v is None]:
            del log_record[key]
        log_record.pop("color_message", None)


def setup_logging(level: int | None = None) -> None:
    """Route root and uvicorn logs through one JSON stdout handler.

    Args:
        level: Log level. If None, uses LOGGING_LEVEL from settings.
    """
    if level is None:
        level = getattr(logging, get_settings().logging.level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(PodHubJsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("uvicorn", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = False
        uv_logger.addHandler(handler)

    # LoggingMiddleware writes the request line
    logging.getLogger("uvicorn.access").disabled = True

    # Provider calls are logged by RunPodClient
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
