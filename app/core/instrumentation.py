"""Chat Gateway – Instrumentation.

Structured logging setup and Prometheus metrics per channel account.
"""

import logging
import re
import time
from typing import Any, Callable

import structlog
from fastapi import APIRouter, FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)

router = APIRouter(tags=["monitoring"])

# --- Metrics ---

REQUEST_COUNT = Counter(
    "gateway_http_requests_total",
    "Total HTTP requests by method, endpoint and status",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "gateway_http_request_duration_seconds",
    "HTTP request latency by method and endpoint",
    ["method", "endpoint"],
)

EXTERNAL_INJECTION_COUNT = Counter(
    "gateway_external_injections_total",
    "External message injections by channel, account and outcome",
    ["channel", "account_id", "outcome"],
)

INBOUND_UPDATE_COUNT = Counter(
    "gateway_inbound_updates_total",
    "Updates processed by chat sessions, native vs. synthetic",
    ["channel", "account_id", "source"],
)


@router.get("/metrics")
def metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# --- Logging ---

SECRET_KEYS = {"secret", "token", "authorization", "bot_token", "webhook_secret"}
TEXT_PREVIEW_KEYS = {"text", "text_preview", "content"}
TEXT_PREVIEW_LIMIT = 80
_BEARER = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)
_BOT_URL_TOKEN = re.compile(r"/bot\d+:[\w-]+")


def redact_log_record(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask credentials and cap message text before anything is rendered."""
    for key, value in list(event_dict.items()):
        if key in SECRET_KEYS and value:
            event_dict[key] = "***"
        elif isinstance(value, str):
            value = _BOT_URL_TOKEN.sub("/bot***", _BEARER.sub(r"\1***", value))
            if key in TEXT_PREVIEW_KEYS and len(value) > TEXT_PREVIEW_LIMIT:
                value = value[:TEXT_PREVIEW_LIMIT] + "…"
            event_dict[key] = value
    return event_dict


def setup_logging(log_level: str = "info") -> None:
    """Configure structlog with credential redaction and JSON output."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_log_record,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_instrumentation(app: FastAPI, log_level: str = "info") -> None:
    """Configure logging and attach the request metrics middleware."""
    setup_logging(log_level)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        try:
            response = await call_next(request)
            status = str(response.status_code)
        except Exception:
            status = "500"
            raise
        finally:
            duration = time.time() - start_time
            # Route template (set during routing) keeps label cardinality bounded.
            route = request.scope.get("route")
            path = getattr(route, "path", None) or request.url.path
            REQUEST_COUNT.labels(method=request.method, endpoint=path, status=status).inc()
            REQUEST_LATENCY.labels(method=request.method, endpoint=path).observe(duration)

        return response
