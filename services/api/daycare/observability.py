from __future__ import annotations

import logging
import os
import sys

import structlog
from prometheus_client import Counter, Histogram

REQ_COUNT = Counter("daycare_http_requests_total", "HTTP requests", ["method", "path", "status"])
REQ_LAT = Histogram("daycare_http_request_seconds", "Request latency", ["path"])
LINE_PUSH = Counter("daycare_line_push_total", "LINE push calls", ["action", "outcome"])
SCHEDULED_ELDERS = Counter("daycare_scheduled_elders_total", "Elders visited by scheduled reports", ["outcome"])

def init_logging(service_name: str) -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)

    logging.getLogger("uvicorn.access").handlers = []
    logging.getLogger("uvicorn.access").propagate = True
    logging.getLogger("uvicorn.error").propagate = True

def init_otel(service_name: str, enabled: bool) -> bool:
    """Install an OTLP tracer provider. Returns True when tracing is active."""
    if not enabled:
        return False
    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.requests import RequestsInstrumentor

        resource = Resource.create({
            "service.name": service_name,
            "deployment.environment": os.getenv("DAYCARE_ENV", "dev"),
        })
        provider = TracerProvider(resource=resource)
        exporter = OTLPSpanExporter()  # uses OTEL_EXPORTER_OTLP_ENDPOINT etc.
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)

        # LINE and spreadsheet calls go through requests.
        RequestsInstrumentor().instrument()
    except Exception as e:
        structlog.get_logger(__name__).warning("otel_init_failed", error=str(e))
        return False
    return True
