import logging

import structlog
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

# OpenTelemetry
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from shared.config.settings import APP_ENV, IS_PRODUCTION, LOG_LEVEL, OTLP_ENDPOINT

# Health checks and scrapes would drown the request metrics
EXCLUDED_HANDLERS = ["/health", "/metrics"]


def add_otel_ids(logger, log_method, event_dict):
    """Stamps the active trace and span ids onto the event, when there is one."""
    span = trace.get_current_span()
    if span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = trace.format_trace_id(ctx.trace_id)
        event_dict["span_id"] = trace.format_span_id(ctx.span_id)
    return event_dict


def configure_logging():
    level = logging.getLevelName(LOG_LEVEL)
    if not isinstance(level, int):
        level = logging.INFO

    # JSON for log shipping; readable key=value lines on a developer's terminal
    renderer = structlog.processors.JSONRenderer() if IS_PRODUCTION else structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_otel_ids,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_tracing(app: FastAPI, service_name: str):
    """Exports spans over OTLP gRPC. Disabled unless OTLP_ENDPOINT is set."""
    if not OTLP_ENDPOINT:
        return

    provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: service_name, "deployment.environment": APP_ENV})
    )
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=OTLP_ENDPOINT, insecure=True)))
    trace.set_tracer_provider(provider)

    # Inbound requests, plus the outbound calls to the email provider
    FastAPIInstrumentor.instrument_app(app, excluded_urls=",".join(EXCLUDED_HANDLERS))
    HTTPXClientInstrumentor().instrument()

    @app.on_event("shutdown")
    async def flush_spans():
        provider.shutdown()


def configure_metrics(app: FastAPI):
    Instrumentator(excluded_handlers=EXCLUDED_HANDLERS).instrument(app).expose(
        app, endpoint="/metrics", include_in_schema=False
    )


def setup_observability(app: FastAPI, service_name: str):
    """
    Wires logging, tracing and Prometheus metrics into the app.
    Call once, right after creating the FastAPI instance.
    """
    configure_logging()
    configure_tracing(app, service_name)
    configure_metrics(app)
