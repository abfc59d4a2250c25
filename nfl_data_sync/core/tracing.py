"""
Distributed tracing with OpenTelemetry.

Instruments:
- the FastAPI app (one span per request, health and metrics excluded)
- the SQLAlchemy engine of the document store
- the SportsData.io httpx client (API key redacted from span URLs)

The sync orchestrator adds one span per run and one per feed on top of
these.

Spans go to the console when DEBUG is set and to an OTLP collector (Jaeger,
Tempo...) when OTEL_EXPORTER_OTLP_ENDPOINT is set. Tracing is optional: a
failure while setting it up is logged and the process runs untraced.
"""
import logging
from typing import Any, Optional

import httpx
from fastapi import FastAPI
from opentelemetry import propagate, trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator
from sqlalchemy.engine import Engine

from nfl_data_sync.core.config import Settings
from nfl_data_sync.core.logging import redact_api_key

logger = logging.getLogger(__name__)

# URLs excluded from request spans (comma-separated regexes)
EXCLUDED_URLS = "health,metrics,docs,openapi.json"

_tracer_provider: Optional[TracerProvider] = None
_engine_instrumented = False


def build_tracer_provider(
    settings: Settings,
    exporter: Optional[SpanExporter] = None,
) -> TracerProvider:
    """
    Create a tracer provider with the exporters the settings ask for.

    Args:
        settings: Application settings (name, version, environment, OTLP endpoint)
        exporter: Extra exporter to attach, in addition to the configured ones

    Returns:
        Configured TracerProvider (not installed globally)
    """
    resource = Resource.create({
        SERVICE_NAME: settings.APP_NAME,
        "service.version": settings.APP_VERSION,
        "deployment.environment": settings.ENVIRONMENT,
    })
    provider = TracerProvider(
        resource=resource,
        sampler=ParentBased(TraceIdRatioBased(settings.OTEL_SAMPLING_RATIO)),
    )

    exporters = []
    if settings.DEBUG:
        exporters.append(ConsoleSpanExporter())
    if settings.OTEL_EXPORTER_OTLP_ENDPOINT:
        exporters.append(OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True))
        logger.info(f"Exporting spans to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
    if exporter is not None:
        exporters.append(exporter)

    for span_exporter in exporters:
        provider.add_span_processor(BatchSpanProcessor(span_exporter))
    if not exporters:
        logger.warning("No span exporters configured, traces will not be exported")
    return provider


def init_tracing(settings: Settings) -> Optional[TracerProvider]:
    """
    Install the process-wide tracer provider once.

    Returns:
        The installed provider, or None when tracing is disabled
    """
    global _tracer_provider

    if not settings.TRACING_ENABLED:
        logger.info("OpenTelemetry tracing disabled via TRACING_ENABLED")
        return None
    if _tracer_provider is not None:
        return _tracer_provider

    provider = build_tracer_provider(settings)
    trace.set_tracer_provider(provider)
    propagate.set_global_textmap(TraceContextTextMapPropagator())
    _tracer_provider = provider
    logger.info(f"OpenTelemetry tracing initialized: service={settings.APP_NAME}, env={settings.ENVIRONMENT}")
    return provider


def instrument_app(app: FastAPI, tracer_provider: TracerProvider) -> None:
    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider, excluded_urls=EXCLUDED_URLS)
    logger.info("Instrumented FastAPI")


def instrument_engine(engine: Engine, tracer_provider: TracerProvider) -> None:
    """Trace the store's queries. The instrumentor is process-wide, so only the first engine is wired."""
    global _engine_instrumented

    if _engine_instrumented:
        logger.debug("SQLAlchemy already instrumented")
        return
    SQLAlchemyInstrumentor().instrument(engine=engine, tracer_provider=tracer_provider)
    _engine_instrumented = True
    logger.info("Instrumented SQLAlchemy")


def redact_span_url(span: Any, request: Any) -> None:
    """httpx request hook: replace the span URL with one whose API key is masked."""
    if span is None or not span.is_recording():
        return
    url = redact_api_key(str(request.url))
    span.set_attribute("http.url", url)
    span.set_attribute("url.full", url)


def instrument_httpx_client(client: httpx.AsyncClient, tracer_provider: TracerProvider) -> None:
    HTTPXClientInstrumentor.instrument_client(
        client,
        tracer_provider=tracer_provider,
        request_hook=_async_redact_span_url,
    )


async def _async_redact_span_url(span: Any, request: Any) -> None:
    redact_span_url(span, request)


def setup_tracing(
    settings: Settings,
    app: Optional[FastAPI] = None,
    engine: Optional[Engine] = None,
    client: Optional[Any] = None,
) -> Optional[TracerProvider]:
    """
    Initialize tracing and instrument whichever components are given.

    Args:
        settings: Application settings
        app: FastAPI app to instrument (HTTP process only)
        engine: Document store engine
        client: SportsDataClient whose httpx client should be traced

    Returns:
        The tracer provider, or None when tracing is disabled or failed to start
    """
    try:
        provider = init_tracing(settings)
        if provider is None:
            return None
        if app is not None:
            instrument_app(app, provider)
        if engine is not None:
            instrument_engine(engine, provider)
        if client is not None:
            client.enable_tracing(provider)
        return provider
    except Exception as e:
        logger.warning(f"Failed to initialize tracing: {e}")
        return None
