import logging

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from marketplace.core.config import settings
from marketplace.core.db import engine


log = logging.getLogger(__name__)


def setup_telemetry(app) -> None:
    """Trace HTTP requests and SQL (the version-checked commits included) when enabled."""
    if not settings.telemetry_enabled:
        return

    resource = Resource.create({
        "service.name": settings.service_name,
        "service.version": app.version,
        "deployment.environment": settings.env,
    })
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{settings.otlp_endpoint}/v1/traces")))
    trace.set_tracer_provider(provider)

    # /health is polled by the orchestrator; keep it out of traces
    FastAPIInstrumentor.instrument_app(app, excluded_urls="/v1/health")
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)
    log.info("telemetry: exporting traces to %s", settings.otlp_endpoint)
