"""OpenTelemetry setup for the gateway service.

Tracing is optional: with no OTLP endpoint configured the global no-op tracer
provider stays in place.
"""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from mobipay.common.config import settings
from mobipay.common.logging import logger


def setup_tracing(service_name: str) -> None:
    """Register a tracer provider exporting gateway spans over OTLP HTTP."""

    endpoint = settings.otel_exporter_otlp_endpoint
    if not endpoint:
        logger.info("tracing disabled: no OTLP endpoint configured")
        return
    resource = Resource.create({"service.name": service_name, "service.namespace": "payments"})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)


def instrument_app(app: FastAPI) -> None:
    """Attach request spans, skipping the health and scrape endpoints."""

    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")
