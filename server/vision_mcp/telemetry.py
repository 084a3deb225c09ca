from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .config import settings


def telemetry_enabled() -> bool:
    return not settings.disable_otel and bool(settings.otel_exporter_otlp_endpoint)


def configure_telemetry(service_name: str) -> bool:
    """Install the OTLP exporter; returns False when tracing is switched off."""
    if not telemetry_enabled():
        return False
    provider = TracerProvider(
        resource=Resource.create(
            {"service.name": service_name, "deployment.environment": settings.environment}
        )
    )
    headers = {"DD-API-KEY": settings.datadog_api_key} if settings.datadog_api_key else None
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, headers=headers)
        )
    )
    trace.set_tracer_provider(provider)
    HTTPXClientInstrumentor().instrument()
    return True


def instrument_fastapi(app) -> bool:
    if not telemetry_enabled():
        return False
    FastAPIInstrumentor.instrument_app(app)
    return True
