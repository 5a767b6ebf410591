import os
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

USE_CLOUD_TRACE = os.getenv("USE_CLOUD_TRACE", "false").lower() == "true"

_provider: Optional[TracerProvider] = None

def _span_exporter() -> SpanExporter:
    if USE_CLOUD_TRACE:
        # pip: opentelemetry-exporter-gcp-trace
        from opentelemetry.exporter.cloud_trace import CloudTraceSpanExporter
        return CloudTraceSpanExporter()
    return ConsoleSpanExporter()

def init_tracing(app=None, service_name: str = "format-fixer", service_version: str = "v1"):
    """
    Install the global tracer provider (once per process) and instrument the
    FastAPI app when one is given. Record-level spans come from the service
    module's tracer.
    """
    global _provider
    if _provider is None:
        resource = Resource.create({
            "service.name": service_name,
            "service.version": service_version,
            "deployment.environment": os.getenv("ENVIRONMENT", "dev"),
        })
        _provider = TracerProvider(resource=resource)
        _provider.add_span_processor(BatchSpanProcessor(_span_exporter()))
        trace.set_tracer_provider(_provider)

    if app is not None:
        FastAPIInstrumentor().instrument_app(app)

    return trace.get_tracer(service_name)
