"""
Action Hub OpenTelemetry Setup

- One span per action execute/form call
- Attributes: action name, request type, streaming flag, webhook id
"""
from __future__ import annotations
from contextlib import contextmanager
from typing import Optional
import logging

log = logging.getLogger(__name__)


def setup_tracing(endpoint: str, service_name: str = "action-hub") -> Optional[object]:
    """Return a tracer exporting spans to `endpoint`, or None without OTEL.

    Called only when OTEL_EXPORTER_OTLP_ENDPOINT is configured.
    """
    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError:
        log.warning("tracing requested but opentelemetry is not installed")
        return None

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)
    log.info("exporting spans to %s", endpoint)
    return trace.get_tracer(service_name)


@contextmanager
def action_span(tracer, operation: str, action_name: str, request=None):
    """Span around a dispatcher operation. No-op when tracing is off."""
    if tracer is None:
        yield None
        return
    attributes = {"action.name": action_name, "action.operation": operation}
    if request is not None:
        attributes["action.type"] = getattr(request.type, "value", str(request.type))
        attachment = request.attachment
        attributes["action.streaming"] = bool(attachment and attachment.is_streaming)
        if request.webhook_id:
            attributes["action.webhook_id"] = request.webhook_id
    with tracer.start_as_current_span(f"action.{operation}", attributes=attributes) as span:
        yield span
