"""OpenTelemetry tracing setup for the kinship server.

Environment Variables:
    KINSHIP_TRACING_ENABLED: Set to 'true' to enable tracing (default: false)
    KINSHIP_OTLP_ENDPOINT: OTLP/HTTP collector URL (default: http://localhost:4318)
    KINSHIP_SERVICE_NAME: Service name reported on spans (default: kinship-server)
"""

import os
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

OPERATION_KIND = "kinship.operation.kind"

MUTATION_SPANS = ("create_person", "update_person", "delete_person")
TREE_SPANS = ("get_family_tree", "get_descendants", "get_ancestors")


def is_tracing_enabled() -> bool:
    """Check if tracing is enabled via environment variable."""
    return os.getenv("KINSHIP_TRACING_ENABLED", "false").lower() == "true"


def get_otlp_endpoint() -> str:
    """Get the OTLP collector endpoint."""
    return os.getenv("KINSHIP_OTLP_ENDPOINT", "http://localhost:4318")


def get_service_name() -> str:
    return os.getenv("KINSHIP_SERVICE_NAME", "kinship-server")


class OperationKindProcessor(SpanProcessor):
    """Tags each span with the kind of graph operation it covers.

    Mappings:
        - create/update/delete spans -> mutation
        - family tree, descendant and ancestor spans -> tree
        - everything else -> query
    """

    def on_start(self, span: Any, parent_context: Any = None) -> None:
        if not hasattr(span, "name") or not hasattr(span, "set_attribute"):
            return

        if span.name in MUTATION_SPANS:
            span.set_attribute(OPERATION_KIND, "mutation")
        elif span.name in TREE_SPANS:
            span.set_attribute(OPERATION_KIND, "tree")
        else:
            span.set_attribute(OPERATION_KIND, "query")

    def on_end(self, span: ReadableSpan) -> None:
        pass

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


_tracer_provider: TracerProvider | None = None


def initialize_tracing() -> TracerProvider | None:
    """Initialize OpenTelemetry tracing.

    Returns:
        TracerProvider if tracing is enabled, None otherwise.
    """
    global _tracer_provider

    if not is_tracing_enabled():
        return None

    if _tracer_provider is not None:
        return _tracer_provider

    exporter = OTLPSpanExporter(endpoint=f"{get_otlp_endpoint()}/v1/traces")

    _tracer_provider = TracerProvider(
        resource=Resource.create({"service.name": get_service_name()})
    )
    # Tagging processor first so exported spans carry the attribute
    _tracer_provider.add_span_processor(OperationKindProcessor())
    _tracer_provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(_tracer_provider)
    return _tracer_provider


def get_tracer(name: str = "kinship-server") -> trace.Tracer:
    """Get a tracer instance (no-op if tracing disabled)."""
    return trace.get_tracer(name)
