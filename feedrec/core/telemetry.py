"""
Telemetry configuration (Metrics & Tracing).

HTTP metrics come from the Prometheus instrumentator. The pipeline counters
below count degradations that are absorbed inside a request or a background
job and never surface as an HTTP error. Both are exposed on /metrics.
"""
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

from feedrec.config import get_settings

RECALL_DEGRADED = Counter(
    "feedrec_recall_degraded_total",
    "Recall strategies that contributed no candidates because they failed",
    ["strategy", "reason"],
)
FEATURE_LOOKUP_DROPPED = Counter(
    "feedrec_feature_lookup_dropped_total",
    "Feature lookups left out of a request's feature set",
    ["kind", "reason"],
)
INTEREST_DEAD_LETTERS = Counter(
    "feedrec_interest_dead_letters_total",
    "Interest updates moved to the dead-letter buffer",
    ["reason"],
)
STAGE_FAILURES = Counter(
    "feedrec_stage_failures_total",
    "Recommendation requests aborted by an unexpected stage error",
    ["stage"],
)

EXCLUDED_HANDLERS = ["/metrics", "/health", "/health/ready"]


def setup_telemetry(app: FastAPI) -> None:
    """
    Setup Observability (Metrics & Tracing).

    1. Prometheus Metrics via /metrics
    2. OpenTelemetry Tracing via OTLP
    """
    settings = get_settings()

    if settings.ENABLE_PROMETHEUS:
        instrumentator = Instrumentator(
            should_group_status_codes=False,
            should_ignore_untemplated=True,
            should_respect_env_var=True,
            should_instrument_requests_inprogress=True,
            excluded_handlers=EXCLUDED_HANDLERS,
            env_var_name="ENABLE_METRICS",
            inprogress_name="feedrec_requests_inprogress",
            inprogress_labels=True,
        )
        instrumentator.instrument(app).expose(app, include_in_schema=False)

    if settings.ENABLE_OTEL:
        resource = Resource.create(attributes={
            "service.name": settings.APP_NAME,
            "service.version": settings.APP_VERSION,
            "deployment.environment": "production" if not settings.DEBUG else "development",
        })

        provider = TracerProvider(resource=resource)
        # Default endpoint is localhost:4317
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
        trace.set_tracer_provider(provider)

        FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)
