"""OpenTelemetry and logging setup for the ordering service."""

import logging
import os
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.botocore import BotocoreInstrumentor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

SERVICE_NAME = "menu-ordering-svc"

_providers_installed = False


def get_service_resource() -> Resource:
    """Resource attributes attached to every span and metric."""
    return Resource.create(
        {
            "service.name": os.getenv("OTEL_SERVICE_NAME", SERVICE_NAME),
            "service.version": os.getenv("SERVICE_VERSION", "1.0.0"),
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        }
    )


def _install_providers(resource: Resource, export: bool) -> None:
    """Install global tracer and meter providers.

    Args:
        resource: Service resource shared by both providers
        export: Ship spans and metrics to the OTLP collector
    """
    tracer_provider = TracerProvider(resource=resource)
    metric_readers = []

    if export:
        endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318").rstrip("/")
        tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces"))
        )
        metric_readers.append(
            PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=f"{endpoint}/v1/metrics"),
                export_interval_millis=int(os.getenv("OTEL_METRIC_EXPORT_INTERVAL", "60000")),
            )
        )
        logger.info(f"Exporting traces and metrics to {endpoint}")

    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=metric_readers))


def setup_observability(app: Any = None, enable_exporters: bool = True) -> None:
    """Initialize tracing, metrics and instrumentation.

    Global providers and botocore instrumentation are installed once per
    process; later calls only instrument the given app.

    Args:
        app: Optional FastAPI application to instrument
        enable_exporters: Ship telemetry over OTLP (always off when ENVIRONMENT=test)
    """
    global _providers_installed

    if not _providers_installed:
        export = enable_exporters and os.getenv("ENVIRONMENT", "development") != "test"
        _install_providers(get_service_resource(), export)
        # DynamoDB calls go through botocore
        BotocoreInstrumentor().instrument()
        _providers_installed = True

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI application instrumented")


def configure_logging(log_level: str = "INFO") -> None:
    """Send JSON-formatted records from every logger to stderr.

    Args:
        log_level: Fallback level when LOG_LEVEL is not set
    """
    level_name = os.getenv("LOG_LEVEL", log_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(
        jsonlogger.JsonFormatter("%(asctime)s %(name)s %(levelname)s %(message)s", timestamp=True)
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # botocore is chatty at DEBUG
    logging.getLogger("botocore").setLevel(max(level, logging.INFO))

    logger.info(f"JSON logging configured at {level_name}")
