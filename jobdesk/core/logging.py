"""Logging and tracing utilities for the JobDesk API."""

from __future__ import annotations

import logging
from logging.config import dictConfig

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from jobdesk.core.config import Settings

_TRACER_INITIALISED = False
_METER_PROVIDER: MeterProvider | None = None

_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


class ExtraFieldsFormatter(logging.Formatter):
    """Append ``extra=`` fields to the formatted line as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = {key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS}
        if not extras:
            return base
        rendered = " ".join(f"{key}={value}" for key, value in sorted(extras.items()))
        return f"{base} {rendered}"


def _parse_headers(header_string: str | None) -> dict[str, str]:
    if not header_string:
        return {}
    headers: dict[str, str] = {}
    for item in header_string.split(","):
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        headers[key.strip()] = value.strip()
    return headers


def configure_logging(settings: Settings) -> logging.Logger:
    """Configure the application logger based on settings."""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "()": ExtraFieldsFormatter,
                    "fmt": settings.log_format,
                }
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": level,
                }
            },
            "root": {
                "handlers": ["default"],
                "level": level,
            },
        }
    )

    logger = logging.getLogger(settings.app_name)
    logger.setLevel(level)
    return logger


def _metrics_endpoint(endpoint: str) -> str:
    base = endpoint.rstrip("/")
    if base.endswith("/v1/traces"):
        base = base[: -len("/v1/traces")]
    return f"{base}/v1/metrics"


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Initialise the OpenTelemetry tracer and meter providers if enabled in settings."""

    global _TRACER_INITIALISED, _METER_PROVIDER

    if _TRACER_INITIALISED or not settings.otel_enabled:
        return None

    resource = Resource(attributes={"service.name": settings.otel_service_name})
    provider = TracerProvider(resource=resource)

    span_kwargs: dict[str, object] = {}
    metric_kwargs: dict[str, object] = {}
    if settings.otel_exporter_otlp_endpoint:
        span_kwargs["endpoint"] = settings.otel_exporter_otlp_endpoint
        metric_kwargs["endpoint"] = _metrics_endpoint(settings.otel_exporter_otlp_endpoint)
    headers = _parse_headers(settings.otel_exporter_otlp_headers)
    if headers:
        span_kwargs["headers"] = headers
        metric_kwargs["headers"] = headers

    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**span_kwargs)))
    trace.set_tracer_provider(provider)

    reader = PeriodicExportingMetricReader(OTLPMetricExporter(**metric_kwargs))
    _METER_PROVIDER = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(_METER_PROVIDER)

    _TRACER_INITIALISED = True
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    """Shut down the configured tracer and meter providers."""

    if provider is None:
        return

    global _TRACER_INITIALISED, _METER_PROVIDER
    provider.shutdown()
    if _METER_PROVIDER is not None:
        _METER_PROVIDER.shutdown()
        _METER_PROVIDER = None
    _TRACER_INITIALISED = False
