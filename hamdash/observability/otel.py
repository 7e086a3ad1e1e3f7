"""OpenTelemetry tracing/metrics with an optional Prometheus endpoint for hamdash."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from fastapi import FastAPI

from hamdash import config

logger = logging.getLogger("hamdash.observability")

# (name, description, label names) shared by both backends
_INGESTION = ("hamdash_transcripts_parsed_total", "Transcript files processed during a refresh", ["entity", "result", "project"])
_INGESTION_LATENCY = ("hamdash_transcript_parse_ms", "Per-transcript parse latency", ["entity", "result", "project"])
_PARSER_FAILURES = ("hamdash_parser_failures_total", "Transcript or log files skipped as unreadable", ["parser", "project"])
_TOKENS = ("hamdash_tokens_total", "Tokens observed in parsed sessions", ["model", "direction", "project"])
_COST = ("hamdash_cost_usd_total", "Estimated spend of parsed sessions", ["model", "project"])
_REFRESHES = ("hamdash_refreshes_total", "Snapshot refreshes", ["project"])
_REFRESH_LATENCY = ("hamdash_refresh_ms", "Snapshot refresh latency", ["project"])


@dataclass
class _Instruments:
    ingestion: Any = None
    ingestion_latency: Any = None
    parser_failures: Any = None
    tokens: Any = None
    cost: Any = None
    refreshes: Any = None
    refresh_latency: Any = None


_initialized = False
_enabled = False
_prom_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None
_otel = _Instruments()
_prom = _Instruments()


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip().rstrip("/")
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _label(value: str | None, fallback: str = "unknown") -> str:
    return (value or "").strip() or fallback


def _start_prometheus() -> None:
    global _prom_enabled
    try:
        from prometheus_client import Counter, Histogram, start_http_server

        start_http_server(config.PROM_PORT)
        _prom.ingestion = Counter(*_INGESTION)
        _prom.ingestion_latency = Histogram(*_INGESTION_LATENCY)
        _prom.parser_failures = Counter(*_PARSER_FAILURES)
        _prom.tokens = Counter(*_TOKENS)
        _prom.cost = Counter(*_COST)
        _prom.refreshes = Counter(*_REFRESHES)
        _prom.refresh_latency = Histogram(*_REFRESH_LATENCY)
        _prom_enabled = True
        logger.info("Prometheus metrics server listening on port %s", config.PROM_PORT)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Prometheus metrics not started: %s", exc)
        _prom_enabled = False


def initialize(app: FastAPI | None = None) -> None:
    """Wire tracing and metrics once; later calls only instrument ``app``."""
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (HAMDASH_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable (install hamdash[otel]): %s", exc)
        return

    service_name = config.OTEL_SERVICE_NAME or "hamdash"
    resource = Resource.create({"service.name": service_name, "service.namespace": "ham"})

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=_normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces") or None))
    )
    trace.set_tracer_provider(trace_provider)

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=_normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics") or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("hamdash")

    _otel.ingestion = meter.create_counter(_INGESTION[0], unit="1", description=_INGESTION[1])
    _otel.ingestion_latency = meter.create_histogram(_INGESTION_LATENCY[0], unit="ms", description=_INGESTION_LATENCY[1])
    _otel.parser_failures = meter.create_counter(_PARSER_FAILURES[0], unit="1", description=_PARSER_FAILURES[1])
    _otel.tokens = meter.create_counter(_TOKENS[0], unit="1", description=_TOKENS[1])
    _otel.cost = meter.create_counter(_COST[0], unit="usd", description=_COST[1])
    _otel.refreshes = meter.create_counter(_REFRESHES[0], unit="1", description=_REFRESHES[1])
    _otel.refresh_latency = meter.create_histogram(_REFRESH_LATENCY[0], unit="ms", description=_REFRESH_LATENCY[1])

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = trace.get_tracer("hamdash")
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        _start_prometheus()

    logger.info("OpenTelemetry initialized (service=%s endpoint=%s)", service_name, config.OTEL_ENDPOINT)


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    for step in (
        lambda: _fastapi_instrumentor.uninstrument_app(app) if app and _fastapi_instrumentor else None,
        lambda: _meter_provider.shutdown() if _meter_provider is not None else None,
        lambda: _trace_provider.shutdown() if _trace_provider is not None else None,
    ):
        try:
            step()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Observability shutdown step failed: %s", exc)
    _enabled = False


def is_enabled() -> bool:
    return _enabled


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None) -> Iterator[Any]:
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def record_ingestion(entity: str, result: str, duration_ms: float, *, project_id: str) -> None:
    labels = {"entity": _label(entity), "result": _label(result), "project": _label(project_id)}
    latency = max(0.0, float(duration_ms))
    if _enabled:
        _otel.ingestion.add(1, labels)
        _otel.ingestion_latency.record(latency, labels)
    if _prom_enabled:
        _prom.ingestion.labels(**labels).inc()
        _prom.ingestion_latency.labels(**labels).observe(latency)


def record_parser_failure(parser: str, *, project_id: str) -> None:
    labels = {"parser": _label(parser), "project": _label(project_id)}
    if _enabled:
        _otel.parser_failures.add(1, labels)
    if _prom_enabled:
        _prom.parser_failures.labels(**labels).inc()


def record_token_cost(
    *,
    project_id: str,
    model: str,
    token_input: int,
    token_output: int,
    cost_usd: float,
) -> None:
    base = {"model": _label(model), "project": _label(project_id)}
    directions = (("input", max(0, int(token_input))), ("output", max(0, int(token_output))))
    for direction, count in directions:
        if count <= 0:
            continue
        if _enabled:
            _otel.tokens.add(count, {**base, "direction": direction})
        if _prom_enabled:
            _prom.tokens.labels(**base, direction=direction).inc(count)
    if cost_usd > 0:
        if _enabled:
            _otel.cost.add(float(cost_usd), base)
        if _prom_enabled:
            _prom.cost.labels(**base).inc(float(cost_usd))


def record_refresh(duration_ms: float, *, project_id: str) -> None:
    labels = {"project": _label(project_id)}
    latency = max(0.0, float(duration_ms))
    if _enabled:
        _otel.refreshes.add(1, labels)
        _otel.refresh_latency.record(latency, labels)
    if _prom_enabled:
        _prom.refreshes.labels(**labels).inc()
        _prom.refresh_latency.labels(**labels).observe(latency)
