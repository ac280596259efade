"""Export skillrelay spans and metrics through OpenTelemetry.

Needs the ``opentelemetry`` extra::

    pip install skillrelay[opentelemetry]
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextvars import Token
from typing import Any

from opentelemetry import context as otel_context
from opentelemetry import metrics, trace
from opentelemetry.context import Context
from opentelemetry.metrics import Histogram, MeterProvider
from opentelemetry.trace import Status, StatusCode, TracerProvider

from skillrelay.telemetry.base import SpanKind, TelemetryProvider

logger = logging.getLogger("skillrelay.telemetry.otel")

ATTRIBUTE_PREFIX = "skillrelay."


class OpenTelemetryProvider(TelemetryProvider):
    """Turns each skillrelay span into an OpenTelemetry span.

    An open span is made the current OTel span until it ends, so a skill
    forward or state save that runs inside a turn is exported as a child of
    that turn. Attribute keys get the ``skillrelay.`` prefix. Metrics are
    recorded on histograms, one per metric name.

    Example::

        provider = TracerProvider()
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
        adapter = RootAdapter(sender, telemetry=OpenTelemetryProvider(tracer_provider=provider))
    """

    def __init__(
        self,
        *,
        tracer_provider: TracerProvider | None = None,
        meter_provider: MeterProvider | None = None,
        instrumentation_name: str = "skillrelay",
    ) -> None:
        self._tracer_provider = tracer_provider
        self._tracer = trace.get_tracer(instrumentation_name, tracer_provider=tracer_provider)
        self._meter = metrics.get_meter(instrumentation_name, meter_provider=meter_provider)
        self._histograms: dict[str, Histogram] = {}
        self._open: dict[str, tuple[trace.Span, Token[Context]]] = {}

    @property
    def name(self) -> str:
        return "opentelemetry"

    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        conversation_id: str | None = None,
        channel_id: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> str:
        span_attributes = dict(attributes or {})
        span_attributes["span_kind"] = str(kind)
        if conversation_id:
            span_attributes["conversation_id"] = conversation_id
        if channel_id:
            span_attributes["channel_id"] = channel_id

        otel_span = self._tracer.start_span(name, attributes=_otel_attributes(span_attributes))
        token = otel_context.attach(trace.set_span_in_context(otel_span))
        span_id = uuid.uuid4().hex
        self._open[span_id] = (otel_span, token)
        return span_id

    def end_span(self, span_id: str, *, error: BaseException | None = None) -> None:
        entry = self._open.pop(span_id, None)
        if entry is None:
            return
        otel_span, token = entry
        if error is None:
            otel_span.set_status(Status(StatusCode.OK))
        elif isinstance(error, asyncio.CancelledError):
            otel_span.set_attribute(f"{ATTRIBUTE_PREFIX}cancelled", True)
        else:
            otel_span.record_exception(error)
            otel_span.set_status(Status(StatusCode.ERROR, str(error)))
        otel_span.end()
        otel_context.detach(token)

    def set_attribute(self, span_id: str, key: str, value: Any) -> None:
        entry = self._open.get(span_id)
        if entry is not None:
            entry[0].set_attributes(_otel_attributes({key: value}))

    def record_metric(
        self,
        name: str,
        value: float,
        *,
        unit: str = "",
        attributes: dict[str, Any] | None = None,
    ) -> None:
        histogram = self._histograms.get(name)
        if histogram is None:
            histogram = self._meter.create_histogram(name, unit=unit)
            self._histograms[name] = histogram
        histogram.record(value, attributes=_otel_attributes(attributes or {}))

    def close(self) -> None:
        if self._open:
            logger.warning("Ending %d open spans on close", len(self._open))
        for span_id in list(self._open):
            self.end_span(span_id)
        force_flush = getattr(self._tracer_provider, "force_flush", None)
        if force_flush is not None:
            force_flush()


def _otel_attributes(attributes: dict[str, Any]) -> dict[str, str | bool | int | float]:
    """Prefix keys and coerce values to types OpenTelemetry accepts; drop ``None``."""
    result: dict[str, str | bool | int | float] = {}
    for key, value in attributes.items():
        if value is None:
            continue
        if not isinstance(value, (str, bool, int, float)):
            value = str(value)
        result[f"{ATTRIBUTE_PREFIX}{key}"] = value
    return result
