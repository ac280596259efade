"""Telemetry providers for skillrelay.

``OpenTelemetryProvider`` lives in :mod:`skillrelay.telemetry.opentelemetry`
and is only importable with the ``opentelemetry`` extra installed.
"""

from skillrelay.telemetry.base import Attr, Span, SpanKind, SpanRecorder, TelemetryProvider
from skillrelay.telemetry.console import ConsoleTelemetryProvider
from skillrelay.telemetry.mock import Metric, MockTelemetryProvider
from skillrelay.telemetry.noop import NoopTelemetryProvider

__all__ = [
    "Attr",
    "ConsoleTelemetryProvider",
    "Metric",
    "MockTelemetryProvider",
    "NoopTelemetryProvider",
    "Span",
    "SpanKind",
    "SpanRecorder",
    "TelemetryProvider",
]
