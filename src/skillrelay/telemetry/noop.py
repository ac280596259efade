"""Telemetry provider that discards everything."""

from __future__ import annotations

from typing import Any

from skillrelay.telemetry.base import SpanKind, TelemetryProvider


class NoopTelemetryProvider(TelemetryProvider):
    @property
    def name(self) -> str:
        return "noop"

    def start_span(self, kind: SpanKind, name: str, **kwargs: Any) -> str:
        return ""

    def end_span(self, span_id: str, *, error: BaseException | None = None) -> None:
        return None

    def set_attribute(self, span_id: str, key: str, value: Any) -> None:
        return None

    def record_metric(self, name: str, value: float, **kwargs: Any) -> None:
        return None
