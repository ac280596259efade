"""In-memory telemetry provider for test assertions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from skillrelay.telemetry.base import Span, SpanKind, SpanRecorder


@dataclass(frozen=True)
class Metric:
    name: str
    value: float
    unit: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)


class MockTelemetryProvider(SpanRecorder):
    """Keeps every finished span and recorded metric.

    Example::

        telemetry = MockTelemetryProvider()
        client = SkillHttpClient(telemetry=telemetry)
        ...
        forward = telemetry.get_spans(SpanKind.SKILL_FORWARD)[0]
        assert forward.attributes[Attr.SKILL_STATUS] == 200
    """

    def __init__(self) -> None:
        super().__init__()
        self.spans: list[Span] = []
        self.metrics: list[Metric] = []

    @property
    def name(self) -> str:
        return "mock"

    def get_spans(self, kind: SpanKind) -> list[Span]:
        return [span for span in self.spans if span.kind == kind]

    def get_metrics(self, name: str) -> list[Metric]:
        return [metric for metric in self.metrics if metric.name == name]

    def record_metric(
        self,
        name: str,
        value: float,
        *,
        unit: str = "",
        attributes: dict[str, Any] | None = None,
    ) -> None:
        self.metrics.append(Metric(name, value, unit, dict(attributes or {})))

    def reset(self) -> None:
        self._open.clear()
        self.spans.clear()
        self.metrics.clear()

    def _finished(self, span: Span) -> None:
        self.spans.append(span)
