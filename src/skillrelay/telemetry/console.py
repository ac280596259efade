"""Telemetry provider that writes finished spans to the ``skillrelay.telemetry`` logger."""

from __future__ import annotations

import logging
from typing import Any

from skillrelay.telemetry.base import Span, SpanRecorder

logger = logging.getLogger("skillrelay.telemetry")


class ConsoleTelemetryProvider(SpanRecorder):
    """Logs one line per finished span and per metric.

    Failed spans are logged at WARNING, everything else at *level*. Span
    fields are also passed as ``extra`` so structured log handlers can
    index them::

        logging.basicConfig(level=logging.INFO)
        adapter = RootAdapter(sender, telemetry=ConsoleTelemetryProvider())
    """

    def __init__(self, *, level: int = logging.INFO) -> None:
        super().__init__()
        self._level = level

    @property
    def name(self) -> str:
        return "console"

    def record_metric(
        self,
        name: str,
        value: float,
        *,
        unit: str = "",
        attributes: dict[str, Any] | None = None,
    ) -> None:
        logger.log(
            self._level,
            "metric %s=%.1f%s%s",
            name,
            value,
            unit,
            _format_attributes(attributes),
            extra={"metric": name, "value": value},
        )

    def close(self) -> None:
        if self._open:
            logger.warning(
                "Telemetry closed with %d open spans: %s",
                len(self._open),
                ", ".join(span.name for span in self._open.values()),
            )
        self._open.clear()

    def _started(self, span: Span) -> None:
        logger.debug(
            "%s started", span.name, extra={"conversation_id": span.conversation_id}
        )

    def _finished(self, span: Span) -> None:
        level = logging.WARNING if span.status == "error" else self._level
        suffix = f" error={span.error_message}" if span.error_message else ""
        logger.log(
            level,
            "%s %s in %.1fms%s%s",
            span.name,
            span.status,
            span.duration_ms or 0.0,
            _format_attributes(span.attributes),
            suffix,
            extra={
                "span_kind": str(span.kind),
                "conversation_id": span.conversation_id,
                "channel_id": span.channel_id,
            },
        )


def _format_attributes(attributes: dict[str, Any] | None) -> str:
    if not attributes:
        return ""
    return " " + " ".join(f"{key}={value}" for key, value in attributes.items())
