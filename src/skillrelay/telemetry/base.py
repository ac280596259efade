"""Span model and the provider interface every telemetry backend implements.

Turns, skill forwards, skill callbacks, state I/O and error recovery each
open one span. Spans nest lexically through :meth:`TelemetryProvider.span`,
which is the only way skillrelay itself opens them.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class SpanKind(StrEnum):
    TURN = "turn"
    SKILL_FORWARD = "skill.forward"
    SKILL_CALLBACK = "skill.callback"
    STATE_LOAD = "state.load"
    STATE_SAVE = "state.save"
    STATE_DELETE = "state.delete"
    ERROR_RECOVERY = "turn.error_recovery"


class Attr:
    """Attribute keys set on skillrelay spans."""

    ACTIVITY_TYPE = "activity.type"
    ERROR_TYPE = "error.type"

    SKILL_ID = "skill.id"
    SKILL_ENDPOINT = "skill.endpoint"
    SKILL_CONVERSATION_ID = "skill.conversation_id"
    SKILL_STATUS = "skill.status"

    STATE_FORCE = "state.force"


@dataclass
class Span:
    kind: SpanKind
    name: str
    conversation_id: str | None = None
    channel_id: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    started: float = field(default_factory=time.monotonic)
    ended: float | None = None
    status: str = "open"
    error_message: str | None = None

    @property
    def duration_ms(self) -> float | None:
        if self.ended is None:
            return None
        return (self.ended - self.started) * 1000

    def finish(self, error: BaseException | None = None) -> None:
        """Close the span; cancellation is recorded apart from failures."""
        self.ended = time.monotonic()
        if error is None:
            self.status = "ok"
        elif isinstance(error, asyncio.CancelledError):
            self.status = "cancelled"
        else:
            self.status = "error"
            self.error_message = str(error) or type(error).__name__


class TelemetryProvider(ABC):
    """Receives the spans and metrics skillrelay emits.

    ``NoopTelemetryProvider`` is the default everywhere a provider is
    optional.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        conversation_id: str | None = None,
        channel_id: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> str:
        """Open a span and return an ID for :meth:`end_span`."""

    @abstractmethod
    def end_span(self, span_id: str, *, error: BaseException | None = None) -> None:
        """Close a span. Unknown IDs are ignored."""

    @abstractmethod
    def set_attribute(self, span_id: str, key: str, value: Any) -> None: ...

    @abstractmethod
    def record_metric(
        self,
        name: str,
        value: float,
        *,
        unit: str = "",
        attributes: dict[str, Any] | None = None,
    ) -> None: ...

    def close(self) -> None:  # noqa: B027
        """Release exporter resources. Called from ``RootAdapter.close``."""

    @contextmanager
    def span(self, kind: SpanKind, name: str, **kwargs: Any) -> Iterator[str]:
        """Open a span for the duration of the block.

        The span is closed with the exception when the block raises,
        including on cancellation, and the exception is re-raised.
        """
        span_id = self.start_span(kind, name, **kwargs)
        try:
            yield span_id
        except BaseException as exc:
            self.end_span(span_id, error=exc)
            raise
        self.end_span(span_id)


class SpanRecorder(TelemetryProvider):
    """Base for providers that keep open spans in memory.

    Subclasses decide what happens to a span once it is finished.
    """

    def __init__(self) -> None:
        self._open: dict[str, Span] = {}

    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        conversation_id: str | None = None,
        channel_id: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> str:
        span = Span(
            kind,
            name,
            conversation_id=conversation_id,
            channel_id=channel_id,
            attributes=dict(attributes or {}),
        )
        self._open[span.id] = span
        self._started(span)
        return span.id

    def end_span(self, span_id: str, *, error: BaseException | None = None) -> None:
        span = self._open.pop(span_id, None)
        if span is None:
            return
        span.finish(error)
        self._finished(span)

    def set_attribute(self, span_id: str, key: str, value: Any) -> None:
        if span_id in self._open:
            self._open[span_id].attributes[key] = value

    @property
    def open_spans(self) -> list[Span]:
        return list(self._open.values())

    def _started(self, span: Span) -> None:  # noqa: B027
        pass

    @abstractmethod
    def _finished(self, span: Span) -> None: ...
