"""Fire-and-forget telemetry sinks.

イベント送信の失敗はスケジューリングの正しさに影響させない。`emit_safely` は
シンク側の例外をログに残して握りつぶす唯一の経路。
"""

from __future__ import annotations

from typing import Any, Protocol

from .logging import logger


class EventSink(Protocol):
    def emit(self, event: str, **fields: Any) -> None: ...


class StructlogEventSink:
    """Writes telemetry events as structured log lines."""

    def __init__(self, channel: str = "telemetry") -> None:
        self._log = logger.bind(channel=channel)

    def emit(self, event: str, **fields: Any) -> None:
        self._log.info(event, **fields)


class RecordingEventSink:
    """Keeps events in memory; handy for assertions and local debugging."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, dict(fields)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def emit_safely(sink: EventSink | None, event: str, **fields: Any) -> None:
    if sink is None:
        return
    try:
        sink.emit(event, **fields)
    except Exception as exc:  # telemetry must never break scheduling
        logger.warning("event_sink_failed", event_name=event, error=repr(exc))
