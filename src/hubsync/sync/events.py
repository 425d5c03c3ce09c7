"""Append-only event log for a sync run.

Replaces a caller-supplied emit callback with a typed channel: events are
appended in completion order and returned alongside the terminal result.
An optional sink still receives every event as it happens. emit() never
raises; a failing sink is logged and ignored.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from src.hubsync.sync.schemas import EventLevel, SyncEvent

logger = structlog.get_logger(__name__)

EventSink = Callable[[SyncEvent], None]


class SyncEventLog:
    """Collects the events of one sync run.

    Args:
        sink: Optional callable invoked with each event after it is recorded.
    """

    def __init__(self, sink: EventSink | None = None) -> None:
        self._events: list[SyncEvent] = []
        self._sink = sink

    @property
    def events(self) -> list[SyncEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def emit(
        self,
        level: EventLevel,
        message: str,
        *,
        object_type: str | None = None,
        external_id: int | None = None,
        target_id: str | None = None,
    ) -> SyncEvent:
        event = SyncEvent(
            level=level,
            message=message,
            object_type=object_type,
            external_id=external_id,
            target_id=target_id,
        )
        self._events.append(event)

        log = logger.error if level == EventLevel.ERROR else logger.info
        log(
            "sync.event",
            message=message,
            object_type=object_type,
            external_id=external_id,
            target_id=target_id,
        )

        if self._sink is not None:
            try:
                self._sink(event)
            except Exception:
                logger.warning("sync.event_sink_failed", exc_info=True)
        return event

    def info(self, message: str, **fields) -> SyncEvent:
        return self.emit(EventLevel.INFO, message, **fields)

    def error(self, message: str, **fields) -> SyncEvent:
        return self.emit(EventLevel.ERROR, message, **fields)
