"""In-memory pub/sub of session events for the presentation layer."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Coroutine, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SessionEventType(str, Enum):
    STATE_CHANGE = "STATE_CHANGE"
    PENDING = "PENDING"
    TURN = "TURN"
    REVEAL = "REVEAL"
    ERROR = "ERROR"


_CRITICAL_TYPES = frozenset({SessionEventType.STATE_CHANGE, SessionEventType.TURN, SessionEventType.ERROR})


class SessionEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    event_type: SessionEventType
    content: Any
    request_id: int | None = None
    created_at: datetime = Field(default_factory=_utc_now)


@dataclass(slots=True)
class _Subscription:
    queue: asyncio.Queue[SessionEvent]
    event_types: frozenset[SessionEventType] | None

    def accepts(self, event: SessionEvent) -> bool:
        return self.event_types is None or event.event_type in self.event_types


class SessionEventBroker:
    """Fans session events out to bounded subscriber queues.

    When a queue is full, ``PENDING`` and ``REVEAL`` events are dropped for that
    subscriber; critical events evict the oldest queued event instead.
    """

    def __init__(self, *, max_queue_size: int = 500) -> None:
        self._max_queue_size = max_queue_size
        self._subs: list[_Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    async def subscribe(
        self,
        *,
        event_types: Iterable[SessionEventType] | None = None,
    ) -> tuple[asyncio.Queue[SessionEvent], Callable[[], Coroutine[Any, Any, None]]]:
        queue: asyncio.Queue[SessionEvent] = asyncio.Queue(maxsize=self._max_queue_size)
        sub = _Subscription(
            queue=queue,
            event_types=frozenset(event_types) if event_types is not None else None,
        )
        self._subs.append(sub)

        async def _unsubscribe() -> None:
            if sub in self._subs:
                self._subs.remove(sub)

        return queue, _unsubscribe

    def publish(self, event: SessionEvent) -> None:
        critical = event.event_type in _CRITICAL_TYPES
        for sub in list(self._subs):
            if not sub.accepts(event):
                continue
            if sub.queue.full():
                if not critical:
                    continue
                try:
                    sub.queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            try:
                sub.queue.put_nowait(event)
            except asyncio.QueueFull:
                continue


__all__ = ["SessionEvent", "SessionEventBroker", "SessionEventType"]
