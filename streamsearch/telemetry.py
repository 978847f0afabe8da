"""Telemetry contracts for streamed search turns.

A minimal schema describing how each turn ended, for downstream teams to map onto
their logging/metrics/tracing systems.
"""

from __future__ import annotations

import time
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field


class TurnTelemetryEvent(BaseModel):
    event_type: Literal["turn_completed", "turn_failed", "turn_cancelled"]
    outcome: Literal["completed", "failed", "cancelled"]
    request_id: int
    session_id: str | None = None
    follow_up: bool = False
    chunk_count: int = 0
    skipped_count: int = 0
    product_count: int = 0
    duration_ms: float | None = None
    error: str | None = None
    created_at_s: float = Field(default_factory=time.time)
    extra: dict[str, Any] = Field(default_factory=dict)


class TurnTelemetrySink(Protocol):
    async def emit(self, event: TurnTelemetryEvent) -> None: ...


class NoOpTurnTelemetrySink:
    async def emit(self, event: TurnTelemetryEvent) -> None:
        _ = event
        return None


__all__ = [
    "NoOpTurnTelemetrySink",
    "TurnTelemetryEvent",
    "TurnTelemetrySink",
]
