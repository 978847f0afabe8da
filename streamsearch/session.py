"""Streaming search session: one push connection per query, one turn at a time."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .accumulator import TurnAccumulator
from .broker import SessionEvent, SessionEventBroker, SessionEventType
from .codec import ChunkCodec, DoneChunk, ErrorChunk
from .config import StreamSearchConfig
from .errors import ConnectionAlreadyOpen, DecodeError, TransportError
from .history import SearchSession, Turn
from .reveal import RevealScheduler, RevealSequence
from .telemetry import NoOpTurnTelemetrySink, TurnTelemetryEvent, TurnTelemetrySink
from .transport import StreamConnection, StreamRequest, StreamTransport
from .types import AssistantTurn, PendingTurnSnapshot, ProductAttachment, UserTurn

logger = logging.getLogger("streamsearch.session")


class StreamState(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    STREAMING = "STREAMING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


_ACTIVE_STATES = frozenset({StreamState.CONNECTING, StreamState.STREAMING})


@dataclass(slots=True)
class _TurnStats:
    request_id: int
    follow_up: bool
    started_at: float = field(default_factory=time.monotonic)
    chunk_count: int = 0
    skipped_count: int = 0

    @property
    def duration_ms(self) -> float:
        return (time.monotonic() - self.started_at) * 1000


def _retrieve_result(task: asyncio.Task[Any]) -> None:
    if not task.cancelled():
        task.exception()


def _require_query(query: str) -> str:
    text = query.strip()
    if not text:
        raise ValueError("query must be non-empty")
    return text


class StreamSession:
    """Drives streamed search turns for a single :class:`SearchSession`.

    ``start`` begins a new conversation and ``start_follow_up`` continues the
    current one with the server-issued session id. Both close any open
    connection before opening a new one, so at most one connection is ever
    open. Chunks are applied in arrival order by a background reader; the
    finished :class:`AssistantTurn` only reaches ``history`` when the terminal
    marker arrives.
    """

    def __init__(
        self,
        transport: StreamTransport,
        *,
        config: StreamSearchConfig | None = None,
        search_session: SearchSession | None = None,
        codec: ChunkCodec | None = None,
        reveal_scheduler: RevealScheduler | None = None,
        telemetry_sink: TurnTelemetrySink | None = None,
    ) -> None:
        self._config = config or StreamSearchConfig()
        self._transport = transport
        self._search = search_session or SearchSession()
        self._codec = codec or ChunkCodec(self._config.done_marker)
        self._accumulator = TurnAccumulator(self._search)
        self._reveal_scheduler = reveal_scheduler or RevealScheduler(
            initial_delay_s=self._config.reveal_initial_delay_s,
            stagger_s=self._config.reveal_stagger_s,
        )
        self._broker = SessionEventBroker(max_queue_size=self._config.update_queue_size)
        self._telemetry = telemetry_sink or NoOpTurnTelemetrySink()
        self._state = StreamState.IDLE
        self._request_id = 0
        self._stats: _TurnStats | None = None
        self._connection: StreamConnection | None = None
        self._connect_task: asyncio.Task[StreamConnection] | None = None
        self._reader: asyncio.Task[AssistantTurn] | None = None
        self._last_error: TransportError | None = None
        self._reveal: RevealSequence | None = None
        self._reveal_task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> StreamSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def config(self) -> StreamSearchConfig:
        return self._config

    @property
    def search_session(self) -> SearchSession:
        return self._search

    @property
    def session_id(self) -> str | None:
        return self._search.session_id

    @property
    def history(self) -> tuple[Turn, ...]:
        return self._search.history.turns

    @property
    def pending(self) -> PendingTurnSnapshot | None:
        if self._state not in _ACTIVE_STATES:
            return None
        return self._accumulator.snapshot()

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    @property
    def last_error(self) -> TransportError | None:
        return self._last_error

    @property
    def reveal(self) -> RevealSequence | None:
        return self._reveal

    @property
    def broker(self) -> SessionEventBroker:
        return self._broker

    async def subscribe(
        self,
        *,
        event_types: Iterable[SessionEventType] | None = None,
    ) -> tuple[asyncio.Queue[SessionEvent], Callable[[], Coroutine[Any, Any, None]]]:
        return await self._broker.subscribe(event_types=event_types)

    async def start(self, query: str) -> None:
        """Begin a new conversation. Clears history and the session id."""
        query = _require_query(query)
        await self.cancel()
        self.cancel_reveal()
        self._search.reset()
        await self._open(query, continuation=None, follow_up=False)

    async def start_follow_up(self, query: str) -> None:
        """Continue the current conversation using the latest session id."""
        query = _require_query(query)
        await self.cancel()
        await self._open(query, continuation=self._search.continuation_token(), follow_up=True)

    async def wait_turn(self) -> AssistantTurn | None:
        """Wait for the in-flight turn.

        Returns the finished turn, ``None`` if it was cancelled, and raises
        :class:`TransportError` if it failed.
        """
        reader = self._reader
        if reader is None:
            return None
        await asyncio.wait({reader})
        if reader.cancelled():
            return None
        exc = reader.exception()
        if exc is not None:
            raise exc
        return reader.result()

    async def cancel(self) -> None:
        """Abandon the in-flight turn. No-op unless connecting or streaming."""
        if self._state not in _ACTIVE_STATES:
            return
        stats = self._stats
        self._accumulator.discard()
        reader, self._reader = self._reader, None
        connect_task, self._connect_task = self._connect_task, None
        connection, self._connection = self._connection, None
        self._set_state(StreamState.CANCELLED)

        if reader is not None and not reader.done():
            reader.cancel()
            await asyncio.wait({reader})
        if connect_task is not None:
            if not connect_task.done():
                connect_task.cancel()
                await asyncio.wait({connect_task})
            if not connect_task.cancelled() and connect_task.exception() is None:
                await connect_task.result().aclose()
        if connection is not None:
            await connection.aclose()

        logger.info("stream_cancelled", extra={"request_id": self._request_id})
        if stats is not None:
            await self._emit_telemetry(stats, "cancelled")

    def cancel_reveal(self) -> None:
        """Stop the active reveal sequence without touching the stream."""
        if self._reveal is not None:
            self._reveal.cancel()

    async def wait_reveal(self) -> None:
        task = self._reveal_task
        if task is not None:
            await asyncio.wait({task})

    async def close(self) -> None:
        """Tear the session down: stream, reveal sequence, and conversation state."""
        await self.cancel()
        self.cancel_reveal()
        await self.wait_reveal()
        self._reveal = None
        self._reveal_task = None
        self._reader = None
        self._search.reset()
        if self._state is not StreamState.IDLE:
            self._set_state(StreamState.IDLE)

    async def _open(self, query: str, *, continuation: str | None, follow_up: bool) -> None:
        text = _require_query(query)
        if self._connection is not None:
            raise ConnectionAlreadyOpen()

        self._request_id += 1
        request_id = self._request_id
        self._last_error = None
        user_turn = UserTurn(text=text)
        self._search.history.append(user_turn)
        self._publish(SessionEventType.TURN, user_turn.model_dump(mode="json"))
        self._accumulator.begin()
        self._stats = _TurnStats(request_id=request_id, follow_up=follow_up)
        self._set_state(StreamState.CONNECTING)

        request = StreamRequest(
            url=self._config.stream_url,
            query=text,
            continuation=continuation,
            query_param=self._config.query_param,
            continuation_param=self._config.continuation_param,
        )
        logger.info(
            "stream_connecting",
            extra={"request_id": request_id, "follow_up": follow_up, "has_continuation": continuation is not None},
        )
        opened: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        reader = asyncio.create_task(self._run(request, request_id, opened))
        reader.add_done_callback(_retrieve_result)
        self._reader = reader
        try:
            await opened
        except asyncio.CancelledError:
            if self._reader is not reader:
                # Superseded by cancel(); not an error for this caller.
                return
            await self.cancel()
            raise

    async def _run(
        self,
        request: StreamRequest,
        request_id: int,
        opened: asyncio.Future[None],
    ) -> AssistantTurn:
        connect_task = asyncio.create_task(self._transport.connect(request))
        self._connect_task = connect_task
        try:
            connection = await connect_task
        except asyncio.CancelledError:
            if not opened.done():
                opened.cancel()
            raise
        except Exception as exc:
            self._connect_task = None
            error = exc if isinstance(exc, TransportError) else TransportError(f"Could not open stream: {exc}")
            await self._fail(error, request_id)
            if not opened.done():
                opened.set_exception(error)
            if error is exc:
                raise
            raise error from exc

        self._connect_task = None
        self._connection = connection
        self._set_state(StreamState.STREAMING)
        if not opened.done():
            opened.set_result(None)
        return await self._consume(connection, request_id)

    async def _consume(self, connection: StreamConnection, request_id: int) -> AssistantTurn:
        stats = self._stats
        try:
            async for raw in connection.messages():
                if stats is not None:
                    stats.chunk_count += 1
                try:
                    chunk = self._codec.decode(raw)
                except DecodeError as exc:
                    if stats is not None:
                        stats.skipped_count += 1
                    logger.warning(
                        "stream_chunk_skipped",
                        extra={"request_id": request_id, "reason": exc.message},
                    )
                    continue
                if isinstance(chunk, DoneChunk):
                    return await self._complete(connection, request_id)
                if isinstance(chunk, ErrorChunk):
                    raise TransportError(f"Server reported an error: {chunk.cause}", extra={"in_band": True})
                self._accumulator.apply(chunk)
                logger.debug("stream_chunk_applied", extra={"request_id": request_id, "chunk": type(chunk).__name__})
                snapshot = self._accumulator.snapshot()
                if snapshot is not None:
                    self._publish(SessionEventType.PENDING, snapshot.model_dump(mode="json"))
            raise TransportError("Stream closed before the terminal marker")
        except TransportError as exc:
            await self._fail(exc, request_id)
            raise
        except Exception as exc:
            error = TransportError(f"Stream interrupted: {exc}")
            await self._fail(error, request_id)
            raise error from exc
        finally:
            await self._release(connection)

    async def _complete(self, connection: StreamConnection, request_id: int) -> AssistantTurn:
        # History, state and connection ownership change together, before any await.
        turn = self._accumulator.complete()
        stats = self._stats
        if self._connection is connection:
            self._connection = None
        self._set_state(StreamState.COMPLETED)
        self._publish(SessionEventType.TURN, turn.model_dump(mode="json"))
        self._start_reveal(turn.products)
        await connection.aclose()
        logger.info(
            "stream_turn_completed",
            extra={
                "request_id": request_id,
                "session_id": self._search.session_id,
                "product_count": len(turn.products),
                "answer_chars": len(turn.answer_text),
            },
        )
        if stats is not None:
            await self._emit_telemetry(stats, "completed", product_count=len(turn.products))
        return turn

    async def _fail(self, exc: TransportError, request_id: int) -> None:
        if request_id != self._request_id or self._state not in _ACTIVE_STATES:
            return
        self._accumulator.discard()
        self._last_error = exc
        stats = self._stats
        connection, self._connection = self._connection, None
        self._set_state(StreamState.FAILED)
        self._publish(SessionEventType.ERROR, exc.to_dict())
        if connection is not None:
            await connection.aclose()
        logger.warning(
            "stream_failed",
            extra={"request_id": request_id, "error": exc.message, "status_code": exc.status_code},
        )
        if stats is not None:
            await self._emit_telemetry(stats, "failed", error=exc.message)

    async def _release(self, connection: StreamConnection) -> None:
        if self._connection is connection:
            self._connection = None
        await connection.aclose()

    def _start_reveal(self, products: Sequence[ProductAttachment]) -> None:
        self.cancel_reveal()
        sequence = self._reveal_scheduler.schedule(products)
        self._reveal = sequence
        self._reveal_task = None
        if len(sequence):
            task = asyncio.create_task(self._pump_reveal(sequence, self._request_id))
            task.add_done_callback(_retrieve_result)
            self._reveal_task = task

    async def _pump_reveal(self, sequence: RevealSequence, request_id: int) -> None:
        async for event in sequence:
            self._publish(SessionEventType.REVEAL, event.model_dump(mode="json"), request_id=request_id)

    def _set_state(self, state: StreamState) -> None:
        previous = self._state
        self._state = state
        if previous is not state:
            self._publish(SessionEventType.STATE_CHANGE, {"state": state.value, "previous": previous.value})

    def _publish(self, event_type: SessionEventType, content: Any, *, request_id: int | None = None) -> None:
        self._broker.publish(
            SessionEvent(
                event_type=event_type,
                content=content,
                request_id=self._request_id if request_id is None else request_id,
            )
        )

    async def _emit_telemetry(
        self,
        stats: _TurnStats,
        outcome: str,
        *,
        product_count: int = 0,
        error: str | None = None,
    ) -> None:
        event = TurnTelemetryEvent(
            event_type=f"turn_{outcome}",  # type: ignore[arg-type]
            outcome=outcome,  # type: ignore[arg-type]
            request_id=stats.request_id,
            session_id=self._search.session_id,
            follow_up=stats.follow_up,
            chunk_count=stats.chunk_count,
            skipped_count=stats.skipped_count,
            product_count=product_count,
            duration_ms=stats.duration_ms,
            error=error,
        )
        try:
            await self._telemetry.emit(event)
        except Exception:
            logger.exception("turn_telemetry_failed", extra={"request_id": stats.request_id})


__all__ = ["StreamSession", "StreamState"]
