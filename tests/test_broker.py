from __future__ import annotations

import pytest

from streamsearch.broker import SessionEvent, SessionEventBroker, SessionEventType


def _event(event_type: SessionEventType, content: object = None) -> SessionEvent:
    return SessionEvent(event_type=event_type, content=content)


def _drain(queue) -> list[SessionEvent]:
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


@pytest.mark.asyncio
async def test_subscribers_receive_filtered_events() -> None:
    broker = SessionEventBroker()
    everything, _ = await broker.subscribe()
    reveals, _ = await broker.subscribe(event_types=[SessionEventType.REVEAL])

    broker.publish(_event(SessionEventType.PENDING, {"answer_text": "a"}))
    broker.publish(_event(SessionEventType.REVEAL, {"product_id": "1", "index": 0}))

    assert [e.event_type for e in _drain(everything)] == [SessionEventType.PENDING, SessionEventType.REVEAL]
    assert [e.content["index"] for e in _drain(reveals)] == [0]


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery() -> None:
    broker = SessionEventBroker()
    queue, unsubscribe = await broker.subscribe()
    assert broker.subscriber_count == 1

    await unsubscribe()
    await unsubscribe()
    broker.publish(_event(SessionEventType.TURN))

    assert broker.subscriber_count == 0
    assert queue.empty()


@pytest.mark.asyncio
async def test_full_queue_drops_pending_but_keeps_critical() -> None:
    broker = SessionEventBroker(max_queue_size=2)
    queue, _ = await broker.subscribe()

    broker.publish(_event(SessionEventType.PENDING, 1))
    broker.publish(_event(SessionEventType.PENDING, 2))
    broker.publish(_event(SessionEventType.PENDING, 3))
    assert queue.qsize() == 2

    broker.publish(_event(SessionEventType.STATE_CHANGE, {"state": "COMPLETED"}))

    events = _drain(queue)
    assert [e.content for e in events] == [2, {"state": "COMPLETED"}]


def test_event_defaults() -> None:
    first = _event(SessionEventType.ERROR, {"message": "x"})
    second = _event(SessionEventType.ERROR, {"message": "x"})
    assert first.event_id != second.event_id
    assert first.created_at.tzinfo is not None
    assert first.model_dump(mode="json")["event_type"] == "ERROR"
