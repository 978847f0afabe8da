from __future__ import annotations

import asyncio

import pytest

from streamsearch.reveal import RevealScheduler
from streamsearch.types import ProductAttachment


def _products(count: int) -> list[ProductAttachment]:
    return [ProductAttachment(product_id=str(i), name=f"item-{i}") for i in range(1, count + 1)]


@pytest.mark.asyncio
async def test_reveal_events_follow_input_order() -> None:
    scheduler = RevealScheduler(initial_delay_s=0.0, stagger_s=0.0)
    sequence = scheduler.schedule(_products(3))

    events = [event async for event in sequence]

    assert [(event.product_id, event.index) for event in events] == [("1", 0), ("2", 1), ("3", 2)]
    assert sequence.emitted == 3


@pytest.mark.asyncio
async def test_reveal_respects_initial_delay_and_stagger() -> None:
    loop = asyncio.get_running_loop()
    scheduler = RevealScheduler(initial_delay_s=0.05, stagger_s=0.02)
    start = loop.time()
    stamps: list[float] = []

    async for _event in scheduler.schedule(_products(3)):
        stamps.append(loop.time() - start)

    assert stamps[0] >= 0.045
    assert stamps[1] - stamps[0] >= 0.015
    assert stamps[2] - stamps[1] >= 0.015


@pytest.mark.asyncio
async def test_cancel_after_first_event_stops_emission() -> None:
    sequence = RevealScheduler(initial_delay_s=0.0, stagger_s=0.05).schedule(_products(3))
    seen = []

    async for event in sequence:
        seen.append(event)
        sequence.cancel()

    assert [event.index for event in seen] == [0]
    assert sequence.cancelled


@pytest.mark.asyncio
async def test_cancel_wakes_a_pending_delay() -> None:
    sequence = RevealScheduler(initial_delay_s=10.0, stagger_s=0.0).schedule(_products(2))

    async def consume() -> list[int]:
        return [event.index async for event in sequence]

    task = asyncio.create_task(consume())
    await asyncio.sleep(0.01)
    sequence.cancel()

    assert await asyncio.wait_for(task, timeout=1.0) == []


@pytest.mark.asyncio
async def test_sequence_is_not_restartable() -> None:
    sequence = RevealScheduler(initial_delay_s=0.0, stagger_s=0.0).schedule(_products(1))
    assert [event.index async for event in sequence] == [0]

    with pytest.raises(RuntimeError):
        sequence.__aiter__()


def test_negative_delays_rejected() -> None:
    with pytest.raises(ValueError):
        RevealScheduler(initial_delay_s=-1.0)


@pytest.mark.asyncio
async def test_initial_delay_counts_from_schedule() -> None:
    loop = asyncio.get_running_loop()
    sequence = RevealScheduler(initial_delay_s=0.2, stagger_s=0.0).schedule(_products(1))
    await asyncio.sleep(0.2)

    start = loop.time()
    events = [event async for event in sequence]

    assert [event.index for event in events] == [0]
    assert loop.time() - start < 0.1
