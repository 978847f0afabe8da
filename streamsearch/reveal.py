"""Time-driven reveal cues for products attached to a finished turn."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence

from .types import ProductAttachment, RevealEvent

logger = logging.getLogger("streamsearch.reveal")

DEFAULT_INITIAL_DELAY_S = 5.0
DEFAULT_STAGGER_S = 0.25


class RevealSequence:
    """One-shot async iterator of :class:`RevealEvent` values.

    The first event fires ``initial_delay_s`` after the sequence is scheduled, every later one
    ``stagger_s`` after the previous. :meth:`cancel` stops further events; events
    already yielded stay yielded.
    """

    __slots__ = ("_products", "_initial_delay_s", "_stagger_s", "_cancelled", "_started", "_index", "_scheduled_at")

    def __init__(
        self,
        products: Sequence[ProductAttachment],
        *,
        initial_delay_s: float,
        stagger_s: float,
    ) -> None:
        self._products = tuple(products)
        self._initial_delay_s = initial_delay_s
        self._stagger_s = stagger_s
        self._cancelled = asyncio.Event()
        self._started = False
        self._index = 0
        self._scheduled_at = time.monotonic()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def emitted(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._products)

    def cancel(self) -> None:
        if not self._cancelled.is_set():
            logger.debug("reveal_cancelled", extra={"emitted": self._index, "total": len(self._products)})
        self._cancelled.set()

    def __aiter__(self) -> RevealSequence:
        if self._started:
            raise RuntimeError("RevealSequence cannot be restarted; schedule a new one")
        self._started = True
        return self

    async def __anext__(self) -> RevealEvent:
        if self._cancelled.is_set() or self._index >= len(self._products):
            raise StopAsyncIteration
        if self._index == 0:
            delay = self._initial_delay_s - (time.monotonic() - self._scheduled_at)
        else:
            delay = self._stagger_s
        if await self._wait_cancelled(delay):
            raise StopAsyncIteration
        product = self._products[self._index]
        event = RevealEvent(product_id=product.product_id, index=self._index)
        self._index += 1
        return event

    async def _wait_cancelled(self, delay: float) -> bool:
        if delay <= 0:
            await asyncio.sleep(0)
            return self._cancelled.is_set()
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True


class RevealScheduler:
    __slots__ = ("initial_delay_s", "stagger_s")

    def __init__(
        self,
        *,
        initial_delay_s: float = DEFAULT_INITIAL_DELAY_S,
        stagger_s: float = DEFAULT_STAGGER_S,
    ) -> None:
        if initial_delay_s < 0 or stagger_s < 0:
            raise ValueError("reveal delays must be non-negative")
        self.initial_delay_s = initial_delay_s
        self.stagger_s = stagger_s

    def schedule(self, products: Sequence[ProductAttachment]) -> RevealSequence:
        return RevealSequence(products, initial_delay_s=self.initial_delay_s, stagger_s=self.stagger_s)


__all__ = [
    "DEFAULT_INITIAL_DELAY_S",
    "DEFAULT_STAGGER_S",
    "RevealScheduler",
    "RevealSequence",
]
