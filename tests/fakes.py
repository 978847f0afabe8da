"""In-memory transports and wire payload builders shared by the tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from streamsearch.transport import StreamRequest

DONE_MARKER = "[DONE]"

_END = object()


def thinking(text: str) -> str:
    return json.dumps({"type": "thinking", "chunk": text}, ensure_ascii=False)


def answer(text: str) -> str:
    return json.dumps({"type": "answer", "chunk": text}, ensure_ascii=False)


def session_id(token: str) -> str:
    return json.dumps({"type": "session_id", "session_id": token})


def product_data(product_id: int, name: str, **extra: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "product_id": product_id,
        "product_code": f"P{product_id:03d}",
        "product_name": name,
        "category_name": "Bánh ngọt",
        "description": "",
        "image_url": f"https://cdn.test/{product_id}.png",
        "sizes_prices": json.dumps({"product_sizes": "S|M", "product_prices": "25000|30000"}),
        "overall_stars": 4.5,
        "total_ratings": 12,
        "total_orders": 40,
        "discount_percentage": 0,
    }
    data.update(extra)
    return data


def product(product_id: int, name: str, **extra: Any) -> str:
    return json.dumps({"type": "product", "data": product_data(product_id, name, **extra)}, ensure_ascii=False)


class ScriptedConnection:
    """Connection fed by the test; messages are delivered in push order."""

    def __init__(self, request: StreamRequest) -> None:
        self.request = request
        self.closed = False
        self.close_calls = 0
        self._queue: asyncio.Queue[Any] = asyncio.Queue()

    def push(self, *messages: str) -> None:
        for message in messages:
            self._queue.put_nowait(message)

    def fail(self, exc: BaseException) -> None:
        self._queue.put_nowait(exc)

    def end(self) -> None:
        self._queue.put_nowait(_END)

    async def messages(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def aclose(self) -> None:
        self.close_calls += 1
        self.closed = True


class ScriptedTransport:
    """Hands out :class:`ScriptedConnection` objects and tracks how many are open."""

    def __init__(self) -> None:
        self.connections: list[ScriptedConnection] = []
        self.requests: list[StreamRequest] = []
        self.max_open = 0
        self.fail_with: BaseException | None = None
        self.gate: asyncio.Event | None = None
        self.script: list[str] | None = None

    @property
    def open_connections(self) -> list[ScriptedConnection]:
        return [conn for conn in self.connections if not conn.closed]

    @property
    def last(self) -> ScriptedConnection:
        return self.connections[-1]

    async def connect(self, request: StreamRequest) -> ScriptedConnection:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        connection = ScriptedConnection(request)
        if self.script is not None:
            connection.push(*self.script)
        self.connections.append(connection)
        self.max_open = max(self.max_open, len(self.open_connections))
        return connection


async def settle(rounds: int = 10) -> None:
    """Let background readers drain whatever has been pushed."""
    for _ in range(rounds):
        await asyncio.sleep(0)
