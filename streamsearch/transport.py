"""Push-connection transports for streamed search turns."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from .errors import TransportError

logger = logging.getLogger("streamsearch.transport")

CredentialProvider = Callable[[], Awaitable[str | None]]


@dataclass(slots=True)
class StreamRequest:
    """Input to :meth:`StreamTransport.connect`."""

    url: str
    query: str
    continuation: str | None = None
    query_param: str = "query"
    continuation_param: str = "session_id"

    def params(self) -> dict[str, str]:
        params = {self.query_param: self.query}
        if self.continuation is not None:
            params[self.continuation_param] = self.continuation
        return params


class StreamConnection(Protocol):
    """An open push connection delivering raw message payloads in arrival order."""

    def messages(self) -> AsyncIterator[str]:
        """Yield each message payload until the server closes the stream."""

    async def aclose(self) -> None:
        """Close the connection. Safe to call more than once."""


class StreamTransport(Protocol):
    async def connect(self, request: StreamRequest) -> StreamConnection:
        """Open a connection; returns once the server has accepted the stream."""


class SSEDecoder:
    """Incremental ``text/event-stream`` decoder operating on lines."""

    __slots__ = ("_data", "_event")

    def __init__(self) -> None:
        self._data: list[str] = []
        self._event: str | None = None

    @property
    def event(self) -> str | None:
        return self._event

    def feed(self, line: str) -> str | None:
        """Consume one line; return a message payload when an event is dispatched."""
        line = line.rstrip("\r\n")
        if not line:
            return self.flush()
        if line.startswith(":"):
            return None
        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event = value or None
        return None

    def flush(self) -> str | None:
        if not self._data:
            self._event = None
            return None
        payload = "\n".join(self._data)
        self._data.clear()
        self._event = None
        return payload


def _error_detail(body: str | None) -> str | None:
    if not body:
        return None
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return body.strip()[:200] or None
    if isinstance(payload, Mapping):
        detail = payload.get("detail") or payload.get("message") or payload.get("title")
        return str(detail) if detail else None
    return None


class HttpStreamConnection:
    __slots__ = ("_response", "_stack", "_closed")

    def __init__(self, response: httpx.Response, stack: AsyncExitStack) -> None:
        self._response = response
        self._stack = stack
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def messages(self) -> AsyncIterator[str]:
        decoder = SSEDecoder()
        try:
            async for line in self._response.aiter_lines():
                payload = decoder.feed(line)
                if payload is not None:
                    yield payload
        except (httpx.HTTPError, httpx.StreamError) as exc:
            raise TransportError(f"Stream interrupted: {exc}") from exc
        tail = decoder.flush()
        if tail is not None:
            yield tail

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._stack.aclose()
        logger.debug("stream_connection_closed", extra={"url": str(self._response.url)})


@dataclass(slots=True)
class HttpStreamTransport:
    """Opens ``GET`` server-sent-event streams with httpx.

    ``credentials`` is awaited once per connection and sent as a bearer token.
    A caller-supplied ``client`` is reused and never closed here.
    """

    credentials: CredentialProvider | None = None
    headers: Mapping[str, str] | None = None
    timeout_s: float | None = None
    client: httpx.AsyncClient | None = None

    async def _build_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
        }
        if self.headers:
            headers.update(self.headers)
        if self.credentials is not None:
            token = await self.credentials()
            if token:
                headers["Authorization"] = token if token.lower().startswith("bearer ") else f"Bearer {token}"
        return headers

    async def connect(self, request: StreamRequest) -> HttpStreamConnection:
        headers = await self._build_headers()
        stack = AsyncExitStack()
        try:
            client: Any = self.client
            if client is None:
                client = await stack.enter_async_context(httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s)))
            response = await stack.enter_async_context(
                client.stream("GET", request.url, params=request.params(), headers=headers)
            )
            if response.status_code >= 400:
                body = await response.aread()
                detail = _error_detail(body.decode("utf-8", errors="replace"))
                detail_text = f": {detail}" if detail else ""
                raise TransportError(
                    f"Stream request failed ({response.status_code}){detail_text}",
                    status_code=response.status_code,
                )
        except httpx.HTTPError as exc:
            await stack.aclose()
            raise TransportError(f"Could not open stream: {exc}") from exc
        except BaseException:
            await stack.aclose()
            raise
        logger.info(
            "stream_connection_opened",
            extra={
                "url": request.url,
                "status_code": response.status_code,
                "follow_up": request.continuation is not None,
            },
        )
        return HttpStreamConnection(response, stack)


__all__ = [
    "CredentialProvider",
    "HttpStreamConnection",
    "HttpStreamTransport",
    "SSEDecoder",
    "StreamConnection",
    "StreamRequest",
    "StreamTransport",
]
