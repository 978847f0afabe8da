from __future__ import annotations

from typing import Any


class StreamSearchError(Exception):
    """Base class for streaming search failures."""

    def __init__(self, message: str, *, extra: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": type(self).__name__, "message": self.message}
        if self.extra:
            payload.update(self.extra)
        return payload


class DecodeError(StreamSearchError):
    """A single inbound message could not be decoded into a chunk."""

    def __init__(self, detail: str, *, raw: str | None = None) -> None:
        super().__init__(detail, extra={"raw": raw} if raw is not None else None)
        self.raw = raw


class TransportError(StreamSearchError):
    """The push connection failed, or the server reported an in-band error."""

    def __init__(
        self,
        detail: str,
        *,
        status_code: int | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        payload = dict(extra or {})
        if status_code is not None:
            payload["status_code"] = status_code
        super().__init__(detail, extra=payload)
        self.detail = detail
        self.status_code = status_code


class ConnectionAlreadyOpen(StreamSearchError):
    def __init__(self) -> None:
        super().__init__("A stream connection is already open for this session.")


__all__ = [
    "ConnectionAlreadyOpen",
    "DecodeError",
    "StreamSearchError",
    "TransportError",
]
