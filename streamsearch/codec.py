"""Decoding of inbound push-connection messages into typed chunks."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from .errors import DecodeError
from .types import ProductAttachment

DEFAULT_DONE_MARKER = "[DONE]"


@dataclass(frozen=True, slots=True)
class ThinkingChunk:
    text: str


@dataclass(frozen=True, slots=True)
class AnswerChunk:
    text: str


@dataclass(frozen=True, slots=True)
class ProductChunk:
    data: ProductAttachment


@dataclass(frozen=True, slots=True)
class SessionIdChunk:
    token: str


@dataclass(frozen=True, slots=True)
class ErrorChunk:
    cause: str


@dataclass(frozen=True, slots=True)
class DoneChunk:
    """Terminal sentinel: the server finished the current turn."""


DONE = DoneChunk()

StreamChunk = ThinkingChunk | AnswerChunk | ProductChunk | SessionIdChunk | ErrorChunk | DoneChunk


def _text_field(payload: Mapping[str, Any], key: str, raw: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodeError(f"Field '{key}' must be a string", raw=raw)
    return value


class ChunkCodec:
    """Turns raw message payloads into :data:`StreamChunk` values.

    The terminal marker is compared literally before any JSON parsing. Every other
    message must be a JSON object carrying a ``type`` discriminator; anything else
    raises :class:`DecodeError`.
    """

    __slots__ = ("_done_marker",)

    def __init__(self, done_marker: str = DEFAULT_DONE_MARKER) -> None:
        if not done_marker:
            raise ValueError("done_marker must be non-empty")
        self._done_marker = done_marker

    @property
    def done_marker(self) -> str:
        return self._done_marker

    def decode(self, raw: str) -> StreamChunk:
        if raw.strip() == self._done_marker:
            return DONE
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Message is not valid JSON: {exc.msg}", raw=raw) from exc
        if not isinstance(payload, Mapping):
            raise DecodeError("Message must be a JSON object", raw=raw)

        chunk_type = payload.get("type")
        if not isinstance(chunk_type, str):
            raise DecodeError("Message is missing a 'type' discriminator", raw=raw)

        if chunk_type == "thinking":
            return ThinkingChunk(_text_field(payload, "chunk", raw))
        if chunk_type == "answer":
            return AnswerChunk(_text_field(payload, "chunk", raw))
        if chunk_type == "product":
            data = payload.get("data")
            if not isinstance(data, Mapping):
                raise DecodeError("Product message requires a 'data' object", raw=raw)
            try:
                return ProductChunk(ProductAttachment.model_validate(dict(data)))
            except ValidationError as exc:
                raise DecodeError(f"Invalid product payload: {exc.error_count()} error(s)", raw=raw) from exc
        if chunk_type == "session_id":
            token = payload.get("session_id")
            if not isinstance(token, str) or not token:
                raise DecodeError("Session message requires a non-empty 'session_id'", raw=raw)
            return SessionIdChunk(token)
        if chunk_type == "error":
            cause = payload.get("message") or payload.get("error") or "Server reported an error"
            return ErrorChunk(str(cause))
        raise DecodeError(f"Unknown chunk type '{chunk_type}'", raw=raw)


__all__ = [
    "DONE",
    "DEFAULT_DONE_MARKER",
    "AnswerChunk",
    "ChunkCodec",
    "DoneChunk",
    "ErrorChunk",
    "ProductChunk",
    "SessionIdChunk",
    "StreamChunk",
    "ThinkingChunk",
]
