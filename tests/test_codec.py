from __future__ import annotations

import json

import pytest

from streamsearch.codec import (
    DONE,
    AnswerChunk,
    ChunkCodec,
    ErrorChunk,
    ProductChunk,
    SessionIdChunk,
    ThinkingChunk,
)
from streamsearch.errors import DecodeError
from tests.fakes import answer, product, session_id, thinking


@pytest.fixture
def codec() -> ChunkCodec:
    return ChunkCodec()


def test_decodes_each_chunk_type(codec: ChunkCodec) -> None:
    assert codec.decode(thinking("Đang tìm bánh...")) == ThinkingChunk("Đang tìm bánh...")
    assert codec.decode(answer("Đây là")) == AnswerChunk("Đây là")
    assert codec.decode(session_id("abc")) == SessionIdChunk("abc")

    chunk = codec.decode(product(7, "Bánh socola"))
    assert isinstance(chunk, ProductChunk)
    assert chunk.data.product_id == "7"
    assert chunk.data.name == "Bánh socola"


def test_terminal_marker_takes_precedence_over_json(codec: ChunkCodec) -> None:
    assert codec.decode("[DONE]") is DONE
    assert codec.decode("  [DONE]\n") is DONE


def test_custom_terminal_marker() -> None:
    codec = ChunkCodec(done_marker="<<end>>")
    assert codec.decode("<<end>>") is DONE
    with pytest.raises(DecodeError):
        codec.decode("[DONE]")


def test_empty_marker_rejected() -> None:
    with pytest.raises(ValueError):
        ChunkCodec(done_marker="")


def test_missing_chunk_text_decodes_as_empty(codec: ChunkCodec) -> None:
    assert codec.decode(json.dumps({"type": "answer"})) == AnswerChunk("")


def test_server_error_chunk(codec: ChunkCodec) -> None:
    assert codec.decode(json.dumps({"type": "error", "message": "quota exceeded"})) == ErrorChunk("quota exceeded")
    assert codec.decode(json.dumps({"type": "error"})) == ErrorChunk("Server reported an error")


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        json.dumps({"chunk": "no type"}),
        json.dumps({"type": 3}),
        json.dumps({"type": "weather", "chunk": "sunny"}),
        json.dumps({"type": "answer", "chunk": 42}),
        json.dumps({"type": "product", "data": "oops"}),
        json.dumps({"type": "product", "data": {"product_id": 1}}),
        json.dumps({"type": "session_id", "session_id": ""}),
    ],
)
def test_malformed_messages_raise_decode_error(codec: ChunkCodec, raw: str) -> None:
    with pytest.raises(DecodeError) as excinfo:
        codec.decode(raw)
    assert excinfo.value.raw == raw
    assert excinfo.value.to_dict()["type"] == "DecodeError"
