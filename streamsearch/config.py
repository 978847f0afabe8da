from __future__ import annotations

import os
from dataclasses import dataclass

from .codec import DEFAULT_DONE_MARKER
from .reveal import DEFAULT_INITIAL_DELAY_S, DEFAULT_STAGGER_S

DEFAULT_BASE_URL = "http://127.0.0.1:8000"
DEFAULT_STREAM_PATH = "/api/products/search/rag"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(slots=True)
class StreamSearchConfig:
    base_url: str = DEFAULT_BASE_URL
    stream_path: str = DEFAULT_STREAM_PATH
    query_param: str = "query"
    continuation_param: str = "session_id"
    done_marker: str = DEFAULT_DONE_MARKER
    reveal_initial_delay_s: float = DEFAULT_INITIAL_DELAY_S
    reveal_stagger_s: float = DEFAULT_STAGGER_S
    timeout_s: float | None = None
    update_queue_size: int = 500

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url must be non-empty")
        if not self.done_marker:
            raise ValueError("done_marker must be non-empty")
        if not self.query_param or not self.continuation_param:
            raise ValueError("query_param and continuation_param must be non-empty")
        if self.reveal_initial_delay_s < 0 or self.reveal_stagger_s < 0:
            raise ValueError("reveal delays must be non-negative")
        if self.update_queue_size <= 0:
            raise ValueError("update_queue_size must be positive")

    @property
    def stream_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.stream_path.lstrip('/')}"

    @classmethod
    def from_env(cls) -> StreamSearchConfig:
        return cls(
            base_url=os.environ.get("STREAMSEARCH_BASE_URL") or DEFAULT_BASE_URL,
            stream_path=os.environ.get("STREAMSEARCH_STREAM_PATH") or DEFAULT_STREAM_PATH,
            reveal_initial_delay_s=_env_float("STREAMSEARCH_REVEAL_DELAY_S", DEFAULT_INITIAL_DELAY_S),
            reveal_stagger_s=_env_float("STREAMSEARCH_REVEAL_STAGGER_S", DEFAULT_STAGGER_S),
        )


__all__ = ["StreamSearchConfig"]
