"""Folding of streamed chunks into a finished assistant turn."""

from __future__ import annotations

from dataclasses import dataclass, field

from .codec import AnswerChunk, ProductChunk, SessionIdChunk, StreamChunk, ThinkingChunk
from .history import SearchSession
from .types import AssistantTurn, PendingTurnSnapshot, ProductAttachment


@dataclass(slots=True)
class PendingTurn:
    thinking_parts: list[str] = field(default_factory=list)
    answer_parts: list[str] = field(default_factory=list)
    products: list[ProductAttachment] = field(default_factory=list)
    is_thinking: bool = False

    @property
    def thinking_text(self) -> str:
        return "\n".join(self.thinking_parts)

    @property
    def answer_text(self) -> str:
        return "".join(self.answer_parts)

    def snapshot(self) -> PendingTurnSnapshot:
        return PendingTurnSnapshot(
            thinking_text=self.thinking_text,
            answer_text=self.answer_text,
            products=tuple(self.products),
            is_thinking=self.is_thinking,
        )


class TurnAccumulator:
    """Owns the single in-flight turn of a :class:`SearchSession`.

    Nothing reaches ``session.history`` until :meth:`complete` freezes the
    pending state into an :class:`AssistantTurn`.
    """

    __slots__ = ("_session", "_pending")

    def __init__(self, session: SearchSession) -> None:
        self._session = session
        self._pending: PendingTurn | None = None

    @property
    def session(self) -> SearchSession:
        return self._session

    @property
    def active(self) -> bool:
        return self._pending is not None

    def begin(self) -> None:
        self._pending = PendingTurn()

    def snapshot(self) -> PendingTurnSnapshot | None:
        if self._pending is None:
            return None
        return self._pending.snapshot()

    def apply(self, chunk: StreamChunk) -> None:
        pending = self._require_pending()
        if isinstance(chunk, ThinkingChunk):
            pending.thinking_parts.append(chunk.text)
            pending.is_thinking = True
        elif isinstance(chunk, AnswerChunk):
            pending.answer_parts.append(chunk.text)
        elif isinstance(chunk, ProductChunk):
            # Repeated product ids are kept as separate entries.
            pending.products.append(chunk.data)
        elif isinstance(chunk, SessionIdChunk):
            self._session.assign_session_id(chunk.token)
        else:
            raise TypeError(f"Chunk {type(chunk).__name__} cannot be accumulated")

    def complete(self) -> AssistantTurn:
        pending = self._require_pending()
        turn = AssistantTurn(
            answer_text=pending.answer_text,
            products=tuple(pending.products),
            thinking_text=pending.thinking_text,
        )
        self._session.history.append(turn)
        self._pending = None
        return turn

    def discard(self) -> None:
        self._pending = None

    def _require_pending(self) -> PendingTurn:
        if self._pending is None:
            raise RuntimeError("No turn is in flight")
        return self._pending


__all__ = ["PendingTurn", "TurnAccumulator"]
