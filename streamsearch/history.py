"""Conversation history and the search session that owns it."""

from __future__ import annotations

from collections.abc import Iterator

from .types import AssistantTurn, UserTurn

Turn = UserTurn | AssistantTurn


class ConversationHistory:
    """Append-only, chronologically ordered list of finished turns."""

    __slots__ = ("_turns",)

    def __init__(self) -> None:
        self._turns: list[Turn] = []

    def append(self, turn: Turn) -> None:
        if not isinstance(turn, (UserTurn, AssistantTurn)):
            raise TypeError(f"Unsupported turn type: {type(turn).__name__}")
        self._turns.append(turn)

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def last_assistant_turn(self) -> AssistantTurn | None:
        for turn in reversed(self._turns):
            if isinstance(turn, AssistantTurn):
                return turn
        return None

    def clear(self) -> None:
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))

    def __bool__(self) -> bool:
        return bool(self._turns)


class SearchSession:
    """Conversation state for one search screen visit.

    ``session_id`` stays ``None`` until the server issues one; later turns may
    re-issue it and the newest value wins.
    """

    __slots__ = ("_session_id", "_history")

    def __init__(self) -> None:
        self._session_id: str | None = None
        self._history = ConversationHistory()

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def history(self) -> ConversationHistory:
        return self._history

    def continuation_token(self) -> str | None:
        return self._session_id

    def assign_session_id(self, token: str) -> None:
        self._session_id = token

    def reset(self) -> None:
        self._session_id = None
        self._history.clear()


__all__ = ["ConversationHistory", "SearchSession", "Turn"]
