"""Public package surface for streamsearch."""

from __future__ import annotations

from .accumulator import PendingTurn, TurnAccumulator
from .broker import SessionEvent, SessionEventBroker, SessionEventType
from .codec import (
    DONE,
    AnswerChunk,
    ChunkCodec,
    DoneChunk,
    ErrorChunk,
    ProductChunk,
    SessionIdChunk,
    StreamChunk,
    ThinkingChunk,
)
from .config import StreamSearchConfig
from .errors import ConnectionAlreadyOpen, DecodeError, StreamSearchError, TransportError
from .history import ConversationHistory, SearchSession
from .reveal import RevealScheduler, RevealSequence
from .session import StreamSession, StreamState
from .telemetry import NoOpTurnTelemetrySink, TurnTelemetryEvent, TurnTelemetrySink
from .transport import HttpStreamTransport, StreamConnection, StreamRequest, StreamTransport
from .types import (
    AssistantTurn,
    ConversationTurn,
    PendingTurnSnapshot,
    ProductAttachment,
    RevealEvent,
    SizePriceTable,
    UserTurn,
)

__all__ = [
    "__version__",
    "DONE",
    "AnswerChunk",
    "AssistantTurn",
    "ChunkCodec",
    "ConnectionAlreadyOpen",
    "ConversationHistory",
    "ConversationTurn",
    "DecodeError",
    "DoneChunk",
    "ErrorChunk",
    "HttpStreamTransport",
    "NoOpTurnTelemetrySink",
    "PendingTurn",
    "PendingTurnSnapshot",
    "ProductAttachment",
    "ProductChunk",
    "RevealEvent",
    "RevealScheduler",
    "RevealSequence",
    "SearchSession",
    "SessionEvent",
    "SessionEventBroker",
    "SessionEventType",
    "SessionIdChunk",
    "SizePriceTable",
    "StreamChunk",
    "StreamConnection",
    "StreamRequest",
    "StreamSearchConfig",
    "StreamSearchError",
    "StreamSession",
    "StreamState",
    "StreamTransport",
    "ThinkingChunk",
    "TransportError",
    "TurnAccumulator",
    "TurnTelemetryEvent",
    "TurnTelemetrySink",
    "UserTurn",
]

__version__ = "0.1.0"
