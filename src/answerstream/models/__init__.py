"""
Data Models
===========

Models shared across the answerstream package.

Models:
    Events:
        - StreamEvent: Tagged union of frame payloads
        - ConnectedEvent, HeartbeatEvent, TextDeltaEvent, CompleteEvent,
          ErrorEvent, RefusalEvent, EndEvent

    State:
        - QueryStatus: Network-side status of a query
        - StreamState: Accumulated answer text (network cursor)
        - DisplayState: Revealed text (display cursor)

    Faults:
        - StreamFault and its NetworkFault, TimeoutFault, ParseFault,
          ServerFault, CancellationFault subclasses
        - RetriesExhausted

    Request:
        - QueryRequest, ChatMessage, Conciseness, HistoryEntry
        - ShuffleRequest, ShuffleResponse
"""

from answerstream.models.events import (
    EVENT_ADAPTER,
    KNOWN_EVENT_TYPES,
    CompleteEvent,
    CompletePayload,
    ConnectedEvent,
    EndEvent,
    ErrorEvent,
    HeartbeatEvent,
    RefusalEvent,
    StreamEvent,
    TextDeltaEvent,
)
from answerstream.models.faults import (
    CancellationFault,
    FaultKind,
    NetworkFault,
    ParseFault,
    RetriesExhausted,
    ServerFault,
    StreamFault,
    TimeoutFault,
    user_message,
)
from answerstream.models.request import (
    ChatMessage,
    Conciseness,
    HistoryEntry,
    QueryRequest,
    ShuffleRequest,
    ShuffleResponse,
)
from answerstream.models.state import DisplayState, QueryStatus, Sidecar, StreamState

__all__ = [
    # Events
    "EVENT_ADAPTER",
    "KNOWN_EVENT_TYPES",
    "StreamEvent",
    "ConnectedEvent",
    "HeartbeatEvent",
    "TextDeltaEvent",
    "CompleteEvent",
    "CompletePayload",
    "ErrorEvent",
    "RefusalEvent",
    "EndEvent",
    # Faults
    "FaultKind",
    "StreamFault",
    "NetworkFault",
    "TimeoutFault",
    "ParseFault",
    "ServerFault",
    "CancellationFault",
    "RetriesExhausted",
    "user_message",
    # Request
    "ChatMessage",
    "Conciseness",
    "HistoryEntry",
    "QueryRequest",
    "ShuffleRequest",
    "ShuffleResponse",
    # State
    "QueryStatus",
    "Sidecar",
    "StreamState",
    "DisplayState",
]
