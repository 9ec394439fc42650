"""
Stream Event Schema
===================

Pydantic models for the JSON objects carried by each ``data:`` frame.

Wire Contract:
    {"type": "connected"}
    {"type": "heartbeat"}
    {"type": "text_delta", "content": "Hi"}
    {"type": "complete", "data": {"answer": "...", "options": [...],
                                   "explorable_concepts": [...]}}
    {"type": "error", "message": "..."}
    {"type": "refusal", "message": "..."}
    {"type": "end"}

Events form a tagged union discriminated on ``type``. Unknown types are not
part of the union; ``KNOWN_EVENT_TYPES`` lets the interpreter tell an
unknown-but-well-formed event apart from a malformed one.

Example:
    from answerstream.models.events import EVENT_ADAPTER

    event = EVENT_ADAPTER.validate_python({"type": "text_delta", "content": "Hi"})
    assert event.content == "Hi"
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _EventBase(BaseModel):
    """Shared configuration for all stream events."""

    model_config = ConfigDict(extra="ignore", frozen=True)


class ConnectedEvent(_EventBase):
    """Server confirmed the stream is open."""

    type: Literal["connected"] = "connected"


class HeartbeatEvent(_EventBase):
    """Keepalive sent while the answer is being generated."""

    type: Literal["heartbeat"] = "heartbeat"


class TextDeltaEvent(_EventBase):
    """Incremental fragment of the answer."""

    type: Literal["text_delta"] = "text_delta"
    content: str = Field(default="", description="Text to append")


class CompletePayload(BaseModel):
    """
    Authoritative answer plus follow-up metadata.

    Attributes:
        answer: Full answer text, may be empty
        options: Suggested follow-up questions
        explorable_concepts: Phrases in the answer that can be explored
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    answer: Optional[str] = Field(default=None, description="Full answer text")
    options: List[str] = Field(default_factory=list, description="Follow-up questions")
    explorable_concepts: List[str] = Field(
        default_factory=list,
        description="Highlightable concept strings",
    )


class CompleteEvent(_EventBase):
    """Generation finished; carries the authoritative answer."""

    type: Literal["complete"] = "complete"
    data: CompletePayload = Field(default_factory=CompletePayload)

    @property
    def answer(self) -> Optional[str]:
        return self.data.answer

    @property
    def options(self) -> List[str]:
        return list(self.data.options)

    @property
    def concepts(self) -> List[str]:
        return list(self.data.explorable_concepts)


class ErrorEvent(_EventBase):
    """Server reported a failure in-band."""

    type: Literal["error"] = "error"
    message: Optional[str] = None


class RefusalEvent(_EventBase):
    """Server declined to answer."""

    type: Literal["refusal"] = "refusal"
    message: Optional[str] = None


class EndEvent(_EventBase):
    """Server is closing the stream."""

    type: Literal["end"] = "end"


StreamEvent = Annotated[
    Union[
        ConnectedEvent,
        HeartbeatEvent,
        TextDeltaEvent,
        CompleteEvent,
        ErrorEvent,
        RefusalEvent,
        EndEvent,
    ],
    Field(discriminator="type"),
]

EVENT_ADAPTER: TypeAdapter = TypeAdapter(StreamEvent)

KNOWN_EVENT_TYPES = frozenset(
    {"connected", "heartbeat", "text_delta", "complete", "error", "refusal", "end"}
)
