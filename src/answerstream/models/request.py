"""
Request Schema
==============

Pydantic models for the request body sent to the answer endpoint and for the
conversation bookkeeping kept between queries.

Request Contract:
    {
        "message": "Why is the sky blue?",
        "conversation_history": [
            {"role": "user", "content": "..."},
            {"role": "assistant", "content": "..."}
        ],
        "conciseness": "short"
    }

Shuffle Contract:
    {"conversation_history": [...], "current_topic": "..."}
    -> {"options": ["...", "..."]}
"""

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field


class Conciseness(str, Enum):
    """Requested answer length."""

    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class ChatMessage(BaseModel):
    """One turn of the conversation history."""

    role: str = Field(..., description="'user' or 'assistant'")
    content: str = Field(..., description="Message text")


class QueryRequest(BaseModel):
    """
    Body of the streaming answer request.

    Attributes:
        message: The question being asked
        conversation_history: Prior turns, empty for a fresh question
        conciseness: Requested answer length
    """

    message: str = Field(..., min_length=1, description="Question text")
    conversation_history: List[ChatMessage] = Field(
        default_factory=list,
        description="Prior conversation turns",
    )
    conciseness: Conciseness = Field(
        default=Conciseness.SHORT,
        description="Requested answer length",
    )

    def to_body(self) -> Dict[str, Any]:
        """JSON-ready request body."""
        return self.model_dump(mode="json")


class HistoryEntry(BaseModel):
    """
    A finished query kept for navigation.

    Attributes:
        query_text: Question that was asked
        response_text: Final answer shown
        suggested_followups: Options offered with the answer
        explorable_concepts: Concepts highlighted in the answer
        conversation_history_index: Length of the conversation when asked
    """

    query_text: str
    response_text: str
    suggested_followups: List[str] = Field(default_factory=list)
    explorable_concepts: List[str] = Field(default_factory=list)
    conversation_history_index: int = Field(default=0, ge=0)


class ShuffleRequest(BaseModel):
    """
    Body of the request for a fresh set of follow-up options.

    Attributes:
        conversation_history: Conversation so far
        current_topic: Question whose options are being replaced
    """

    conversation_history: List[ChatMessage] = Field(default_factory=list)
    current_topic: str = Field(default="", description="Current question")

    def to_body(self) -> Dict[str, Any]:
        """JSON-ready request body."""
        return self.model_dump(mode="json")


class ShuffleResponse(BaseModel):
    """Replacement follow-up options."""

    options: List[str] = Field(default_factory=list)
