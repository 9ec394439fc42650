"""
Test Configuration
==================

Pytest fixtures and fake collaborators for answerstream.

FakeTransport replays scripted attempts: each entry is either an exception
raised by open() or a FakeResponse. JSON side requests are answered from
``json_outcomes``: a payload, an exception, or a future awaited for one. A FakeResponse yields its chunks in
order; a number in the chunk list is a pause in seconds and an exception
is raised mid-stream.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from answerstream.models.state import DisplayState, StreamState
from answerstream.stream.retrier import RetryPolicy


def sse(*events: Any) -> bytes:
    """Encode events as an event-stream body; strings are sent verbatim."""
    blocks = []
    for event in events:
        payload = event if isinstance(event, str) else json.dumps(event, ensure_ascii=False)
        blocks.append(f"data: {payload}\n\n")
    return "".join(blocks).encode("utf-8")


class FakeResponse:
    """Scripted streaming response."""

    def __init__(self, chunks=(), status: int = 200, reason: str = "OK") -> None:
        self.status = status
        self.reason = reason
        self.headers: Dict[str, str] = {"content-type": "text/event-stream"}
        self.close_count = 0
        self._chunks = list(chunks)

    async def _iterate(self):
        for item in self._chunks:
            if isinstance(item, (int, float)):
                await asyncio.sleep(item)
            elif isinstance(item, BaseException):
                raise item
            else:
                yield item

    def chunks(self):
        return self._iterate()

    async def aclose(self) -> None:
        self.close_count += 1


class FakeTransport:
    """Transport that replays one scripted outcome per attempt."""

    def __init__(self, *outcomes: Any, json_outcomes=()) -> None:
        self.outcomes: List[Any] = list(outcomes)
        self.json_outcomes: List[Any] = list(json_outcomes)
        self.requests: List[tuple] = []
        self.json_requests: List[tuple] = []
        self.responses: List[FakeResponse] = []

    async def open(self, method: str, url: str, body: Optional[Dict[str, Any]] = None):
        self.requests.append((method, url, body))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        self.responses.append(outcome)
        return outcome

    async def fetch_json(self, method: str, url: str, body: Optional[Dict[str, Any]] = None):
        self.json_requests.append((method, url, body))
        outcome = self.json_outcomes.pop(0)
        if isinstance(outcome, asyncio.Future):
            outcome = await outcome
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def total_closes(self) -> int:
        return sum(r.close_count for r in self.responses)


@pytest.fixture
def fast_policy():
    """Retry policy with short timeouts and no backoff."""
    return RetryPolicy(
        max_attempts=3,
        base_delay=0.0,
        overall_timeout=2.0,
        chunk_timeout=0.05,
    )


@pytest.fixture
def stream_state():
    """Fresh StreamState."""
    return StreamState()


@pytest.fixture
def display_state():
    """Fresh DisplayState."""
    return DisplayState()


@pytest.fixture
def hi_there_body():
    """Body of a well-behaved answer stream."""
    return sse(
        {"type": "connected"},
        {"type": "text_delta", "content": "Hi"},
        {"type": "text_delta", "content": " there"},
        {
            "type": "complete",
            "data": {"answer": "Hi there", "options": ["A?"], "explorable_concepts": []},
        },
        "[DONE]",
    )
