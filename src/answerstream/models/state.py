"""
Query State Models
==================

Mutable per-query records shared between the network task and the pacer.

Core Concepts:
    - QueryStatus: Network-side status of one query
    - StreamState: Authoritative accumulated answer text (network cursor)
    - DisplayState: How much of that text has been revealed (display cursor)

Ownership:
    StreamState is written only by the network task (via the interpreter).
    DisplayState is written only by the pacer. The pacer reads StreamState
    and, when the revision changes, rewinds to the prefix that never changed.

Invariants:
    - within one attempt accumulated_text only grows; a retried attempt that
      diverges from it replaces it (revision is bumped)
    - a new query gets a fresh StreamState
    - 0 <= displayed_length <= len(accumulated_text)
    - once done, final_text == final_answer if present, else accumulated_text

Example:
    state = StreamState()
    state.append("Hi")
    display = DisplayState()
    display.advance(state)
    assert display.visible_text(state) == "H"
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class QueryStatus(str, Enum):
    """
    Network-side status of a query.

    Attributes:
        IDLE: Created, no request sent yet
        CONNECTING: Request in flight (or being retried), no text yet
        STREAMING: Text deltas are arriving
        COMPLETE_PENDING: Network finished, pacer still revealing text
        COMPLETE: Network finished and the pacer has reconciled
        FAILED: Request failed for good
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    COMPLETE_PENDING = "complete_pending"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class Sidecar:
    """Follow-up metadata delivered with the complete event."""

    options: List[str] = field(default_factory=list)
    concepts: List[str] = field(default_factory=list)


@dataclass
class StreamState:
    """
    Authoritative accumulated text and status for one query.

    Attributes:
        accumulated_text: Answer text received so far
        status: Network-side status
        final_answer: Answer from the complete event, if one arrived
        sidecar: Options and concepts, populated only at completion
        complete_seen: Whether a complete event arrived
        network_finished: Whether the network will deliver no more text
        revision: Bumped whenever accumulated_text is replaced
        rewind_points: Common-prefix length kept by each replacement
    """

    accumulated_text: str = ""
    status: QueryStatus = QueryStatus.IDLE
    final_answer: Optional[str] = None
    sidecar: Sidecar = field(default_factory=Sidecar)
    complete_seen: bool = False
    network_finished: bool = False
    revision: int = 0
    rewind_points: List[int] = field(default_factory=list)

    @property
    def length(self) -> int:
        """Network cursor."""
        return len(self.accumulated_text)

    def append(self, text: str) -> None:
        """Append a delta to the accumulated text."""
        if text:
            self.accumulated_text += text

    def extend_to(self, attempt_text: str) -> int:
        """
        Grow accumulated text to cover an attempt's text.

        Only the part of ``attempt_text`` beyond the current length is
        appended, so a retried attempt that regenerates text already held
        here never duplicates it.

        Returns:
            Number of characters appended
        """
        overflow = len(attempt_text) - len(self.accumulated_text)
        if overflow <= 0:
            return 0
        self.accumulated_text += attempt_text[-overflow:]
        return overflow

    def resync(self, answer: str) -> bool:
        """
        Replace accumulated text with a longer authoritative answer.

        Never shrinks the text; a shorter answer is left to final
        reconciliation instead.

        Returns:
            True if the text was replaced
        """
        if len(answer) <= len(self.accumulated_text):
            return False
        self.replace(answer)
        return True

    def replace(self, text: str) -> None:
        """
        Replace accumulated text wholesale.

        Used at a retry boundary, when a new attempt's text no longer agrees
        with what earlier attempts delivered. Only the common prefix of the
        old and new text is unchanged afterwards.
        """
        if text == self.accumulated_text:
            return
        common = 0
        for old_char, new_char in zip(self.accumulated_text, text):
            if old_char != new_char:
                break
            common += 1
        self.rewind_points.append(common)
        self.accumulated_text = text
        self.revision += 1

    def stable_prefix_since(self, revision: int) -> int:
        """Length of the prefix left untouched by replacements after ``revision``."""
        return min(self.rewind_points[revision:], default=len(self.accumulated_text))

    def authoritative_text(self) -> str:
        """Text that must ultimately be shown for this query."""
        if self.final_answer:
            return self.final_answer
        return self.accumulated_text


@dataclass
class DisplayState:
    """
    Revealed portion of a query's text.

    Attributes:
        displayed_length: Number of characters of accumulated_text shown
        done: Raised once the pacer has reconciled the final text
        final_text: Authoritative text, set at reconciliation
        revision: StreamState revision the display last synced with
    """

    displayed_length: int = 0
    done: bool = False
    final_text: Optional[str] = None
    revision: int = 0

    def caught_up(self, stream: StreamState) -> bool:
        """Whether every received character has been revealed."""
        return self.displayed_length >= stream.length

    def sync(self, stream: StreamState) -> bool:
        """
        Follow a replacement of the accumulated text.

        Rewinds the display cursor to the prefix that the replacement left
        unchanged, so already-shown characters that no longer exist are
        typed again.

        Returns:
            True if the cursor moved back
        """
        if self.revision == stream.revision:
            return False
        stable = stream.stable_prefix_since(self.revision)
        self.revision = stream.revision
        if self.displayed_length <= stable:
            return False
        self.displayed_length = stable
        return True

    def advance(self, stream: StreamState) -> bool:
        """
        Reveal exactly one more character.

        Returns:
            False if already caught up
        """
        self.sync(stream)
        if self.displayed_length >= stream.length:
            return False
        self.displayed_length += 1
        return True

    def visible_text(self, stream: StreamState) -> str:
        """Text currently shown to the reader."""
        if self.done and self.final_text is not None:
            return self.final_text
        return stream.accumulated_text[: self.displayed_length]
