"""
Event Interpreter
=================

Parses frame payloads into typed events and folds them into StreamState.

Event Handling:
    connected / heartbeat  liveness only, no state change
    text_delta             append content, status -> streaming
    complete               record answer and sidecar, resync if the answer
                           is well ahead of what arrived,
                           status -> complete_pending
    error / refusal        raise a terminal, non-retryable ServerFault
    end                    network finished; accumulated text stands in for
                           the answer if no complete event arrived
    unknown type           logged and ignored

Malformed payloads are logged and skipped; they never abort the stream.
Once a terminal fault has been raised the interpreter refuses further
frames for the query.

Example:
    state = StreamState()
    interpreter = EventInterpreter(state)
    for frame in assembler.feed(chunk):
        interpreter.handle(frame)
"""

import json
import logging
from typing import Iterable, List, Optional

from pydantic import ValidationError

from answerstream.models.events import (
    EVENT_ADAPTER,
    KNOWN_EVENT_TYPES,
    CompleteEvent,
    ConnectedEvent,
    EndEvent,
    ErrorEvent,
    HeartbeatEvent,
    RefusalEvent,
    StreamEvent,
    TextDeltaEvent,
)
from answerstream.models.faults import ParseFault, ServerFault, StreamFault
from answerstream.models.state import QueryStatus, StreamState
from answerstream.stream.frame import Frame


logger = logging.getLogger(__name__)


DEFAULT_RESYNC_THRESHOLD = 10


class EventInterpreter:
    """
    Folds stream events into one query's StreamState.

    One interpreter is created per attempt. Text deltas are collected into an
    attempt-local buffer. While that buffer agrees with StreamState, the
    state only grows past what it already holds, so a retried attempt does
    not repeat text. Once a retried attempt diverges, its text replaces the
    accumulated text.

    Attributes:
        state: StreamState being updated
        resync_threshold: Characters the complete answer may run ahead of
            the accumulated text before the text is replaced
        attempt_text: Text delivered by this attempt's deltas
        parse_errors: Payloads that failed to parse
        unknown_events: Well-formed events of an unrecognised type
    """

    def __init__(
        self,
        state: StreamState,
        resync_threshold: int = DEFAULT_RESYNC_THRESHOLD,
    ) -> None:
        self.state = state
        self.resync_threshold = resync_threshold
        self.attempt_text: str = ""
        self.parse_errors: int = 0
        self.unknown_events: int = 0
        self.last_event_type: Optional[str] = None
        self._fault: Optional[StreamFault] = None

    @property
    def terminated(self) -> bool:
        """Whether a terminal fault stopped this interpreter."""
        return self._fault is not None

    def parse(self, frame: Frame) -> Optional[StreamEvent]:
        """
        Decode a frame payload.

        Returns:
            Typed event, or None for unknown types

        Raises:
            ParseFault: Payload is not valid JSON or not a valid event
        """
        try:
            data = json.loads(frame.payload)
        except json.JSONDecodeError as e:
            raise ParseFault(f"Invalid JSON in frame {frame.seq}: {e}") from e

        if not isinstance(data, dict):
            raise ParseFault(f"Frame {frame.seq} payload is not an object")

        event_type = data.get("type")
        if event_type not in KNOWN_EVENT_TYPES:
            self.unknown_events += 1
            logger.debug(f"Unknown stream event type: {event_type!r}")
            return None

        try:
            return EVENT_ADAPTER.validate_python(data)
        except ValidationError as e:
            raise ParseFault(f"Invalid {event_type} event in frame {frame.seq}: {e}") from e

    def handle(self, frame: Frame) -> Optional[StreamEvent]:
        """
        Parse and apply one frame.

        Parse faults are logged and swallowed. A terminal fault from an
        error or refusal event propagates.

        Returns:
            Applied event, or None if the frame was skipped
        """
        if self._fault is not None:
            raise self._fault

        try:
            event = self.parse(frame)
        except ParseFault as e:
            self.parse_errors += 1
            logger.warning(f"Failed to parse stream data, skipping: {e.message}")
            return None

        if event is None:
            return None
        return self.apply(event)

    def feed(self, frames: Iterable[Frame]) -> List[StreamEvent]:
        """Handle frames in order, stopping at the first terminal fault."""
        applied = []
        for frame in frames:
            event = self.handle(frame)
            if event is not None:
                applied.append(event)
        return applied

    def apply(self, event: StreamEvent) -> StreamEvent:
        """
        Fold one event into StreamState.

        Raises:
            ServerFault: On error or refusal events
        """
        self.last_event_type = event.type

        if isinstance(event, (ConnectedEvent, HeartbeatEvent)):
            logger.debug(f"Stream {event.type} received")

        elif isinstance(event, TextDeltaEvent):
            self.attempt_text += event.content
            if self.state.complete_seen:
                logger.debug("Ignoring text delta after complete event")
            else:
                self._follow_attempt()
            if not self.state.network_finished:
                self.state.status = QueryStatus.STREAMING

        elif isinstance(event, CompleteEvent):
            self._apply_complete(event)

        elif isinstance(event, ErrorEvent):
            logger.error(f"Stream error: {event.message or 'Unknown error'}")
            self._terminate(ServerFault(event.message or "Server reported an error"))

        elif isinstance(event, RefusalEvent):
            logger.warning(f"Request was refused: {event.message}")
            self._terminate(
                ServerFault(f"Request refused: {event.message or 'Content policy violation'}")
            )

        elif isinstance(event, EndEvent):
            logger.debug("Stream ended")
            self.finish()

        return event

    def finish(self) -> None:
        """
        Mark the network side finished.

        Called for the end event and when the transport closes. Without a
        complete event the text of this attempt becomes the final answer,
        even if an earlier attempt delivered more.
        """
        if self.state.network_finished:
            return
        if not self.state.complete_seen:
            logger.debug(
                f"Stream closed without complete event, "
                f"using {len(self.attempt_text)} chars of the final attempt"
            )
            self.state.replace(self.attempt_text)
        self.state.network_finished = True
        self.state.status = QueryStatus.COMPLETE_PENDING

    def _apply_complete(self, event: CompleteEvent) -> None:
        state = self.state
        answer = event.answer

        logger.debug(
            f"Stream complete event received: "
            f"answer_len={len(answer or '')}, "
            f"options={len(event.options)}, "
            f"concepts={len(event.concepts)}"
        )

        state.final_answer = answer or None
        state.sidecar.options = event.options
        state.sidecar.concepts = event.concepts
        state.complete_seen = True

        if answer and len(answer) - state.length > self.resync_threshold:
            logger.info(
                f"Resyncing accumulated text to complete answer "
                f"({state.length} -> {len(answer)} chars)"
            )
            state.resync(answer)

        state.network_finished = True
        state.status = QueryStatus.COMPLETE_PENDING

    def _follow_attempt(self) -> None:
        state, text = self.state, self.attempt_text
        if state.accumulated_text.startswith(text):
            # Still replaying what an earlier attempt delivered
            return
        if text.startswith(state.accumulated_text):
            state.extend_to(text)
            return
        logger.info(
            f"Retried attempt diverged from earlier text, replacing "
            f"{state.length} chars with {len(text)}"
        )
        state.replace(text)

    def _terminate(self, fault: StreamFault) -> None:
        self._fault = fault
        raise fault
