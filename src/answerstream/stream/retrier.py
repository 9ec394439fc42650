"""
Transport Retrier
=================

Runs one logical request against the answer endpoint with timeouts,
classified retries and cooperative cancellation.

Each attempt:
    - Opens the transport and validates the response status
    - Reads chunks, each within the chunk-silence timeout
    - Feeds bytes through a fresh FrameAssembler and EventInterpreter
    - Finishes within the overall timeout
    - Releases the response exactly once, however it exits

Retry Policy:
    Attempt k (k > 1) waits k * base_delay first. Only retryable faults
    lead to another attempt; anything else stops immediately. A failed
    request raises RetriesExhausted carrying the last fault. A fault after
    the complete event ends the request instead: the answer is kept and no
    further attempt is made.

Cancellation:
    cancel() is idempotent and may be called before run(). It interrupts
    a backoff wait or an in-flight read and surfaces as CancellationFault,
    which is never retried.

Example:
    retrier = TransportRetrier(HttpxTransport(), RetryPolicy())
    state = StreamState()
    await retrier.run(state, "POST", url, request.to_body())
    print(state.authoritative_text())
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx

from answerstream.models.events import EndEvent, StreamEvent
from answerstream.models.faults import (
    CancellationFault,
    NetworkFault,
    RetriesExhausted,
    ServerFault,
    StreamFault,
    TimeoutFault,
)
from answerstream.models.state import StreamState
from answerstream.stream.assembler import FrameAssembler
from answerstream.stream.interpreter import DEFAULT_RESYNC_THRESHOLD, EventInterpreter
from answerstream.stream.transport import Transport, TransportResponse


logger = logging.getLogger(__name__)


EventCallback = Callable[[StreamEvent], None]
AttemptCallback = Callable[[int], None]


@dataclass
class RetryPolicy:
    """
    Timeouts and retry budget for one request.

    Loaded from configuration file.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    overall_timeout: float = 30.0
    chunk_timeout: float = 10.0

    def delay_before(self, attempt: int) -> float:
        """Backoff before a 1-based attempt number."""
        if attempt <= 1:
            return 0.0
        return attempt * self.base_delay


class RetrierMetrics:
    """Metrics for TransportRetrier observability."""

    __slots__ = (
        "attempts",
        "retries",
        "bytes_received",
        "frames",
        "parse_errors",
        "keepalives",
        "releases",
        "backoff_delays",
        "last_fault_kind",
    )

    def __init__(self) -> None:
        self.attempts: int = 0
        self.retries: int = 0
        self.bytes_received: int = 0
        self.frames: int = 0
        self.parse_errors: int = 0
        self.keepalives: int = 0
        self.releases: int = 0
        self.backoff_delays: List[float] = []
        self.last_fault_kind: Optional[str] = None

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "attempts": self.attempts,
            "retries": self.retries,
            "bytes_received": self.bytes_received,
            "frames": self.frames,
            "parse_errors": self.parse_errors,
            "keepalives": self.keepalives,
            "releases": self.releases,
            "backoff_delays": list(self.backoff_delays),
            "last_fault_kind": self.last_fault_kind,
        }


async def _next_chunk(chunks: AsyncIterator[bytes]) -> bytes:
    return await chunks.__anext__()


class TransportRetrier:
    """
    Retrying, cancellable reader for one streaming request.

    A retrier serves a single query. Once cancelled it stays cancelled.

    Attributes:
        transport: Collaborator that opens HTTP exchanges
        policy: Timeouts and retry budget
        resync_threshold: Passed to each attempt's EventInterpreter
        metrics: Operational metrics
    """

    def __init__(
        self,
        transport: Transport,
        policy: Optional[RetryPolicy] = None,
        resync_threshold: int = DEFAULT_RESYNC_THRESHOLD,
    ) -> None:
        """
        Initialize retrier.

        Args:
            transport: Transport used for every attempt
            policy: Retry policy (defaults if None)
            resync_threshold: Complete-answer resync threshold in characters
        """
        self.transport = transport
        self.policy = policy or RetryPolicy()
        self.resync_threshold = resync_threshold
        self.metrics = RetrierMetrics()

        self._cancelled: bool = False
        self._cancel_event: asyncio.Event = asyncio.Event()
        self._attempt_task: Optional[asyncio.Future] = None

    @property
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""
        return self._cancelled

    def cancel(self) -> None:
        """
        Abort the request.

        Safe to call repeatedly and before run() has started.
        """
        if self._cancelled:
            return
        self._cancelled = True
        self._cancel_event.set()
        if self._attempt_task is not None and not self._attempt_task.done():
            self._attempt_task.cancel()
        logger.debug("Retrier cancelled")

    async def run(
        self,
        state: StreamState,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]] = None,
        on_event: Optional[EventCallback] = None,
        on_attempt: Optional[AttemptCallback] = None,
    ) -> StreamState:
        """
        Run the request until it succeeds, fails for good, or is cancelled.

        Args:
            state: StreamState the response is folded into
            method: HTTP method
            url: Endpoint URL
            body: JSON request body
            on_event: Called after each applied event
            on_attempt: Called with the 1-based attempt number before it starts

        Returns:
            The updated StreamState

        Raises:
            CancellationFault: cancel() was called
            RetriesExhausted: Non-retryable fault, or attempts used up
        """
        last_fault: Optional[StreamFault] = None

        for attempt in range(1, self.policy.max_attempts + 1):
            if attempt > 1:
                await self._backoff(attempt)
            self._check_cancelled()

            self.metrics.attempts += 1
            if on_attempt is not None:
                on_attempt(attempt)

            try:
                await self._run_attempt(state, method, url, body, on_event)
                if attempt > 1:
                    logger.info(f"Request succeeded on attempt {attempt}")
                return state
            except CancellationFault:
                raise
            except StreamFault as e:
                last_fault = e

            self.metrics.last_fault_kind = last_fault.kind.value
            if state.complete_seen:
                logger.warning(
                    f"Request attempt {attempt} failed after the complete event, "
                    f"keeping the answer: {last_fault.message} (kind={last_fault.kind.value})"
                )
                return state
            logger.warning(
                f"Request attempt {attempt}/{self.policy.max_attempts} failed: "
                f"{last_fault.message} (kind={last_fault.kind.value}, "
                f"retryable={last_fault.retryable})"
            )
            if not last_fault.retryable:
                break

        logger.error(f"All retry attempts failed. Last error: {last_fault.message}")
        raise RetriesExhausted(last_fault, self.metrics.attempts)

    def _check_cancelled(self) -> None:
        if self._cancelled:
            raise CancellationFault("Stream aborted")

    async def _backoff(self, attempt: int) -> None:
        delay = self.policy.delay_before(attempt)
        self.metrics.retries += 1
        self.metrics.backoff_delays.append(delay)
        logger.info(
            f"Retrying request in {delay:.1f}s "
            f"(attempt {attempt}/{self.policy.max_attempts})"
        )
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            # Backoff complete
            return
        self._check_cancelled()

    async def _run_attempt(
        self,
        state: StreamState,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]],
        on_event: Optional[EventCallback],
    ) -> None:
        self._attempt_task = asyncio.ensure_future(
            asyncio.wait_for(
                self._attempt(state, method, url, body, on_event),
                timeout=self.policy.overall_timeout,
            )
        )
        try:
            await self._attempt_task
        except asyncio.TimeoutError as e:
            raise TimeoutFault("Request timeout") from e
        except asyncio.CancelledError:
            if self._cancelled:
                raise CancellationFault("Stream aborted") from None
            raise
        finally:
            self._attempt_task = None

    async def _attempt(
        self,
        state: StreamState,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]],
        on_event: Optional[EventCallback],
    ) -> None:
        assembler = FrameAssembler()
        interpreter = EventInterpreter(state, resync_threshold=self.resync_threshold)

        try:
            response = await self.transport.open(method, url, body)
        except (httpx.TransportError, OSError) as e:
            raise NetworkFault(str(e) or type(e).__name__) from e

        try:
            if not 200 <= response.status < 300:
                raise ServerFault(
                    f"HTTP {response.status}: {response.reason}",
                    status=response.status,
                )

            chunks = response.chunks().__aiter__()
            while True:
                try:
                    chunk = await asyncio.wait_for(
                        _next_chunk(chunks),
                        timeout=self.policy.chunk_timeout,
                    )
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError as e:
                    raise TimeoutFault("Chunk timeout - no data received") from e
                except (httpx.TransportError, OSError) as e:
                    raise NetworkFault(str(e) or type(e).__name__) from e

                self.metrics.bytes_received += len(chunk)
                self._dispatch(assembler.feed(chunk), interpreter, on_event)

            self._dispatch(assembler.flush(), interpreter, on_event)
            if not state.network_finished:
                # Transport closed without an end event
                self._emit(interpreter.apply(EndEvent()), on_event)
        finally:
            self.metrics.parse_errors += interpreter.parse_errors
            self.metrics.keepalives += assembler.keepalives
            await self._release(response)

    def _dispatch(
        self,
        frames: list,
        interpreter: EventInterpreter,
        on_event: Optional[EventCallback],
    ) -> None:
        for frame in frames:
            self.metrics.frames += 1
            event = interpreter.handle(frame)
            if event is not None:
                self._emit(event, on_event)

    @staticmethod
    def _emit(event: StreamEvent, on_event: Optional[EventCallback]) -> None:
        if on_event is not None:
            on_event(event)

    async def _release(self, response: TransportResponse) -> None:
        self.metrics.releases += 1
        try:
            await response.aclose()
        except Exception as e:
            logger.debug(f"Ignoring error while releasing response: {e}")
