"""
Transport Retrier Tests
=======================

Timeouts, retry classification, cancellation and response release.
"""

import asyncio

import httpx
import pytest

from answerstream.models.faults import (
    CancellationFault,
    FaultKind,
    NetworkFault,
    RetriesExhausted,
    TimeoutFault,
)
from answerstream.models.state import QueryStatus, StreamState
from answerstream.stream.retrier import RetryPolicy, TransportRetrier
from conftest import FakeResponse, FakeTransport, sse


URL = "http://test/api/openai"


async def _run(retrier, state=None, **kwargs):
    state = state or StreamState()
    await retrier.run(state, "POST", URL, {"message": "Hi"}, **kwargs)
    return state


class TestRetryPolicy:
    """Tests for backoff computation."""

    def test_no_delay_before_first_attempt(self):
        assert RetryPolicy(base_delay=1.0).delay_before(1) == 0.0

    def test_linear_backoff(self):
        """Attempt k waits k times the base delay."""
        policy = RetryPolicy(base_delay=1.0)
        assert [policy.delay_before(k) for k in (2, 3, 4)] == [2.0, 3.0, 4.0]


class TestSuccessfulStreams:
    """Tests for streams that complete."""

    @pytest.mark.asyncio
    async def test_hi_there_scenario(self, hi_there_body, fast_policy):
        """Deltas, complete and [DONE] give the final answer and options."""
        transport = FakeTransport(FakeResponse([hi_there_body]))
        state = await _run(TransportRetrier(transport, fast_policy))

        assert state.authoritative_text() == "Hi there"
        assert state.sidecar.options == ["A?"]
        assert state.status == QueryStatus.COMPLETE_PENDING
        assert transport.requests == [("POST", URL, {"message": "Hi"})]

    @pytest.mark.asyncio
    async def test_close_without_end_finishes_stream(self, fast_policy):
        """Transport EOF counts as an end event."""
        body = sse({"type": "text_delta", "content": "cut short"})
        seen = []
        transport = FakeTransport(FakeResponse([body]))
        state = await _run(TransportRetrier(transport, fast_policy), on_event=seen.append)

        assert state.network_finished
        assert state.authoritative_text() == "cut short"
        assert [e.type for e in seen] == ["text_delta", "end"]

    @pytest.mark.asyncio
    async def test_heartbeats_keep_slow_stream_alive(self, fast_policy):
        """Each chunk resets the silence timer."""
        chunks = []
        for _ in range(6):
            chunks += [0.02, sse({"type": "heartbeat"})]
        chunks.append(sse({"type": "text_delta", "content": "done"}))
        transport = FakeTransport(FakeResponse(chunks))

        state = await _run(TransportRetrier(transport, fast_policy))
        assert state.accumulated_text == "done"

    @pytest.mark.asyncio
    async def test_malformed_frame_does_not_abort(self, fast_policy):
        """Parse faults are skipped and counted."""
        body = sse("{broken", {"type": "text_delta", "content": "fine"})
        retrier = TransportRetrier(FakeTransport(FakeResponse([body])), fast_policy)
        state = await _run(retrier)
        assert state.accumulated_text == "fine"
        assert retrier.metrics.parse_errors == 1
        assert retrier.metrics.attempts == 1


class TestRetries:
    """Tests for classified retry behaviour."""

    @pytest.mark.asyncio
    async def test_retryable_faults_then_success(self, hi_there_body, fast_policy):
        """N-1 retryable failures followed by success returns the answer."""
        transport = FakeTransport(
            httpx.ConnectError("connection refused"),
            FakeResponse(status=503, reason="Service Unavailable"),
            FakeResponse([hi_there_body]),
        )
        retrier = TransportRetrier(transport, fast_policy)
        state = await _run(retrier)

        assert state.authoritative_text() == "Hi there"
        assert retrier.metrics.attempts == 3
        assert retrier.metrics.retries == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries(self, fast_policy):
        """N retryable failures raise RetriesExhausted with the last fault."""
        transport = FakeTransport(
            httpx.ConnectError("refused"),
            OSError("unreachable"),
            FakeResponse(status=502, reason="Bad Gateway"),
        )
        retrier = TransportRetrier(transport, fast_policy)

        with pytest.raises(RetriesExhausted) as exc_info:
            await _run(retrier)

        assert exc_info.value.attempts == 3
        assert exc_info.value.fault.kind == FaultKind.SERVER
        assert exc_info.value.fault.status == 502
        assert transport.outcomes == []

    @pytest.mark.asyncio
    async def test_client_error_aborts_immediately(self, fast_policy):
        """A 4xx is not retried."""
        transport = FakeTransport(
            FakeResponse(status=400, reason="Bad Request"),
            FakeResponse([sse({"type": "text_delta", "content": "unused"})]),
        )
        retrier = TransportRetrier(transport, fast_policy)

        with pytest.raises(RetriesExhausted) as exc_info:
            await _run(retrier)

        assert exc_info.value.attempts == 1
        assert not exc_info.value.fault.retryable
        assert len(transport.outcomes) == 1
        assert transport.total_closes == 1

    @pytest.mark.asyncio
    async def test_refusal_aborts_immediately(self, fast_policy):
        """An in-band refusal is terminal."""
        body = sse({"type": "text_delta", "content": "I"}, {"type": "refusal", "message": "no"})
        transport = FakeTransport(FakeResponse([body]), FakeResponse([b""]))
        retrier = TransportRetrier(transport, fast_policy)

        with pytest.raises(RetriesExhausted) as exc_info:
            await _run(retrier)

        assert exc_info.value.fault.message == "Request refused: no"
        assert retrier.metrics.attempts == 1

    @pytest.mark.asyncio
    async def test_chunk_silence_triggers_retry(self, fast_policy):
        """Silence mid-stream after "Hi" is a retryable timeout."""
        silent = FakeResponse([sse({"type": "text_delta", "content": "Hi"}), 10.0])
        recovered = FakeResponse([sse(
            {"type": "text_delta", "content": "Hi"},
            {"type": "text_delta", "content": " there"},
            {"type": "end"},
        )])
        transport = FakeTransport(silent, recovered)
        retrier = TransportRetrier(transport, fast_policy)
        attempts = []

        state = await _run(retrier, on_attempt=attempts.append)

        assert attempts == [1, 2]
        assert retrier.metrics.last_fault_kind == FaultKind.TIMEOUT.value
        assert state.accumulated_text == "Hi there"
        assert silent.close_count == 1

    @pytest.mark.asyncio
    async def test_chunk_silence_fault_classification(self):
        """The silence fault is a retryable TimeoutFault."""
        policy = RetryPolicy(max_attempts=1, base_delay=0.0, chunk_timeout=0.05)
        transport = FakeTransport(FakeResponse([sse({"type": "text_delta", "content": "Hi"}), 10.0]))
        state = StreamState()

        with pytest.raises(RetriesExhausted) as exc_info:
            await _run(TransportRetrier(transport, policy), state)

        assert isinstance(exc_info.value.fault, TimeoutFault)
        assert exc_info.value.fault.retryable
        assert state.accumulated_text == "Hi"

    @pytest.mark.asyncio
    async def test_overall_timeout(self):
        """A stream that trickles past the overall timeout is aborted."""
        policy = RetryPolicy(max_attempts=1, overall_timeout=0.1, chunk_timeout=1.0)
        chunks = []
        for _ in range(20):
            chunks += [0.02, sse({"type": "heartbeat"})]
        response = FakeResponse(chunks)

        with pytest.raises(RetriesExhausted) as exc_info:
            await _run(TransportRetrier(FakeTransport(response), policy))

        assert exc_info.value.fault.kind == FaultKind.TIMEOUT
        assert exc_info.value.fault.message == "Request timeout"
        assert response.close_count == 1

    @pytest.mark.asyncio
    async def test_mid_stream_network_error_is_retryable(self, fast_policy):
        """A dropped connection while reading is retried."""
        broken = FakeResponse([sse({"type": "text_delta", "content": "Hi"}), httpx.ReadError("reset")])
        transport = FakeTransport(broken, FakeResponse([sse({"type": "text_delta", "content": "Hi!"})]))
        retrier = TransportRetrier(transport, fast_policy)

        state = await _run(retrier)

        assert state.accumulated_text == "Hi!"
        assert retrier.metrics.last_fault_kind == FaultKind.NETWORK.value

    @pytest.mark.asyncio
    async def test_retry_with_different_text_follows_last_attempt(self, fast_policy):
        """The answer is the retried attempt's text, not a mix of both attempts."""
        broken = FakeResponse([
            sse({"type": "text_delta", "content": "Hello wor"}),
            httpx.ReadError("reset"),
        ])
        retried = FakeResponse([sse(
            {"type": "text_delta", "content": "Hi"},
            {"type": "text_delta", "content": " there"},
            {"type": "text_delta", "content": " friend"},
            {"type": "end"},
        )])
        retrier = TransportRetrier(FakeTransport(broken, retried), fast_policy)

        state = await _run(retrier)

        assert state.accumulated_text == "Hi there friend"
        assert state.authoritative_text() == "Hi there friend"
        assert retrier.metrics.attempts == 2

    @pytest.mark.asyncio
    async def test_silence_after_complete_is_not_retried(self, fast_policy):
        """A fault after the complete event keeps the answer without another request."""
        stalled = FakeResponse([
            sse({
                "type": "complete",
                "data": {"answer": "Done.", "options": ["A?"], "explorable_concepts": []},
            }),
            10.0,
        ])
        unused = FakeResponse([sse({"type": "text_delta", "content": "other"})])
        transport = FakeTransport(stalled, unused)
        retrier = TransportRetrier(transport, fast_policy)

        state = await _run(retrier)

        assert len(transport.requests) == 1
        assert state.authoritative_text() == "Done."
        assert state.sidecar.options == ["A?"]
        assert state.status == QueryStatus.COMPLETE_PENDING
        assert retrier.metrics.last_fault_kind == FaultKind.TIMEOUT.value
        assert stalled.close_count == 1

    @pytest.mark.asyncio
    async def test_backoff_delays_recorded(self):
        """Backoff before attempt k is k * base_delay."""
        policy = RetryPolicy(max_attempts=3, base_delay=0.01, chunk_timeout=0.5)
        transport = FakeTransport(
            NetworkFault("down"),
            httpx.ConnectError("down"),
            FakeResponse([sse({"type": "end"})]),
        )
        retrier = TransportRetrier(transport, policy)
        await _run(retrier)
        assert retrier.metrics.backoff_delays == [pytest.approx(0.02), pytest.approx(0.03)]


class TestCancellation:
    """Tests for cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_mid_stream_releases_once_without_retry(self):
        """Cancelling a read releases the response once and stops."""
        policy = RetryPolicy(max_attempts=3, base_delay=0.0, chunk_timeout=5.0)
        response = FakeResponse([sse({"type": "text_delta", "content": "Hi"}), 5.0])
        transport = FakeTransport(response, FakeResponse([b""]))
        retrier = TransportRetrier(transport, policy)
        state = StreamState()

        task = asyncio.create_task(_run(retrier, state))
        while state.accumulated_text != "Hi":
            await asyncio.sleep(0.005)
        retrier.cancel()

        with pytest.raises(CancellationFault):
            await task

        assert response.close_count == 1
        assert retrier.metrics.releases == 1
        assert retrier.metrics.attempts == 1
        assert len(transport.outcomes) == 1

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self):
        """Cancelling while waiting to retry stops without another attempt."""
        policy = RetryPolicy(max_attempts=3, base_delay=5.0)
        transport = FakeTransport(httpx.ConnectError("down"), FakeResponse([b""]))
        retrier = TransportRetrier(transport, policy)

        task = asyncio.create_task(_run(retrier))
        while retrier.metrics.retries == 0:
            await asyncio.sleep(0.005)
        retrier.cancel()

        with pytest.raises(CancellationFault):
            await task
        assert retrier.metrics.attempts == 1

    @pytest.mark.asyncio
    async def test_cancel_before_start_is_idempotent(self, fast_policy):
        """cancel() may be called repeatedly, even before run()."""
        transport = FakeTransport(FakeResponse([b""]))
        retrier = TransportRetrier(transport, fast_policy)
        retrier.cancel()
        retrier.cancel()

        with pytest.raises(CancellationFault):
            await _run(retrier)
        assert transport.requests == []
