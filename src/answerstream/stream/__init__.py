"""
Stream Module
=============

HTTP event-stream ingestion components.

This module provides the ingestion layer for answerstream:
    - Frame: One blank-line-delimited protocol block
    - FrameAssembler: Bytes to frames, safe across chunk boundaries
    - EventInterpreter: Frames to typed events folded into StreamState
    - HttpxTransport: Streaming HTTP transport
    - TransportRetrier: Timeouts, classified retries and cancellation

Example:
    from answerstream.stream import HttpxTransport, TransportRetrier

    retrier = TransportRetrier(HttpxTransport())
    state = await retrier.run(StreamState(), "POST", url, body)
"""

from answerstream.stream.frame import Frame
from answerstream.stream.assembler import FrameAssembler
from answerstream.stream.interpreter import EventInterpreter
from answerstream.stream.transport import HttpxTransport, Transport, TransportResponse
from answerstream.stream.retrier import RetrierMetrics, RetryPolicy, TransportRetrier


__all__ = [
    "Frame",
    "FrameAssembler",
    "EventInterpreter",
    "HttpxTransport",
    "Transport",
    "TransportResponse",
    "RetrierMetrics",
    "RetryPolicy",
    "TransportRetrier",
]
