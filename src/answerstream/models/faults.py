"""
Stream Faults
=============

Classified errors raised while fetching and interpreting an answer stream.

Every fault carries a kind and a retry eligibility flag. The retrier decides
whether to try again purely from ``retryable``; the session maps the kind to
a short user-facing message once retries are exhausted.

Taxonomy:
    NetworkFault      connection-level failure         retryable
    TimeoutFault      overall or chunk-silence timeout retryable
    ParseFault        malformed frame JSON             swallowed per frame
    ServerFault       non-2xx, error or refusal event  retryable iff status >= 500
    CancellationFault superseded or aborted by caller  never retried or shown
"""

from enum import Enum
from typing import Optional


class FaultKind(str, Enum):
    """Classification of a stream fault."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    PARSE = "parse"
    SERVER = "server"
    CANCELLED = "cancelled"


class StreamFault(Exception):
    """
    Base class for all classified stream faults.

    Attributes:
        kind: Fault classification
        message: Human-readable description
        retryable: Whether another attempt may succeed
    """

    kind: FaultKind = FaultKind.NETWORK
    default_retryable: bool = False

    def __init__(self, message: str, *, retryable: Optional[bool] = None) -> None:
        super().__init__(message)
        self.message = message
        self.retryable = self.default_retryable if retryable is None else retryable

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value}, "
            f"message={self.message!r}, retryable={self.retryable})"
        )


class NetworkFault(StreamFault):
    """Connection could not be established or dropped mid-stream."""

    kind = FaultKind.NETWORK
    default_retryable = True


class TimeoutFault(StreamFault):
    """Overall request timeout or too long without a chunk."""

    kind = FaultKind.TIMEOUT
    default_retryable = True


class ParseFault(StreamFault):
    """A frame payload could not be decoded into an event."""

    kind = FaultKind.PARSE
    default_retryable = False


class ServerFault(StreamFault):
    """
    Server rejected the request or reported an error in-band.

    Attributes:
        status: HTTP status code, None for in-band error/refusal events
    """

    kind = FaultKind.SERVER
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        if retryable is None:
            retryable = status is not None and status >= 500
        super().__init__(message, retryable=retryable)
        self.status = status


class CancellationFault(StreamFault):
    """The query was superseded or cancelled by the caller."""

    kind = FaultKind.CANCELLED
    default_retryable = False


class RetriesExhausted(Exception):
    """
    Raised when a request fails for good.

    Wraps the last fault seen, whether that fault was non-retryable or the
    attempt budget simply ran out.
    """

    def __init__(self, fault: StreamFault, attempts: int) -> None:
        super().__init__(f"Request failed after {attempts} attempt(s): {fault.message}")
        self.fault = fault
        self.attempts = attempts


_USER_MESSAGES = {
    FaultKind.TIMEOUT: "Request timed out. Please try again.",
    FaultKind.NETWORK: "Network error. Please check your connection and try again.",
    FaultKind.CANCELLED: "Connection was interrupted. Please try again.",
    FaultKind.SERVER: "Server error. Please try again in a moment.",
}


def user_message(fault: Optional[StreamFault]) -> str:
    """
    Map a fault to the short message shown in place of the answer.

    Args:
        fault: Last fault of a failed request, if any

    Returns:
        Message keyed by fault kind
    """
    if fault is None:
        return "Something went wrong"
    if fault.kind in _USER_MESSAGES:
        return _USER_MESSAGES[fault.kind]
    return fault.message or "An unexpected error occurred"
