"""
answerstream
============

Streaming answer client with human-paced reveal.

This package fetches an answer that a server generates incrementally and
delivers as an event stream over HTTP, rebuilds the authoritative text,
retries transient failures, and types the answer out to a renderer at a
reading pace that does not depend on when the bytes arrive.

Components:
    - stream: Frame assembly, event interpretation, transport and retries
    - pacing: Typewriter pacer and per-character delay strategies
    - session: Query lifecycle, supersession and conversation history
    - models: Events, faults, request bodies and per-query state

Example:
    from answerstream.session import QuerySession, ConsoleRenderer
    from answerstream.stream import HttpxTransport

    session = QuerySession(HttpxTransport(), ConsoleRenderer(), url=API_URL)
    await session.ask("Why is the sky blue?").wait()
"""

__version__ = "0.1.0"
__author__ = "answerstream contributors"

__all__ = [
    "__version__",
]
