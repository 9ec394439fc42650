"""
Frame Data Model
=================

Internal frame representation for the ingestion pipeline.

A frame is the payload of one blank-line-delimited block of the event
stream, with its ``data:`` prefix stripped. It is the only unit passed from
the assembler to the interpreter.

Design Rules:
    - Frames are never empty and never the [DONE] sentinel
    - Does NOT parse the JSON payload
    - Sequence numbers are per assembler, starting at 0
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Frame:
    """
    One complete protocol block.

    Immutable (frozen) to prevent accidental modification downstream.

    Attributes:
        seq: Position of this frame in the assembler's output
        payload: Raw text after the ``data:`` prefix, not yet parsed
    """

    seq: int
    payload: str

    def __repr__(self) -> str:
        """Compact repr that doesn't dump a long payload."""
        preview = self.payload if len(self.payload) <= 40 else self.payload[:37] + "..."
        return f"Frame(seq={self.seq}, payload={preview!r})"
