"""
Frame Assembler
===============

Turns arbitrary byte chunks from the transport into complete frames.

The transport may split the stream anywhere: in the middle of a block, in
the middle of a line, even in the middle of a multi-byte UTF-8 character.
The assembler keeps a text buffer across calls and only releases blocks that
have been terminated by a blank line.

Design Rules:
    - Uses an incremental decoder; chunks are never decoded independently
    - Retains the trailing partial block for the next call
    - Only ``data:`` lines carry payload; ``id:``, ``event:`` and ``:``
      comment lines are discarded
    - Empty payloads and ``[DONE]`` are keepalives, never emitted
    - Same bytes in, same frames out, regardless of chunking
"""

import codecs
import logging
from typing import List, Optional

from answerstream.stream.frame import Frame


logger = logging.getLogger(__name__)


BLOCK_DELIMITER = "\n\n"
DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class FrameAssembler:
    """
    Incremental parser for a blank-line-delimited event stream.

    Attributes:
        frames_emitted: Frames produced so far
        keepalives: Empty or [DONE] payloads skipped
        discarded_lines: Non-data lines skipped

    Example:
        assembler = FrameAssembler()
        frames = assembler.feed(b'data: {"type": "connected"}\\n\\n')
        assert frames[0].payload == '{"type": "connected"}'
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        """
        Initialize assembler.

        Args:
            encoding: Stream text encoding
        """
        self._encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer: str = ""
        self.frames_emitted: int = 0
        self.keepalives: int = 0
        self.discarded_lines: int = 0

    @property
    def pending(self) -> str:
        """Text received but not yet terminated by a blank line."""
        return self._buffer

    def feed(self, chunk: bytes) -> List[Frame]:
        """
        Consume one chunk and return every frame it completes.

        Args:
            chunk: Raw bytes as delivered by the transport

        Returns:
            Complete frames, in stream order (possibly empty)
        """
        if not chunk:
            return []
        return self._drain(self._decoder.decode(chunk))

    def flush(self) -> List[Frame]:
        """
        Finalize at end of stream.

        Emits a trailing block that was never followed by a blank line.
        """
        frames = self._drain(self._decoder.decode(b"", final=True))
        tail, self._buffer = self._buffer, ""
        if tail.strip():
            frame = self._parse_block(tail)
            if frame is not None:
                frames.append(frame)
        return frames

    def reset(self) -> None:
        """Discard buffered text and decoder state."""
        self._decoder.reset()
        self._buffer = ""

    def _drain(self, text: str) -> List[Frame]:
        if text:
            # A CRLF pair may span two chunks
            self._buffer = (self._buffer + text).replace("\r\n", "\n")
        if BLOCK_DELIMITER not in self._buffer:
            return []

        *blocks, self._buffer = self._buffer.split(BLOCK_DELIMITER)
        frames = []
        for block in blocks:
            frame = self._parse_block(block)
            if frame is not None:
                frames.append(frame)
        return frames

    def _parse_block(self, block: str) -> Optional[Frame]:
        data_lines = []
        for line in block.split("\n"):
            if line.startswith(DATA_PREFIX):
                value = line[len(DATA_PREFIX):]
                data_lines.append(value[1:] if value.startswith(" ") else value)
            elif line:
                self.discarded_lines += 1

        if not data_lines:
            return None

        payload = "\n".join(data_lines).strip()
        if not payload or payload == DONE_SENTINEL:
            self.keepalives += 1
            return None

        frame = Frame(seq=self.frames_emitted, payload=payload)
        self.frames_emitted += 1
        return frame

    def metrics(self) -> dict:
        """
        Get assembler metrics for observability.

        Returns:
            Dict with frames_emitted, keepalives, discarded_lines, pending_chars
        """
        return {
            "frames_emitted": self.frames_emitted,
            "keepalives": self.keepalives,
            "discarded_lines": self.discarded_lines,
            "pending_chars": len(self._buffer),
        }
