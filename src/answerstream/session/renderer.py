"""
Renderers
=========

Consumers of progressive and final answer text.

A renderer is told about the text revealed so far while the answer is
streaming, the final answer with its follow-up options and concepts, a
failed query's message, a reset when a new query starts, and a
replacement set of follow-up options.
It never reads session state directly.

Renderers:
    - ConsoleRenderer: writes the answer to a text stream as it is typed
    - RecordingRenderer: keeps every call, for tests and headless use
"""

import re
import sys
from typing import List, Optional, Protocol, TextIO, Tuple


CURSOR_GLYPH = "▌"


class Renderer(Protocol):
    """Receives answer text from a QuerySession."""

    def render_reset(self) -> None:
        """A new query started; clear any shown answer."""
        ...

    def render_progress(self, text: str, streaming: bool) -> None:
        """Text revealed so far; ``streaming`` requests a cursor glyph."""
        ...

    def render_final(self, text: str, options: List[str], concepts: List[str]) -> None:
        """Final answer plus follow-up options and highlightable concepts."""
        ...

    def render_error(self, message: str) -> None:
        """The query failed; show ``message`` instead of an answer."""
        ...

    def render_options(self, options: List[str]) -> None:
        """Follow-up options were replaced without a new answer."""
        ...


def split_highlights(text: str, concepts: List[str]) -> List[Tuple[str, bool]]:
    """
    Split text into plain and concept segments.

    Matching is case-insensitive and prefers longer concepts when two
    overlap.

    Args:
        text: Answer text
        concepts: Concept phrases to highlight

    Returns:
        (segment, is_concept) pairs covering the whole text in order
    """
    phrases = sorted({c for c in concepts if c}, key=len, reverse=True)
    if not text or not phrases:
        return [(text, False)] if text else []

    pattern = re.compile("|".join(re.escape(p) for p in phrases), re.IGNORECASE)
    segments: List[Tuple[str, bool]] = []
    position = 0
    for match in pattern.finditer(text):
        if match.start() > position:
            segments.append((text[position:match.start()], False))
        segments.append((match.group(0), True))
        position = match.end()
    if position < len(text):
        segments.append((text[position:], False))
    return segments


class RecordingRenderer:
    """
    Renderer that stores everything it is given.

    Attributes:
        progress: (text, streaming) pairs in call order
        finals: (text, options, concepts) tuples
        errors: Error messages
        resets: Number of resets
        option_sets: Options passed to render_options
    """

    def __init__(self) -> None:
        self.progress: List[Tuple[str, bool]] = []
        self.finals: List[Tuple[str, List[str], List[str]]] = []
        self.errors: List[str] = []
        self.resets: int = 0
        self.option_sets: List[List[str]] = []

    @property
    def last_text(self) -> Optional[str]:
        """Most recent text shown, final or progressive."""
        if self.finals:
            return self.finals[-1][0]
        if self.progress:
            return self.progress[-1][0]
        return None

    def render_reset(self) -> None:
        self.resets += 1

    def render_progress(self, text: str, streaming: bool) -> None:
        self.progress.append((text, streaming))

    def render_final(self, text: str, options: List[str], concepts: List[str]) -> None:
        self.finals.append((text, list(options), list(concepts)))

    def render_error(self, message: str) -> None:
        self.errors.append(message)

    def render_options(self, options: List[str]) -> None:
        self.option_sets.append(list(options))


class ConsoleRenderer:
    """
    Types the answer into a terminal.

    Only the newly revealed suffix is written on each tick. If the final
    answer differs from what was typed, it is printed again in full.
    Concepts are marked with ``[brackets]`` and options are numbered.
    """

    def __init__(self, out: Optional[TextIO] = None, show_cursor: bool = True) -> None:
        self.out = out or sys.stdout
        self.show_cursor = show_cursor
        self._written: str = ""
        self._cursor_visible: bool = False

    def render_reset(self) -> None:
        self._written = ""
        self._cursor_visible = False

    def render_progress(self, text: str, streaming: bool) -> None:
        self._hide_cursor()
        if text.startswith(self._written):
            self.out.write(text[len(self._written):])
        else:
            self.out.write("\n" + text)
        self._written = text
        if streaming and self.show_cursor:
            self.out.write(CURSOR_GLYPH)
            self._cursor_visible = True
        self.out.flush()

    def render_final(self, text: str, options: List[str], concepts: List[str]) -> None:
        self._hide_cursor()
        if text != self._written:
            if self._written:
                self.out.write("\n\n")
            self.out.write(self._format(text, concepts))
        self.out.write("\n")
        self._write_options(options)
        self._written = text
        self.out.flush()

    def render_error(self, message: str) -> None:
        self._hide_cursor()
        if self._written:
            self.out.write("\n")
        self.out.write(f"{message}\n")
        self._written = ""
        self.out.flush()

    def render_options(self, options: List[str]) -> None:
        self._write_options(options)
        self.out.flush()

    def _write_options(self, options: List[str]) -> None:
        if options:
            self.out.write("\nFollow-up questions:\n")
            for number, option in enumerate(options, start=1):
                self.out.write(f"  {number}. {option}\n")

    def _hide_cursor(self) -> None:
        if self._cursor_visible:
            self.out.write("\b \b")
            self._cursor_visible = False

    @staticmethod
    def _format(text: str, concepts: List[str]) -> str:
        return "".join(
            f"[{segment}]" if is_concept else segment
            for segment, is_concept in split_highlights(text, concepts)
        )
