"""
Typing Delays
=============

Per-character delay strategies for the pacer.

A strategy maps (next character, previous character) to a delay in seconds.
The previous character is the last one already shown, so punctuation pauses
happen after the punctuation appears.

Strategies:
    - HumanTypingDelay: content-aware pauses with light jitter
    - FixedDelay: constant delay (zero in tests)
"""

import random
from dataclasses import dataclass
from typing import Optional, Protocol


SENTENCE_END = frozenset(".!?")
CLAUSE_BREAK = frozenset(",;:")


class DelayStrategy(Protocol):
    """Computes the wait before revealing the next character."""

    def __call__(self, next_char: str, previous_char: str) -> float:
        ...


@dataclass(frozen=True)
class FixedDelay:
    """Constant delay, independent of content."""

    seconds: float = 0.0

    def __call__(self, next_char: str, previous_char: str) -> float:
        return self.seconds


@dataclass(frozen=True)
class TypingProfile:
    """
    Pause ranges in milliseconds.

    Each pause is ``base + offset + U(0, jitter)``.
    """

    base_ms: float = 3.0
    sentence_offset_ms: float = 12.0
    sentence_jitter_ms: float = 8.0
    clause_offset_ms: float = 6.0
    clause_jitter_ms: float = 4.0
    word_offset_ms: float = 2.0
    word_jitter_ms: float = 3.0
    hesitation_probability: float = 0.05
    hesitation_offset_ms: float = 3.0
    hesitation_jitter_ms: float = 4.0
    char_jitter_ms: float = 2.0


class HumanTypingDelay:
    """
    Content-aware delay that reads like someone typing quickly.

    Pauses longest after sentence-ending punctuation, less after clause
    punctuation, a little after spaces, and occasionally hesitates.

    Attributes:
        profile: Pause ranges
    """

    def __init__(
        self,
        profile: Optional[TypingProfile] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Initialize delay strategy.

        Args:
            profile: Pause ranges (defaults if None)
            rng: Random source; pass a seeded one for repeatable output
        """
        self.profile = profile or TypingProfile()
        self._rng = rng or random.Random()

    def __call__(self, next_char: str, previous_char: str) -> float:
        return self.delay_ms(next_char, previous_char) / 1000.0

    def delay_ms(self, next_char: str, previous_char: str) -> float:
        """Delay before ``next_char`` in milliseconds."""
        p = self.profile
        jitter = self._rng.random

        if previous_char in SENTENCE_END:
            return p.base_ms + jitter() * p.sentence_jitter_ms + p.sentence_offset_ms

        if previous_char in CLAUSE_BREAK:
            return p.base_ms + jitter() * p.clause_jitter_ms + p.clause_offset_ms

        if previous_char == " ":
            return p.base_ms + jitter() * p.word_jitter_ms + p.word_offset_ms

        if jitter() < p.hesitation_probability:
            return p.base_ms + jitter() * p.hesitation_jitter_ms + p.hesitation_offset_ms

        return p.base_ms + jitter() * p.char_jitter_ms
