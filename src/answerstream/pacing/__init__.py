"""
Pacing Module
=============

Typewriter reveal of streamed text.

Components:
    - Pacer: Reveals one character per tick, reconciles the final text
    - HumanTypingDelay: Content-aware per-character delay
    - FixedDelay: Constant delay
"""

from answerstream.pacing.delays import DelayStrategy, FixedDelay, HumanTypingDelay, TypingProfile
from answerstream.pacing.pacer import Pacer

__all__ = [
    "DelayStrategy",
    "FixedDelay",
    "HumanTypingDelay",
    "TypingProfile",
    "Pacer",
]
