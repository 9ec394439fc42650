"""
Session Module
==============

Per-query lifecycle and the conversation around it.

Components:
    - LifecyclePolicy: Pure (phase, signal) -> (phase, effects) policy
    - ActiveQuery: Handle for one in-flight query
    - QuerySession: Starts, supersedes and finishes queries
    - ConsoleRenderer, RecordingRenderer: Renderer collaborators
"""

from answerstream.session.lifecycle import (
    Effect,
    LifecyclePhase,
    LifecyclePolicy,
    LifecycleSignal,
    TransitionResult,
)
from answerstream.session.query import ActiveQuery
from answerstream.session.renderer import (
    ConsoleRenderer,
    RecordingRenderer,
    Renderer,
    split_highlights,
)
from answerstream.session.session import QuerySession

__all__ = [
    "Effect",
    "LifecyclePhase",
    "LifecyclePolicy",
    "LifecycleSignal",
    "TransitionResult",
    "ActiveQuery",
    "ConsoleRenderer",
    "RecordingRenderer",
    "Renderer",
    "split_highlights",
    "QuerySession",
]
