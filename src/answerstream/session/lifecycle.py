"""
Query Lifecycle
===============

Deterministic lifecycle policy for one query.

This module implements the rules for moving a query between phases:
    IDLE → CONNECTING → STREAMING → DRAINING → DONE
    IDLE → CONNECTING → FAILED

Key Features:
    - Pure: evaluate() reads nothing but its arguments
    - Explicit table of allowed transitions
    - Each transition declares the effects the session must carry out
    - Signals that don't apply in the current phase are ignored

Phases:
    CONNECTING  request in flight or being retried, no text yet
    STREAMING   text arriving, pacer ticking or parked
    DRAINING    network finished, pacer still revealing buffered text
    DONE        network finished and every character revealed
    FAILED      request failed for good (terminal)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


logger = logging.getLogger(__name__)


class LifecyclePhase(str, Enum):
    """Per-query lifecycle phase."""

    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    STREAMING = "STREAMING"
    DRAINING = "DRAINING"
    DONE = "DONE"
    FAILED = "FAILED"


class LifecycleSignal(str, Enum):
    """
    Things that happen to a query.

    Attributes:
        START: Request is about to be sent
        RETRY: An attempt failed and another is starting
        TEXT: Accumulated text grew
        NETWORK_FINISHED: No further text will arrive
        CAUGHT_UP: Pacer revealed everything and reconciled
        FAILED: Request failed for good
    """

    START = "START"
    RETRY = "RETRY"
    TEXT = "TEXT"
    NETWORK_FINISHED = "NETWORK_FINISHED"
    CAUGHT_UP = "CAUGHT_UP"
    FAILED = "FAILED"


class Effect(str, Enum):
    """Side effects requested by a transition, run by the session."""

    START_PACER = "START_PACER"
    WAKE_PACER = "WAKE_PACER"
    STOP_PACER = "STOP_PACER"
    MARK_CONNECTING = "MARK_CONNECTING"
    RENDER_FINAL = "RENDER_FINAL"
    RECORD_CONVERSATION = "RECORD_CONVERSATION"
    CLEAR_SIDECAR = "CLEAR_SIDECAR"
    RENDER_ERROR = "RENDER_ERROR"


TERMINAL_PHASES = frozenset({LifecyclePhase.DONE, LifecyclePhase.FAILED})


_P = LifecyclePhase
_S = LifecycleSignal
_E = Effect

_FAIL = (_P.FAILED, (_E.STOP_PACER, _E.CLEAR_SIDECAR, _E.RENDER_ERROR))

_TRANSITIONS: Dict[Tuple[LifecyclePhase, LifecycleSignal], Tuple[LifecyclePhase, Tuple[Effect, ...]]] = {
    (_P.IDLE, _S.START): (_P.CONNECTING, (_E.MARK_CONNECTING, _E.START_PACER)),
    (_P.CONNECTING, _S.RETRY): (_P.CONNECTING, (_E.MARK_CONNECTING,)),
    (_P.CONNECTING, _S.TEXT): (_P.STREAMING, (_E.WAKE_PACER,)),
    (_P.CONNECTING, _S.NETWORK_FINISHED): (_P.DRAINING, (_E.WAKE_PACER,)),
    (_P.CONNECTING, _S.FAILED): _FAIL,
    (_P.STREAMING, _S.TEXT): (_P.STREAMING, (_E.WAKE_PACER,)),
    (_P.STREAMING, _S.RETRY): (_P.CONNECTING, (_E.MARK_CONNECTING,)),
    (_P.STREAMING, _S.NETWORK_FINISHED): (_P.DRAINING, (_E.WAKE_PACER,)),
    (_P.STREAMING, _S.FAILED): _FAIL,
    (_P.DRAINING, _S.TEXT): (_P.DRAINING, (_E.WAKE_PACER,)),
    (_P.DRAINING, _S.CAUGHT_UP): (_P.DONE, (_E.RENDER_FINAL, _E.RECORD_CONVERSATION)),
}


@dataclass(frozen=True)
class TransitionResult:
    """Result of a lifecycle evaluation."""

    previous: LifecyclePhase
    phase: LifecyclePhase
    signal: LifecycleSignal
    effects: Tuple[Effect, ...]
    transition_occurred: bool

    def __repr__(self) -> str:
        effects = ",".join(e.value for e in self.effects) or "-"
        return (
            f"TransitionResult({self.previous.value} -{self.signal.value}-> "
            f"{self.phase.value}, effects={effects})"
        )


class LifecyclePolicy:
    """
    Maps (phase, signal) to the next phase and the effects to run.

    Signals with no entry in the table leave the phase unchanged and
    request no effects, e.g. a late TEXT after the query failed.
    """

    def evaluate(self, phase: LifecyclePhase, signal: LifecycleSignal) -> TransitionResult:
        """
        Evaluate one signal.

        Args:
            phase: Current phase
            signal: What happened

        Returns:
            Next phase and the effects to execute, in order
        """
        entry = _TRANSITIONS.get((phase, signal))
        if entry is None:
            logger.debug(f"Ignoring {signal.value} in phase {phase.value}")
            return TransitionResult(
                previous=phase,
                phase=phase,
                signal=signal,
                effects=(),
                transition_occurred=False,
            )

        new_phase, effects = entry
        return TransitionResult(
            previous=phase,
            phase=new_phase,
            signal=signal,
            effects=effects,
            transition_occurred=new_phase != phase,
        )

    @staticmethod
    def is_terminal(phase: LifecyclePhase) -> bool:
        """Whether no further transitions can leave ``phase``."""
        return phase in TERMINAL_PHASES
