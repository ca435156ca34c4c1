"""
Engine State Machine.

Explicit state transitions for a piece's lifecycle.
Never assign the engine state directly — always go through assert_transition().

States:
    IDLE       — No piece running (before start, and again after the end)
    PRE_ROLL   — Piece started; the first cue is counting down to time zero
    PERFORMING — First cue committed; prompts recur on the interval timer
    ENDING     — Final all-Rest countdown in progress

Invariants:
    1. PerformerState is only mutated at a commit, never mid-countdown.
    2. No prompt timer is armed outside PERFORMING.
    3. ENDING always completes back to IDLE, emitting the final CueSet.
"""

from __future__ import annotations

import logging
from enum import Enum

from cuescore.errors import CueScoreError

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    """Canonical piece lifecycle states."""

    IDLE = "idle"
    PRE_ROLL = "pre_roll"
    PERFORMING = "performing"
    ENDING = "ending"


# Allowed transitions: from_state -> set of valid to_states.
_TRANSITIONS: dict[EngineState, frozenset[EngineState]] = {
    EngineState.IDLE: frozenset({EngineState.PRE_ROLL}),
    EngineState.PRE_ROLL: frozenset({
        EngineState.PERFORMING,
        EngineState.ENDING,
    }),
    EngineState.PERFORMING: frozenset({EngineState.ENDING}),
    EngineState.ENDING: frozenset({EngineState.IDLE}),
}


class InvalidTransitionError(CueScoreError):
    """Raised when a state transition violates the state machine."""

    def __init__(self, from_state: EngineState, to_state: EngineState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid transition: {from_state.value} → {to_state.value}"
        )


def assert_transition(
    from_state: EngineState,
    to_state: EngineState,
) -> None:
    """
    Validate that a state transition is allowed.

    Raises InvalidTransitionError if the transition violates the state machine.
    """
    allowed = _TRANSITIONS.get(from_state, frozenset())
    if to_state not in allowed:
        raise InvalidTransitionError(from_state, to_state)


def is_running(state: EngineState) -> bool:
    """Check if a piece is in progress (any state other than IDLE)."""
    return state != EngineState.IDLE


def can_end(state: EngineState) -> bool:
    """Check if ``end_piece`` may start the final countdown from this state."""
    return state in {EngineState.PRE_ROLL, EngineState.PERFORMING}
