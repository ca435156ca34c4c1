"""
CueScore Core - generative scheduling engine.

Leaf-first:

1. ACTIVITY (activity.py)
   - Macro activity curve per arc shape; per-piece random step table

2. SELECTION (ensemble.py, fairness.py, dynamics.py)
   - Ensemble size decision tree, fair player choice, dynamic marks

3. GENERATION (cues.py)
   - One decision round → CueSet

4. ENGINE (engine.py, state_machine.py, events.py, clock.py)
   - Piece lifecycle, prompt timing, countdown→commit reveal, typed events

Main entrypoint: ScoreEngine from engine.py
"""
from __future__ import annotations

from cuescore.core.activity import ActivityCurve, activity
from cuescore.core.clock import LoopClock, ScaledClock, VirtualClock
from cuescore.core.cues import CueGenerator
from cuescore.core.dynamics import DYNAMICS, DynamicLevel, pick_dynamics
from cuescore.core.engine import ScoreEngine
from cuescore.core.ensemble import EnsembleDecision, SizingRegime, decide_ensemble, ensemble_size
from cuescore.core.events import (
    EngineEvent,
    EventChannel,
    PieceEnded,
    RenderCommit,
    RenderTick,
    callback_sink,
)
from cuescore.core.fairness import select_players
from cuescore.core.state_machine import EngineState, InvalidTransitionError

__all__ = [
    "ActivityCurve",
    "CueGenerator",
    "DYNAMICS",
    "DynamicLevel",
    "EngineEvent",
    "EngineState",
    "EnsembleDecision",
    "EventChannel",
    "InvalidTransitionError",
    "LoopClock",
    "PieceEnded",
    "RenderCommit",
    "RenderTick",
    "ScaledClock",
    "ScoreEngine",
    "SizingRegime",
    "VirtualClock",
    "activity",
    "callback_sink",
    "decide_ensemble",
    "ensemble_size",
    "pick_dynamics",
    "select_players",
]
