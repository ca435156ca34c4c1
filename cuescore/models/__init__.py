"""Data models for the cue engine."""
from __future__ import annotations

from cuescore.models.piece import (
    ArcShape,
    Countdown,
    Cue,
    CueSet,
    PerformerState,
    PieceSettings,
    all_rest,
)

__all__ = [
    "ArcShape",
    "Countdown",
    "Cue",
    "CueSet",
    "PerformerState",
    "PieceSettings",
    "all_rest",
]
