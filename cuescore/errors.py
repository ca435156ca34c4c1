"""Exception types shared across the cue engine."""
from __future__ import annotations


class CueScoreError(Exception):
    """Base exception for cue engine errors."""


class EngineReuseError(CueScoreError):
    """Raised when ``start_piece`` is called on an engine that already ran a piece."""

    def __init__(self, message: str = "ScoreEngine instances serve a single piece; create a new engine.") -> None:
        super().__init__(message)
