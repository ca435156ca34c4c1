"""
Piece models for the cue engine.

A piece is configured once (``PieceSettings``) and then produces a stream of
``CueSet``s, one instruction (``Cue``) per performer. Performers accumulate a
``PerformerState`` that the fairness selector reads and the engine's commit
step updates.

Key concepts:
- Cue: Play at a dynamic mark, or Rest
- CueSet: one Cue per performer index for one decision round
- Countdown: the pending-change preview a performer sees before a commit
- PerformerState: cumulative play/rest history for one performer
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing_extensions import TypedDict

# Number of entries in the dynamics table (ppp..fff).
DYNAMIC_LEVELS = 8


class ArcShape(str, Enum):
    """Macro activity shapes a composer can choose for a piece."""

    TRADITIONAL = "traditional"
    ARCH = "arch"
    SWELL = "swell"
    WAVE = "wave"
    PLATEAU = "plateau"
    RANDOM = "random"


class PieceSettings(BaseModel):
    """
    Composer-chosen macro parameters for one piece.

    Immutable once the piece starts. Accepts the session layer's camelCase
    keys (``durationMin``, ``dynRangeIdx``, ``numPlayers``) as well as the
    snake_case field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    duration_min: float = Field(..., gt=0, alias="durationMin", description="Piece length in minutes")
    interval: tuple[float, float] = Field(
        default=(10.0, 30.0),
        description="Minimum and maximum seconds between prompts",
    )
    dyn_range_idx: tuple[int, int] = Field(
        default=(0, DYNAMIC_LEVELS - 1),
        alias="dynRangeIdx",
        description="Lowest and highest allowed index into the dynamics table",
    )
    contrast: float = Field(default=0.5, ge=0, le=1, description="0 = always tutti, 1 = sparse and volatile")
    arc: ArcShape = Field(default=ArcShape.ARCH, description="Activity shape over the piece")
    num_players: int = Field(default=8, ge=1, alias="numPlayers", description="Performers in the ensemble")

    @model_validator(mode="after")
    def _check_ranges(self) -> "PieceSettings":
        """Reject reversed or out-of-table ranges before they reach the engine."""
        lo, hi = self.interval
        if lo <= 0:
            raise ValueError(f"interval minimum must be positive, got {lo}")
        if lo > hi:
            raise ValueError(f"interval minimum {lo} exceeds maximum {hi}")
        dmin, dmax = self.dyn_range_idx
        if not (0 <= dmin <= dmax < DYNAMIC_LEVELS):
            raise ValueError(
                f"dynamic range {self.dyn_range_idx} must satisfy 0 <= min <= max < {DYNAMIC_LEVELS}"
            )
        return self

    @property
    def duration_secs(self) -> float:
        return self.duration_min * 60.0

    @property
    def avg_interval(self) -> float:
        return average_interval(self.interval)


def average_interval(interval: tuple[float, float]) -> float:
    """Midpoint of a ``(min, max)`` prompt interval, in seconds."""
    return (interval[0] + interval[1]) / 2


CueState = Literal["Play", "Rest"]


class CueDict(TypedDict, total=False):
    """Wire shape of a ``Cue`` (``mark``/``loudness`` only present for Play)."""

    state: CueState
    mark: str
    loudness: float


class CountdownDict(TypedDict):
    """Wire shape of a ``Countdown``."""

    label: str
    secs: int
    endsAt: float  # noqa: N815


@dataclass(frozen=True)
class Cue:
    """One performer's instruction for one round: Play at ``mark``, or Rest."""

    state: CueState
    mark: Optional[str] = None
    loudness: Optional[float] = None

    @classmethod
    def play(cls, mark: str, loudness: float) -> "Cue":
        return cls("Play", mark, loudness)

    @classmethod
    def rest(cls) -> "Cue":
        return cls("Rest")

    @property
    def is_play(self) -> bool:
        return self.state == "Play"

    def differs_from(self, previous: Optional["Cue"]) -> bool:
        """True when switching from ``previous`` to this cue needs a countdown.

        A change of state always counts; while playing, so does a change of
        mark. A loudness change that snaps to the same mark does not.
        """
        if previous is None:
            return True
        if previous.state != self.state:
            return True
        return self.is_play and previous.mark != self.mark

    def label(self) -> str:
        """Full human-readable label, e.g. ``"Play (mf)"`` or ``"Rest"``."""
        if self.is_play:
            return f"Play ({self.mark})" if self.mark else "Play"
        return "Rest"

    def change_label(self, previous: Optional["Cue"]) -> str:
        """Label shown on a countdown moving from ``previous`` to this cue.

        Only the new mark is shown when the performer keeps playing.
        """
        if previous is None or previous.state != self.state:
            return self.label()
        if self.is_play and previous.mark != self.mark:
            return f"({self.mark})"
        return ""

    def to_dict(self) -> CueDict:
        if self.is_play:
            return CueDict(state="Play", mark=self.mark or "", loudness=self.loudness or 0.0)
        return CueDict(state="Rest")


CueSet = tuple[Cue, ...]


def all_rest(num_players: int) -> CueSet:
    """A CueSet that rests every performer."""
    return tuple(Cue.rest() for _ in range(num_players))


@dataclass(frozen=True)
class Countdown:
    """Pending-change preview for one performer.

    ``secs`` is the whole-second display value (at least 1 while time
    remains, 0 once the countdown has elapsed).
    """

    label: str
    secs: int
    ends_at: float

    def to_dict(self) -> CountdownDict:
        return CountdownDict(label=self.label, secs=self.secs, endsAt=self.ends_at)


@dataclass
class PerformerState:
    """Play/rest history for one performer during one piece.

    Everyone starts resting with ``rest_streak=1`` so every performer is
    already owed a cue when the first round is decided.
    """

    play_count: int = 0
    play_streak: int = 0
    rest_streak: int = 1
    last: Cue = field(default_factory=Cue.rest)

    def commit(self, cue: Cue) -> None:
        """Record ``cue`` as this performer's new committed instruction."""
        if cue.is_play:
            self.play_count += 1
            self.play_streak += 1
            self.rest_streak = 0
        else:
            self.rest_streak += 1
            self.play_streak = 0
        self.last = cue
