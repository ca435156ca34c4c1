"""Cue generation: one decision round from activity to a full CueSet."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Sequence

from cuescore.config import DEFAULT_TUNING, EngineTuning
from cuescore.core.dynamics import pick_dynamics
from cuescore.core.ensemble import EnsembleDecision, SizingRegime, decide_ensemble
from cuescore.core.fairness import select_players
from cuescore.models.piece import Cue, CueSet, PerformerState, PieceSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Round:
    """A generated CueSet plus the decision that shaped it (for logging and tests)."""

    cues: CueSet
    activity: float
    decision: EnsembleDecision


class CueGenerator:
    """Composes ensemble sizing, fair selection and dynamics into a CueSet.

    Stateless between calls; performer history is passed in by the engine.
    """

    def __init__(
        self,
        settings: PieceSettings,
        rng: random.Random | None = None,
        tuning: EngineTuning = DEFAULT_TUNING,
    ) -> None:
        self.settings = settings
        self.tuning = tuning
        self._rng = rng or random.Random()

    def _play(self, activity: float, num_players: int, index: int) -> Cue:
        lo, hi = self.settings.dyn_range_idx
        level = pick_dynamics(activity, lo, hi, num_players, index, self.settings.interval, self._rng)
        return Cue.play(level.mark, level.loudness)

    def generate(self, performers: Sequence[PerformerState], activity: float) -> Round:
        """Decide who plays, and how loud, for one round at the given activity."""
        n = len(performers)
        contrast = self.settings.contrast

        if contrast <= self.tuning.tutti_epsilon:
            cues = tuple(self._play(activity, n, i) for i in range(n))
            return Round(cues, activity, EnsembleDecision(SizingRegime.TUTTI, n))

        decision = decide_ensemble(n, activity, contrast, self._rng, self.tuning)
        selected = select_players(performers, decision.size, contrast, activity, self._rng, self.tuning)
        cues = tuple(
            self._play(activity, n, i) if i in selected else Cue.rest()
            for i in range(n)
        )
        logger.debug(
            f"Round A={activity:.2f} {decision.regime.value}→{decision.size}: "
            + " | ".join(c.mark if c.is_play and c.mark else "—" for c in cues)
        )
        return Round(cues, activity, decision)
