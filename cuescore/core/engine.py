"""
Score engine: piece lifecycle, prompt scheduling and the countdown→commit
reveal protocol.

One engine runs one piece:

    IDLE ──start_piece──▶ PRE_ROLL ──first commit──▶ PERFORMING
      ▲                      │                          │
      └──── final commit ◀── ENDING ◀──end_piece / time up

Every generated CueSet goes through ``_countdown_for_changes``: performers
whose cue changes get a countdown, tick frames are emitted until every
countdown reaches zero, then all PerformerStates are committed at once and a
single ``RenderCommit`` announces the new cues.

The engine suspends only on two clock timers: the next-prompt timer and the
countdown tick. Both are cancelled whenever the lifecycle moves on, and every
timer callback re-checks the state before acting, so a stale round can never
fire after the piece ended.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Callable, Optional

from cuescore.config import EngineTuning, get_settings
from cuescore.core.activity import ActivityCurve
from cuescore.core.clock import Clock, LoopClock, TimerHandle
from cuescore.core.cues import CueGenerator, Round
from cuescore.core.events import (
    EndCallback,
    EngineEvent,
    EventSink,
    PieceEnded,
    RenderCallback,
    RenderCommit,
    RenderTick,
    SequenceCounter,
    callback_sink,
)
from cuescore.core.state_machine import (
    EngineState,
    InvalidTransitionError,
    assert_transition,
    can_end,
)
from cuescore.errors import EngineReuseError
from cuescore.models.piece import Countdown, Cue, CueSet, PerformerState, PieceSettings, all_rest

logger = logging.getLogger(__name__)

OnCommitted = Callable[[], None]


@dataclass
class _PendingReveal:
    """A CueSet that is counting down towards its commit."""

    cues: CueSet
    countdowns: list[Optional[Countdown]]
    on_committed: OnCommitted


def _display_secs(ends_at: float, now: float) -> int:
    """Whole seconds left on a countdown: at least 1 while time remains, else 0.

    Remaining time is measured in whole milliseconds so accumulated float
    error in tick times cannot leave a countdown a hair above zero.
    """
    ms_left = round((ends_at - now) * 1000)
    if ms_left <= 0:
        return 0
    return max(1, math.ceil(ms_left / 1000))


class ScoreEngine:
    """Generates and reveals cues for one piece.

    Args:
        sink: Receives every ``RenderTick``, ``RenderCommit`` and ``PieceEnded``.
        clock: Time source and timer factory (defaults to the asyncio loop clock).
        rng: Random source for every probabilistic step.
        tuning: Design constants; defaults to ``settings.tuning``.
    """

    def __init__(
        self,
        sink: Optional[EventSink] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        tuning: Optional[EngineTuning] = None,
    ) -> None:
        self._sink: EventSink = sink or (lambda event: None)
        self.clock: Clock = clock or LoopClock()
        self.tuning = tuning or get_settings().tuning
        self._rng = rng or random.Random()
        self._sequence = SequenceCounter()

        self.state = EngineState.IDLE
        self._used = False
        self._closed = False

        self.settings: Optional[PieceSettings] = None
        self.performers: list[PerformerState] = []
        self.curve: Optional[ActivityCurve] = None
        self._generator: Optional[CueGenerator] = None
        self.piece_start_time = 0.0
        self.piece_end_time = 0.0

        self._prompt_timer: Optional[TimerHandle] = None
        self._tick_timer: Optional[TimerHandle] = None
        self._pending: Optional[_PendingReveal] = None

    @classmethod
    def with_callbacks(
        cls,
        on_render: Optional[RenderCallback] = None,
        on_end: Optional[EndCallback] = None,
        **kwargs: object,
    ) -> "ScoreEngine":
        """Build an engine reporting through ``on_render`` / ``on_end`` callbacks."""
        return cls(sink=callback_sink(on_render, on_end), **kwargs)  # type: ignore[arg-type]

    # ── Lifecycle ────────────────────────────────────────────────────────

    def start_piece(self, settings: PieceSettings) -> None:
        """Start the piece: pre-roll, first forced countdown, then the prompt cycle.

        Raises:
            EngineReuseError: The engine already ran a piece.
        """
        if self._used:
            raise EngineReuseError()
        self._used = True
        self._set_state(EngineState.PRE_ROLL)

        self.settings = settings
        now = self.clock.now()
        self.piece_start_time = now + self.tuning.preroll_secs
        self.piece_end_time = self.piece_start_time + settings.duration_secs

        n = settings.num_players
        self.performers = [PerformerState() for _ in range(n)]
        self.curve = ActivityCurve(settings.arc, settings.duration_min, settings.interval, rng=self._rng)
        self._generator = CueGenerator(settings, rng=self._rng, tuning=self.tuning)

        logger.info(
            f"Piece started: {n} players, {settings.duration_min:g} min, arc={settings.arc.value}, "
            f"contrast={settings.contrast:.2f}, interval={settings.interval} (avg {settings.avg_interval:g}s)"
        )
        first = self._generate(self.piece_start_time)
        self._countdown_for_changes(first.cues, self._on_first_commit, force_all=True)

    def end_piece(self, num_players: Optional[int] = None) -> None:
        """Cut the piece short (or finish it): everyone rests after a full countdown.

        Cancels the next-prompt timer and any reveal in flight before the final
        countdown starts. Calling it again while the final countdown runs is a
        no-op.

        Raises:
            InvalidTransitionError: No piece is running.
        """
        if not can_end(self.state):
            if self.state == EngineState.ENDING:
                logger.debug("end_piece ignored: already ending")
                return
            raise InvalidTransitionError(self.state, EngineState.ENDING)
        self._cancel_timers()
        self._set_state(EngineState.ENDING)

        n = num_players if num_players is not None else len(self.performers)
        final = all_rest(n)
        self._countdown_for_changes(
            final,
            lambda: self._finish(final),
            force_all=True,
            force_label="Rest",
        )

    def close(self) -> None:
        """Silently cancel all timers (harness teardown, not a musical ending)."""
        self._closed = True
        self._cancel_timers()

    # ── Snapshots for late joiners ───────────────────────────────────────

    def get_current_cues(self, num_players: int) -> CueSet:
        """Committed cue per performer; Rest for indices the piece does not know."""
        return tuple(self._committed(i) for i in range(num_players))

    def get_current_countdowns(self, num_players: int) -> list[Optional[Countdown]]:
        """Countdowns of the reveal in flight, or all None when nothing is pending."""
        countdowns = self._pending.countdowns if self._pending else []
        return [countdowns[i] if i < len(countdowns) else None for i in range(num_players)]

    # ── Generation & scheduling ──────────────────────────────────────────

    def activity_at(self, now: float) -> float:
        if self.curve is None:
            return 0.0
        return self.curve.at(now, self.piece_start_time, self.piece_end_time)

    def _generate(self, now: float) -> Round:
        assert self._generator is not None
        return self._generator.generate(self.performers, self.activity_at(now))

    def next_interval(self, activity: float) -> float:
        """Seconds until the next cue activates: busier moments prompt sooner.

        Interpolates from the maximum interval (activity 0) to the minimum
        (activity 1), applies uniform jitter, rounds to whole seconds and
        clamps to the configured range.
        """
        assert self.settings is not None
        lo, hi = self.settings.interval
        target = (1 - activity) * hi + activity * lo
        target += self.tuning.interval_jitter * target * (self._rng.random() * 2 - 1)
        return max(lo, min(hi, round(target)))

    def _on_first_commit(self) -> None:
        if self.state != EngineState.PRE_ROLL:
            return
        self._set_state(EngineState.PERFORMING)
        self._schedule_next_prompt()

    def _schedule_next_prompt(self) -> None:
        """Arm the timer for the next round, or end the piece if time is up.

        The next cue activates ``wait`` seconds after now. The round is decided
        one countdown length ahead of that (or right away when ``wait`` is
        shorter) so a changed CueSet commits on time.
        """
        if self.state != EngineState.PERFORMING or self._closed:
            return
        assert self.settings is not None
        now = self.clock.now()
        wait = self.next_interval(self.activity_at(now))
        if now + wait >= self.piece_end_time:
            logger.info(f"Next prompt (+{wait:g}s) would pass the end of the piece; ending")
            self.end_piece(self.settings.num_players)
            return
        lead = min(self.tuning.countdown_secs, wait)
        activate_at = now + wait
        logger.debug(f"Next prompt in {wait:g}s (decided {lead:g}s ahead)")
        self._arm_prompt(wait - lead, lambda: self._on_prompt(activate_at))

    def _arm_prompt(self, delay: float, callback: Callable[[], None]) -> None:
        if self._prompt_timer is not None:
            self._prompt_timer.cancel()
        self._prompt_timer = self.clock.call_later(delay, callback)

    def _on_prompt(self, activate_at: float) -> None:
        self._prompt_timer = None
        if self.state != EngineState.PERFORMING or self._closed:
            return
        now = self.clock.now()
        cues = self._generate(now).cues
        if self._has_pending_changes(cues) or activate_at <= now:
            # Intervals shorter than the countdown get a shortened countdown.
            length = min(self.tuning.countdown_secs, max(0.0, activate_at - now))
            self._countdown_for_changes(cues, self._schedule_next_prompt, length=length)
            return
        # Unchanged cues need no countdown; hold them until their activation time.
        self._arm_prompt(activate_at - now, lambda: self._release(cues))

    def _release(self, cues: CueSet) -> None:
        self._prompt_timer = None
        if self.state != EngineState.PERFORMING or self._closed:
            return
        self._countdown_for_changes(cues, self._schedule_next_prompt)

    # ── Countdown → commit ───────────────────────────────────────────────

    def _committed(self, index: int) -> Cue:
        if index < len(self.performers):
            return self.performers[index].last
        return Cue.rest()

    def _has_pending_changes(self, cues: CueSet) -> bool:
        return any(cue.differs_from(self._committed(i)) for i, cue in enumerate(cues))

    def _countdown_for_changes(
        self,
        new_cues: CueSet,
        on_committed: OnCommitted,
        force_all: bool = False,
        force_label: Optional[str] = None,
        length: Optional[float] = None,
    ) -> None:
        """Reveal ``new_cues``: countdown the changed performers, then commit.

        With ``force_all`` every performer counts down, labelled with the full
        new cue (or ``force_label``). Without pending changes the commit
        happens immediately with no tick frames. ``length`` defaults to the
        tuned countdown.
        """
        now = self.clock.now()
        if length is None:
            length = self.tuning.countdown_secs
        countdowns: list[Optional[Countdown]] = []
        for i, cue in enumerate(new_cues):
            prev = self._committed(i)
            if not (force_all or cue.differs_from(prev)):
                countdowns.append(None)
                continue
            if force_label is not None:
                label = force_label
            else:
                label = cue.label() if force_all else cue.change_label(prev)
            countdowns.append(Countdown(label=label, secs=math.ceil(length), ends_at=now + length))

        if not any(countdowns):
            self._commit(new_cues)
            on_committed()
            return

        self._pending = _PendingReveal(new_cues, countdowns, on_committed)
        self._render_frame()

    def _render_frame(self) -> None:
        self._tick_timer = None
        pending = self._pending
        if pending is None or self._closed:
            return
        now = self.clock.now()
        any_active = False
        refreshed: list[Optional[Countdown]] = []
        for cd in pending.countdowns:
            if cd is None:
                refreshed.append(None)
                continue
            secs = _display_secs(cd.ends_at, now)
            any_active = any_active or secs > 0
            refreshed.append(Countdown(cd.label, secs, cd.ends_at))
        pending.countdowns = refreshed

        display = tuple(
            self._committed(i) if cd is not None and cd.secs > 0 else cue
            for i, (cue, cd) in enumerate(zip(pending.cues, refreshed))
        )
        self._emit(RenderTick(self._sequence.next(), display, tuple(refreshed), now))
        if self._pending is not pending:
            # The sink ended or closed the piece while handling this frame.
            return

        if any_active:
            self._tick_timer = self.clock.call_later(self.tuning.tick_secs, self._render_frame)
            return
        self._pending = None
        self._commit(pending.cues)
        pending.on_committed()

    def _commit(self, cues: CueSet) -> None:
        """Atomically make ``cues`` the committed state and announce them."""
        for performer, cue in zip(self.performers, cues):
            performer.commit(cue)
        self._emit(RenderCommit(self._sequence.next(), cues, self.clock.now()))

    def _finish(self, final: CueSet) -> None:
        self._set_state(EngineState.IDLE)
        plays = [p.play_count for p in self.performers]
        logger.info(f"Piece ended; play counts {plays}")
        self._emit(PieceEnded(self._sequence.next(), final, self.clock.now()))

    # ── Internals ────────────────────────────────────────────────────────

    def _set_state(self, to_state: EngineState) -> None:
        assert_transition(self.state, to_state)
        logger.debug(f"Engine {self.state.value} → {to_state.value}")
        self.state = to_state

    def _cancel_timers(self) -> None:
        if self._prompt_timer is not None:
            self._prompt_timer.cancel()
            self._prompt_timer = None
        if self._tick_timer is not None:
            self._tick_timer.cancel()
            self._tick_timer = None
        self._pending = None

    def _emit(self, event: EngineEvent) -> None:
        self._sink(event)
