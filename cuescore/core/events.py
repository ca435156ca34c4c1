"""
Typed engine events and their consumers.

The engine reports everything it shows performers as events:

    render_tick   — a countdown frame; performers still counting see their
                    previous committed cue, with a countdown entry
    render_commit — the authoritative "cues are now active" frame; carries
                    the full committed CueSet and no countdowns
    piece_ended   — the final all-Rest CueSet; always last

Every event carries a strictly increasing ``sequence`` per engine. Consumers
are plain callables (``EventSink``); ``EventChannel`` turns the stream into an
async iterator and ``callback_sink`` adapts a render/end callback pair.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Literal, Optional, Sequence, Union

from typing_extensions import TypedDict

from cuescore.models.piece import Countdown, CountdownDict, CueDict, CueSet

logger = logging.getLogger(__name__)


EventType = Literal["render_tick", "render_commit", "piece_ended"]


class EventDict(TypedDict):
    """Wire shape shared by all engine events (camelCase keys)."""

    type: EventType
    sequence: int
    cues: list[CueDict]
    countdowns: list[Optional[CountdownDict]]
    timestamp: float


def _cues_to_wire(cues: CueSet) -> list[CueDict]:
    return [c.to_dict() for c in cues]


@dataclass(frozen=True)
class RenderTick:
    """One countdown frame.

    Attributes:
        sequence: Strictly increasing per engine.
        cues: What each performer should display right now.
        countdowns: One entry per performer; None where no change is pending.
        timestamp: Clock time of the frame (seconds).
    """

    sequence: int
    cues: CueSet
    countdowns: tuple[Optional[Countdown], ...]
    timestamp: float

    type: EventType = "render_tick"

    def to_dict(self) -> EventDict:
        return EventDict(
            type=self.type,
            sequence=self.sequence,
            cues=_cues_to_wire(self.cues),
            countdowns=[cd.to_dict() if cd else None for cd in self.countdowns],
            timestamp=self.timestamp,
        )


@dataclass(frozen=True)
class RenderCommit:
    """The committed CueSet became active at ``timestamp``."""

    sequence: int
    cues: CueSet
    timestamp: float

    type: EventType = "render_commit"

    @property
    def countdowns(self) -> tuple[Optional[Countdown], ...]:
        return ()

    def to_dict(self) -> EventDict:
        return EventDict(
            type=self.type,
            sequence=self.sequence,
            cues=_cues_to_wire(self.cues),
            countdowns=[],
            timestamp=self.timestamp,
        )


@dataclass(frozen=True)
class PieceEnded:
    """The piece is over; ``cues`` is the final all-Rest CueSet."""

    sequence: int
    cues: CueSet
    timestamp: float

    type: EventType = "piece_ended"

    @property
    def countdowns(self) -> tuple[Optional[Countdown], ...]:
        return ()

    def to_dict(self) -> EventDict:
        return EventDict(
            type=self.type,
            sequence=self.sequence,
            cues=_cues_to_wire(self.cues),
            countdowns=[],
            timestamp=self.timestamp,
        )


EngineEvent = Union[RenderTick, RenderCommit, PieceEnded]
EventSink = Callable[[EngineEvent], None]


def to_json(event: EngineEvent) -> str:
    """Serialize an event for the transport layer."""
    return json.dumps(event.to_dict())


class SequenceCounter:
    """
    Monotonic sequence counter for one engine's event stream.

    Sequence starts at 1 and strictly increases.
    Thread-safe is not required — engines are single-writer.
    """

    def __init__(self) -> None:
        self._value: int = 0

    @property
    def current(self) -> int:
        """Current (last-emitted) sequence value; ``0`` before the first ``next()`` call."""
        return self._value

    def next(self) -> int:
        """Get the next sequence number."""
        self._value += 1
        return self._value


RenderCallback = Callable[[CueSet, Sequence[Optional[Countdown]], float], None]
EndCallback = Callable[[CueSet], None]


def callback_sink(
    on_render: Optional[RenderCallback] = None,
    on_end: Optional[EndCallback] = None,
) -> EventSink:
    """Adapt an ``on_render(cues, countdowns, timestamp)`` / ``on_end(cues)`` pair.

    Commit frames reach ``on_render`` with an empty countdown list.
    """

    def sink(event: EngineEvent) -> None:
        if isinstance(event, PieceEnded):
            if on_end:
                on_end(event.cues)
        elif on_render:
            on_render(event.cues, list(event.countdowns), event.timestamp)

    return sink


class EventChannel:
    """
    Single-consumer async channel for engine events.

    Use the channel itself as the engine's sink, then ``async for`` over it.
    Iteration stops after ``PieceEnded`` (or ``close()``).
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[EngineEvent | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    def __call__(self, event: EngineEvent) -> None:
        if self._closed:
            logger.debug(f"Dropping {event.type} seq={event.sequence} on closed channel")
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Event channel full, dropping {event.type} seq={event.sequence}")
            return
        if isinstance(event, PieceEnded):
            self.close()

    def close(self) -> None:
        """Signal end-of-stream to the consumer."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            logger.warning("Event channel full, end-of-stream marker dropped")

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aiter__(self) -> AsyncIterator[EngineEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event
