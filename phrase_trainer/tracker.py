"""Active-note highlighting and progress polling.

Which notes are sounding is answered by :func:`active_pitches`, a pure query
over a phrase and the seconds elapsed since the phrase started.  It does not
depend on how often it is asked, so the host decides the refresh cadence.

Two pollers wrap the query for display surfaces:

``ActiveNoteTracker``
    Polls every frame for as long as it is started, whether or not playback
    is running, so a stop is reflected on the very next frame.

``ProgressIndicator``
    Reports how far through the phrase playback is. It only polls while
    playing and stops itself once the scheduler goes idle.
"""

from __future__ import annotations

import logging
from typing import Callable, FrozenSet, Optional

import numpy as np

from . import DEFAULT_FRAME_INTERVAL
from .phrase import Phrase
from .scheduler import PlaybackScheduler

__all__ = [
    "ActiveNoteTracker",
    "DEFAULT_FRAME_INTERVAL",
    "ProgressIndicator",
    "active_pitches",
    "progress",
]

logger = logging.getLogger(__name__)

_EMPTY: FrozenSet[int] = frozenset()


def active_pitches(phrase: Optional[Phrase], elapsed: Optional[float]) -> FrozenSet[int]:
    """Return the pitches sounding ``elapsed`` seconds into ``phrase``.

    An event is sounding when ``time <= elapsed <= time + duration``; both
    ends of the interval are inclusive.
    """

    if phrase is None or elapsed is None or not len(phrase):
        return _EMPTY
    arrays = phrase.arrays()
    mask = np.logical_and(arrays["start"] <= elapsed, elapsed <= arrays["end"])
    return frozenset(int(p) for p in arrays["pitch"][mask])


def progress(elapsed: float, duration: float) -> float:
    """Return ``elapsed / duration`` clamped to ``0.0-1.0``."""

    if duration <= 0:
        raise ValueError("duration must be positive")
    return min(max(elapsed / duration, 0.0), 1.0)


class ActiveNoteTracker:
    """Poll the set of active pitches once per frame."""

    def __init__(
        self,
        scheduler: PlaybackScheduler,
        loop,
        *,
        frame_interval: float = DEFAULT_FRAME_INTERVAL,
        on_update: Optional[Callable[[FrozenSet[int]], None]] = None,
    ) -> None:
        self.scheduler = scheduler
        self.loop = loop
        self.frame_interval = frame_interval
        self.on_update = on_update
        self.current: FrozenSet[int] = _EMPTY
        self._handle = None

    @property
    def polling(self) -> bool:
        return self._handle is not None

    def active(self) -> FrozenSet[int]:
        """Return the pitches sounding now; empty while idle."""

        if not self.scheduler.is_playing:
            return _EMPTY
        return active_pitches(self.scheduler.current_phrase, self.scheduler.elapsed())

    def start(self) -> None:
        """Begin polling. Calling it while already polling has no effect."""

        if self._handle is None:
            self._tick()

    def _tick(self) -> None:
        # Reschedule first so the poll survives a failing update callback.
        self._handle = self.loop.call_later(self.frame_interval, self._tick)
        active = self.active()
        if active != self.current:
            self.current = active
            if self.on_update is not None:
                self.on_update(active)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.current = _EMPTY


class ProgressIndicator:
    """Poll playback progress through the current phrase."""

    def __init__(
        self,
        scheduler: PlaybackScheduler,
        loop,
        *,
        frame_interval: float = DEFAULT_FRAME_INTERVAL,
        on_update: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.scheduler = scheduler
        self.loop = loop
        self.frame_interval = frame_interval
        self.on_update = on_update
        self._handle = None

    @property
    def polling(self) -> bool:
        return self._handle is not None

    def value(self) -> float:
        """Fraction of the current phrase already played; ``0.0`` when idle."""

        elapsed = self.scheduler.elapsed()
        phrase = self.scheduler.current_phrase
        if elapsed is None or phrase is None:
            return 0.0
        return progress(elapsed, phrase.duration)

    def start(self) -> None:
        """Start polling if playback is running and no poll is pending."""

        if self._handle is not None or not self.scheduler.is_playing:
            return
        self._schedule()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._report(0.0)

    def _schedule(self) -> None:
        self._handle = self.loop.call_later(self.frame_interval, self._tick)

    def _tick(self) -> None:
        self._handle = None
        if not self.scheduler.is_playing:
            logger.debug("Playback idle; progress polling stopped")
            self._report(0.0)
            return
        self._report(self.value())
        self._schedule()

    def _report(self, value: float) -> None:
        if self.on_update is not None:
            self.on_update(value)
