"""Looping playback of phrases against an event loop clock.

:class:`PlaybackScheduler` replays a phrase by registering one delayed
trigger per note event, measured from a single phrase-start instant, plus a
terminal trigger just after the phrase ends.  The terminal trigger asks its
owner for the next phrase and begins another cycle, so playback loops until
:meth:`PlaybackScheduler.stop` is called.

Every trigger of a cycle is registered with one :class:`CancellationToken`.
Stopping cancels that token, which cancels every pending handle, and each
trigger checks the token again when it fires so a stale trigger can never
sound a note.

The scheduler only needs ``time()`` and ``call_at(when, callback, *args)``
from its loop, which an :class:`asyncio.AbstractEventLoop` provides and a
virtual clock can imitate in tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from . import DEFAULT_GUARD_INTERVAL, DEFAULT_VELOCITY
from .phrase import NoteEvent, Phrase
from .playback import AudioBackend

__all__ = [
    "CancellationToken",
    "DEFAULT_GUARD_INTERVAL",
    "PlaybackScheduler",
    "PlaybackSession",
    "PlaybackState",
]

logger = logging.getLogger(__name__)


class PlaybackState(Enum):
    IDLE = "idle"
    PLAYING = "playing"


class CancellationToken:
    """Registry of scheduled handles that are cancelled together."""

    def __init__(self) -> None:
        self.cancelled = False
        self._handles: List[Any] = []

    def register(self, handle: Any) -> None:
        # Late registrations on a dead token are cancelled immediately.
        if self.cancelled:
            handle.cancel()
        else:
            self._handles.append(handle)

    def cancel(self) -> None:
        self.cancelled = True
        handles, self._handles = self._handles, []
        for handle in handles:
            handle.cancel()

    def __len__(self) -> int:
        return len(self._handles)


@dataclass
class PlaybackSession:
    """State of one playback cycle."""

    phrase_start: float
    phrase: Phrase
    token: CancellationToken = field(default_factory=CancellationToken)
    cycle: int = 1


class PlaybackScheduler:
    """Schedule phrase playback and loop until stopped."""

    def __init__(
        self,
        loop,
        backend: AudioBackend,
        on_phrase_end: Callable[[], Phrase],
        *,
        guard_interval: float = DEFAULT_GUARD_INTERVAL,
        velocity: int = DEFAULT_VELOCITY,
    ) -> None:
        """Create a scheduler.

        Parameters
        ----------
        loop:
            Event loop offering ``time`` and ``call_at``.
        backend:
            Audio backend sounding the notes.
        on_phrase_end:
            Called when a phrase finishes while playing; must return the
            phrase to play next.
        guard_interval:
            Seconds between the nominal end of a phrase and the next cycle.
        velocity:
            MIDI velocity passed to the backend for every note.
        """

        self.loop = loop
        self.backend = backend
        self.on_phrase_end = on_phrase_end
        self.guard_interval = guard_interval
        self.velocity = velocity
        self.state = PlaybackState.IDLE
        self.session: Optional[PlaybackSession] = None

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    @property
    def phrase_start(self) -> Optional[float]:
        return self.session.phrase_start if self.session else None

    @property
    def current_phrase(self) -> Optional[Phrase]:
        return self.session.phrase if self.session else None

    def elapsed(self) -> Optional[float]:
        """Seconds since the current phrase started, ``None`` when idle."""

        if not self.is_playing or self.session is None:
            return None
        return self.loop.time() - self.session.phrase_start

    def start(self, phrase: Phrase) -> bool:
        """Begin looping playback with ``phrase``.

        Returns ``False`` without changing state when the backend is not
        ready. Any previous session is cancelled first so two sessions never
        overlap, even if the caller skipped :meth:`stop`.
        """

        if not self.backend.ready:
            logger.debug("Audio backend not ready; start ignored")
            return False
        self._teardown()
        self.state = PlaybackState.PLAYING
        self._begin_cycle(phrase, cycle=1)
        logger.info("Playback started (%.2fs phrase)", phrase.duration)
        return True

    def stop(self) -> None:
        """Stop playback and cancel every pending trigger. Idempotent."""

        was_playing = self.is_playing
        self.state = PlaybackState.IDLE
        self._teardown()
        if was_playing:
            logger.info("Playback stopped")

    def _teardown(self) -> None:
        if self.session is not None:
            self.session.token.cancel()
            self.session = None

    def _begin_cycle(self, phrase: Phrase, cycle: int) -> None:
        now = self.loop.time()
        session = PlaybackSession(phrase_start=now, phrase=phrase, cycle=cycle)
        token = session.token
        for event in phrase.events:
            token.register(self.loop.call_at(now + event.time, self._fire_note, token, event))
        token.register(
            self.loop.call_at(
                now + phrase.duration + self.guard_interval, self._finish_cycle, token
            )
        )
        self.session = session
        logger.debug(
            "Cycle %d scheduled %d notes at t0=%.3f", cycle, len(phrase.events), now
        )

    def _live(self, token: CancellationToken) -> bool:
        return (
            not token.cancelled
            and self.is_playing
            and self.session is not None
            and self.session.token is token
        )

    def _fire_note(self, token: CancellationToken, event: NoteEvent) -> None:
        if not self._live(token):
            return
        try:
            self.backend.trigger_note(event.pitch, event.duration, self.velocity)
        except Exception:
            # A failing note must not break the loop callback chain.
            logger.exception("Failed to trigger note %d", event.pitch)

    def _finish_cycle(self, token: CancellationToken) -> None:
        if not self._live(token):
            return
        cycle = self.session.cycle + 1
        token.cancel()
        try:
            next_phrase = self.on_phrase_end()
        except Exception:
            logger.exception("Could not prepare the next phrase; stopping playback")
            self.stop()
            return
        # ``on_phrase_end`` may have stopped playback.
        if not self.is_playing:
            return
        self._begin_cycle(next_phrase, cycle=cycle)
