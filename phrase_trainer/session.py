"""Session controller tying generation, score display and playback together.

:class:`SessionController` is the single owner of the practice state: the
current :class:`~phrase_trainer.phrase.PhraseParameters`, the current
phrase with its encoded score and the playback scheduler.  User interface
code talks only to the controller:

* parameter controls call :meth:`SessionController.set_tempo` and friends,
  which stop playback and regenerate without resuming;
* play/stop buttons call :meth:`start` and :meth:`stop`;
* the keyboard surface forwards key presses to :meth:`request_note`;
* the score surface receives each new document through
  :meth:`publish_score`, loaded and rendered one phrase at a time.

Example
-------
>>> async def main():
...     controller = SessionController(FluidSynthBackend("piano.sf2"))
...     await controller.prepare_audio()
...     controller.start()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, FrozenSet, Optional, Protocol, Set

from .phrase import Phrase, PhraseParameters
from .phrase_generator import PhraseGenerator
from .playback import AudioBackend, AudioBackendError
from .scheduler import PlaybackScheduler
from .score_encoder import encode_phrase
from .tracker import ActiveNoteTracker, ProgressIndicator
from .utils import PracticeSettings

__all__ = ["ScoreSurface", "SessionController"]

logger = logging.getLogger(__name__)

AUDIO_LOADING = "loading"
AUDIO_READY = "ready"
AUDIO_UNAVAILABLE = "unavailable"


class ScoreSurface(Protocol):
    """Rendering surface for encoded score documents."""

    async def load(self, document: str) -> None: ...

    def render(self) -> None: ...


class SessionController:
    """Own the practice parameters, current phrase and playback session."""

    def __init__(
        self,
        backend: AudioBackend,
        *,
        loop=None,
        parameters: Optional[PhraseParameters] = None,
        generator: Optional[PhraseGenerator] = None,
        score_surface: Optional[ScoreSurface] = None,
        settings: Optional[PracticeSettings] = None,
        on_highlight: Optional[Callable[[FrozenSet[int]], None]] = None,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> None:
        """Create a controller and generate the first phrase.

        Parameters
        ----------
        backend:
            Audio backend used for playback and key previews.
        loop:
            Event loop driving triggers and polls. Defaults to the running
            ``asyncio`` loop, so the controller must then be created from
            inside a coroutine.
        parameters:
            Initial phrase parameters; defaults to C-major, 4/4, 100 BPM,
            difficulty 1.
        generator:
            Phrase generator, e.g. one with a seeded random source.
        score_surface:
            Optional surface receiving every newly encoded score.
        settings:
            Timing and output tunables.
        on_highlight:
            Called with the highlighted pitches whenever they change.
        on_progress:
            Called with the playback progress on every progress poll.
        """

        self.backend = backend
        self.loop = loop if loop is not None else asyncio.get_running_loop()
        self.settings = settings or PracticeSettings()
        self.generator = generator or PhraseGenerator()
        self.score_surface = score_surface
        self.on_highlight = on_highlight
        self.auto_highlight = self.settings.auto_highlight
        self.audio_status = AUDIO_READY if backend.ready else AUDIO_LOADING

        self._parameters = parameters or PhraseParameters()
        self._score_lock = asyncio.Lock()
        self._publish_tasks: Set[asyncio.Future] = set()

        self.scheduler = PlaybackScheduler(
            self.loop,
            backend,
            self._next_phrase,
            guard_interval=self.settings.guard_interval,
            velocity=self.settings.velocity,
        )
        self.tracker = ActiveNoteTracker(
            self.scheduler,
            self.loop,
            frame_interval=self.settings.frame_interval,
            on_update=self._on_active_change,
        )
        self.progress = ProgressIndicator(
            self.scheduler,
            self.loop,
            frame_interval=self.settings.frame_interval,
            on_update=on_progress,
        )

        self.phrase: Phrase
        self.score_document: str
        self.regenerate()
        self.tracker.start()

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------
    @property
    def parameters(self) -> PhraseParameters:
        return self._parameters

    def update_parameters(self, **changes) -> Phrase:
        """Apply ``changes``, stop playback and regenerate.

        Invalid values raise ``ValueError`` before anything is stopped.
        Playback is not resumed; call :meth:`start` again.
        """

        new_params = self._parameters.replace(**changes)
        self.stop()
        self._parameters = new_params
        logger.info("Parameters changed: %s", changes)
        return self.regenerate()

    def set_mode(self, mode) -> Phrase:
        return self.update_parameters(mode=mode)

    def set_meter(self, meter) -> Phrase:
        return self.update_parameters(meter=meter)

    def set_tempo(self, tempo: int) -> Phrase:
        return self.update_parameters(tempo=tempo)

    def set_difficulty(self, difficulty: int) -> Phrase:
        return self.update_parameters(difficulty=difficulty)

    # ------------------------------------------------------------------
    # Generation and score publishing
    # ------------------------------------------------------------------
    def regenerate(self) -> Phrase:
        """Replace the current phrase and score with freshly generated ones."""

        phrase = self.generator.generate(self._parameters)
        document = encode_phrase(phrase)
        self.phrase = phrase
        self.score_document = document
        if self.score_surface is not None:
            task = self.loop.create_task(self.publish_score(document))
            self._publish_tasks.add(task)
            task.add_done_callback(self._publish_done)
        return phrase

    def _next_phrase(self) -> Phrase:
        return self.regenerate()

    async def publish_score(self, document: str) -> None:
        """Load ``document`` into the score surface, then render it.

        Publishes are serialised so one document finishes rendering before
        the next starts loading.
        """

        if self.score_surface is None:
            return
        async with self._score_lock:
            await self.score_surface.load(document)
            self.score_surface.render()

    def _publish_done(self, task: asyncio.Future) -> None:
        self._publish_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Could not render score: %s", exc)

    async def wait_for_score(self) -> None:
        """Wait until every pending score publish has finished."""

        pending = list(self._publish_tasks)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------
    async def prepare_audio(self) -> bool:
        """Wait for the backend to become ready.

        Returns ``True`` once the backend is ready. Failures are logged and
        reflected in :attr:`audio_status` rather than raised.
        """

        self.audio_status = AUDIO_LOADING
        try:
            await self.backend.load()
        except AudioBackendError as exc:
            logger.error("Audio backend unavailable: %s", exc)
            self.audio_status = AUDIO_UNAVAILABLE
            return False
        self.audio_status = AUDIO_READY if self.backend.ready else AUDIO_UNAVAILABLE
        return self.backend.ready

    def request_note(self, pitch: int) -> bool:
        """Preview ``pitch`` for a key pressed on the keyboard surface."""

        if not self.backend.ready:
            logger.warning("Audio backend not ready; ignoring key %d", pitch)
            return False
        self.backend.trigger_note(
            pitch, self.settings.preview_duration, self.settings.velocity
        )
        return True

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------
    @property
    def is_playing(self) -> bool:
        return self.scheduler.is_playing

    def start(self) -> bool:
        """Start looping playback of the current phrase.

        Returns ``False`` and does nothing when the backend is not ready.
        """

        if not self.scheduler.start(self.phrase):
            return False
        self.progress.start()
        return True

    def stop(self) -> None:
        self.scheduler.stop()
        self.progress.stop()

    def active_pitches(self) -> FrozenSet[int]:
        """Pitches sounding now, regardless of the highlight toggle."""

        return self.tracker.active()

    def highlighted_pitches(self) -> FrozenSet[int]:
        """Pitches to highlight; empty while auto highlight is off."""

        return self.tracker.current if self.auto_highlight else frozenset()

    def set_auto_highlight(self, enabled: bool) -> None:
        self.auto_highlight = enabled
        if self.on_highlight is not None:
            self.on_highlight(self.highlighted_pitches())

    def _on_active_change(self, active: FrozenSet[int]) -> None:
        if self.auto_highlight and self.on_highlight is not None:
            self.on_highlight(active)

    def close(self) -> None:
        """Stop playback and cancel all polls and pending score publishes."""

        self.stop()
        self.tracker.close()
        for task in list(self._publish_tasks):
            task.cancel()
