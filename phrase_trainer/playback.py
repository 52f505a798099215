"""Audio backends that sound scheduled and previewed notes.

The scheduler and session controller talk to any object implementing
:class:`AudioBackend`: a ``ready`` flag, an awaitable ``load`` that brings
the backend to readiness and ``trigger_note`` which sounds one pitch for a
number of seconds.  Two implementations are provided:

``FluidSynthBackend``
    Synthesises audio in process with the ``fluidsynth`` library. A
    SoundFont (SF2) file is required; the path can be supplied explicitly,
    otherwise a platform default is tried.

``MidiPortBackend``
    Sends ``note_on``/``note_off`` messages to a MIDI output port through
    ``mido`` so an external synthesiser or DAW produces the sound.

Example usage
-------------
>>> backend = FluidSynthBackend("~/sounds/piano.sf2")
>>> await backend.load()
>>> backend.trigger_note(60, 0.5)

Both backends schedule their note-off on the event loop that was running
when :meth:`load` completed, so ``trigger_note`` never blocks.
"""

# Revision note
# -------------
# ``_resolve_soundfont`` checks standard SoundFont locations on Windows and
# macOS before falling back to the usual Linux path so playback works
# out-of-the-box when the default files are present.
#
# Error reporting for missing dependencies includes installation hints so
# users can more easily resolve playback issues.
#
# Loading moved to a worker thread: reading a large SoundFont can take
# seconds and must not stall the loop driving highlights.

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Optional, Protocol, runtime_checkable

import mido

from . import DEFAULT_VELOCITY

__all__ = [
    "AudioBackend",
    "AudioBackendError",
    "FluidSynthBackend",
    "MidiPortBackend",
]


logger = logging.getLogger(__name__)


class AudioBackendError(RuntimeError):
    """Raised when an audio backend cannot be prepared."""


@runtime_checkable
class AudioBackend(Protocol):
    """Interface consumed by the scheduler and session controller."""

    @property
    def ready(self) -> bool: ...

    async def load(self) -> None: ...

    def trigger_note(self, pitch: int, duration: float, velocity: int = DEFAULT_VELOCITY) -> None: ...

    def close(self) -> None: ...


def _resolve_soundfont(sf: Optional[str]) -> str:
    """Return the path to the soundfont to use for synthesis.

    Parameters
    ----------
    sf:
        Optional path supplied directly by the caller. When ``None`` a
        platform-specific default is used.

    Returns
    -------
    str
        Absolute path to an existing SoundFont or DLS file.

    Raises
    ------
    AudioBackendError
        If no valid file can be located.
    """

    if sf:
        candidate = sf
    elif sys.platform.startswith("win"):
        candidate = r"C:\\Windows\\System32\\drivers\\gm.dls"
    elif sys.platform == "darwin":
        candidate = "/Library/Audio/Sounds/Banks/FluidR3_GM.sf2"
    else:
        candidate = "/usr/share/sounds/sf2/TimGM6mb.sf2"

    candidate = os.path.expanduser(candidate)

    if not os.path.isfile(candidate):
        raise AudioBackendError(
            "SoundFont not found. Provide a valid path or install a General "
            "MIDI soundfont."
        )

    return candidate


class FluidSynthBackend:
    """Sound notes with an in-process FluidSynth synthesiser."""

    def __init__(
        self,
        soundfont: Optional[str] = None,
        *,
        driver: Optional[str] = None,
        channel: int = 0,
        program: int = 0,
    ) -> None:
        self.soundfont = soundfont
        self.driver = driver
        self.channel = channel
        self.program = program
        self._synth = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def ready(self) -> bool:
        return self._synth is not None and self._loop is not None

    async def load(self) -> None:
        """Start the synthesiser and load the SoundFont.

        Raises
        ------
        AudioBackendError
            If PyFluidSynth or the FluidSynth library is missing, no
            SoundFont can be found or the audio driver fails to start.
        """

        if self.ready:
            return
        loop = asyncio.get_running_loop()
        self._synth = await loop.run_in_executor(None, self._create_synth)
        self._loop = loop
        logger.info("FluidSynth ready with %s", self.soundfont)

    def _create_synth(self):
        try:
            import fluidsynth  # type: ignore
        except FileNotFoundError as exc:
            # ``fluidsynth`` C library not found; give installation guidance.
            raise AudioBackendError(
                "fluidsynth not installed. Install the FluidSynth library and "
                "pyFluidSynth package."
            ) from exc
        except ImportError as exc:
            raise AudioBackendError("PyFluidSynth is required for playback") from exc

        sf_path = _resolve_soundfont(self.soundfont)
        self.soundfont = sf_path

        try:
            synth = fluidsynth.Synth()
        except FileNotFoundError as exc:
            raise AudioBackendError(
                "fluidsynth not installed. Install the FluidSynth library and "
                "pyFluidSynth package."
            ) from exc
        try:
            if self.driver:
                synth.start(driver=self.driver)
            else:
                synth.start()
            sfid = synth.sfload(sf_path)
            synth.program_select(self.channel, sfid, 0, self.program)
        except Exception as exc:
            synth.delete()
            raise AudioBackendError(f"Could not start audio driver: {exc}") from exc
        return synth

    def trigger_note(self, pitch: int, duration: float, velocity: int = DEFAULT_VELOCITY) -> None:
        """Sound ``pitch`` now and release it after ``duration`` seconds."""

        if not self.ready:
            logger.debug("Ignoring note %d; FluidSynth not ready", pitch)
            return
        self._synth.noteon(self.channel, pitch, velocity)
        self._loop.call_later(duration, self._release, pitch)

    def _release(self, pitch: int) -> None:
        if self._synth is not None:
            self._synth.noteoff(self.channel, pitch)

    def close(self) -> None:
        synth, self._synth = self._synth, None
        self._loop = None
        if synth is not None:
            synth.delete()


class MidiPortBackend:
    """Send notes to a MIDI output port."""

    def __init__(self, port_name: Optional[str] = None, *, channel: int = 0) -> None:
        self.port_name = port_name
        self.channel = channel
        self._port = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def ready(self) -> bool:
        return self._port is not None and self._loop is not None

    async def load(self) -> None:
        """Open the output port; ``None`` selects the system default.

        Raises
        ------
        AudioBackendError
            If the port cannot be opened, e.g. because no MIDI backend for
            ``mido`` is installed.
        """

        if self.ready:
            return
        loop = asyncio.get_running_loop()
        try:
            self._port = await loop.run_in_executor(None, mido.open_output, self.port_name)
        except (OSError, ImportError) as exc:
            raise AudioBackendError(
                f"Could not open MIDI output {self.port_name or '(default)'}: {exc}"
            ) from exc
        self._loop = loop
        logger.info("MIDI output %s ready", self._port.name)

    def trigger_note(self, pitch: int, duration: float, velocity: int = DEFAULT_VELOCITY) -> None:
        if not self.ready:
            logger.debug("Ignoring note %d; MIDI output not ready", pitch)
            return
        self._port.send(
            mido.Message("note_on", note=pitch, velocity=velocity, channel=self.channel)
        )
        self._loop.call_later(duration, self._release, pitch)

    def _release(self, pitch: int) -> None:
        if self._port is not None:
            self._port.send(
                mido.Message("note_off", note=pitch, velocity=0, channel=self.channel)
            )

    def close(self) -> None:
        port, self._port = self._port, None
        self._loop = None
        if port is not None:
            port.close()
