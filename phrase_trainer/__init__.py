"""Phrase Trainer library.

This package generates short practice phrases for keyboard players and keeps
playback, score display and key highlighting in step with each other.  A
typical workflow creates a :class:`SessionController` around an audio
backend, awaits :meth:`SessionController.prepare_audio` and then calls
:meth:`SessionController.start`.  The controller regenerates a fresh phrase
whenever the previous one finishes so practice continues until stopped.

Underlying Algorithm
--------------------
Every phrase spans four bars.  Each beat receives one random treble note and
the first beat of every bar receives a bass chord.  The chord root is found by
drawing a random bass pitch and snapping it to the nearest of three fixed
roots; the difficulty level adds an octave-down root and a major seventh.
The resulting events are encoded into a MusicXML score where the sustained
bass chord is written as a short broken-chord roll.

Algorithm Pseudocode
--------------------
The main loop executed by :func:`generate_phrase`::

    for beat in range(beats_per_bar * 4):
        t = beat * seconds_per_beat
        emit(treble_note(random(60, 84), t))
        if beat % beats_per_bar == 0:
            root = snap(random(36, 60), (48, 53, 55))
            emit_chord(root, difficulty, t)

Playback replays the events against the event loop clock.  All note triggers
of one phrase share a single cancellation token so stopping is one operation,
and highlighting is a pull-based query of the same clock.

Features include:
- Random four-bar phrases with difficulty-dependent chord voicings.
- MusicXML encoding through a typed score tree validated before output.
- Looping playback with drift-free scheduling on the ``asyncio`` loop.
- Active-note and progress polling for keyboard highlighting.
- FluidSynth and MIDI output port audio backends.
"""

import logging
from typing import List

__version__ = "0.1.0"

# ---------------------------------------------------------------
# Modification Summary
# ---------------------------------------------------------------
# * Playback looping moved from re-entrant ``start`` calls to an explicit
#   cycle step on the scheduler so each loop iteration only swaps the
#   session token and phrase.
# * Score output is assembled as a typed tree and serialised once, which
#   lets measure and slot counts be checked before MusicXML is produced.
# * The random source used for phrase generation is injectable so tests can
#   seed it without touching call sites.
# * The highlight computation became a pure query over the phrase and an
#   elapsed time; the tracker only decides how often to ask.
# ---------------------------------------------------------------

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Sharp-spelled note names indexed by pitch class. Score spelling relies on
# this table never containing flats.
NOTES: List[str] = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Pitch classes sounding on the black keys of a piano.
BLACK_PITCH_CLASSES = frozenset({1, 3, 6, 8, 10})

# Lowest and highest keys of an 88-key instrument (A0 and C8).
LOWEST_KEY = 21
HIGHEST_KEY = 108

# Every phrase covers exactly this many bars.
PHRASE_LENGTH_BARS = 4

# Inclusive pitch ranges drawn from for each staff.
TREBLE_RANGE = (60, 84)
BASS_RANGE = (36, 60)

# Bass seeds snap to the nearest of these roots. The order matters: on a tie
# the earlier root wins.
TRIAD_ROOTS = (48, 53, 55)

# Tempo values offered by the parameter controls.
TEMPO_CHOICES = (60, 80, 100, 120)

DIFFICULTY_LEVELS = (1, 2, 3)

DEFAULT_METER = (4, 4)

# Playback and polling defaults shared by the scheduler, pollers and
# PracticeSettings.
DEFAULT_GUARD_INTERVAL = 0.05
DEFAULT_FRAME_INTERVAL = 1 / 60
DEFAULT_VELOCITY = 80

from .note_utils import (  # noqa: E402
    is_black_key,
    keyboard_keys,
    pitch_name,
    to_score_spelling,
)
from .phrase import Mode, NoteEvent, Phrase, PhraseParameters, Staff  # noqa: E402
from .phrase_generator import PhraseGenerator, generate_phrase  # noqa: E402
from .score_encoder import ScoreStructureError, build_score, encode_phrase  # noqa: E402
from .playback import (  # noqa: E402
    AudioBackendError,
    FluidSynthBackend,
    MidiPortBackend,
)
from .scheduler import PlaybackScheduler, PlaybackState  # noqa: E402
from .tracker import (  # noqa: E402
    ActiveNoteTracker,
    ProgressIndicator,
    active_pitches,
    progress,
)
from .session import SessionController  # noqa: E402
from .utils import PracticeSettings  # noqa: E402

__all__ = [
    "ActiveNoteTracker",
    "AudioBackendError",
    "FluidSynthBackend",
    "MidiPortBackend",
    "Mode",
    "NoteEvent",
    "PlaybackScheduler",
    "PlaybackState",
    "Phrase",
    "PhraseGenerator",
    "PhraseParameters",
    "PracticeSettings",
    "ProgressIndicator",
    "ScoreStructureError",
    "SessionController",
    "Staff",
    "active_pitches",
    "build_score",
    "encode_phrase",
    "generate_phrase",
    "is_black_key",
    "keyboard_keys",
    "pitch_name",
    "progress",
    "to_score_spelling",
]
