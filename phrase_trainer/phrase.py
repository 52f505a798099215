"""Data model for generated practice phrases.

A phrase is described in three layers:

``PhraseParameters``
    The small set of user choices a phrase is generated from: mode, meter,
    tempo and difficulty.  Instances are immutable; changing a control
    produces a new object.

``NoteEvent``
    One sounding of a pitch, positioned in seconds relative to the start of
    the phrase and assigned to the treble or bass staff.

``Phrase``
    The ordered events of one four-bar passage together with the parameters
    used to create it.  Phrases are replaced wholesale on regeneration and
    never mutated, so readers always see a complete phrase.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Dict, List, Tuple

import numpy as np

from . import DEFAULT_METER, PHRASE_LENGTH_BARS
from .utils import validate_difficulty, validate_tempo, validate_time_signature

__all__ = [
    "Mode",
    "NoteEvent",
    "Phrase",
    "PhraseParameters",
    "Staff",
    "canonical_mode",
]


class Staff(Enum):
    """Stave a note is written on; the value is its score staff number."""

    TREBLE = 1
    BASS = 2


class Mode(Enum):
    """Tonal modes offered by the parameter controls."""

    C_MAJOR = "C-major"
    G_MAJOR = "G-major"
    A_MINOR = "A-minor"


# Lowercase lookup so controls may pass "c-major", "C major" or the enum
# member name.
CANONICAL_MODES = {}
for _mode in Mode:
    CANONICAL_MODES[_mode.value.lower()] = _mode
    CANONICAL_MODES[_mode.value.lower().replace("-", " ")] = _mode
    CANONICAL_MODES[_mode.name.lower()] = _mode


@lru_cache(maxsize=None)
def canonical_mode(name: str) -> Mode:
    """Return the :class:`Mode` matching ``name`` case-insensitively.

    Raises
    ------
    ValueError
        If ``name`` does not correspond to a known mode.
    """

    mode = CANONICAL_MODES.get(name.strip().lower())
    if mode is None:
        raise ValueError(f"Unknown mode: {name}")
    return mode


@dataclass(frozen=True)
class NoteEvent:
    """A single timed note within a phrase."""

    time: float
    duration: float
    pitch: int
    staff: Staff
    is_chord: bool = False

    def __post_init__(self) -> None:
        if self.time < 0:
            raise ValueError("time must be non-negative")
        if self.duration <= 0:
            raise ValueError("duration must be positive")

    @property
    def end(self) -> float:
        """Offset in seconds at which the note stops sounding."""

        return self.time + self.duration


@dataclass(frozen=True)
class PhraseParameters:
    """Inputs a phrase is generated from.

    ``mode`` accepts a :class:`Mode` or any name understood by
    :func:`canonical_mode`; ``meter`` accepts a ``(beats, unit)`` pair or a
    ``"4/4"`` style string. Values are validated on construction so an
    instance always describes a playable phrase.
    """

    mode: Mode = Mode.C_MAJOR
    meter: Tuple[int, int] = DEFAULT_METER
    tempo: int = 100
    difficulty: int = 1

    def __post_init__(self) -> None:
        # ``object.__setattr__`` is required because the dataclass is frozen.
        if not isinstance(self.mode, Mode):
            object.__setattr__(self, "mode", canonical_mode(str(self.mode)))
        object.__setattr__(self, "meter", validate_time_signature(self.meter))
        validate_tempo(self.tempo)
        validate_difficulty(self.difficulty)

    @property
    def beats_per_bar(self) -> int:
        return self.meter[0]

    @property
    def seconds_per_beat(self) -> float:
        return 60 / self.tempo

    @property
    def total_beats(self) -> int:
        return self.beats_per_bar * PHRASE_LENGTH_BARS

    @property
    def phrase_duration(self) -> float:
        """Length of a phrase in seconds."""

        return self.beats_per_bar * self.seconds_per_beat * PHRASE_LENGTH_BARS

    def replace(self, **changes) -> "PhraseParameters":
        """Return a copy with ``changes`` applied and validated."""

        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class Phrase:
    """Events of one generated four-bar passage."""

    parameters: PhraseParameters
    events: Tuple[NoteEvent, ...]
    _arrays: Dict[str, np.ndarray] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "events", tuple(self.events))

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self):
        return iter(self.events)

    @property
    def duration(self) -> float:
        return self.parameters.phrase_duration

    @property
    def seconds_per_beat(self) -> float:
        return self.parameters.seconds_per_beat

    def treble_events(self) -> List[NoteEvent]:
        return [e for e in self.events if e.staff is Staff.TREBLE]

    def bass_events(self) -> List[NoteEvent]:
        return [e for e in self.events if e.staff is Staff.BASS]

    def chords(self) -> Dict[float, List[int]]:
        """Return bass pitches grouped by onset, in generation order."""

        groups: Dict[float, List[int]] = {}
        for event in self.bass_events():
            groups.setdefault(event.time, []).append(event.pitch)
        return groups

    def arrays(self) -> Dict[str, np.ndarray]:
        """Return onset, offset and pitch arrays for vectorised queries.

        The arrays are built on first use and cached on the instance; the
        phrase is immutable so they never go stale.
        """

        if not self._arrays:
            self._arrays["start"] = np.fromiter(
                (e.time for e in self.events), dtype=float, count=len(self.events)
            )
            self._arrays["end"] = np.fromiter(
                (e.end for e in self.events), dtype=float, count=len(self.events)
            )
            self._arrays["pitch"] = np.fromiter(
                (e.pitch for e in self.events), dtype=int, count=len(self.events)
            )
        return self._arrays
