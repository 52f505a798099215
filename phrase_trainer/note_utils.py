"""Pitch helpers shared by the generator, encoder and keyboard surfaces.

Pitches are plain integers using the MIDI numbering convention where ``60``
is middle C.  The functions below derive names, octaves and key colours from
those integers.  Apart from :func:`keyboard_keys`, which checks its bounds,
every helper is total over the integers so callers never need to guard
against exceptions.

Example
-------
>>> from phrase_trainer.note_utils import pitch_name, to_score_spelling
>>> pitch_name(61)
'C#4'
>>> to_score_spelling(61)
ScoreSpelling(step='C', alter=1, octave=4)
"""

# Modification Summary
# ---------------------
# * ``to_score_spelling`` only ever produces sharps. Flat spellings would
#   change the serialised score, so the sharp-only table is kept on purpose.
# * ``pitch_name`` no longer rejects values outside ``0-127``; negative and
#   very high pitches simply yield negative or large octave numbers.
# * Added ``keyboard_keys`` so input surfaces can draw the 88-key layout
#   without re-deriving key colours.

from __future__ import annotations

from functools import lru_cache
from typing import List, NamedTuple

from . import BLACK_PITCH_CLASSES, HIGHEST_KEY, LOWEST_KEY, NOTES

__all__ = [
    "KeyboardKey",
    "ScoreSpelling",
    "is_black_key",
    "keyboard_keys",
    "octave",
    "pitch_class",
    "pitch_name",
    "to_score_spelling",
]


class ScoreSpelling(NamedTuple):
    """Letter name, chromatic alteration and octave of a written note."""

    step: str
    alter: int
    octave: int


class KeyboardKey(NamedTuple):
    """One key of the on-screen keyboard."""

    pitch: int
    name: str
    black: bool


def pitch_class(pitch: int) -> int:
    """Return the pitch class ``0-11`` of ``pitch``."""

    return pitch % 12


def octave(pitch: int) -> int:
    """Return the scientific octave number of ``pitch`` (``60`` -> ``4``)."""

    # Floor division keeps the mapping total: -1 lands in octave -2.
    return pitch // 12 - 1


def is_black_key(pitch: int) -> bool:
    """Return ``True`` when ``pitch`` sounds on a black key."""

    return pitch_class(pitch) in BLACK_PITCH_CLASSES


def pitch_name(pitch: int) -> str:
    """Return the sharp-spelled name of ``pitch`` including its octave.

    Examples
    --------
    >>> pitch_name(60)
    'C4'
    >>> pitch_name(70)
    'A#4'
    """

    return f"{NOTES[pitch_class(pitch)]}{octave(pitch)}"


@lru_cache(maxsize=None)
def to_score_spelling(pitch: int) -> ScoreSpelling:
    """Return the ``(step, alter, octave)`` triple used in the score."""

    name = NOTES[pitch_class(pitch)]
    # Sharp names are two characters long; the letter is always first.
    alter = 1 if name.endswith("#") else 0
    return ScoreSpelling(name[0], alter, octave(pitch))


def keyboard_keys(low: int = LOWEST_KEY, high: int = HIGHEST_KEY) -> List[KeyboardKey]:
    """Return the keys from ``low`` to ``high`` inclusive in ascending order.

    Raises
    ------
    ValueError
        If ``low`` is greater than ``high``.
    """

    if low > high:
        raise ValueError("low must not exceed high")
    return [KeyboardKey(p, pitch_name(p), is_black_key(p)) for p in range(low, high + 1)]
