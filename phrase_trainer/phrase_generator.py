"""Random practice phrase generation.

This file exposes a small :class:`PhraseGenerator` class that turns a
:class:`~phrase_trainer.phrase.PhraseParameters` instance into a four-bar
:class:`~phrase_trainer.phrase.Phrase`.  Every beat receives one treble note
drawn uniformly from :data:`~phrase_trainer.TREBLE_RANGE` and every bar opens
with a bass chord whose root is snapped to one of
:data:`~phrase_trainer.TRIAD_ROOTS`.

The mode is carried through to the phrase but does not yet restrict the
drawn pitches; every mode currently uses the same ranges and chord roots.

Randomness comes from an injectable source exposing ``randint`` (the
:mod:`random` module by default) so tests can pass a seeded
:class:`random.Random` without changing any call sites.
``generate_phrase`` simply proxies to a module-level generator for
convenience.
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional, Sequence

from . import BASS_RANGE, TREBLE_RANGE, TRIAD_ROOTS
from .phrase import NoteEvent, Phrase, PhraseParameters, Staff

__all__ = [
    "PhraseGenerator",
    "chord_for_root",
    "generate_phrase",
    "snap_to_triad_root",
]

logger = logging.getLogger(__name__)

# Fraction of a beat each melody note sounds for; the gap keeps repeated
# pitches audibly separate.
TREBLE_GATE = 0.9

MAJOR_THIRD = 4
PERFECT_FIFTH = 7
MAJOR_SEVENTH = 11
OCTAVE = 12


def snap_to_triad_root(seed: int, roots: Sequence[int] = TRIAD_ROOTS) -> int:
    """Return the element of ``roots`` numerically nearest ``seed``.

    ``min`` keeps the first minimal candidate, so on a tie the root listed
    earlier wins (``54`` snaps to ``53`` rather than ``55``).
    """

    if not roots:
        raise ValueError("roots must not be empty")
    return min(roots, key=lambda root: abs(root - seed))


def chord_for_root(root: int, difficulty: int) -> List[int]:
    """Return the chord tones built on ``root`` for ``difficulty``.

    Level one plays a plain major triad. Level two adds the root an octave
    below and level three additionally adds the major seventh.
    """

    chord = [root, root + MAJOR_THIRD, root + PERFECT_FIFTH]
    if difficulty >= 2:
        chord.append(root - OCTAVE)
    if difficulty >= 3:
        chord.append(root + MAJOR_SEVENTH)
    return chord


class PhraseGenerator:
    """Generate random four-bar phrases."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        """Create a new generator.

        Parameters
        ----------
        rng:
            Source of uniform integer draws. Anything offering
            ``randint(a, b)`` works. When ``None`` the shared unseeded
            :mod:`random` module is used so every phrase differs.
        """

        self.rng = rng if rng is not None else random

    def generate(self, params: PhraseParameters) -> Phrase:
        """Return a new phrase for ``params``."""

        spb = params.seconds_per_beat
        beats_per_bar = params.beats_per_bar
        events: List[NoteEvent] = []

        for beat in range(params.total_beats):
            t = beat * spb
            events.append(
                NoteEvent(
                    time=t,
                    duration=TREBLE_GATE * spb,
                    pitch=self.rng.randint(*TREBLE_RANGE),
                    staff=Staff.TREBLE,
                    is_chord=False,
                )
            )
            if beat % beats_per_bar:
                continue
            root = snap_to_triad_root(self.rng.randint(*BASS_RANGE))
            for pitch in chord_for_root(root, params.difficulty):
                events.append(
                    NoteEvent(
                        time=t,
                        duration=spb * beats_per_bar,
                        pitch=pitch,
                        staff=Staff.BASS,
                        is_chord=True,
                    )
                )

        logger.debug(
            "Generated %d events (mode=%s, tempo=%d, difficulty=%d)",
            len(events),
            params.mode.value,
            params.tempo,
            params.difficulty,
        )
        return Phrase(params, tuple(events))


_DEFAULT_GENERATOR = PhraseGenerator()


def generate_phrase(
    params: PhraseParameters, rng: Optional[random.Random] = None
) -> Phrase:
    """Return a random phrase for ``params``.

    When ``rng`` is supplied a throwaway generator draws from it; otherwise
    the shared module-level generator is used.
    """

    if rng is not None:
        return PhraseGenerator(rng).generate(params)
    return _DEFAULT_GENERATOR.generate(params)
