"""Validation helpers and practice settings shared across Phrase Trainer.

This module collects lightweight functions that do not fit in more specific
modules.  Parameter controls, the data model and the session controller all
reuse the same validators so an invalid tempo or meter is rejected with the
same message wherever it enters the system.

Usage Example
-------------
>>> from phrase_trainer.utils import validate_time_signature
>>> validate_time_signature("3/4")
(3, 4)
>>> validate_difficulty(2)
2

Revision Summary
----------------
* ``validate_time_signature`` accepts either a ``"NUM/DEN"`` string or an
  already split ``(num, den)`` pair so parameter controls and code paths that
  hold tuples share one validator.
* Added :class:`PracticeSettings` collecting the timing tunables that used to
  be scattered as defaults across the scheduler and tracker.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

from . import (
    DEFAULT_FRAME_INTERVAL,
    DEFAULT_GUARD_INTERVAL,
    DEFAULT_VELOCITY,
    DIFFICULTY_LEVELS,
)

__all__ = [
    "PracticeSettings",
    "validate_difficulty",
    "validate_tempo",
    "validate_time_signature",
]

# Restrict denominators to common simple meter values.
_VALID_DENOMINATORS = {1, 2, 4, 8, 16}


def validate_time_signature(ts: Union[str, Tuple[int, int]]) -> Tuple[int, int]:
    """Parse and validate a time signature.

    Parameters
    ----------
    ts:
        Time signature in ``"NUM/DEN"`` form or as a ``(num, den)`` pair.
        Whitespace around the separator is ignored.

    Returns
    -------
    tuple[int, int]
        ``(numerator, denominator)`` when ``ts`` is valid.

    Raises
    ------
    ValueError
        If ``ts`` is malformed or uses an unsupported denominator.
    """

    if isinstance(ts, str):
        parts = ts.strip().split("/")
        if len(parts) != 2:
            raise ValueError(
                "Time signature must be in the form 'numerator/denominator'."
            )
    else:
        parts = list(ts)
        if len(parts) != 2:
            raise ValueError("Time signature must contain exactly two values.")

    try:
        numerator = int(parts[0])
        denominator = int(parts[1])
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Time signature must contain integer numerator and denominator."
        ) from exc

    if numerator <= 0 or denominator not in _VALID_DENOMINATORS:
        raise ValueError(
            "Time signature numerator must be > 0 and denominator one of 1, 2, 4, 8 or 16."
        )

    return numerator, denominator


def validate_tempo(bpm: int) -> int:
    """Return ``bpm`` when it is a positive integer.

    Tempos outside :data:`phrase_trainer.TEMPO_CHOICES` are accepted; the
    choices only describe what the controls offer.
    """

    if isinstance(bpm, bool) or not isinstance(bpm, int):
        raise ValueError(f"tempo must be an integer, got {bpm!r}")
    if bpm <= 0:
        raise ValueError("tempo must be a positive integer")
    return bpm


def validate_difficulty(level: int) -> int:
    """Return ``level`` when it is one of the supported difficulty levels."""

    if level not in DIFFICULTY_LEVELS:
        raise ValueError(
            f"difficulty must be one of {', '.join(map(str, DIFFICULTY_LEVELS))}, got {level!r}"
        )
    return level


@dataclass(frozen=True)
class PracticeSettings:
    """Timing and output tunables for a practice session.

    Attributes
    ----------
    guard_interval:
        Seconds added after the last note before the next phrase begins so
        the final note is not cut short.
    frame_interval:
        Seconds between highlight and progress polls.
    velocity:
        MIDI velocity used for scheduled notes.
    preview_duration:
        Seconds a key pressed on the keyboard surface sounds for.
    auto_highlight:
        Whether active notes are shown on the keyboard surface.
    """

    guard_interval: float = DEFAULT_GUARD_INTERVAL
    frame_interval: float = DEFAULT_FRAME_INTERVAL
    velocity: int = DEFAULT_VELOCITY
    preview_duration: float = 0.5
    auto_highlight: bool = True

    def __post_init__(self) -> None:
        if self.guard_interval < 0:
            raise ValueError("guard_interval must be non-negative")
        if self.frame_interval <= 0:
            raise ValueError("frame_interval must be positive")
        if not 1 <= self.velocity <= 127:
            raise ValueError("velocity must lie within 1-127")
        if self.preview_duration <= 0:
            raise ValueError("preview_duration must be positive")
