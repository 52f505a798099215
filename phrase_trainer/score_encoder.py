"""MusicXML encoding of generated phrases.

The encoder builds a small typed tree (:class:`ScoreDocument` ->
:class:`ScoreMeasure` -> :class:`ScoreNote`) from a phrase, checks the
structural invariants the rendering surface relies on and only then
serialises the tree with :mod:`xml.etree.ElementTree`.

Layout
------
* One piano part with two staves: treble (G clef) and bass (F clef).
* Four measures in the phrase meter, no key signature alteration.
* ``<divisions>4</divisions>`` so a quarter lasts ``4`` and an eighth ``2``.
* Staff 1 holds one quarter note or quarter rest per beat.
* Staff 2 holds the bar's chord as a beamed broken-chord roll of eighth
  notes: lowest, second, third, lowest again (shorter when the chord has
  fewer tones).  A bar without a chord holds four eighth rests.  A
  ``<forward>`` pads the bass voice to the full bar.
* Measure 1 carries the tempo marking taken verbatim from the phrase tempo.

Example
-------
>>> from phrase_trainer import PhraseParameters, generate_phrase, encode_phrase
>>> xml = encode_phrase(generate_phrase(PhraseParameters(tempo=80)))
>>> xml.count("<measure ")
4
"""

# Design notes
# ------------
# Bass chords sound for the whole bar during playback but are written as a
# short roll so the score stays readable. A ``<forward>`` in the bass voice
# covers the rest of the bar so both voices sum to a full measure.
#
# Encoding is deterministic: the same phrase always yields the same text.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from xml.etree import ElementTree as ET

from . import PHRASE_LENGTH_BARS
from .note_utils import ScoreSpelling, to_score_spelling
from .phrase import NoteEvent, Phrase, Staff

__all__ = [
    "ScoreDocument",
    "ScoreMeasure",
    "ScoreNote",
    "ScoreStructureError",
    "arpeggio_pattern",
    "build_score",
    "encode_phrase",
]

logger = logging.getLogger(__name__)

DIVISIONS = 4
EIGHTH_DURATION = DIVISIONS // 2
BASS_REST_SLOTS = 4

# Voice numbers follow the usual piano convention of voice 5 for staff 2.
VOICES = {Staff.TREBLE: 1, Staff.BASS: 5}

_NOTE_TYPES = {1: "whole", 2: "half", 4: "quarter", 8: "eighth", 16: "16th"}

_XML_HEADER = (
    '<?xml version="1.0" encoding="UTF-8" standalone="no"?>\n'
    '<!DOCTYPE score-partwise PUBLIC "-//Recordare//DTD MusicXML 4.0 Partwise//EN" '
    '"http://www.musicxml.org/dtds/partwise.dtd">\n'
)


class ScoreStructureError(ValueError):
    """Raised when a score tree violates the fixed template."""


@dataclass(frozen=True)
class ScoreNote:
    """A pitched note or a rest occupying one slot of a staff."""

    staff: Staff
    duration: int
    note_type: str
    spelling: Optional[ScoreSpelling] = None
    beam: Optional[str] = None

    @property
    def is_rest(self) -> bool:
        return self.spelling is None


@dataclass
class ScoreMeasure:
    number: int
    treble: List[ScoreNote] = field(default_factory=list)
    bass: List[ScoreNote] = field(default_factory=list)


@dataclass
class ScoreDocument:
    """Typed representation of the score before serialisation."""

    tempo: int
    beats: int
    beat_type: int
    measures: List[ScoreMeasure] = field(default_factory=list)
    part_name: str = "Piano"

    @property
    def beat_duration(self) -> int:
        return DIVISIONS * 4 // self.beat_type

    def validate(self) -> None:
        """Check measure, slot and beam invariants.

        Raises
        ------
        ScoreStructureError
            When the tree does not match the template.
        """

        if len(self.measures) != PHRASE_LENGTH_BARS:
            raise ScoreStructureError(
                f"expected {PHRASE_LENGTH_BARS} measures, found {len(self.measures)}"
            )
        for measure in self.measures:
            if len(measure.treble) != self.beats:
                raise ScoreStructureError(
                    f"measure {measure.number} has {len(measure.treble)} treble slots"
                )
            if any(n.staff is not Staff.TREBLE for n in measure.treble):
                raise ScoreStructureError(f"measure {measure.number} mixes staves")
            _validate_bass(measure)

    def to_element(self) -> ET.Element:
        root = ET.Element("score-partwise", version="4.0")
        part_list = ET.SubElement(root, "part-list")
        score_part = ET.SubElement(part_list, "score-part", id="P1")
        ET.SubElement(score_part, "part-name").text = self.part_name

        part = ET.SubElement(root, "part", id="P1")
        for measure in self.measures:
            m_el = ET.SubElement(part, "measure", number=str(measure.number))
            if measure.number == 1:
                self._write_attributes(m_el)
                self._write_tempo(m_el)
            for note in measure.treble:
                _write_note(m_el, note)
            bar_duration = self.beats * self.beat_duration
            backup = ET.SubElement(m_el, "backup")
            ET.SubElement(backup, "duration").text = str(bar_duration)
            for note in measure.bass:
                _write_note(m_el, note)
            remainder = bar_duration - sum(n.duration for n in measure.bass)
            if remainder > 0:
                forward = ET.SubElement(m_el, "forward")
                ET.SubElement(forward, "duration").text = str(remainder)
                ET.SubElement(forward, "voice").text = str(VOICES[Staff.BASS])
                ET.SubElement(forward, "staff").text = str(Staff.BASS.value)
        return root

    def to_musicxml(self) -> str:
        """Validate the tree and return it as a MusicXML string."""

        self.validate()
        root = self.to_element()
        ET.indent(root, space="  ")
        return _XML_HEADER + ET.tostring(root, encoding="unicode") + "\n"

    def _write_attributes(self, parent: ET.Element) -> None:
        attrs = ET.SubElement(parent, "attributes")
        ET.SubElement(attrs, "divisions").text = str(DIVISIONS)
        key = ET.SubElement(attrs, "key")
        ET.SubElement(key, "fifths").text = "0"
        time = ET.SubElement(attrs, "time")
        ET.SubElement(time, "beats").text = str(self.beats)
        ET.SubElement(time, "beat-type").text = str(self.beat_type)
        ET.SubElement(attrs, "staves").text = "2"
        for number, sign, line in ((1, "G", 2), (2, "F", 4)):
            clef = ET.SubElement(attrs, "clef", number=str(number))
            ET.SubElement(clef, "sign").text = sign
            ET.SubElement(clef, "line").text = str(line)

    def _write_tempo(self, parent: ET.Element) -> None:
        direction = ET.SubElement(parent, "direction", placement="above")
        direction_type = ET.SubElement(direction, "direction-type")
        metronome = ET.SubElement(direction_type, "metronome")
        ET.SubElement(metronome, "beat-unit").text = _NOTE_TYPES[self.beat_type]
        ET.SubElement(metronome, "per-minute").text = str(self.tempo)
        ET.SubElement(direction, "staff").text = "1"
        ET.SubElement(direction, "sound", tempo=str(self.tempo))


def _validate_bass(measure: ScoreMeasure) -> None:
    bass = measure.bass
    if any(n.staff is not Staff.BASS or n.note_type != "eighth" for n in bass):
        raise ScoreStructureError(f"measure {measure.number} has a malformed bass slot")
    if all(n.is_rest for n in bass):
        if len(bass) != BASS_REST_SLOTS:
            raise ScoreStructureError(
                f"measure {measure.number} needs {BASS_REST_SLOTS} bass rests"
            )
        return
    if not 2 <= len(bass) <= 4 or any(n.is_rest for n in bass):
        raise ScoreStructureError(f"measure {measure.number} has a malformed bass roll")
    expected = ["begin"] + ["continue"] * (len(bass) - 2) + ["end"]
    if [n.beam for n in bass] != expected:
        raise ScoreStructureError(f"measure {measure.number} has inconsistent beams")


def _write_note(parent: ET.Element, note: ScoreNote) -> None:
    n_el = ET.SubElement(parent, "note")
    if note.is_rest:
        ET.SubElement(n_el, "rest")
    else:
        pitch = ET.SubElement(n_el, "pitch")
        ET.SubElement(pitch, "step").text = note.spelling.step
        if note.spelling.alter:
            ET.SubElement(pitch, "alter").text = str(note.spelling.alter)
        ET.SubElement(pitch, "octave").text = str(note.spelling.octave)
    ET.SubElement(n_el, "duration").text = str(note.duration)
    ET.SubElement(n_el, "voice").text = str(VOICES[note.staff])
    ET.SubElement(n_el, "type").text = note.note_type
    ET.SubElement(n_el, "staff").text = str(note.staff.value)
    if note.beam:
        ET.SubElement(n_el, "beam", number="1").text = note.beam


def arpeggio_pattern(pitches: List[int]) -> List[int]:
    """Return the broken-chord order for ``pitches``.

    The pattern is the lowest tone, the second and third lowest when
    present, then the lowest tone again.
    """

    ordered = sorted(pitches)
    return [ordered[0]] + ordered[1:3] + [ordered[0]]


def _treble_slot(events: List[NoteEvent], index: int, spb: float) -> Optional[NoteEvent]:
    # Window bounds use the generator's ``beat * spb`` so onsets compare exactly.
    start = index * spb
    end = (index + 1) * spb
    matches = [e for e in events if start <= e.time < end]
    if len(matches) > 1:
        logger.warning(
            "Found %d treble notes in beat window starting at %.3fs; using the first",
            len(matches),
            start,
        )
    return matches[0] if matches else None


def build_score(phrase: Phrase, tempo: Optional[int] = None) -> ScoreDocument:
    """Return the :class:`ScoreDocument` tree for ``phrase``.

    ``tempo`` defaults to the phrase tempo and is written verbatim.
    """

    params = phrase.parameters
    beats, beat_type = params.meter
    spb = params.seconds_per_beat
    doc = ScoreDocument(
        tempo=params.tempo if tempo is None else tempo,
        beats=beats,
        beat_type=beat_type,
    )
    quarter_type = _NOTE_TYPES[beat_type]
    treble = phrase.treble_events()
    chords = phrase.chords()

    for bar in range(PHRASE_LENGTH_BARS):
        measure = ScoreMeasure(number=bar + 1)
        for beat in range(beats):
            event = _treble_slot(treble, bar * beats + beat, spb)
            measure.treble.append(
                ScoreNote(
                    staff=Staff.TREBLE,
                    duration=doc.beat_duration,
                    note_type=quarter_type,
                    spelling=None if event is None else to_score_spelling(event.pitch),
                )
            )

        bar_start = (bar * beats) * spb
        chord = chords.get(bar_start, [])
        if not chord:
            measure.bass.extend(
                ScoreNote(Staff.BASS, EIGHTH_DURATION, "eighth")
                for _ in range(BASS_REST_SLOTS)
            )
        else:
            pattern = arpeggio_pattern(chord)
            last = len(pattern) - 1
            for i, pitch in enumerate(pattern):
                beam = "begin" if i == 0 else "end" if i == last else "continue"
                measure.bass.append(
                    ScoreNote(
                        Staff.BASS,
                        EIGHTH_DURATION,
                        "eighth",
                        spelling=to_score_spelling(pitch),
                        beam=beam,
                    )
                )
        doc.measures.append(measure)
    return doc


def encode_phrase(phrase: Phrase, tempo: Optional[int] = None) -> str:
    """Return ``phrase`` as a MusicXML document string."""

    return build_score(phrase, tempo).to_musicxml()
