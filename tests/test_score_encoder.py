"""Tests for MusicXML encoding of phrases."""

import importlib
import random
import sys
from pathlib import Path
from xml.etree import ElementTree as ET

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

encoder = importlib.import_module("phrase_trainer.score_encoder")
phrase_module = importlib.import_module("phrase_trainer.phrase")
generator = importlib.import_module("phrase_trainer.phrase_generator")
note_utils = importlib.import_module("phrase_trainer.note_utils")
NoteEvent = phrase_module.NoteEvent
Phrase = phrase_module.Phrase
PhraseParameters = phrase_module.PhraseParameters
Staff = phrase_module.Staff
TEMPO_CHOICES = importlib.import_module("phrase_trainer").TEMPO_CHOICES


def _parse(xml):
    return ET.fromstring(xml)


def _notes(measure, staff):
    return [n for n in measure.findall("note") if n.findtext("staff") == str(staff)]


def _sparse_phrase():
    """Phrase with one treble note and a single chord in bar 2."""
    params = PhraseParameters(tempo=60)
    events = (
        NoteEvent(0.0, 0.9, 61, Staff.TREBLE),
        NoteEvent(4.0, 4.0, 55, Staff.BASS, True),
        NoteEvent(4.0, 4.0, 48, Staff.BASS, True),
        NoteEvent(4.0, 4.0, 52, Staff.BASS, True),
        NoteEvent(4.0, 4.0, 36, Staff.BASS, True),
    )
    return Phrase(params, events)


@pytest.mark.parametrize("difficulty", [1, 2, 3])
def test_structure_of_generated_phrase(difficulty):
    """Four measures, four treble slots each, and a beamed bass roll."""
    phrase = generator.generate_phrase(PhraseParameters(difficulty=difficulty))
    root = _parse(encoder.encode_phrase(phrase))
    measures = root.findall("./part/measure")
    assert len(measures) == 4
    for measure in measures:
        treble = _notes(measure, 1)
        assert len(treble) == 4
        assert all(n.findtext("type") == "quarter" for n in treble)
        bass = _notes(measure, 2)
        assert len(bass) == 4
        assert [n.findtext("beam") for n in bass] == ["begin", "continue", "continue", "end"]
        assert bass[0].find("pitch").findtext("step") == bass[-1].find("pitch").findtext("step")


def test_template_attributes_and_tempo():
    """Measure 1 carries divisions, 4/4, two clefs and the tempo verbatim."""
    phrase = generator.generate_phrase(PhraseParameters(tempo=80))
    root = _parse(encoder.encode_phrase(phrase))
    first = root.find("./part/measure")
    attrs = first.find("attributes")
    assert attrs.findtext("divisions") == "4"
    assert attrs.findtext("key/fifths") == "0"
    assert attrs.findtext("time/beats") == "4"
    assert attrs.findtext("time/beat-type") == "4"
    assert attrs.findtext("staves") == "2"
    assert [c.findtext("sign") for c in attrs.findall("clef")] == ["G", "F"]
    assert first.find("direction/sound").get("tempo") == "80"
    assert first.findtext("direction/direction-type/metronome/per-minute") == "80"
    assert first.findtext("backup/duration") == "16"


def test_explicit_tempo_overrides_marking():
    """The tempo argument is written verbatim."""
    phrase = generator.generate_phrase(PhraseParameters(tempo=100))
    root = _parse(encoder.encode_phrase(phrase, tempo=120))
    assert root.find("./part/measure/direction/sound").get("tempo") == "120"


def test_missing_notes_become_rests():
    """Empty beats are quarter rests and chordless bars hold four eighth rests."""
    root = _parse(encoder.encode_phrase(_sparse_phrase()))
    measures = root.findall("./part/measure")

    first_treble = _notes(measures[0], 1)
    assert first_treble[0].find("pitch").findtext("step") == "C"
    assert first_treble[0].find("pitch").findtext("alter") == "1"
    assert all(n.find("rest") is not None for n in first_treble[1:])

    first_bass = _notes(measures[0], 2)
    assert len(first_bass) == 4
    assert all(n.find("rest") is not None for n in first_bass)
    assert all(n.findtext("type") == "eighth" for n in first_bass)
    assert all(n.find("beam") is None for n in first_bass)


def test_bass_pattern_sorted_lowest_first_and_last():
    """Chord tones are sorted and the lowest tone closes the roll."""
    doc = encoder.build_score(_sparse_phrase())
    bass = doc.measures[1].bass
    octaves = [(n.spelling.step, n.spelling.octave) for n in bass]
    assert octaves == [("C", 2), ("C", 3), ("E", 3), ("C", 2)]
    assert encoder.arpeggio_pattern([55, 48, 52, 36]) == [36, 48, 52, 36]


@pytest.mark.parametrize(
    "pitches,beams",
    [
        ([48], ["begin", "end"]),
        ([48, 52], ["begin", "continue", "end"]),
    ],
)
def test_short_chords_give_short_rolls(pitches, beams):
    """Chords with fewer than three tones give two- or three-note rolls."""
    params = PhraseParameters()
    events = tuple(NoteEvent(0.0, 2.4, p, Staff.BASS, True) for p in pitches)
    doc = encoder.build_score(Phrase(params, events))
    assert [n.beam for n in doc.measures[0].bass] == beams
    doc.validate()


def test_duplicate_treble_candidates_use_first(caplog):
    """Two treble notes in one beat window log a warning and keep the first."""
    params = PhraseParameters(tempo=60)
    events = (
        NoteEvent(0.0, 0.9, 72, Staff.TREBLE),
        NoteEvent(0.5, 0.4, 74, Staff.TREBLE),
    )
    with caplog.at_level("WARNING"):
        doc = encoder.build_score(Phrase(params, events))
    assert doc.measures[0].treble[0].spelling == ("C", 0, 5)
    assert "treble notes in beat window" in caplog.text


def test_encoding_is_deterministic():
    """Encoding the same phrase twice yields identical text."""
    phrase = generator.generate_phrase(PhraseParameters(difficulty=3), rng=random.Random(11))
    assert encoder.encode_phrase(phrase) == encoder.encode_phrase(phrase)


def test_validate_rejects_broken_trees():
    """Structural violations raise ``ScoreStructureError`` before output."""
    doc = encoder.build_score(_sparse_phrase())
    doc.measures.pop()
    with pytest.raises(encoder.ScoreStructureError):
        doc.to_musicxml()

    doc = encoder.build_score(_sparse_phrase())
    doc.measures[0].treble.pop()
    with pytest.raises(encoder.ScoreStructureError):
        doc.validate()

    doc = encoder.build_score(_sparse_phrase())
    doc.measures[1].bass.pop()
    with pytest.raises(encoder.ScoreStructureError):
        doc.validate()


@pytest.mark.parametrize("tempo", TEMPO_CHOICES)
def test_generated_phrases_encode_without_warnings(tempo, caplog):
    """Beat windows line up with generated onsets at every offered tempo."""
    for seed in range(5):
        phrase = generator.generate_phrase(
            PhraseParameters(tempo=tempo, difficulty=3), rng=random.Random(seed)
        )
        with caplog.at_level("WARNING"):
            doc = encoder.build_score(phrase)
        assert caplog.records == []
        pitches = [e.pitch for e in phrase.treble_events()]
        written = [n.spelling for m in doc.measures for n in m.treble]
        assert written == [note_utils.to_score_spelling(p) for p in pitches]


@pytest.mark.parametrize("meter", [(4, 4), (3, 4), (2, 4)])
def test_bass_voice_fills_each_measure(meter):
    """Bass notes plus any forward span the same duration as the backup."""
    phrase = generator.generate_phrase(PhraseParameters(meter=meter))
    for xml_phrase in (phrase, _sparse_phrase()):
        root = _parse(encoder.encode_phrase(xml_phrase))
        for measure in root.findall("./part/measure"):
            bar = int(measure.findtext("backup/duration"))
            bass = sum(int(n.findtext("duration")) for n in _notes(measure, 2))
            forward = measure.find("forward")
            if forward is not None:
                assert forward.findtext("voice") == "5"
                assert forward.findtext("staff") == "2"
                bass += int(forward.findtext("duration"))
            assert bass == bar
