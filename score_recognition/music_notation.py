"""
Note naming and timing helpers built on music21.

Recognized notes carry a letter name (naturals, or sharps when read from a
reference), an octave and a duration name. This module converts between
those and MIDI numbers and quarter-note lengths, and builds music21 streams
so recognized notes can be exported as MusicXML.
"""

import logging

import music21

from score_recognition.models import NoteEvent

logger = logging.getLogger(__name__)


# Sharp spelling used for every MIDI number
SHARP_NAMES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")

# Quarter-note length of each duration name
QUARTER_LENGTHS = {
    "whole": 4.0,
    "half": 2.0,
    "quarter": 1.0,
    "eighth": 0.5,
    "sixteenth": 0.25,
}

# music21 spells sixteenth notes as "16th"
_MUSIC21_TYPES = {"16th": "sixteenth"}


def midi_for(name: str, octave: int) -> int:
    """MIDI number of a note, C4 = 60.

    Args:
        name: Letter name with an optional "#" or "b" accidental.
        octave: Scientific-pitch octave.

    Returns:
        MIDI note number.
    """
    if name.endswith("b") and len(name) > 1:
        name = name[:-1] + "-"
    return int(music21.pitch.Pitch(f"{name}{octave}").midi)


def pitch_for_midi(midi: int) -> tuple[str, int]:
    """Sharp-spelled (name, octave) of a MIDI number.

    Examples:
        >>> pitch_for_midi(60)
        ('C', 4)
        >>> pitch_for_midi(70)
        ('A#', 4)
    """
    return SHARP_NAMES[midi % 12], midi // 12 - 1


def quarter_length(duration: str) -> float:
    """Quarter-note length of a duration name; unknown names count as quarters."""
    return QUARTER_LENGTHS.get(duration, 1.0)


def duration_from_music21(type_name: str) -> str:
    """Map a music21 duration type onto the recognized duration names."""
    duration = _MUSIC21_TYPES.get(type_name, type_name)
    if duration not in QUARTER_LENGTHS:
        logger.debug(f"Unsupported duration type {type_name!r}, using quarter")
        return "quarter"
    return duration


def notes_to_stream(notes: list[NoteEvent], title: str = "") -> music21.stream.Score:
    """Build a single-part music21 score from recognized notes.

    Notes follow each other without gaps in the order given.
    """
    score = music21.stream.Score()
    if title:
        score.insert(0, music21.metadata.Metadata(title=title))
    part = music21.stream.Part()
    for n in notes:
        m21_note = music21.note.Note(f"{n.name}{n.octave}")
        m21_note.duration = music21.duration.Duration(quarter_length(n.duration))
        part.append(m21_note)
    score.insert(0, part)
    return score


def write_musicxml(notes: list[NoteEvent], path: str, title: str = "") -> str:
    """Write recognized notes to a MusicXML file.

    Returns:
        Path of the written file.
    """
    written = notes_to_stream(notes, title).write("musicxml", fp=path)
    logger.debug(f"Wrote {len(notes)} notes to {written}")
    return str(written)
