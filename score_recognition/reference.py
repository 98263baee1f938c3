"""
Comparison of recognized notes against reference scores.

Reference pieces are read from MusicXML with music21. Recognition quality
is measured on MIDI pitch sequences with the longest common subsequence,
which tolerates both missed and spurious note heads.
"""

import logging

import music21

from score_recognition.models import NoteEvent, ReferenceComparison
from score_recognition.music_notation import (
    duration_from_music21,
    midi_for,
    pitch_for_midi,
)

logger = logging.getLogger(__name__)

NOTES_PER_MEASURE = 4


def load_reference_notes(path: str) -> list[NoteEvent]:
    """Read the pitched notes of a MusicXML file.

    Rests are skipped, accidentals are respelled as sharps, and measures are
    renumbered four notes to a measure to match recognized output.

    Args:
        path: Path to a MusicXML (or any music21-readable) file.

    Returns:
        List of NoteEvents in score order.
    """
    score = music21.converter.parse(path)
    notes: list[NoteEvent] = []
    for m21_note in score.recurse().getElementsByClass(music21.note.Note):
        name, octave = pitch_for_midi(int(m21_note.pitch.midi))
        notes.append(
            NoteEvent(
                name=name,
                octave=max(0, min(9, octave)),
                duration=duration_from_music21(m21_note.duration.type),
                measure=1 + len(notes) // NOTES_PER_MEASURE,
            )
        )
    logger.debug(f"Loaded {len(notes)} reference notes from {path}")
    return notes


def midi_sequence(notes: list[NoteEvent]) -> list[int]:
    """MIDI numbers of notes, in order."""
    return [midi_for(n.name, n.octave) for n in notes]


def lcs_length(a: list, b: list) -> int:
    """Length of the longest common subsequence of two sequences."""
    if not a or not b:
        return 0
    previous = [0] * (len(b) + 1)
    for item in a:
        current = [0]
        for j, other in enumerate(b):
            if item == other:
                current.append(previous[j] + 1)
            else:
                current.append(max(previous[j + 1], current[j]))
        previous = current
    return previous[-1]


def lcs_ratio(recognized: list, reference: list) -> float:
    """Share of the reference recovered in order; 1.0 for an empty reference."""
    if not reference:
        return 1.0
    return lcs_length(recognized, reference) / len(reference)


def contains_subsequence(source: list, target: list) -> bool:
    """Whether `target` appears contiguously inside `source`."""
    if not target:
        return True
    span = len(target)
    return any(
        source[i : i + span] == target for i in range(len(source) - span + 1)
    )


def compare_to_reference(
    recognized: list[NoteEvent], reference: list[NoteEvent]
) -> ReferenceComparison:
    """Score recognized notes against a reference by MIDI pitch.

    Args:
        recognized: Notes produced by the recognizer.
        reference: Notes of the reference piece.

    Returns:
        ReferenceComparison with the LCS length and both note counts.
    """
    comparison = ReferenceComparison(
        lcs=lcs_length(midi_sequence(recognized), midi_sequence(reference)),
        expected_count=len(reference),
        recognized_count=len(recognized),
    )
    logger.info(
        f"Reference match: lcs={comparison.lcs}/{comparison.expected_count}, "
        f"coverage={comparison.coverage:.2f}, precision={comparison.precision:.2f}"
    )
    return comparison
