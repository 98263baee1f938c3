"""MIDI export of recognized notes.

Recognized notes are laid end to end on a single track: each note starts
when the previous one ends and lasts as many ticks as its duration name
implies. The module also reads note-on pitches back out of MIDI data, which
is how recognized output is compared against reference files.
"""

import io
import logging

import mido
from mido import Message, MetaMessage, MidiFile, MidiTrack

from score_recognition.models import MidiEvent, NoteEvent
from score_recognition.music_notation import midi_for, quarter_length

logger = logging.getLogger(__name__)


def build_note_events(
    notes: list[NoteEvent], ticks_per_beat: int = 480
) -> list[MidiEvent]:
    """Convert recognized notes to back-to-back MIDI events.

    Args:
        notes: Notes in reading order.
        ticks_per_beat: MIDI ticks per quarter note (default 480).

    Returns:
        List of MidiEvent objects sorted by start_tick, or empty list if
        no notes provided.
    """
    events: list[MidiEvent] = []
    tick = 0
    for n in notes:
        duration_tick = max(1, int(round(quarter_length(n.duration) * ticks_per_beat)))
        note_number = max(0, min(127, midi_for(n.name, n.octave)))
        events.append(
            MidiEvent(note=note_number, start_tick=tick, duration_tick=duration_tick)
        )
        tick += duration_tick
    return events


def write_midi_file(
    events: list[MidiEvent], tempo_bpm: int = 120, ticks_per_beat: int = 480
) -> bytes:
    """Serialize MIDI events as a single-track standard MIDI file.

    Args:
        events: MidiEvent objects to include.
        tempo_bpm: Tempo in beats per minute (default 120).
        ticks_per_beat: MIDI ticks per quarter note (default 480).

    Returns:
        MIDI file data as bytes.
    """
    midi_file = MidiFile(ticks_per_beat=ticks_per_beat)
    track = MidiTrack()
    midi_file.tracks.append(track)
    track.append(MetaMessage("set_tempo", tempo=mido.bpm2tempo(tempo_bpm), time=0))

    # (tick, order, type, note); note_off sorts before note_on on the same tick
    timeline: list[tuple[int, int, str, int]] = []
    for event in events:
        timeline.append((event.start_tick, 1, "note_on", event.note))
        timeline.append(
            (event.start_tick + event.duration_tick, 0, "note_off", event.note)
        )
    timeline.sort(key=lambda item: (item[0], item[1]))

    previous_tick = 0
    for tick, _, message_type, note in timeline:
        track.append(
            Message(message_type, note=note, velocity=64, time=tick - previous_tick)
        )
        previous_tick = tick

    buffer = io.BytesIO()
    midi_file.save(file=buffer)
    return buffer.getvalue()


def notes_to_midi(
    notes: list[NoteEvent], tempo_bpm: int = 120, ticks_per_beat: int = 480
) -> bytes:
    """Recognized notes straight to MIDI file bytes."""
    return write_midi_file(
        build_note_events(notes, ticks_per_beat), tempo_bpm, ticks_per_beat
    )


def read_note_ons(midi_bytes: bytes) -> list[int]:
    """Pitches of every sounding note_on message, track by track in file order.

    Args:
        midi_bytes: Standard MIDI file data.

    Returns:
        MIDI note numbers. A note_on with velocity 0 is a note_off and is
        skipped.
    """
    midi_file = MidiFile(file=io.BytesIO(midi_bytes))
    pitches = [
        msg.note
        for track in midi_file.tracks
        for msg in track
        if msg.type == "note_on" and msg.velocity > 0
    ]
    logger.debug(f"Read {len(pitches)} note_on messages")
    return pitches
