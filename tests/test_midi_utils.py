import io

import mido

from score_recognition.midi_utils import (
    build_note_events,
    notes_to_midi,
    read_note_ons,
    write_midi_file,
)
from score_recognition.models import MidiEvent, NoteEvent


def test_build_note_events_back_to_back():
    notes = [
        NoteEvent(name="C", octave=4, duration="quarter"),
        NoteEvent(name="E", octave=4, duration="half"),
        NoteEvent(name="G", octave=4, duration="eighth"),
        NoteEvent(name="F#", octave=5, duration="sixteenth"),
    ]
    events = build_note_events(notes, ticks_per_beat=480)
    assert [e.note for e in events] == [60, 64, 67, 78]
    assert [e.start_tick for e in events] == [0, 480, 1440, 1680]
    assert [e.duration_tick for e in events] == [480, 960, 240, 120]


def test_build_note_events_empty():
    assert build_note_events([]) == []


def test_write_midi_file_empty():
    data = write_midi_file([], tempo_bpm=120, ticks_per_beat=480)
    assert isinstance(data, (bytes, bytearray))
    assert b"MThd" in data


def test_write_midi_file_orders_note_off_first():
    events = [
        MidiEvent(note=60, start_tick=0, duration_tick=480),
        MidiEvent(note=62, start_tick=480, duration_tick=480),
    ]
    data = write_midi_file(events, tempo_bpm=90, ticks_per_beat=480)
    midi_file = mido.MidiFile(file=io.BytesIO(data))
    messages = [m for m in midi_file.tracks[0] if not m.is_meta]
    assert [(m.type, m.note, m.time) for m in messages] == [
        ("note_on", 60, 0),
        ("note_off", 60, 480),
        ("note_on", 62, 0),
        ("note_off", 62, 480),
    ]
    tempo = next(m for m in midi_file.tracks[0] if m.type == "set_tempo")
    assert tempo.tempo == mido.bpm2tempo(90)


def test_read_note_ons_recovers_pitches():
    notes = [NoteEvent(name=n, octave=4) for n in ("E", "F", "G", "A")]
    assert read_note_ons(notes_to_midi(notes)) == [64, 65, 67, 69]
