import math

import pytest
from pydantic import ValidationError

from score_recognition.models import MidiEvent, NoteEvent, StaffCorridor, StaffGroup


def test_note_event_fields(valid_note):
    assert valid_note.pitch_name == "F#4"
    assert valid_note.duration == "eighth"
    assert valid_note.measure == 2


def test_note_event_defaults():
    note = NoteEvent(name="C", octave=4)
    assert note.duration == "quarter"
    assert note.measure == 1
    assert (note.x, note.y) == (0.0, 0.0)


def test_note_event_is_frozen(valid_note):
    with pytest.raises(ValidationError):
        valid_note.octave = 5


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "H", "octave": 4},
        {"name": "Bb", "octave": 4},
        {"name": "C", "octave": 10},
        {"name": "C", "octave": 4, "duration": "dotted"},
        {"name": "C", "octave": 4, "measure": 0},
        {"name": "C", "octave": 4, "x": 1.5},
        {"name": "C", "octave": 4, "y": -0.1},
    ],
)
def test_note_event_validation_raises(kwargs):
    with pytest.raises(ValidationError):
        NoteEvent(**kwargs)


def test_staff_group_properties(valid_group):
    assert valid_group.top == 10.0
    assert valid_group.bottom == 50.0
    assert valid_group.center == 30.0
    assert valid_group.width == 100


@pytest.mark.parametrize(
    "lines",
    [[10, 20, 30, 40], [10, 20, 20, 40, 50], [50, 40, 30, 20, 10]],
)
def test_staff_group_rejects_bad_lines(lines):
    with pytest.raises(ValidationError):
        StaffGroup(lines_y=lines, spacing=10.0)


def test_staff_corridor_bounds():
    StaffCorridor(left=0.0, top=0.1, right=1.0, bottom=0.9)
    with pytest.raises(ValidationError):
        StaffCorridor(left=-0.1, top=0.1, right=1.0, bottom=0.9)


def test_note_candidate_geometry(valid_candidate):
    c = valid_candidate
    assert c.width == 12
    assert c.height == 10
    assert c.aspect == pytest.approx(1.2)
    assert c.fill == pytest.approx(90.0 / 120.0)
    assert c.circularity == pytest.approx(4 * math.pi * 90.0 / 36.0**2)


def test_note_candidate_zero_perimeter(valid_candidate):
    c = valid_candidate.model_copy(update={"perimeter": 0.0})
    assert c.circularity == 0.0


def test_midievent_valid(valid_midievent):
    assert valid_midievent.note == 60
    assert valid_midievent.start_tick == 0
    assert valid_midievent.duration_tick == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"note": -1, "start_tick": 0, "duration_tick": 1},
        {"note": 128, "start_tick": 0, "duration_tick": 1},
        {"note": 60, "start_tick": -1, "duration_tick": 1},
        {"note": 60, "start_tick": 0, "duration_tick": 0},
    ],
)
def test_midievent_validation_raises(kwargs):
    with pytest.raises(ValidationError):
        MidiEvent(**kwargs)
