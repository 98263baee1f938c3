import pytest

from score_recognition.models import MidiEvent, NoteCandidate, NoteEvent, StaffGroup


@pytest.fixture
def valid_note():
    return NoteEvent(name="F#", octave=4, duration="eighth", measure=2, x=0.5, y=0.25)


@pytest.fixture
def valid_group():
    return StaffGroup(
        lines_y=[10, 20, 30, 40, 50], spacing=10.0, x_start=5, x_end=104
    )


@pytest.fixture
def valid_candidate():
    # 12×10 box
    return NoteCandidate(
        min_x=10,
        min_y=20,
        max_x=21,
        max_y=29,
        area=90.0,
        perimeter=36.0,
        cx=15.5,
        cy=24.5,
    )


@pytest.fixture
def valid_midievent():
    return MidiEvent(note=60, start_tick=0, duration_tick=1)
