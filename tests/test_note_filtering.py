import numpy as np
import pytest

from score_recognition.models import NoteCandidate, ProcessingOptions
from score_recognition.note_filtering import (
    analytical_score,
    apply_analytical_filter,
    band_score,
    dedupe_by_center_distance,
    dedupe_by_slot,
    slot_score,
    step_proximity,
)


def make_candidate(cx, cy, w=12, h=10, area=90.0):
    x0, y0 = int(cx - w // 2), int(cy - h // 2)
    return NoteCandidate(
        min_x=x0,
        min_y=y0,
        max_x=x0 + w - 1,
        max_y=y0 + h - 1,
        area=area,
        perimeter=36.0,
        cx=cx,
        cy=cy,
    )


def test_band_score():
    assert band_score(1.0, 0.5, 1.5, 1.0) == 1.0
    assert band_score(2.0, 0.5, 1.5, 1.0) == pytest.approx(0.5)
    assert band_score(-1.0, 0.5, 1.5, 1.0) == 0.0


def test_step_proximity(staff_group):
    assert step_proximity(98.0, staff_group) == pytest.approx(1.0)
    assert step_proximity(95.0, staff_group) == pytest.approx(0.0)
    assert step_proximity(96.5, staff_group) == pytest.approx(0.5)
    assert step_proximity(50.0, None) == 0.0


def test_center_distance_dedupe_keeps_largest():
    small = make_candidate(100, 74, area=90.0)
    large = make_candidate(102, 75, area=110.0)
    far = make_candidate(140, 74)
    kept = dedupe_by_center_distance([small, large, far], 12)
    assert kept == [large, far]


def test_dedupe_never_adds_candidates(staff_group):
    rng = np.random.default_rng(7)
    candidates = [
        make_candidate(
            float(rng.uniform(40, 260)),
            float(rng.uniform(50, 98)),
            area=float(rng.uniform(60, 140)),
        )
        for _ in range(40)
    ]
    by_center = dedupe_by_center_distance(candidates, 12)
    by_slot = dedupe_by_slot(by_center, [staff_group], 12)
    assert len(by_center) <= len(candidates)
    assert len(by_slot) <= len(by_center)
    assert all(c in candidates for c in by_slot)


def test_slot_dedupe_keeps_best_score(staff_group):
    on_step = make_candidate(150, 74)
    off_step = make_candidate(153, 77)
    other_slot = make_candidate(200, 74)
    kept = dedupe_by_slot([off_step, on_step, other_slot], [staff_group], 12)
    assert kept == [on_step, other_slot]
    assert slot_score(on_step, staff_group, 12) > slot_score(off_step, staff_group, 12)


def test_analytical_score_range(staff_group):
    head = make_candidate(150, 74)
    assert analytical_score(head, staff_group, 12) == pytest.approx(5.0)
    assert 0.0 <= analytical_score(make_candidate(150, 77, w=40, h=3), None, 12) < 2.0


def test_analytical_filter_strength(staff_group):
    head = make_candidate(150, 74)
    stroke = make_candidate(200, 74, w=40, h=3, area=100.0)
    candidates = [head, stroke]

    lenient = ProcessingOptions(analytical_filter_strength=0.0)
    assert apply_analytical_filter(candidates, [staff_group], lenient, 12) == candidates

    strict = ProcessingOptions(analytical_filter_strength=1.0)
    assert apply_analytical_filter(candidates, [staff_group], strict, 12) == [head]


def test_analytical_filter_per_staff_override(staff_group):
    stroke = make_candidate(200, 74, w=40, h=3, area=100.0)
    options = ProcessingOptions(
        analytical_filter_strength=1.0, staff_analytical_strength=(0.0,)
    )
    assert apply_analytical_filter([stroke], [staff_group], options, 12) == [stroke]
