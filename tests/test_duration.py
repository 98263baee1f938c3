import numpy as np
import pytest

from score_recognition.duration import (
    classify_duration,
    count_flags,
    find_stem,
    is_hollow,
    resolve_duration,
)
from score_recognition.note_detection import find_candidates

SHAPE = (120, 120)
SPACING = 12


@pytest.fixture
def note(head_factory):
    """Build a symbol mask with a head at (50, 60) plus optional stem and flags."""

    def make(hollow=False, stem=False, flags=0):
        head = head_factory(SHAPE, 50, 60, hollow=hollow)
        (candidate,) = find_candidates(head_factory(SHAPE, 50, 60))
        mask = head.copy()
        if stem:
            # two pixels wide, rising from the head's right edge
            mask[32:61, 56:58] = True
        for i in range(flags):
            top = 32 + 5 * i
            mask[top : top + 3, 57:70] = True
        return mask, candidate

    return make


@pytest.mark.parametrize(
    "hollow, has_stem, flags, expected",
    [
        (True, False, 0, "whole"),
        (True, True, 0, "half"),
        (False, False, 0, "quarter"),
        (False, True, 0, "quarter"),
        (False, True, 1, "eighth"),
        (False, True, 2, "sixteenth"),
    ],
)
def test_resolve_duration(hollow, has_stem, flags, expected):
    assert resolve_duration(hollow, has_stem, flags) == expected


def test_is_hollow(note):
    mask, candidate = note(hollow=True)
    assert is_hollow(mask, candidate)
    mask, candidate = note()
    assert not is_hollow(mask, candidate)


def test_find_stem(note):
    mask, candidate = note()
    assert find_stem(mask, candidate, SPACING) is None

    mask, candidate = note(stem=True)
    stem = find_stem(mask, candidate, SPACING)
    assert stem is not None
    x, top, bottom = stem
    assert x in (56, 57)
    assert top == 32
    assert bottom >= 60


def test_single_pixel_stem_is_ignored(note):
    mask, candidate = note()
    mask[32:61, 56] = True
    assert find_stem(mask, candidate, SPACING) is None


@pytest.mark.parametrize("flags", [0, 1, 2])
def test_count_flags(note, flags):
    mask, candidate = note(stem=True, flags=flags)
    stem = find_stem(mask, candidate, SPACING)
    assert count_flags(mask, candidate, stem, SPACING) == flags


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({"hollow": True}, "whole"),
        ({"hollow": True, "stem": True}, "half"),
        ({}, "quarter"),
        ({"stem": True}, "quarter"),
        ({"stem": True, "flags": 1}, "eighth"),
        ({"stem": True, "flags": 2}, "sixteenth"),
    ],
)
def test_classify_duration(note, kwargs, expected):
    mask, candidate = note(**kwargs)
    assert classify_duration(mask, candidate, SPACING) == expected


def test_is_hollow_outside_mask():
    mask = np.zeros((10, 10), dtype=bool)
    block = np.pad(np.ones((3, 3), dtype=bool), ((2, 5), (2, 5)))
    (candidate,) = find_candidates(block)
    assert is_hollow(mask, candidate)
