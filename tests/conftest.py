import cv2
import numpy as np
import pytest

from score_recognition.models import NoteEvent, StaffGroup


SPACING = 12
STAFF_TOPS = (80, 260)
PAGE_SHAPE = (400, 640)


def _draw_staff(image, top, x0=40, x1=600):
    for i in range(5):
        y = top + i * SPACING
        image[y : y + 2, x0 : x1 + 1] = 0


def _ellipse_mask(shape, cx, cy, a, b, inner=None):
    ys, xs = np.mgrid[: shape[0], : shape[1]]
    r2 = ((xs - cx) / a) ** 2 + ((ys - cy) / b) ** 2
    mask = r2 <= 1.0
    if inner is not None:
        mask &= r2 >= inner
    return mask


@pytest.fixture
def small_rgb_image():
    # 2×2 RGB image: red, green, blue, black
    img = np.array(
        [[[255, 0, 0], [0, 255, 0]], [[0, 0, 255], [0, 0, 0]]], dtype=np.uint8
    )
    return img


@pytest.fixture
def score_page():
    """Two five-line staves with ten quarter-note heads each.

    The first staff climbs from E4 to G5 one step at a time; the second
    descends from F5 to D4. A bar line splits each staff in the middle.

    Returns:
        (RGB image, expected NoteEvents in reading order)
    """
    h, w = PAGE_SHAPE
    image = np.full((h, w, 3), 255, dtype=np.uint8)
    for top in STAFF_TOPS:
        _draw_staff(image, top)
        image[top : top + 4 * SPACING + 2, 330:332] = 0

    names = [
        ("E", 4), ("F", 4), ("G", 4), ("A", 4), ("B", 4),
        ("C", 5), ("D", 5), ("E", 5), ("F", 5), ("G", 5),
        ("F", 5), ("E", 5), ("D", 5), ("C", 5), ("B", 4),
        ("A", 4), ("G", 4), ("F", 4), ("E", 4), ("D", 4),
    ]
    steps = list(range(10)) + list(range(8, -2, -1))
    for i, step in enumerate(steps):
        bottom = STAFF_TOPS[i // 10] + 4 * SPACING
        center = (100 + 50 * (i % 10), bottom - step * SPACING // 2)
        cv2.ellipse(image, center, (8, 6), 0, 0, 360, (0, 0, 0), -1)

    expected = [
        NoteEvent(name=name, octave=octave, measure=1 + i // 4)
        for i, (name, octave) in enumerate(names)
    ]
    return image, expected


@pytest.fixture
def staff_group():
    # one-pixel lines at rows 50, 62, 74, 86, 98 spanning columns 20..279
    return StaffGroup(
        lines_y=[50.0, 62.0, 74.0, 86.0, 98.0], spacing=12.0, x_start=20, x_end=279
    )


@pytest.fixture
def staff_mask(staff_group):
    """Binary page containing only the lines of `staff_group`."""
    binary = np.zeros((160, 300), dtype=bool)
    for y in staff_group.lines_y:
        binary[int(y), staff_group.x_start : staff_group.x_end + 1] = True
    return binary


@pytest.fixture
def head_factory():
    """Build boolean note-head masks: filled or hollow ellipses 15×11."""

    def make(shape, cx, cy, hollow=False):
        return _ellipse_mask(shape, cx, cy, 7.4, 5.4, 0.75 if hollow else None)

    return make
