"""Pitch resolution for detected note heads.

Pitch is measured in diatonic steps above the bottom staff line: every half
spacing up the page is one step through the natural cycle C D E F G A B.
The bottom line of a treble staff is E4, so step 0 is E4, step 1 F4 and
step -2 C4 (one ledger line below).

Two resolvers are available. The simple one rounds the centroid offset
from the bottom line. The line-stripe resolver re-estimates the staff lines
next to the head, because lines in a photograph are rarely straight, and
settles heads that sit close to a line with an ink-band test and a
background-connectivity test.
"""

import math

import numpy as np

from score_recognition.image_processing import flood_fill
from score_recognition.models import NoteCandidate, StaffGroup
from score_recognition.staff import line_row


NOTE_CYCLE = ("C", "D", "E", "F", "G", "A", "B")
BOTTOM_LINE_INDEX = 2  # E in NOTE_CYCLE
BOTTOM_LINE_OCTAVE = 4


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def pitch_for_step(step: int) -> tuple[str, int]:
    """Map a step above the bottom line to a (letter, octave) pair.

    Examples:
        >>> pitch_for_step(0)
        ('E', 4)
        >>> pitch_for_step(-2)
        ('C', 4)
        >>> pitch_for_step(10)
        ('A', 5)
    """
    index = BOTTOM_LINE_INDEX + step
    return NOTE_CYCLE[index % 7], BOTTOM_LINE_OCTAVE + index // 7


def step_for_pitch(name: str, octave: int) -> int:
    """Inverse of `pitch_for_step` for natural note names."""
    index = NOTE_CYCLE.index(name[0]) + (octave - BOTTOM_LINE_OCTAVE) * 7
    return index - BOTTOM_LINE_INDEX


def y_for_step(group: StaffGroup, step: int) -> float:
    """Row of the centroid of a head sitting exactly on `step`."""
    return group.bottom - step * group.spacing / 2.0


def simple_step(cy: float, group: StaffGroup) -> int:
    """Steps above the bottom line, rounding the half-spacing offset."""
    return round_half_up((group.bottom - cy) / (group.spacing / 2.0))


def local_line_positions(
    binary: np.ndarray, candidate: NoteCandidate, group: StaffGroup
) -> list[float]:
    """Re-estimate the five line rows in a window around one head.

    For each line the densest row within ±max(2, 0.35·spacing) is searched
    over the columns within 2.5 spacings of the head, skipping the head's
    own columns. Rows tied for the maximum report their mean. A line with
    no ink in the window keeps its global position.
    """
    h, w = binary.shape
    s = group.spacing
    x0 = max(0, int(math.floor(candidate.cx - 2.5 * s)))
    x1 = min(w, int(math.ceil(candidate.cx + 2.5 * s)) + 1)
    columns = np.zeros(w, dtype=bool)
    columns[x0:x1] = True
    columns[max(0, candidate.min_x) : candidate.max_x + 1] = False
    if not columns.any():
        return list(group.lines_y)

    reach = max(2, round_half_up(0.35 * s))
    lines = []
    for y in group.lines_y:
        row = line_row(y)
        y0 = max(0, row - reach)
        y1 = min(h, row + reach + 1)
        if y1 <= y0:
            lines.append(y)
            continue
        density = binary[y0:y1][:, columns].sum(axis=1)
        peak = density.max()
        if peak <= 0:
            lines.append(y)
            continue
        best_rows = np.nonzero(density == peak)[0] + y0
        lines.append(float(best_rows.mean()))
    return lines


def solid_band(
    binary: np.ndarray, candidate: NoteCandidate, row: int, min_height: float
) -> bool:
    """Whether at least half-full ink rows extend `min_height` above and below `row`."""
    h = binary.shape[0]
    x0 = max(0, candidate.min_x)
    x1 = candidate.max_x + 1
    width = max(1, x1 - x0)

    def run(direction: int) -> int:
        length = 0
        y = row + 2 * direction
        while 0 <= y < h and binary[y, x0:x1].sum() * 2 >= width:
            length += 1
            y += direction
        return length

    return run(-1) >= min_height and run(1) >= min_height


def side_is_open(
    binary: np.ndarray, cx: float, row: int, spacing: float, direction: int
) -> bool:
    """Whether background crosses a thin band beside a line from edge to edge.

    The band covers rows 2 to `pad` pixels above (`direction=-1`) or below
    (`direction=1`) the line and `max(3, spacing/3)` pixels either side of
    the head centre. Background that connects the band's left edge to its
    right edge means no head occupies that side.
    """
    h, w = binary.shape
    pad = max(2, round_half_up(spacing / 3.0))
    half_width = max(3, round_half_up(spacing / 3.0))
    if direction < 0:
        y0, y1 = row - pad, row - 2
    else:
        y0, y1 = row + 2, row + pad
    y0, y1 = max(0, y0), min(h - 1, y1)
    x0 = max(0, round_half_up(cx) - half_width)
    x1 = min(w - 1, round_half_up(cx) + half_width)
    if y1 < y0 or x1 <= x0:
        return True

    background = ~binary[y0 : y1 + 1, x0 : x1 + 1]
    seeds = np.zeros_like(background)
    seeds[:, 0] = True
    reached = flood_fill(background, seeds)
    return bool(reached[:, -1].any())


def refined_step(
    binary: np.ndarray, candidate: NoteCandidate, group: StaffGroup
) -> int:
    """Steps above the bottom line using locally re-estimated staff lines.

    Args:
        binary: Full binary mask, staff lines included.
        candidate: The note head.
        group: The staff the head belongs to.

    Returns:
        Diatonic step above the bottom line.
    """
    s = group.spacing
    half = s / 2.0
    lines = local_line_positions(binary, candidate, group)
    cy = candidate.cy

    k = int(np.argmin([abs(cy - y) for y in lines]))
    d = cy - lines[k]
    base = (4 - k) * 2

    # outside the staff: prefer the ledger position over an interior gap
    if k == 0 and d < -s / 4.0:
        return base + max(1, round_half_up(-d / half))
    if k == 4 and d > s / 4.0:
        return base - max(1, round_half_up(d / half))
    if abs(d) > s / 4.0:
        return base + round_half_up(-d / half)

    row = line_row(lines[k])
    solid = solid_band(binary, candidate, row, max(2.0, s / 4.0))
    above_open = side_is_open(binary, candidate.cx, row, s, -1)
    below_open = side_is_open(binary, candidate.cx, row, s, 1)

    if solid and not above_open and not below_open:
        return base
    if above_open != below_open:
        # background crossing one side marks the gap the head sits in
        return base + 1 if above_open else base - 1
    return base + round_half_up(-d / half)
