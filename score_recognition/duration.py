"""Duration classification from the ink around a note head.

A head is hollow (whole or half) when less than 45% of its bounding box is
ink. A stem is a vertical run next to the head noticeably longer than the
head itself. Flags are short horizontal strokes hanging from the far end of
the stem: three ink rows make one flag (eighth), six make two (sixteenth).
Features are read from the symbols-only mask before noise suppression,
since the denoising kernel erases thin stems.
"""

import math

import numpy as np

from score_recognition.image_processing import longest_run, true_runs
from score_recognition.models import NoteCandidate


HOLLOW_FILL = 0.45


def is_hollow(symbol_mask: np.ndarray, candidate: NoteCandidate) -> bool:
    """Whether less than 45% of the head's bounding box is ink."""
    h, w = symbol_mask.shape
    x0, x1 = max(0, candidate.min_x), min(w - 1, candidate.max_x)
    y0, y1 = max(0, candidate.min_y), min(h - 1, candidate.max_y)
    box = symbol_mask[y0 : y1 + 1, x0 : x1 + 1]
    if box.size == 0:
        return False
    return float(box.mean()) < HOLLOW_FILL


def find_stem(
    symbol_mask: np.ndarray, candidate: NoteCandidate, spacing: int
) -> tuple[int, int, int] | None:
    """Locate a stem attached to a note head.

    Columns within half a spacing of the head are scanned over two spacings
    above and below it for a vertical run of at least
    `max(spacing, head height + 0.6 * spacing)` pixels.

    Args:
        symbol_mask: Symbols-only mask before noise suppression.
        candidate: The note head.
        spacing: Staff spacing in pixels.

    Returns:
        (x, top, bottom) of the stem, or None when fewer than two columns
        qualify.
    """
    h, w = symbol_mask.shape
    pad = max(2, spacing // 2)
    x0 = max(0, candidate.min_x - pad)
    x1 = min(w - 1, candidate.max_x + pad)
    y0 = max(0, candidate.min_y - spacing * 2)
    y1 = min(h - 1, candidate.max_y + spacing * 2)
    min_run = max(float(spacing), candidate.height + 0.6 * spacing)

    columns = []
    for x in range(x0, x1 + 1):
        runs = true_runs(symbol_mask[y0 : y1 + 1, x])
        start, end = max(runs, key=lambda r: r[1] - r[0], default=(0, 0))
        if end - start >= min_run:
            columns.append((x, y0 + start, y0 + end - 1))

    if len(columns) < 2:
        return None
    stem_x = int(round(float(np.mean([c[0] for c in columns]))))
    top = min(c[1] for c in columns)
    bottom = max(c[2] for c in columns)
    return stem_x, top, bottom


def count_flags(
    symbol_mask: np.ndarray,
    candidate: NoteCandidate,
    stem: tuple[int, int, int],
    spacing: int,
) -> int:
    """Count flags at the far end of a stem (0, 1 or 2).

    The search window starts at the stem, reaches two spacings to the right
    and one and a half spacings along the stem from its far end, stopping
    short of the head.
    """
    h, w = symbol_mask.shape
    stem_x, top, bottom = stem
    reach = int(math.ceil(1.5 * spacing))
    if top < candidate.min_y:
        y0, y1 = top, min(top + reach, candidate.min_y - 1)
    else:
        y0, y1 = max(bottom - reach, candidate.max_y + 1), bottom
    x0 = max(0, stem_x)
    x1 = min(w - 1, stem_x + 2 * spacing)
    y0, y1 = max(0, y0), min(h - 1, y1)
    if y1 < y0 or x1 < x0:
        return 0

    min_run = max(3, spacing // 2)
    window = symbol_mask[y0 : y1 + 1, x0 : x1 + 1]
    rows = sum(1 for row in window if longest_run(row) >= min_run)
    if rows >= 6:
        return 2
    if rows >= 3:
        return 1
    return 0


def resolve_duration(hollow: bool, has_stem: bool, flags: int) -> str:
    """Combine head, stem and flag features into a note value."""
    if hollow and not has_stem:
        return "whole"
    if hollow:
        return "half"
    if not has_stem:
        return "quarter"
    if flags >= 2:
        return "sixteenth"
    if flags == 1:
        return "eighth"
    return "quarter"


def classify_duration(
    symbol_mask: np.ndarray, candidate: NoteCandidate, spacing: int
) -> str:
    """Duration name for one note head."""
    hollow = is_hollow(symbol_mask, candidate)
    stem = find_stem(symbol_mask, candidate, spacing)
    flags = count_flags(symbol_mask, candidate, stem, spacing) if stem else 0
    return resolve_duration(hollow, stem is not None, flags)
