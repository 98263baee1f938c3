"""Deduplication and analytical scoring of note-head candidates.

Geometric filtering lets through fragments of one head, beams, slurs and
text blobs that happen to be head-sized. The passes here never add
candidates: center-distance and slot dedupe collapse duplicates, and the
analytical filter drops survivors whose shape and position do not look
like a note head.
"""

import math

from score_recognition.models import NoteCandidate, ProcessingOptions, StaffGroup
from score_recognition.pitch import round_half_up
from score_recognition.staff import nearest_group


def band_score(value: float, lo: float, hi: float, falloff: float) -> float:
    """1 inside [lo, hi], decaying linearly to 0 over `falloff` outside it."""
    if lo <= value <= hi:
        return 1.0
    distance = lo - value if value < lo else value - hi
    return max(0.0, 1.0 - distance / falloff)


def step_proximity(cy: float, group: StaffGroup | None) -> float:
    """1 when the centroid sits exactly on a staff step, 0 halfway between steps."""
    if group is None:
        return 0.0
    half = group.spacing / 2.0
    offset = (group.bottom - cy) / half
    distance = abs(offset - round_half_up(offset))
    return max(0.0, 1.0 - 2.0 * distance)


def slot_score(
    candidate: NoteCandidate, group: StaffGroup | None, spacing: float
) -> float:
    """Ranking used to keep one candidate per horizontal slot."""
    c = candidate
    s2 = spacing * spacing
    area = band_score(c.area / s2, 0.6, 1.6, 1.0)
    aspect = band_score(c.aspect, 0.9, 1.6, 0.8)
    # a filled ellipse covers pi/4 of its bounding box
    compactness = max(0.0, 1.0 - abs(c.fill - math.pi / 4.0) / (math.pi / 4.0))
    return area + aspect + step_proximity(c.cy, group) + compactness


def analytical_score(
    candidate: NoteCandidate, group: StaffGroup | None, spacing: float
) -> float:
    """Composite 0-5 plausibility score of one candidate.

    Sums five components in [0, 1]: aspect ratio, area, largest side,
    smallest side and staff-step proximity, each measured against the
    staff spacing.
    """
    c = candidate
    longest = max(c.width, c.height) / spacing
    shortest = min(c.width, c.height) / spacing
    return (
        band_score(c.aspect, 0.7, 1.9, 0.6)
        + band_score(c.area / (spacing * spacing), 0.35, 2.2, 1.0)
        + band_score(longest, 0.6, 2.0, 0.8)
        + band_score(shortest, 0.35, 1.5, 0.5)
        + step_proximity(c.cy, group)
    )


def dedupe_by_center_distance(
    candidates: list[NoteCandidate], spacing: float
) -> list[NoteCandidate]:
    """Greedily keep the largest candidates whose centres are far enough apart.

    Args:
        candidates: Candidates in any order.
        spacing: Staff spacing in pixels.

    Returns:
        Kept candidates in area-descending order; never more than were given.
    """
    radius = max(2.0, spacing * 0.45)
    kept: list[NoteCandidate] = []
    for c in sorted(candidates, key=lambda c: c.area, reverse=True):
        if all(math.hypot(c.cx - k.cx, c.cy - k.cy) >= radius for k in kept):
            kept.append(c)
    return kept


def dedupe_by_slot(
    candidates: list[NoteCandidate], groups: list[StaffGroup], spacing: float
) -> list[NoteCandidate]:
    """Keep the best-scoring candidate per (staff, horizontal slot) bucket.

    Slots are `max(7, 1.25 * spacing)` pixels wide. Buckets are returned in
    the order they were first seen.
    """
    slot_width = max(7.0, spacing * 1.25)
    best: dict[tuple[int, int], tuple[float, NoteCandidate]] = {}
    for c in candidates:
        index, group = nearest_group(c.cx, c.cy, groups)
        key = (index, round_half_up(c.cx / slot_width))
        score = slot_score(c, group, spacing)
        previous = best.get(key)
        if previous is None or (score, c.area) > (previous[0], previous[1].area):
            best[key] = (score, c)
    return [c for _, c in best.values()]


def apply_analytical_filter(
    candidates: list[NoteCandidate],
    groups: list[StaffGroup],
    options: ProcessingOptions,
    spacing: float,
) -> list[NoteCandidate]:
    """Drop candidates scoring below `4 * strength` for their staff.

    The strength is `analytical_filter_strength` unless the options carry
    an override for the candidate's staff index.
    """
    kept = []
    for c in candidates:
        index, group = nearest_group(c.cx, c.cy, groups)
        threshold = 4.0 * options.analytical_strength_for(index)
        if analytical_score(c, group, spacing) >= threshold:
            kept.append(c)
    return kept
