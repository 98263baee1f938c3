"""Note-head candidate detection.

This module turns a denoised symbols-only mask into note-head candidates
and runs them through the geometric filter cascade. Each stage of the
cascade counts its rejections in a NoteDetectionDiagnostics record so a
run that finds too few notes can report which test discarded them.
"""

import logging

import numpy as np

from score_recognition.image_processing import connected_components, fill_holes
from score_recognition.models import (
    DetectionProfile,
    DetectionResult,
    NoteCandidate,
    NoteDetectionDiagnostics,
    ProcessingOptions,
    StaffGroup,
    StaffResult,
)
from score_recognition.note_filtering import (
    apply_analytical_filter,
    dedupe_by_center_distance,
    dedupe_by_slot,
)
from score_recognition.staff import nearest_staff_index


logger = logging.getLogger(__name__)


def candidate_from_pixels(pixels: np.ndarray) -> NoteCandidate:
    """Measure one connected component given as (y, x) pixel coordinates.

    Holes are filled before measuring area and perimeter so a hollow head
    has the same area as a filled one. The centroid is the mean of the ink
    pixels themselves.
    """
    ys = pixels[:, 0]
    xs = pixels[:, 1]
    min_x, max_x = int(xs.min()), int(xs.max())
    min_y, max_y = int(ys.min()), int(ys.max())

    local = np.zeros((max_y - min_y + 1, max_x - min_x + 1), dtype=bool)
    local[ys - min_y, xs - min_x] = True
    filled = fill_holes(local)

    padded = np.pad(filled, 1, constant_values=False)
    interior = (
        padded[:-2, 1:-1] & padded[2:, 1:-1] & padded[1:-1, :-2] & padded[1:-1, 2:]
    )
    perimeter = int((filled & ~interior).sum())

    return NoteCandidate(
        min_x=min_x,
        min_y=min_y,
        max_x=max_x,
        max_y=max_y,
        area=float(filled.sum()),
        perimeter=float(perimeter),
        cx=float(xs.mean()),
        cy=float(ys.mean()),
    )


def find_candidates(mask: np.ndarray) -> list[NoteCandidate]:
    """Extract candidates from 8-connected components of a boolean mask."""
    return [candidate_from_pixels(p) for p in connected_components(mask)]


def staff_position(
    cx: float, cy: float, groups: list[StaffGroup], profile: DetectionProfile
) -> int | None:
    """Group index if the centroid sits in an allowed staff position, else None."""
    index = nearest_staff_index(cx, cy, groups, profile.x_margin_factor)
    if index is None:
        return None
    g = groups[index]
    reach = profile.vertical_reach * g.spacing
    if cy < g.top - reach or cy > g.bottom + reach:
        return None
    return index


def rejection_reason(
    candidate: NoteCandidate, groups: list[StaffGroup], profile: DetectionProfile
) -> str | None:
    """Name of the diagnostics counter for the first failed test, or None."""
    c = candidate
    if not profile.min_area <= c.area <= profile.max_area:
        return "rejected_by_area"
    if (
        c.width < 3
        or c.height < 3
        or c.width > profile.max_width
        or c.height > profile.max_height
    ):
        return "rejected_by_bounds"
    if not (
        profile.min_size <= c.width <= profile.max_size
        and profile.min_size <= c.height <= profile.max_size
    ):
        return "rejected_by_size"
    if not profile.min_aspect <= c.aspect <= profile.max_aspect:
        return "rejected_by_aspect"
    if not profile.min_fill <= c.fill <= profile.max_fill:
        return "rejected_by_fill"
    if c.perimeter <= 0:
        return "rejected_by_perimeter"
    if c.circularity < profile.min_circularity:
        return "rejected_by_circularity"
    if staff_position(c.cx, c.cy, groups, profile) is None:
        return "rejected_by_staff_position"
    return None


def is_gap_sized_blob(
    candidate: NoteCandidate, groups: list[StaffGroup], profile: DetectionProfile
) -> bool:
    """Looser, self-contained test for a head squeezed into a staff gap."""
    c = candidate
    s = profile.spacing
    if not (0.5 * s <= c.width <= 1.8 * s and 0.5 * s <= c.height <= 1.8 * s):
        return False
    if not 0.3 <= c.fill <= 0.98:
        return False
    if not 0.25 * s * s <= c.area <= 2.2 * s * s:
        return False
    return staff_position(c.cx, c.cy, groups, profile) is not None


def filter_candidates(
    candidates: list[NoteCandidate],
    groups: list[StaffGroup],
    profile: DetectionProfile,
    diagnostics: NoteDetectionDiagnostics,
) -> list[NoteCandidate]:
    """Run the geometric filter cascade, counting each rejection once.

    In recall-first mode a rejected candidate that passes the gap-sized
    blob test is re-admitted and counted as rescued instead.
    """
    accepted = []
    for c in candidates:
        reason = rejection_reason(c, groups, profile)
        if reason is None:
            accepted.append(c)
        elif profile.recall_first and is_gap_sized_blob(c, groups, profile):
            diagnostics.rescued_gap_blobs += 1
            accepted.append(c)
        else:
            setattr(diagnostics, reason, getattr(diagnostics, reason) + 1)
    return accepted


def detect_note_heads(
    candidates: list[NoteCandidate],
    staff_result: StaffResult,
    options: ProcessingOptions,
    width: int,
    height: int,
) -> DetectionResult:
    """Filter, deduplicate and score raw candidates into note heads.

    Args:
        candidates: Raw candidates from contours or connected components.
        staff_result: Staff geometry for the page.
        options: Run options.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        DetectionResult with the accepted heads and the rejection counters.
    """
    diagnostics = NoteDetectionDiagnostics()
    groups = staff_result.groups
    spacing = staff_result.spacing
    profile = DetectionProfile.from_options(options, spacing, width, height)

    kept = filter_candidates(candidates, groups, profile, diagnostics)

    deduped = dedupe_by_center_distance(kept, spacing)
    diagnostics.removed_by_center_distance_dedupe = len(kept) - len(deduped)

    slotted = dedupe_by_slot(deduped, groups, spacing)
    diagnostics.removed_by_slot_dedupe = len(deduped) - len(slotted)

    heads = apply_analytical_filter(slotted, groups, options, spacing)
    diagnostics.rejected_by_analytical_filter = len(slotted) - len(heads)
    diagnostics.accepted = len(heads)

    logger.debug(
        f"Note heads: {len(candidates)} candidates, {len(heads)} accepted "
        f"({diagnostics.summary()})"
    )
    return DetectionResult(candidates=heads, diagnostics=diagnostics)
