"""Staff geometry estimation.

Finds the staff-line spacing of a page, the rows that belong to staff lines
and the five-line staff groups those rows form. Every group found on one
page shares the same x-span after normalization, so downstream corridor and
position checks treat all staves alike.
"""

import logging
import math

import numpy as np

from score_recognition.image_processing import true_runs
from score_recognition.models import StaffCorridor, StaffGroup, StaffResult


logger = logging.getLogger(__name__)

DEFAULT_SPACING = 12
MIN_SPACING = 6
MAX_SPACING = 26
MAX_GROUPS = 10
LINES_PER_STAFF = 5


def smooth_rows(counts: np.ndarray) -> np.ndarray:
    """Three-row box filter over a per-row profile."""
    return np.convolve(counts.astype(np.float64), np.ones(3) / 3.0, mode="same")


def estimate_spacing(binary: np.ndarray) -> int:
    """Estimate the distance between adjacent staff lines.

    Peaks of the smoothed row ink density mark staff lines; the spacing is
    the median distance between consecutive peaks.

    Args:
        binary: H×W boolean ink mask.

    Returns:
        Spacing in pixels clamped to [6, 26], or 12 when fewer than two
        peaks are found.
    """
    density = smooth_rows(binary.sum(axis=1))
    if density.size < 3 or density.max() <= 0:
        return DEFAULT_SPACING

    threshold = density.max() * 0.55
    peaks: list[int] = []
    for y in range(1, density.size - 1):
        value = density[y]
        if value < threshold or value < density[y - 1] or value <= density[y + 1]:
            continue
        if peaks and y - peaks[-1] <= 2:
            continue
        peaks.append(y)

    if len(peaks) < 2:
        return DEFAULT_SPACING
    spacing = int(math.floor(float(np.median(np.diff(peaks))) + 0.5))
    return max(MIN_SPACING, min(MAX_SPACING, spacing))


def line_mask_from_density(binary: np.ndarray) -> np.ndarray:
    """Mark long horizontal ink runs on the densest rows of the page.

    Rows whose smoothed ink density reaches 68% of the maximum are staff-line
    candidates; on those rows only runs longer than a tenth of the page
    width are kept, so note heads and text do not leak into the mask.
    """
    h, w = binary.shape
    mask = np.zeros((h, w), dtype=bool)
    density = smooth_rows(binary.sum(axis=1))
    if density.size == 0 or density.max() <= 0:
        return mask

    min_run = w / 10.0
    for y in np.nonzero(density >= density.max() * 0.68)[0]:
        for start, end in true_runs(binary[y]):
            if end - start > min_run:
                mask[y, start:end] = True
    return mask


def _line_peaks(energy: np.ndarray, threshold: float, min_gap: int) -> list[float]:
    """Row positions of local maxima of `energy` above `threshold`.

    A plateau of equal rows reports its middle, so a two-pixel line yields
    a half-pixel position.
    """
    peaks: list[float] = []
    last = -min_gap - 1
    size = energy.size
    for y in range(size):
        value = energy[y]
        if value <= threshold:
            continue
        prev = energy[y - 1] if y > 0 else 0
        nxt = energy[y + 1] if y + 1 < size else 0
        if value < prev or value < nxt or y - last < min_gap:
            continue
        end = y
        while end + 1 < size and energy[end + 1] == value:
            end += 1
        peaks.append((y + end) / 2.0)
        last = y
    return peaks


def _x_span(
    line_mask: np.ndarray, top: float, bottom: float, spacing: int
) -> tuple[int, int] | None:
    h = line_mask.shape[0]
    y0 = max(0, int(math.floor(top - spacing)))
    y1 = min(h, int(math.ceil(bottom + spacing)) + 1)
    hits = line_mask[y0:y1].sum(axis=0)
    columns = np.nonzero(hits >= 3)[0]
    if columns.size == 0:
        return None
    return int(columns[0]), int(columns[-1])


def find_staff_groups(line_mask: np.ndarray, spacing: int) -> list[StaffGroup]:
    """Group staff-line rows into five-line staves.

    Windows of five consecutive line peaks are accepted when every gap in
    the window is within tolerance of the window's average gap and the lines
    span more than a third of the page. At most ten groups are returned,
    top to bottom, with normalized x-spans.

    Args:
        line_mask: H×W boolean staff-line mask.
        spacing: Global staff spacing estimate in pixels.

    Returns:
        List of StaffGroup objects, empty if no staff was found.
    """
    h, w = line_mask.shape
    energy = line_mask.sum(axis=1)
    peaks = _line_peaks(energy, w / 4.0, max(2, spacing // 2))

    groups: list[StaffGroup] = []
    i = 0
    while i + LINES_PER_STAFF <= len(peaks) and len(groups) < MAX_GROUPS:
        window = peaks[i : i + LINES_PER_STAFF]
        deltas = np.diff(window)
        avg = float(deltas.mean())
        tolerance = max(1.5, avg * 0.45)
        if np.all(np.abs(deltas - avg) <= tolerance):
            span = _x_span(line_mask, window[0], window[-1], spacing)
            if span is not None and span[1] - span[0] + 1 > w / 3.0:
                groups.append(
                    StaffGroup(
                        lines_y=window, spacing=avg, x_start=span[0], x_end=span[1]
                    )
                )
                i += LINES_PER_STAFF
                continue
        i += 1

    logger.debug(f"Found {len(groups)} staff groups from {len(peaks)} line peaks")
    return normalize_staff_spans(groups)


def normalize_staff_spans(groups: list[StaffGroup]) -> list[StaffGroup]:
    """Give every group the leftmost start and the widest width of the set.

    Args:
        groups: Staff groups as detected.

    Returns:
        New StaffGroup objects with `x_start = min(starts)` and
        `x_end = x_start + max(widths) - 1`. Returns an empty list if
        `groups` is empty.
    """
    if not groups:
        return []
    start = min(g.x_start for g in groups)
    width = max(g.width for g in groups)
    return [
        g.model_copy(update={"x_start": start, "x_end": start + width - 1})
        for g in groups
    ]


def line_row(y: float) -> int:
    """Pixel row of a staff line position, rounding halves down the page."""
    return int(math.floor(y + 0.5))


def build_staff_mask(shape: tuple[int, int], groups: list[StaffGroup]) -> np.ndarray:
    """Rebuild the staff-line mask as three-row bands over each group's x-span."""
    h, w = shape
    mask = np.zeros((h, w), dtype=bool)
    for g in groups:
        x0 = max(0, g.x_start)
        x1 = min(w - 1, g.x_end)
        if x1 < x0:
            continue
        for y in g.lines_y:
            row = line_row(y)
            mask[max(0, row - 1) : min(h, row + 2), x0 : x1 + 1] = True
    return mask


def estimate_staff_rows(line_mask: np.ndarray, groups: list[StaffGroup]) -> int:
    """Number of staves on the page, from groups or by counting line runs."""
    if groups:
        return max(1, min(MAX_GROUPS, len(groups)))
    h, w = line_mask.shape
    threshold = max(8, w // 9)
    dark_rows = line_mask.sum(axis=1) > threshold
    lines = len(true_runs(dark_rows))
    return max(1, min(MAX_GROUPS, lines // LINES_PER_STAFF))


def estimate_barlines(binary: np.ndarray, spacing: int) -> int:
    """Rough bar-line count from sampled columns with long vertical ink runs."""
    h, w = binary.shape
    min_run = max(spacing * 3, h // 10)
    step = max(2, w // 120)
    bars = 0
    for x in range(0, w, step):
        column_runs = true_runs(binary[:, x])
        if any(end - start >= min_run for start, end in column_runs):
            bars += 1
    return max(2, bars // 2)


def build_staff_result(line_mask: np.ndarray, spacing: int) -> StaffResult:
    """Turn a staff-line mask into groups, a rebuilt mask and a row count."""
    groups = find_staff_groups(line_mask, spacing)
    return StaffResult(
        spacing=spacing,
        groups=groups,
        staff_mask=build_staff_mask(line_mask.shape, groups),
        staff_rows=estimate_staff_rows(line_mask, groups),
    )


def staff_corridors(
    groups: list[StaffGroup], width: int, height: int
) -> list[StaffCorridor]:
    """Normalized rectangles covering each staff and two spacings around it."""

    def norm(value: float, size: int) -> float:
        return max(0.0, min(1.0, value / max(1, size - 1)))

    return [
        StaffCorridor(
            left=norm(g.x_start, width),
            top=norm(g.top - 2.0 * g.spacing, height),
            right=norm(g.x_end, width),
            bottom=norm(g.bottom + 2.0 * g.spacing, height),
        )
        for g in groups
    ]


def nearest_staff_index(
    cx: float, cy: float, groups: list[StaffGroup], margin_factor: float = 0.0
) -> int | None:
    """Index of the vertically nearest group whose x-span covers `cx`.

    Args:
        cx: Candidate centroid x.
        cy: Candidate centroid y.
        groups: Staff groups.
        margin_factor: When positive, the centroid must also keep
            `max(2, margin_factor * spacing)` pixels from both span ends.

    Returns:
        Group index, or None if no group's span covers `cx`.
    """
    best = None
    best_distance = float("inf")
    for index, g in enumerate(groups):
        margin = max(2.0, margin_factor * g.spacing) if margin_factor > 0 else 0.0
        if cx < g.x_start + margin or cx > g.x_end - margin:
            continue
        distance = abs(cy - g.center)
        if distance < best_distance:
            best, best_distance = index, distance
    return best


def nearest_group(
    cx: float, cy: float, groups: list[StaffGroup]
) -> tuple[int, StaffGroup | None]:
    """(index, group) of the staff covering `cx`, or (-1, None)."""
    index = nearest_staff_index(cx, cy, groups)
    if index is None:
        return -1, None
    return index, groups[index]
