"""Image preprocessing functions for the score recognition pipeline.

This module provides the numpy implementations used when the OpenCV backend
is unavailable: grayscale conversion, local-mean and Otsu binarization,
binary morphology, neighborhood despeckling, flood filling and 8-connected
component labeling. Every mask handled here is a 2D boolean array where
True marks ink.
"""

import math

import numpy as np


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert an RGB pixel buffer to 8-bit luminance.

    Uses the integer weights (30·R + 59·G + 11·B) // 100 on both pipeline
    variants, so the native and fallback paths start from identical gray
    values.

    Args:
        image: H×W×3 RGB array, H×W×4 RGBA array, or a gray array (H×W,
            H×W×1, or H×W×2 gray plus alpha).

    Returns:
        H×W uint8 grayscale array.
    """
    if image.ndim == 2:
        return image.astype(np.uint8, copy=False)
    if image.shape[2] < 3:
        return image[..., 0].astype(np.uint8)
    rgb = image[..., :3].astype(np.int32)
    gray = (30 * rgb[..., 0] + 59 * rgb[..., 1] + 11 * rgb[..., 2]) // 100
    return gray.astype(np.uint8)


def adaptive_radius(width: int, height: int) -> int:
    """Local-mean window radius for an image of the given size."""
    return max(6, min(width, height) // 24)


def local_mean(gray: np.ndarray, radius: int) -> np.ndarray:
    """Mean gray value over a (2r+1)² window clipped to the image.

    Computed from an integral image, so the cost does not depend on `radius`.
    """
    h, w = gray.shape
    integral = np.zeros((h + 1, w + 1), dtype=np.int64)
    integral[1:, 1:] = gray.astype(np.int64).cumsum(axis=0).cumsum(axis=1)

    rows = np.arange(h)
    cols = np.arange(w)
    y0 = np.clip(rows - radius, 0, h)
    y1 = np.clip(rows + radius + 1, 0, h)
    x0 = np.clip(cols - radius, 0, w)
    x1 = np.clip(cols + radius + 1, 0, w)

    total = (
        integral[y1][:, x1]
        - integral[y0][:, x1]
        - integral[y1][:, x0]
        + integral[y0][:, x0]
    )
    count = (y1 - y0)[:, None] * (x1 - x0)[None, :]
    return total / count


def otsu_threshold(gray: np.ndarray) -> int:
    """Global threshold maximizing between-class variance of the histogram."""
    hist = np.bincount(gray.ravel(), minlength=256).astype(np.float64)
    total = hist.sum()
    if total == 0:
        return 127
    omega = np.cumsum(hist) / total
    mu = np.cumsum(hist * np.arange(256)) / total
    with np.errstate(divide="ignore", invalid="ignore"):
        sigma_b = (mu[-1] * omega - mu) ** 2 / (omega * (1.0 - omega))
    sigma_b[~np.isfinite(sigma_b)] = 0.0
    return int(np.argmax(sigma_b))


def binarize(
    gray: np.ndarray, threshold_offset: int, skip_adaptive: bool = False
) -> np.ndarray:
    """Binarize a grayscale page into an ink mask.

    Args:
        gray: H×W uint8 grayscale image.
        threshold_offset: How much darker than the local mean a pixel must be
            to count as ink.
        skip_adaptive: Use a single Otsu threshold for the whole page.

    Returns:
        H×W boolean mask, True where ink.
    """
    if skip_adaptive:
        return gray <= otsu_threshold(gray)
    h, w = gray.shape
    mean = local_mean(gray, adaptive_radius(w, h))
    return gray.astype(np.float64) < mean - threshold_offset


def _shifted(mask: np.ndarray, dy: int, dx: int, fill: bool) -> np.ndarray:
    """Return out with out[y, x] = mask[y + dy, x + dx], `fill` outside."""
    h, w = mask.shape
    out = np.full_like(mask, fill)
    dst_y = slice(max(0, -dy), min(h, h - dy))
    src_y = slice(max(0, dy), min(h, h + dy))
    dst_x = slice(max(0, -dx), min(w, w - dx))
    src_x = slice(max(0, dx), min(w, w + dx))
    out[dst_y, dst_x] = mask[src_y, src_x]
    return out


def neighborhood_hits(mask: np.ndarray) -> np.ndarray:
    """Count ink pixels in the 3×3 neighborhood of every pixel (self included)."""
    hits = np.zeros(mask.shape, dtype=np.int32)
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            hits += _shifted(mask, dy, dx, False)
    return hits


def despeckle(mask: np.ndarray, min_hits: int) -> np.ndarray:
    """Drop ink pixels with fewer than `min_hits` ink pixels around them.

    Background pixels are never turned into ink.
    """
    return mask & (neighborhood_hits(mask) >= min_hits)


def structuring_element(size: int) -> np.ndarray:
    """Elliptic structuring element laid out row by row like MORPH_ELLIPSE.

    Size 2 gives [[0, 1], [1, 1]] and size 3 gives a cross, so the fallback
    opens and closes with the same footprint as the native path.
    """
    if size <= 1:
        return np.ones((1, 1), dtype=bool)
    r = c = size // 2
    element = np.zeros((size, size), dtype=bool)
    for i in range(size):
        dy = i - r
        if abs(dy) <= r:
            dx = int(round(c * math.sqrt((r * r - dy * dy) / (r * r))))
            element[i, max(c - dx, 0) : min(c + dx + 1, size)] = True
    return element


def _offsets(element: np.ndarray) -> list[tuple[int, int]]:
    ay, ax = element.shape[0] // 2, element.shape[1] // 2
    ys, xs = np.nonzero(element)
    return [(int(y) - ay, int(x) - ax) for y, x in zip(ys, xs)]


def erode(mask: np.ndarray, element: np.ndarray) -> np.ndarray:
    """Keep pixels whose whole element footprint is ink; the border counts as ink."""
    out = np.ones_like(mask, dtype=bool)
    for dy, dx in _offsets(element):
        out &= _shifted(mask, dy, dx, True)
    return out


def dilate(mask: np.ndarray, element: np.ndarray) -> np.ndarray:
    """Minkowski sum of the mask with the element."""
    out = np.zeros_like(mask, dtype=bool)
    for dy, dx in _offsets(element):
        out |= _shifted(mask, -dy, -dx, False)
    return out


def binary_open(mask: np.ndarray, element: np.ndarray) -> np.ndarray:
    """Erode then dilate; removes ink specks the element does not fit into."""
    return dilate(erode(mask, element), element)


def binary_close(mask: np.ndarray, element: np.ndarray) -> np.ndarray:
    """Dilate then erode; fills background gaps narrower than the element."""
    return erode(dilate(mask, element), element)


def flood_fill(passable: np.ndarray, seeds: np.ndarray) -> np.ndarray:
    """Grow `seeds` 4-connected through `passable` pixels until stable."""
    reached = seeds & passable
    while True:
        grown = reached.copy()
        grown[1:, :] |= reached[:-1, :]
        grown[:-1, :] |= reached[1:, :]
        grown[:, 1:] |= reached[:, :-1]
        grown[:, :-1] |= reached[:, 1:]
        grown &= passable
        if np.array_equal(grown, reached):
            return reached
        reached = grown


def fill_holes(mask: np.ndarray) -> np.ndarray:
    """Fill background regions not 4-connected to the border of `mask`."""
    padded = np.pad(mask, 1, constant_values=False)
    seeds = np.zeros_like(padded)
    seeds[0, :] = seeds[-1, :] = seeds[:, 0] = seeds[:, -1] = True
    outside = flood_fill(~padded, seeds)
    return ~outside[1:-1, 1:-1]


def connected_components(mask: np.ndarray) -> list[np.ndarray]:
    """Label 8-connected ink regions.

    Args:
        mask: H×W boolean mask.

    Returns:
        One (N, 2) int array of (y, x) pixel coordinates per component, in
        raster order of each component's first pixel.
    """
    h, w = mask.shape
    visited = np.zeros((h, w), dtype=bool)
    components: list[np.ndarray] = []
    ys, xs = np.nonzero(mask)
    for start_y, start_x in zip(ys.tolist(), xs.tolist()):
        if visited[start_y, start_x]:
            continue
        visited[start_y, start_x] = True
        stack = [(start_y, start_x)]
        pixels = []
        while stack:
            y, x = stack.pop()
            pixels.append((y, x))
            for ny in (y - 1, y, y + 1):
                if ny < 0 or ny >= h:
                    continue
                for nx in (x - 1, x, x + 1):
                    if 0 <= nx < w and mask[ny, nx] and not visited[ny, nx]:
                        visited[ny, nx] = True
                        stack.append((ny, nx))
        components.append(np.array(pixels, dtype=np.int64))
    return components


def true_runs(values: np.ndarray) -> list[tuple[int, int]]:
    """Return (start, end) pairs, end exclusive, for every run of True in a 1D array."""
    padded = np.concatenate(([False], values.astype(bool), [False]))
    edges = np.diff(padded.astype(np.int8))
    starts = np.nonzero(edges == 1)[0]
    ends = np.nonzero(edges == -1)[0]
    return [(int(s), int(e)) for s, e in zip(starts, ends)]


def longest_run(values: np.ndarray) -> int:
    """Length of the longest run of True in a 1D boolean array."""
    return max((end - start for start, end in true_runs(values)), default=0)


def estimate_quality_score(image: np.ndarray) -> int:
    """Rough sharpness/contrast score in [20, 100] from the page's centre row.

    Sums the blue-channel differences between pixels mirrored around the
    centre of the middle row. Busy, high-contrast centres lower the score.
    """
    if image.ndim == 2:
        channel = image
    else:
        channel = image[..., 2] if image.shape[2] >= 3 else image[..., 0]
    h, w = channel.shape
    cx, cy = w // 2, h // 2
    radius = max(8, min(cx, cy) // 5)
    row = channel[cy].astype(np.int64)
    contrast = 0
    for i in range(1, radius):
        contrast += abs(int(row[min(w - 1, cx + i)]) - int(row[max(0, cx - i)]))
    score = 100 - min(80, contrast // max(1, radius * 6))
    return max(20, min(100, score))


def compose_stage_overlay(
    binary: np.ndarray, staff_mask: np.ndarray, symbol_mask: np.ndarray
) -> np.ndarray:
    """RGB debug image: ink white, staff lines red, symbols green, rest black."""
    h, w = binary.shape
    overlay = np.zeros((h, w, 3), dtype=np.uint8)
    overlay[binary] = (255, 255, 255)
    overlay[symbol_mask & ~staff_mask] = (0, 255, 0)
    overlay[staff_mask] = (255, 0, 0)
    return overlay
