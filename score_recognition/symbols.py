"""Symbol extraction: strip staff lines and keep ink near the staves.

The symbols-only mask is the binary mask minus the staff-line bands, except
in columns where ink continues directly above and below a band (a note head
or stem crossing the line). It is then limited to padded corridors around
each staff group so titles, lyrics and page margins never reach detection.
"""

import logging

import numpy as np

from score_recognition.image_processing import (
    binary_close,
    binary_open,
    despeckle,
    structuring_element,
)
from score_recognition.models import ProcessingOptions, StaffGroup
from score_recognition.staff import line_row


logger = logging.getLogger(__name__)


def remove_staff_lines(binary: np.ndarray, groups: list[StaffGroup]) -> np.ndarray:
    """Erase staff-line bands from `binary` where no symbol crosses them.

    Args:
        binary: H×W boolean ink mask.
        groups: Staff groups with normalized x-spans.

    Returns:
        A new boolean mask with staff lines removed.
    """
    h, w = binary.shape
    symbols = binary.copy()
    for g in groups:
        x0 = max(0, g.x_start)
        x1 = min(w - 1, g.x_end)
        if x1 < x0:
            continue
        columns = slice(x0, x1 + 1)
        for y in g.lines_y:
            row = line_row(y)
            above, below = row - 2, row + 2
            if 0 <= above < h and 0 <= below < h:
                crossing = binary[above, columns] & binary[below, columns]
            else:
                crossing = np.zeros(x1 - x0 + 1, dtype=bool)
            for band_row in range(max(0, row - 1), min(h, row + 2)):
                symbols[band_row, columns] = binary[band_row, columns] & crossing
    return symbols


def corridor_mask(
    shape: tuple[int, int], groups: list[StaffGroup], spacing: int
) -> np.ndarray:
    """Union of padded staff rectangles: one spacing sideways, three vertically."""
    h, w = shape
    mask = np.zeros((h, w), dtype=bool)
    for g in groups:
        x0 = max(0, int(g.x_start - spacing))
        x1 = min(w, int(g.x_end + spacing) + 1)
        y0 = max(0, int(np.floor(g.top - 3 * spacing)))
        y1 = min(h, int(np.ceil(g.bottom + 3 * spacing)) + 1)
        mask[y0:y1, x0:x1] = True
    return mask


def extract_symbol_mask(
    binary: np.ndarray, groups: list[StaffGroup], spacing: int
) -> np.ndarray:
    """Staff-free ink restricted to the staff corridors."""
    symbols = remove_staff_lines(binary, groups)
    symbols &= corridor_mask(binary.shape, groups, spacing)
    logger.debug(
        f"Symbol mask keeps {int(symbols.sum())} of {int(binary.sum())} ink pixels"
    )
    return symbols


def suppress_noise(mask: np.ndarray, options: ProcessingOptions) -> np.ndarray:
    """Despeckle then open and close the symbol mask with numpy morphology.

    Args:
        mask: Symbols-only boolean mask.
        options: Run options; `symbol_neighborhood_hits` drives the
            despeckle and `noise_level` picks the kernel size.

    Returns:
        The denoised mask, or a copy of `mask` when morphological noise
        suppression is disabled.
    """
    if options.skip_morph_noise_suppression:
        return mask.copy()
    element = structuring_element(options.morph_kernel_size)
    cleaned = despeckle(mask, options.symbol_neighborhood_hits)
    cleaned = binary_open(cleaned, element)
    return binary_close(cleaned, element)
