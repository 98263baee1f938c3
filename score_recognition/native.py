"""OpenCV implementations of the image-level pipeline stages.

These functions mirror the numpy stages in `image_processing`, `staff`,
`symbols` and `note_detection`, but run on OpenCV. Any exception raised
here trips the native backend latch and the same call is served again by
the numpy implementation, so nothing in this module catches errors.
"""

import contextlib

import cv2
import numpy as np

from score_recognition.models import NoteCandidate, ProcessingOptions


def _to_u8(mask: np.ndarray) -> np.ndarray:
    return mask.astype(np.uint8) * 255


def binarize(
    gray: np.ndarray, options: ProcessingOptions, scratch: contextlib.ExitStack
) -> np.ndarray:
    """Contrast-equalize and threshold a grayscale page into an ink mask.

    Applies CLAHE (clip 2.4, 8×8 tiles) and a 3×3 median blur, then an
    inverted Gaussian adaptive threshold whose block size grows with the
    page. With `skip_adaptive_binarization` a global Otsu threshold is used
    instead.

    Args:
        gray: H×W uint8 grayscale image.
        options: Run options.
        scratch: Exit stack that releases native scratch state.

    Returns:
        H×W boolean mask, True where ink.
    """
    if options.skip_adaptive_binarization:
        _, binary = cv2.threshold(
            gray, 0, 255, cv2.THRESH_BINARY_INV | cv2.THRESH_OTSU
        )
        return binary > 0

    clahe = cv2.createCLAHE(clipLimit=2.4, tileGridSize=(8, 8))
    scratch.callback(clahe.collectGarbage)
    equalized = clahe.apply(gray)
    blurred = cv2.medianBlur(equalized, 3)

    h, w = gray.shape
    block = max(15, (min(w, h) // 20) | 1)
    binary = cv2.adaptiveThreshold(
        blurred,
        255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY_INV,
        block,
        options.threshold_offset,
    )
    return binary > 0


def staff_line_mask(binary: np.ndarray, spacing: int) -> np.ndarray:
    """Keep long horizontal strokes: open with a wide flat kernel, then widen by 3."""
    long_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (max(15, 4 * spacing), 1))
    lines = cv2.morphologyEx(_to_u8(binary), cv2.MORPH_OPEN, long_kernel)
    widen = cv2.getStructuringElement(cv2.MORPH_RECT, (3, 1))
    return cv2.dilate(lines, widen) > 0


def suppress_noise(mask: np.ndarray, options: ProcessingOptions) -> np.ndarray:
    """Open then close the symbol mask with an elliptic kernel."""
    if options.skip_morph_noise_suppression:
        return mask.copy()
    size = options.morph_kernel_size
    kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (size, size))
    cleaned = cv2.morphologyEx(_to_u8(mask), cv2.MORPH_OPEN, kernel)
    cleaned = cv2.morphologyEx(cleaned, cv2.MORPH_CLOSE, kernel)
    return cleaned > 0


def find_candidates(mask: np.ndarray) -> list[NoteCandidate]:
    """Measure external contours of the mask as note-head candidates.

    The centroid comes from the contour moments and falls back to the
    bounding-box centre for degenerate contours.
    """
    contours, _ = cv2.findContours(
        _to_u8(mask), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE
    )

    candidates: list[NoteCandidate] = []
    for contour in contours:
        x, y, w, h = cv2.boundingRect(contour)
        moments = cv2.moments(contour)
        if moments["m00"] > 0:
            cx = moments["m10"] / moments["m00"]
            cy = moments["m01"] / moments["m00"]
        else:
            cx = x + (w - 1) / 2.0
            cy = y + (h - 1) / 2.0
        candidates.append(
            NoteCandidate(
                min_x=x,
                min_y=y,
                max_x=x + w - 1,
                max_y=y + h - 1,
                area=float(cv2.contourArea(contour)),
                perimeter=float(cv2.arcLength(contour, True)),
                cx=float(cx),
                cy=float(cy),
            )
        )
    return candidates
