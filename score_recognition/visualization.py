"""
Visualization functions for the score recognition pipeline.

Produces RGB images for inspecting a run: the ink mask, the detected staff
geometry and the recognized notes drawn over the source page.
"""

import cv2
import numpy as np

from score_recognition.models import ProcessingResult, StaffGroup
from score_recognition.staff import line_row

CORRIDOR_COLOR = (70, 130, 255)
NOTE_COLOR = (255, 0, 0)
STAFF_COLOR = (255, 0, 0)


def create_binary_visualization(binary_mask: np.ndarray | None) -> np.ndarray | None:
    """Convert a boolean ink mask to a white-on-black RGB image.

    Args:
        binary_mask: 2D boolean mask, or None.

    Returns:
        3-channel RGB image, or None if input is None.
    """
    if binary_mask is None:
        return None
    gray = binary_mask.astype(np.uint8) * 255
    return cv2.cvtColor(gray, cv2.COLOR_GRAY2RGB)


def create_staff_visualization(
    image_shape: tuple[int, int], groups: list[StaffGroup]
) -> np.ndarray | None:
    """Draw staff lines of every group as red lines on a white canvas.

    Args:
        image_shape: Canvas dimensions as (height, width) in pixels.
        groups: Staff groups to draw.

    Returns:
        RGB image as H×W×3 uint8 array, or None if there are no groups.
    """
    if not groups:
        return None

    h, w = image_shape
    canvas = np.full((h, w, 3), 255, np.uint8)
    for g in groups:
        for y in g.lines_y:
            row = line_row(y)
            cv2.line(canvas, (g.x_start, row), (g.x_end, row), STAFF_COLOR, 1)
    return canvas


def _to_rgb(image: np.ndarray) -> np.ndarray:
    if image.ndim == 3 and image.shape[2] < 3:
        image = image[..., 0]
    if image.ndim == 2:
        return cv2.cvtColor(image.astype(np.uint8), cv2.COLOR_GRAY2RGB)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2RGB)
    return image.copy()


def create_recognition_overlay(
    image: np.ndarray, result: ProcessingResult, show_labels: bool = True
) -> np.ndarray:
    """Draw staff corridors and recognized notes over the source page.

    Corridors are outlined in blue. Each note gets a red circle at its head
    and, when `show_labels` is set, its pitch name (e.g. "G4") just above.

    Args:
        image: The page that was processed, RGB or grayscale.
        result: The recognition result for that page.
        show_labels: Whether to write pitch names next to the notes.

    Returns:
        A new RGB image; the input is not modified.
    """
    canvas = _to_rgb(image)
    h, w = canvas.shape[:2]
    sx, sy = max(1, w - 1), max(1, h - 1)

    for corridor in result.staff_corridors:
        cv2.rectangle(
            canvas,
            (int(round(corridor.left * sx)), int(round(corridor.top * sy))),
            (int(round(corridor.right * sx)), int(round(corridor.bottom * sy))),
            CORRIDOR_COLOR,
            1,
        )

    radius = max(3, min(w, h) // 120)
    for note in result.notes:
        center = (int(round(note.x * sx)), int(round(note.y * sy)))
        cv2.circle(canvas, center, radius, NOTE_COLOR, 2)
        if show_labels:
            cv2.putText(
                canvas,
                note.pitch_name,
                (center[0] - radius, max(10, center[1] - 2 * radius)),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.35,
                NOTE_COLOR,
                1,
                cv2.LINE_AA,
            )
    return canvas
