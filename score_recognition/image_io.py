"""
Image acquisition helpers.

Gallery photographs are often far larger than the recognizer needs, so
pages are decoded and then shrunk by a power-of-two factor until both sides
fit within a maximum dimension. Images are returned as RGB arrays.
"""

import logging

import cv2
import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_MAX_DIM = 1600


def calculate_in_sample_size(width: int, height: int, max_dim: int) -> int:
    """Power-of-two downsample factor that fits an image within `max_dim`.

    Args:
        width: Source width in pixels.
        height: Source height in pixels.
        max_dim: Largest allowed side after downsampling.

    Returns:
        The smallest power of two `n` with `width / n` and `height / n` both
        within `max_dim`, or 1 for non-positive arguments.

    Examples:
        >>> calculate_in_sample_size(1280, 960, 1600)
        1
        >>> calculate_in_sample_size(6000, 4000, 1600)
        4
    """
    if width <= 0 or height <= 0 or max_dim <= 0:
        return 1
    sample = 1
    while width // sample > max_dim or height // sample > max_dim:
        sample *= 2
    return sample


def _downsample(image: np.ndarray, max_dim: int) -> np.ndarray:
    h, w = image.shape[:2]
    sample = calculate_in_sample_size(w, h, max_dim)
    if sample == 1:
        return image
    logger.debug(f"Downsampling {w}x{h} image by {sample}")
    return cv2.resize(
        image, (max(1, w // sample), max(1, h // sample)), interpolation=cv2.INTER_AREA
    )


def load_image(path: str, max_dim: int = DEFAULT_MAX_DIM) -> np.ndarray | None:
    """Load an image file as an RGB NumPy array no larger than `max_dim`.

    Args:
        path: File path to the image.
        max_dim: Largest allowed side (default 1600).

    Returns:
        RGB image as a NumPy array, or None if the file cannot be read.
    """
    image = cv2.imread(path)
    if image is None:
        logger.warning(f"Could not read image from {path}")
        return None
    return _downsample(cv2.cvtColor(image, cv2.COLOR_BGR2RGB), max_dim)


def decode_image(data: bytes, max_dim: int = DEFAULT_MAX_DIM) -> np.ndarray | None:
    """Decode encoded image bytes (PNG, JPEG, ...) as an RGB NumPy array.

    Returns:
        RGB image, or None if the bytes are not a readable image.
    """
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
    if image is None:
        logger.warning("Could not decode image bytes")
        return None
    return _downsample(cv2.cvtColor(image, cv2.COLOR_BGR2RGB), max_dim)
