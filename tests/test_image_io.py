import cv2
import numpy as np
import pytest

from score_recognition.image_io import (
    calculate_in_sample_size,
    decode_image,
    load_image,
)


@pytest.mark.parametrize(
    "width, height, max_dim, sample",
    [
        (1280, 960, 1600, 1),
        (6000, 4000, 1600, 4),
        (1601, 10, 1600, 2),
        (3300, 100, 1600, 4),
        (0, 100, 1600, 1),
        (100, 100, 0, 1),
    ],
)
def test_calculate_in_sample_size(width, height, max_dim, sample):
    assert calculate_in_sample_size(width, height, max_dim) == sample


def test_load_image_returns_rgb(tmp_path, small_rgb_image):
    path = str(tmp_path / "tiny.png")
    cv2.imwrite(path, cv2.cvtColor(small_rgb_image, cv2.COLOR_RGB2BGR))
    image = load_image(path)
    assert np.array_equal(image, small_rgb_image)


def test_load_image_downsamples(tmp_path):
    path = str(tmp_path / "wide.png")
    cv2.imwrite(path, np.full((100, 3300, 3), 200, dtype=np.uint8))
    image = load_image(path, max_dim=1600)
    assert image.shape == (25, 825, 3)


def test_load_image_missing_file(tmp_path):
    assert load_image(str(tmp_path / "missing.png")) is None


def test_decode_image(small_rgb_image):
    ok, encoded = cv2.imencode(".png", cv2.cvtColor(small_rgb_image, cv2.COLOR_RGB2BGR))
    assert ok
    assert np.array_equal(decode_image(encoded.tobytes()), small_rgb_image)
    assert decode_image(b"not an image") is None
    assert decode_image(b"") is None
