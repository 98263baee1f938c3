import contextlib

import cv2
import numpy as np
import pytest

from score_recognition import native
from score_recognition.image_processing import to_grayscale
from score_recognition.models import ProcessingOptions


@pytest.fixture
def page_gray(score_page):
    image, _ = score_page
    return to_grayscale(image)


def test_binarize_adaptive(page_gray):
    with contextlib.ExitStack() as scratch:
        binary = native.binarize(page_gray, ProcessingOptions(), scratch)
    assert binary.dtype == bool
    assert binary.shape == page_gray.shape
    # staff line rows and a note head centre are ink, the margin is not
    assert binary[80, 200:220].all()
    assert binary[128, 100]
    assert not binary[10:30, 10:30].any()


def test_binarize_otsu(page_gray):
    options = ProcessingOptions(skip_adaptive_binarization=True)
    with contextlib.ExitStack() as scratch:
        binary = native.binarize(page_gray, options, scratch)
    assert np.array_equal(binary, page_gray < 128)


def test_staff_line_mask_keeps_only_long_strokes():
    binary = np.zeros((60, 200), dtype=bool)
    binary[20:22, 10:190] = True
    binary[35:45, 90:100] = True
    lines = native.staff_line_mask(binary, 10)
    assert lines[20, 50] and lines[21, 50]
    assert not lines[40, 95]


def test_suppress_noise(head_factory):
    mask = head_factory((40, 40), 20, 20)
    mask[3, 3] = True
    cleaned = native.suppress_noise(mask, ProcessingOptions(noise_level=0.9))
    assert not cleaned[3, 3]
    assert cleaned[20, 20]
    skipped = native.suppress_noise(
        mask, ProcessingOptions(skip_morph_noise_suppression=True)
    )
    assert np.array_equal(skipped, mask)


def test_find_candidates_measures_contours():
    mask = np.zeros((60, 60), dtype=np.uint8)
    cv2.circle(mask, (30, 25), 8, 255, -1)
    (candidate,) = native.find_candidates(mask > 0)
    assert (candidate.width, candidate.height) == (17, 17)
    assert candidate.cx == pytest.approx(30, abs=0.5)
    assert candidate.cy == pytest.approx(25, abs=0.5)
    assert candidate.area == pytest.approx(np.pi * 64, rel=0.2)
    assert candidate.circularity > 0.7
