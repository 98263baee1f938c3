import numpy as np
import pytest

from score_recognition.image_processing import (
    adaptive_radius,
    binarize,
    binary_close,
    binary_open,
    compose_stage_overlay,
    connected_components,
    despeckle,
    estimate_quality_score,
    fill_holes,
    flood_fill,
    longest_run,
    otsu_threshold,
    structuring_element,
    to_grayscale,
    true_runs,
)


def test_to_grayscale_weights(small_rgb_image):
    gray = to_grayscale(small_rgb_image)
    expected = np.array([[76, 150], [28, 0]], dtype=np.uint8)
    assert gray.dtype == np.uint8
    assert np.array_equal(gray, expected)


def test_to_grayscale_passes_gray_through():
    gray = np.arange(12, dtype=np.uint8).reshape(3, 4)
    assert np.array_equal(to_grayscale(gray), gray)


def test_to_grayscale_reads_first_channel_of_narrow_arrays():
    gray = np.arange(12, dtype=np.uint8).reshape(3, 4)
    assert np.array_equal(to_grayscale(gray[..., None]), gray)
    with_alpha = np.stack([gray, np.full_like(gray, 255)], axis=-1)
    assert np.array_equal(to_grayscale(with_alpha), gray)


def test_adaptive_radius():
    assert adaptive_radius(60, 60) == 6
    assert adaptive_radius(1200, 960) == 40


def test_binarize_adaptive_finds_thin_lines():
    gray = np.full((60, 80), 255, dtype=np.uint8)
    gray[30:32, 10:70] = 0
    mask = binarize(gray, threshold_offset=7)
    assert mask.dtype == bool
    assert mask[30:32, 10:70].all()
    assert mask.sum() == 2 * 60


def test_binarize_otsu():
    gray = np.full((40, 40), 230, dtype=np.uint8)
    gray[10:30, 10:30] = 20
    assert otsu_threshold(gray) < 230
    mask = binarize(gray, threshold_offset=7, skip_adaptive=True)
    assert mask[10:30, 10:30].all()
    assert mask.sum() == 400


def test_structuring_elements_match_ellipse_layout():
    assert np.array_equal(structuring_element(2), [[False, True], [True, True]])
    assert np.array_equal(
        structuring_element(3),
        [[False, True, False], [True, True, True], [False, True, False]],
    )


def test_despeckle_drops_isolated_pixels():
    mask = np.zeros((10, 10), dtype=bool)
    mask[1, 1] = True
    mask[5:8, 5:8] = True
    cleaned = despeckle(mask, 3)
    assert not cleaned[1, 1]
    assert cleaned[5:8, 5:8].all()


def test_open_removes_thin_strokes_and_keeps_blobs():
    mask = np.zeros((20, 20), dtype=bool)
    mask[2, 2:18] = True
    mask[8:15, 8:15] = True
    opened = binary_open(mask, structuring_element(3))
    assert not opened[2].any()
    assert opened[11, 11]
    assert not (opened & ~mask).any()


def test_close_fills_small_gaps():
    mask = np.zeros((12, 12), dtype=bool)
    mask[3:9, 3:9] = True
    mask[6, 6] = False
    closed = binary_close(mask, structuring_element(3))
    assert closed[6, 6]


def test_flood_fill_respects_walls():
    passable = np.ones((5, 5), dtype=bool)
    passable[:, 2] = False
    seeds = np.zeros_like(passable)
    seeds[0, 0] = True
    reached = flood_fill(passable, seeds)
    assert reached[:, :2].all()
    assert not reached[:, 2:].any()


def test_fill_holes():
    ring = np.zeros((7, 7), dtype=bool)
    ring[1:6, 1:6] = True
    ring[2:5, 2:5] = False
    filled = fill_holes(ring)
    assert filled[1:6, 1:6].all()
    assert not filled[0].any()


def test_connected_components_are_8_connected():
    mask = np.zeros((8, 8), dtype=bool)
    mask[0, 0] = mask[1, 1] = True
    mask[5:7, 5:7] = True
    components = connected_components(mask)
    assert len(components) == 2
    assert sorted(len(c) for c in components) == [2, 4]
    assert components[0].shape[1] == 2


def test_true_runs_and_longest_run():
    values = np.array([0, 1, 1, 0, 1, 1, 1, 0, 1], dtype=bool)
    assert true_runs(values) == [(1, 3), (4, 7), (8, 9)]
    assert longest_run(values) == 3
    assert longest_run(np.zeros(4, dtype=bool)) == 0


def test_quality_score_range():
    flat = np.full((100, 100, 3), 200, dtype=np.uint8)
    assert estimate_quality_score(flat) == 100

    busy = np.zeros((100, 100, 3), dtype=np.uint8)
    busy[:, ::2] = 255
    busy[:, 50:] = 0
    score = estimate_quality_score(busy)
    assert 20 <= score < 100


def test_compose_stage_overlay_colors():
    binary = np.zeros((3, 3), dtype=bool)
    binary[0, :] = binary[1, 1] = binary[2, 2] = True
    staff = np.zeros_like(binary)
    staff[0, :] = True
    symbols = np.zeros_like(binary)
    symbols[1, 1] = True
    overlay = compose_stage_overlay(binary, staff, symbols)
    assert overlay.shape == (3, 3, 3)
    assert tuple(overlay[0, 0]) == (255, 0, 0)
    assert tuple(overlay[1, 1]) == (0, 255, 0)
    assert tuple(overlay[2, 2]) == (255, 255, 255)
    assert tuple(overlay[2, 0]) == (0, 0, 0)


@pytest.mark.parametrize("size", [1, 2, 3])
def test_structuring_element_is_square(size):
    assert structuring_element(size).shape == (size, size)
