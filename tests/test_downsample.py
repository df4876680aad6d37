"""Tests for grid sizing, supersampled averaging and the conversion entry point."""

import numpy as np
import pytest

from pixel_art_converter.core import convert_raster, downsample, grid_size


def _solid(width: int, height: int, color: tuple[int, int, int, int]) -> np.ndarray:
    raster = np.zeros((height, width, 4), dtype=np.uint8)
    raster[:, :] = color
    return raster


# ---------------------------------------------------------------------------
# grid_size
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "src, max_size, expected",
    [
        ((100, 100), 10, (10, 10)),
        ((300, 150), 80, (80, 40)),
        ((150, 300), 80, (40, 80)),
        ((1000, 1), 20, (20, 1)),
        ((3, 3), 80, (80, 80)),
        ((640, 480), 200, (200, 150)),
    ],
)
def test_grid_size(src, max_size, expected):
    assert grid_size(src[0], src[1], max_size) == expected


@pytest.mark.parametrize("src", [(0, 10), (10, 0)])
def test_grid_size_zero_area(src):
    with pytest.raises(ValueError):
        grid_size(src[0], src[1], 20)


# ---------------------------------------------------------------------------
# downsample
# ---------------------------------------------------------------------------


def test_identity_when_source_matches_sample_grid():
    rng = np.random.RandomState(0)
    raster = rng.randint(0, 256, (3, 5, 4)).astype(np.uint8)
    out = downsample(raster, 5, 3, supersample=1)
    assert np.array_equal(out, raster)
    assert out is not raster


def test_block_average_rounds_half_up():
    raster = np.zeros((4, 4, 4), dtype=np.uint8)
    raster[..., 3] = 255
    raster[0, 0, 0] = 1  # top-left block red: 1/4 -> 0
    raster[0, 2, 0] = 1  # top-right block red: 2/4 -> 1
    raster[1, 3, 0] = 1
    raster[2:4, 0:2, 1] = [[10, 20], [30, 41]]  # bottom-left green: 25.25 -> 25
    out = downsample(raster, 2, 2, supersample=2)
    assert out.shape == (2, 2, 4)
    assert out[0, 0].tolist() == [0, 0, 0, 255]
    assert out[0, 1].tolist() == [1, 0, 0, 255]
    assert out[1, 0].tolist() == [0, 25, 0, 255]


def test_alpha_is_averaged_too():
    raster = np.zeros((2, 2, 4), dtype=np.uint8)
    raster[0, 0] = (255, 255, 255, 255)
    out = downsample(raster, 1, 1, supersample=2)
    assert out[0, 0].tolist() == [64, 64, 64, 64]


def test_solid_color_survives_resampling():
    raster = _solid(100, 100, (255, 0, 0, 255))
    out = downsample(raster, 10, 10)
    assert out.shape == (10, 10, 4)
    assert np.all(out == np.array([255, 0, 0, 255], dtype=np.uint8))


def test_source_is_not_modified():
    rng = np.random.RandomState(1)
    raster = rng.randint(0, 256, (37, 53, 4)).astype(np.uint8)
    before = raster.copy()
    downsample(raster, 7, 5)
    assert np.array_equal(raster, before)


@pytest.mark.parametrize(
    "raster",
    [
        None,
        np.zeros((0, 5, 4), dtype=np.uint8),
        np.zeros((5, 5, 3), dtype=np.uint8),
        np.zeros((5, 5, 4), dtype=np.float32),
    ],
)
def test_invalid_raster(raster):
    with pytest.raises(ValueError):
        downsample(raster, 2, 2)


@pytest.mark.parametrize("width, height", [(0, 2), (2, 0)])
def test_invalid_target(width, height):
    with pytest.raises(ValueError):
        downsample(_solid(4, 4, (0, 0, 0, 255)), width, height)


# ---------------------------------------------------------------------------
# convert_raster
# ---------------------------------------------------------------------------


def test_solid_red_converts_to_single_color():
    result = convert_raster(_solid(100, 100, (255, 0, 0, 255)), max_size=10, color_count=24)
    assert (result.width, result.height) == (10, 10)
    assert result.palette == [(255, 0, 0)]
    assert np.all(result.averages == np.array([255, 0, 0, 255], dtype=np.uint8))
    assert np.array_equal(result.cells, result.averages)


def test_transparent_image_skips_quantization():
    raster = _solid(50, 50, (0, 0, 0, 0))
    result = convert_raster(raster, max_size=5, color_count=24)
    assert (result.width, result.height) == (5, 5)
    assert result.palette is None
    assert np.array_equal(result.cells, result.averages)
    assert np.all(result.cells[..., 3] == 0)


def test_black_and_white_without_resampling():
    raster = np.array(
        [
            [[0, 0, 0, 255], [255, 255, 255, 255]],
            [[0, 0, 0, 255], [255, 255, 255, 255]],
        ],
        dtype=np.uint8,
    )
    result = convert_raster(raster, max_size=2, color_count=2, supersample=1)
    assert result.palette == [(0, 0, 0), (255, 255, 255)]
    assert np.array_equal(result.cells, raster)


@pytest.mark.parametrize("count", [0, -3])
def test_non_positive_count_keeps_averages(count):
    rng = np.random.RandomState(2)
    raster = rng.randint(0, 256, (40, 30, 4)).astype(np.uint8)
    result = convert_raster(raster, max_size=20, color_count=count)
    assert result.palette is None
    assert np.array_equal(result.cells, result.averages)


def test_cells_use_palette_colors():
    rng = np.random.RandomState(4)
    raster = rng.randint(0, 256, (90, 120, 4)).astype(np.uint8)
    raster[..., 3] = 255
    result = convert_raster(raster, max_size=40, color_count=24)
    assert (result.width, result.height) == (40, 30)
    assert 1 <= len(result.palette) <= 24
    used = {tuple(c) for c in result.cells[..., :3].reshape(-1, 3).tolist()}
    assert used <= set(result.palette)
