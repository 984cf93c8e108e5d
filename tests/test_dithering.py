import numpy as np
import pytest

from conftest import gradient_pixels
from paint_by_number.errors import ConversionCancelled
from paint_by_number.image_processing.dithering import (
    FloydSteinbergStrategy,
    NearestStrategy,
    PipelinedFloydSteinbergStrategy,
    perceived_error,
    select_strategy,
)
from paint_by_number.image_processing.quantization import quantize_colors
from paint_by_number.image_processing.utils import nearest_indices, palette_array
from paint_by_number.models import Palette

BLACK_WHITE = Palette(colors=((0, 0, 0), (255, 255, 255)))


def gray_ramp(width=256, height=32):
    ramp = np.rint(np.linspace(0, 255, width)).astype(np.uint8)
    pixels = np.empty((height, width, 3), dtype=np.uint8)
    pixels[:, :, :] = ramp[None, :, None]
    return pixels


def random_pixels(width=37, height=23, seed=7):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def test_nearest_matches_direct_lookup():
    pixels = random_pixels()
    palette = Palette(colors=((0, 0, 0), (255, 0, 0), (0, 0, 255), (250, 250, 250)))
    codes = NearestStrategy().assign(pixels, palette)
    expected = nearest_indices(pixels.reshape(-1, 3), palette_array(palette.colors)).reshape(23, 37)
    assert np.array_equal(codes, expected)


def test_floyd_steinberg_is_deterministic():
    pixels = random_pixels()
    palette, _ = quantize_colors(pixels, 5)
    first = FloydSteinbergStrategy().assign(pixels, palette)
    second = FloydSteinbergStrategy().assign(pixels, palette)
    assert np.array_equal(first, second)
    assert first.shape == (23, 37)
    assert first.max() < len(palette)


@pytest.mark.parametrize("workers,chunk", [(2, 64), (3, 5), (8, 1)])
def test_pipelined_matches_reference(workers, chunk):
    pixels = random_pixels()
    palette, _ = quantize_colors(pixels, 6)
    reference = FloydSteinbergStrategy().assign(pixels, palette)
    pipelined = PipelinedFloydSteinbergStrategy(workers=workers, chunk=chunk).assign(pixels, palette)
    assert np.array_equal(reference, pipelined)


def test_dithering_preserves_a_gradient_better():
    pixels = gray_ramp()
    nearest = NearestStrategy().assign(pixels, BLACK_WHITE)
    dithered = FloydSteinbergStrategy().assign(pixels, BLACK_WHITE)
    assert perceived_error(pixels, dithered, BLACK_WHITE) < perceived_error(pixels, nearest, BLACK_WHITE)


def test_dithering_helps_with_a_quantized_palette():
    pixels = gradient_pixels(96, 48)
    palette, _ = quantize_colors(pixels, 4)
    nearest = NearestStrategy().assign(pixels, palette)
    dithered = FloydSteinbergStrategy().assign(pixels, palette)
    assert perceived_error(pixels, dithered, palette) < perceived_error(pixels, nearest, palette)


def test_uniform_image_has_no_dither_noise():
    pixels = np.zeros((6, 9, 3), dtype=np.uint8)
    codes = FloydSteinbergStrategy().assign(pixels, BLACK_WHITE)
    assert not codes.any()


@pytest.mark.parametrize("strategy", [FloydSteinbergStrategy(), PipelinedFloydSteinbergStrategy(workers=3)])
def test_cancellation(strategy):
    with pytest.raises(ConversionCancelled):
        strategy.assign(random_pixels(), BLACK_WHITE, cancel_check=lambda: True)


def test_select_strategy():
    assert isinstance(select_strategy(False), NearestStrategy)
    assert isinstance(select_strategy(True), FloydSteinbergStrategy)
    pipelined = select_strategy(True, workers=4)
    assert isinstance(pipelined, PipelinedFloydSteinbergStrategy)
    assert pipelined.workers == 4
