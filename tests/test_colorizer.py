import numpy as np
import pytest

from paint_by_number.image_processing.colorizer import colorize_cells
from paint_by_number.image_processing.tessellation import Tessellation
from paint_by_number.models import GridType, Palette, SamplingPolicy

RED = (255, 0, 0)
BLUE = (0, 0, 255)
PALETTE = Palette(colors=(RED, BLUE))


def halves(width=40, height=20):
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:, : width // 2] = RED
    pixels[:, width // 2 :] = BLUE
    return pixels


@pytest.mark.parametrize("policy", list(SamplingPolicy))
def test_square_cells_follow_the_image(policy):
    tessellation = Tessellation(GridType.SQUARE, 10, 40, 20)
    cells = colorize_cells(tessellation, halves(), PALETTE, policy=policy)
    assert len(cells) == 8
    for cell in cells:
        assert cell.code == (0 if cell.x < 2 else 1)


@pytest.mark.parametrize("grid_type", list(GridType))
def test_every_cell_gets_a_valid_code(grid_type):
    tessellation = Tessellation(grid_type, 7, 40, 20)
    cells = colorize_cells(tessellation, halves(), PALETTE)
    assert [c.key for c in cells] == [c.key for c in tessellation.cells()]
    assert all(0 <= c.code < len(PALETTE) for c in cells)


def test_centroid_and_average_differ():
    pixels = np.zeros((10, 10, 3), dtype=np.uint8)
    pixels[:, :] = RED
    pixels[5, 5] = BLUE
    tessellation = Tessellation(GridType.SQUARE, 10, 10, 10)

    (average,) = colorize_cells(tessellation, pixels, PALETTE, policy=SamplingPolicy.AVERAGE)
    (centroid,) = colorize_cells(tessellation, pixels, PALETTE, policy=SamplingPolicy.CENTROID)
    assert average.code == 0
    assert centroid.code == 1


def test_majority_vote():
    pixels = np.zeros((10, 10, 3), dtype=np.uint8)
    pixels[:, :4] = RED
    pixels[:, 4:] = BLUE
    tessellation = Tessellation(GridType.SQUARE, 10, 10, 10)
    (cell,) = colorize_cells(tessellation, pixels, PALETTE, policy=SamplingPolicy.MAJORITY)
    assert cell.code == 1


def test_dithered_codes_are_sampled_instead_of_source():
    pixels = halves()
    codes = np.ones(pixels.shape[:2], dtype=np.int64)
    tessellation = Tessellation(GridType.SQUARE, 10, 40, 20)
    cells = colorize_cells(tessellation, pixels, PALETTE, codes=codes)
    assert all(c.code == 1 for c in cells)


def test_mixed_dithered_codes_spread_over_neighbouring_cells():
    pixels = halves(40, 40)
    yy, xx = np.indices(pixels.shape[:2])
    codes = ((xx + yy) % 2).astype(np.int64)
    tessellation = Tessellation(GridType.SQUARE, 10, 40, 40)
    cells = colorize_cells(tessellation, pixels, PALETTE, codes=codes)
    blue = sum(1 for c in cells if c.code == 1)
    assert 4 <= blue <= 12


def test_palette_is_untouched():
    palette = Palette(colors=(RED, BLUE, (255, 255, 255)))
    before = palette.colors
    colorize_cells(Tessellation(GridType.HONEYCOMB, 9, 40, 20), halves(), palette)
    assert palette.colors == before
