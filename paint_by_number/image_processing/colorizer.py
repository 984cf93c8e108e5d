"""Cell colorizer: give every tessellated cell a palette code.

AIDEV-NOTE: The colorizer reads the palette but never changes it. Codes are
always indices into the palette built by the quantizer.

With dithering on, the default AVERAGE policy does not average the dithered
colors back together (that would undo the dithering). Each cell instead takes
the share of each code among its dithered pixels, picks the leading code, and
pushes what it could not represent on to its lattice neighbours with the
Floyd-Steinberg weights:

        X   7
    3   5   1      (all / 16, in lattice coordinates)
"""

import math
from dataclasses import replace

import numpy as np

from ..models import Cell, Palette, SamplingPolicy
from .tessellation import Tessellation
from .utils import nearest_color_index, nearest_indices, palette_array

# (dx, dy, weight) of the vote remainder handed to lattice neighbours
VOTE_DIFFUSION = ((1, 0, 7 / 16), (-1, 1, 3 / 16), (0, 1, 5 / 16), (1, 1, 1 / 16))


def colorize_cells(
    tessellation: Tessellation,
    pixels: np.ndarray,
    palette: Palette,
    codes: np.ndarray | None = None,
    policy: SamplingPolicy = SamplingPolicy.AVERAGE,
) -> "tuple[Cell, ...]":
    """Assign a palette code to every cell.

    Args:
        tessellation: Layout whose cells are colored
        pixels: (H, W, 3) uint8 source buffer
        palette: Palette from the quantizer
        codes: Optional (H, W) per-pixel codes from a ditherer. When given,
            cells are coded from the dithered assignment instead of the source.
        policy: How a cell's representative color is computed

    Returns:
        Tuple of cells in tessellation order with their code set
    """
    if codes is not None and policy == SamplingPolicy.AVERAGE:
        return _diffused_vote_cells(tessellation, palette, codes)

    colors = palette.colors
    if codes is not None:
        sample_source = palette_array(colors)[codes]
    else:
        sample_source = np.asarray(pixels, dtype=np.float64)

    colored = []
    for cell in tessellation.cells():
        if policy == SamplingPolicy.MAJORITY:
            code = _majority_code(tessellation, cell, pixels, palette, codes)
        else:
            if policy == SamplingPolicy.CENTROID:
                color = _centroid_color(tessellation, cell, sample_source)
            else:
                color = _average_color(tessellation, cell, sample_source)
            code = nearest_color_index(color, colors)
        colored.append(replace(cell, code=code))
    return tuple(colored)


def _code_shares(tessellation: Tessellation, cell: Cell, codes: np.ndarray, size: int) -> np.ndarray:
    """Fraction of the cell's pixels assigned to each code."""
    rows, cols, mask = tessellation.footprint_mask(cell)
    if not mask.any():
        row, col = _nearest_pixel(tessellation, cell)
        votes = np.asarray([codes[row, col]])
    else:
        votes = codes[rows, cols][mask]
    counts = np.bincount(votes, minlength=size).astype(np.float64)
    return counts / counts.sum()


def _diffused_vote_cells(tessellation: Tessellation, palette: Palette, codes: np.ndarray) -> "tuple[Cell, ...]":
    """Code cells from dithered pixel codes, carrying vote remainders forward.

    AIDEV-NOTE: Cells are visited in tessellation order, which is row-major in
    lattice coordinates for every grid type, so the (x+1, y) and (*, y+1)
    neighbours are always still ahead. The remainder sums to zero, so over a
    region the cell code frequencies follow the dithered code frequencies.
    Flat areas (one code per cell) have no remainder and are unaffected.
    """
    size = len(palette)
    carry: dict[tuple[int, int], np.ndarray] = {}
    colored = []
    for cell in tessellation.cells():
        votes = _code_shares(tessellation, cell, codes, size)
        pending = carry.pop(cell.key, None)
        if pending is not None:
            votes = votes + pending
        code = int(np.argmax(votes))

        remainder = votes
        remainder[code] -= 1.0
        for dx, dy, weight in VOTE_DIFFUSION:
            key = (cell.x + dx, cell.y + dy)
            if tessellation.has_cell(*key):
                if key in carry:
                    carry[key] += remainder * weight
                else:
                    carry[key] = remainder * weight
        colored.append(replace(cell, code=code))
    return tuple(colored)


def _nearest_pixel(tessellation: Tessellation, cell: Cell) -> "tuple[int, int]":
    """(row, col) of the in-image pixel closest to the cell centroid."""
    cx, cy = cell.centroid
    col = min(max(math.floor(cx), 0), tessellation.width - 1)
    row = min(max(math.floor(cy), 0), tessellation.height - 1)
    return row, col


def _centroid_color(tessellation: Tessellation, cell: Cell, source: np.ndarray) -> "tuple[float, float, float]":
    row, col = _nearest_pixel(tessellation, cell)
    r, g, b = source[row, col]
    return (float(r), float(g), float(b))


def _average_color(tessellation: Tessellation, cell: Cell, source: np.ndarray) -> "tuple[float, float, float]":
    """Mean color of the pixels whose centers lie in the footprint.

    AIDEV-NOTE: Falls back to the centroid sample when a clipped boundary
    cell has no pixel centers inside the image.
    """
    rows, cols, mask = tessellation.footprint_mask(cell)
    if not mask.any():
        return _centroid_color(tessellation, cell, source)
    region = source[rows, cols][mask]
    r, g, b = region.mean(axis=0)
    return (float(r), float(g), float(b))


def _majority_code(
    tessellation: Tessellation,
    cell: Cell,
    pixels: np.ndarray,
    palette: Palette,
    codes: np.ndarray | None,
) -> int:
    """Most frequent per-pixel code in the footprint, lowest code on ties."""
    rows, cols, mask = tessellation.footprint_mask(cell)
    if not mask.any():
        row, col = _nearest_pixel(tessellation, cell)
        if codes is not None:
            return int(codes[row, col])
        return palette.nearest(tuple(int(c) for c in pixels[row, col]))

    if codes is not None:
        votes = codes[rows, cols][mask]
    else:
        votes = nearest_indices(pixels[rows, cols][mask], palette_array(palette.colors))
    counts = np.bincount(votes, minlength=len(palette))
    return int(np.argmax(counts))
