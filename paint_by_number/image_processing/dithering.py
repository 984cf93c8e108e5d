"""Per-pixel palette assignment, with optional error-diffusion dithering.

AIDEV-NOTE: Strategies share one contract: given the full-resolution pixel
buffer and a palette, return an (H, W) array of palette codes. Dithering must
run on the full-resolution buffer, never on cell colors, or gradients are lost.

Floyd-Steinberg weights (X is the current pixel, raster order):

        X   7
    3   5   1      (all / 16)
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Protocol

import numpy as np

from ..errors import ConversionCancelled
from ..models import Palette
from .utils import nearest_indices, palette_array

CancelCheck = Optional[Callable[[], bool]]

# Pixels processed between progress hand-offs in the pipelined ditherer
PIPELINE_CHUNK = 64


class DitherStrategy(Protocol):
    """Maps every pixel to a palette code."""

    def assign(
        self,
        pixels: np.ndarray,
        palette: Palette,
        cancel_check: CancelCheck = None,
    ) -> np.ndarray:
        """Return an (H, W) int array of palette codes."""
        ...


def _check_cancel(cancel_check: CancelCheck) -> None:
    if cancel_check is not None and cancel_check():
        raise ConversionCancelled("Conversion cancelled")


class NearestStrategy:
    """No dithering at all; simply assign each pixel to its nearest palette color."""

    def assign(self, pixels, palette, cancel_check=None):
        _check_cancel(cancel_check)
        height, width = pixels.shape[:2]
        codes = nearest_indices(pixels.reshape(-1, 3), palette_array(palette.colors))
        return codes.reshape(height, width)


def _diffuse_row(
    src_row: "list[tuple[int, int, int]]",
    above: "list[list[float]]",
    below: "list[list[float]]",
    out_row: "list[int]",
    palette: "list[tuple[int, int, int]]",
    start: int,
    stop: int,
    carry: "list[float]",
) -> None:
    """Diffuse error over pixels [start, stop) of one row.

    above holds the error pushed down from the previous row, below collects
    the error for the next row, carry is the running error from the left
    neighbour and is updated in place.

    AIDEV-NOTE: Each pixel value is computed as (source + above) + carry and
    below[x] only receives contributions from this row, in x order. Both
    strategies use this function so they agree bit for bit.
    """
    width = len(src_row)
    cr, cg, cb = carry
    above_r, above_g, above_b = above
    below_r, below_g, below_b = below

    for x in range(start, stop):
        sr, sg, sb = src_row[x]
        r = sr + above_r[x] + cr
        g = sg + above_g[x] + cg
        b = sb + above_b[x] + cb

        # Clamp before lookup so runaway error cannot pick distant colors
        r = 0.0 if r < 0.0 else 255.0 if r > 255.0 else r
        g = 0.0 if g < 0.0 else 255.0 if g > 255.0 else g
        b = 0.0 if b < 0.0 else 255.0 if b > 255.0 else b

        best = 0
        best_dist = float("inf")
        for i, (pr, pg, pb) in enumerate(palette):
            dr = r - pr
            dg = g - pg
            db = b - pb
            dist = dr * dr + dg * dg + db * db
            if dist < best_dist:
                best_dist = dist
                best = i
        out_row[x] = best

        pr, pg, pb = palette[best]
        er = r - pr
        eg = g - pg
        eb = b - pb

        cr = er * 7 / 16
        cg = eg * 7 / 16
        cb = eb * 7 / 16
        if x > 0:
            below_r[x - 1] += er * 3 / 16
            below_g[x - 1] += eg * 3 / 16
            below_b[x - 1] += eb * 3 / 16
        below_r[x] += er * 5 / 16
        below_g[x] += eg * 5 / 16
        below_b[x] += eb * 5 / 16
        if x + 1 < width:
            below_r[x + 1] += er * 1 / 16
            below_g[x + 1] += eg * 1 / 16
            below_b[x + 1] += eb * 1 / 16

    carry[0], carry[1], carry[2] = cr, cg, cb


def _zero_error(width: int) -> "list[list[float]]":
    return [[0.0] * width, [0.0] * width, [0.0] * width]


def _as_rows(pixels: np.ndarray) -> "list[list[tuple[int, int, int]]]":
    return [[(int(r), int(g), int(b)) for r, g, b in row] for row in pixels.tolist()]


class FloydSteinbergStrategy:
    """Single-threaded reference Floyd-Steinberg error diffusion."""

    def assign(self, pixels, palette, cancel_check=None):
        height, width = pixels.shape[:2]
        if height == 0 or width == 0:
            return np.zeros((height, width), dtype=np.int64)

        colors = [tuple(c) for c in palette.colors]
        rows = _as_rows(pixels)
        codes = [[0] * width for _ in range(height)]

        above = _zero_error(width)
        for y in range(height):
            _check_cancel(cancel_check)
            below = _zero_error(width)
            _diffuse_row(rows[y], above, below, codes[y], colors, 0, width, [0.0, 0.0, 0.0])
            above = below

        return np.asarray(codes, dtype=np.int64)


class PipelinedFloydSteinbergStrategy:
    """Scanline-pipelined Floyd-Steinberg over a pool of worker threads.

    Rows are dealt round-robin to the workers. Row y may process pixel x only
    once row y-1 has finished pixel x+1, the last pixel that pushes error into
    (x, y). The output is identical to FloydSteinbergStrategy.
    """

    def __init__(self, workers: int = 4, chunk: int = PIPELINE_CHUNK):
        self.workers = max(1, workers)
        self.chunk = max(1, chunk)

    def assign(self, pixels, palette, cancel_check=None):
        height, width = pixels.shape[:2]
        if height == 0 or width == 0:
            return np.zeros((height, width), dtype=np.int64)

        colors = [tuple(c) for c in palette.colors]
        rows = _as_rows(pixels)
        codes = [[0] * width for _ in range(height)]
        # errors[y] collects the error row y-1 pushes down into row y
        errors = [_zero_error(width) for _ in range(height + 1)]
        progress = [0] * height
        condition = threading.Condition()
        failed = threading.Event()

        def wait_for(row: int, needed: int) -> None:
            if row < 0:
                return
            with condition:
                while progress[row] < needed:
                    if failed.is_set():
                        raise ConversionCancelled("Dithering aborted")
                    condition.wait()

        def run_rows(first_row: int) -> None:
            try:
                for y in range(first_row, height, self.workers):
                    if failed.is_set():
                        raise ConversionCancelled("Dithering aborted")
                    _check_cancel(cancel_check)
                    carry = [0.0, 0.0, 0.0]
                    for start in range(0, width, self.chunk):
                        stop = min(width, start + self.chunk)
                        wait_for(y - 1, min(width, stop + 1))
                        _diffuse_row(rows[y], errors[y], errors[y + 1], codes[y], colors, start, stop, carry)
                        with condition:
                            progress[y] = stop
                            condition.notify_all()
            except BaseException:
                failed.set()
                with condition:
                    condition.notify_all()
                raise

        workers = min(self.workers, height)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(run_rows, k) for k in range(workers)]
        # Surface the first real failure, preferring it over follow-on aborts
        errors_raised = [f.exception() for f in futures if f.exception() is not None]
        if errors_raised:
            primary = next((e for e in errors_raised if not isinstance(e, ConversionCancelled)), errors_raised[0])
            raise primary

        return np.asarray(codes, dtype=np.int64)


def select_strategy(use_dithering: bool, workers: int = 1) -> DitherStrategy:
    """Pick the assignment strategy for a conversion."""
    if not use_dithering:
        return NearestStrategy()
    if workers > 1:
        return PipelinedFloydSteinbergStrategy(workers=workers)
    return FloydSteinbergStrategy()


def _box_blur(values: np.ndarray, radius: int) -> np.ndarray:
    """Mean over a (2r+1)^2 window, shrinking at the borders."""
    if radius <= 0:
        return values.astype(np.float64)
    height, width = values.shape[:2]
    padded = np.pad(values.astype(np.float64), ((1, 0), (1, 0), (0, 0)))
    integral = padded.cumsum(axis=0).cumsum(axis=1)

    ys = np.arange(height)
    xs = np.arange(width)
    y0 = np.clip(ys - radius, 0, height)[:, None]
    y1 = np.clip(ys + radius + 1, 0, height)[:, None]
    x0 = np.clip(xs - radius, 0, width)[None, :]
    x1 = np.clip(xs + radius + 1, 0, width)[None, :]

    total = integral[y1, x1] - integral[y0, x1] - integral[y1, x0] + integral[y0, x0]
    area = ((y1 - y0) * (x1 - x0))[:, :, None]
    return total / area


def perceived_error(
    pixels: np.ndarray,
    codes: np.ndarray,
    palette: Palette,
    radius: int = 2,
) -> float:
    """Mean per-pixel distance between the source and its assigned colors,
    both seen through a box blur of the given radius.

    AIDEV-NOTE: Dithering trades exact per-pixel matches for correct local
    averages, so the comparison is made at a viewing scale, not pixel by pixel.
    """
    if codes.size == 0:
        return 0.0
    assigned = palette_array(palette.colors)[codes]
    diff = _box_blur(np.asarray(pixels, dtype=np.float64), radius) - _box_blur(assigned, radius)
    return float(np.sqrt((diff * diff).sum(axis=2)).mean())
