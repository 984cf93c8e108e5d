"""Grid tessellation: partition the image plane into cells.

AIDEV-NOTE: Three layouts, all generated row-major and deterministically:

- square:    cell (x, y) covers [x*s, (x+1)*s) x [y*s, (y+1)*s)
- diamond:   the square lattice rotated 45 degrees about the image center;
             each footprint is a rhombus of area s^2
- honeycomb: circles of diameter s, odd rows shifted right by s/2, rows
             s*sqrt(3)/2 apart. The circle is the render/hit shape; the
             sampling footprint is the hexagon around the center (its
             Voronoi region), so footprints tile the image with no gaps.

Boundary cells that are only partly inside the image are kept.
"""

import math
from dataclasses import dataclass
from functools import cached_property

import numpy as np

from ..models import SHAPE_FOR_GRID, Cell, GridType

SQRT3 = math.sqrt(3.0)
COS45 = math.sqrt(0.5)

# Tolerance for points lying on a shared footprint edge
EDGE_EPSILON = 1e-9


@dataclass(frozen=True)
class Tessellation:
    """Cell layout for an image of the given pixel size."""

    grid_type: GridType
    cell_size: float
    width: int
    height: int

    # --- Layout constants ---

    @property
    def row_spacing(self) -> float:
        """Vertical distance between consecutive row centers (unrotated grids)."""
        if self.grid_type == GridType.HONEYCOMB:
            return self.cell_size * SQRT3 / 2
        return self.cell_size

    @property
    def odd_row_offset(self) -> float:
        """Horizontal shift of odd rows (honeycomb only)."""
        if self.grid_type == GridType.HONEYCOMB:
            return self.cell_size / 2
        return 0.0

    @property
    def _hex_radius(self) -> float:
        # Circumradius of the hexagonal footprint: width across flats is s
        return self.cell_size / SQRT3

    @property
    def _center(self) -> "tuple[float, float]":
        return (self.width / 2, self.height / 2)

    # --- Cell generation ---

    @cached_property
    def _lattice(self) -> "tuple[tuple[Cell, ...], tuple[int, int]]":
        if self.grid_type == GridType.SQUARE:
            return self._square_cells(), (0, 0)
        if self.grid_type == GridType.DIAMOND:
            return self._diamond_cells()
        return self._honeycomb_cells(), (0, 0)

    @cached_property
    def _keys(self) -> "frozenset[tuple[int, int]]":
        return frozenset(cell.key for cell in self._lattice[0])

    def cells(self) -> "tuple[Cell, ...]":
        """All cells in row-major order, code unassigned."""
        return self._lattice[0]

    def has_cell(self, x: int, y: int) -> bool:
        return (x, y) in self._keys

    def _make_cell(self, x: int, y: int, cx: float, cy: float) -> Cell:
        return Cell(
            x=x,
            y=y,
            centroid=(cx, cy),
            shape=SHAPE_FOR_GRID[self.grid_type],
            size=self.cell_size,
        )

    def _square_cells(self) -> "tuple[Cell, ...]":
        s = self.cell_size
        cols = math.ceil(self.width / s)
        rows = math.ceil(self.height / s)
        return tuple(
            self._make_cell(x, y, (x + 0.5) * s, (y + 0.5) * s)
            for y in range(rows)
            for x in range(cols)
        )

    def _honeycomb_cells(self) -> "tuple[Cell, ...]":
        s = self.cell_size
        step = self.row_spacing
        radius = self._hex_radius

        cells = []
        y = 0
        while y * step - radius < self.height:
            offset = s / 2 if y % 2 == 1 else 0.0
            x = 0
            while x * s + offset - s / 2 < self.width:
                cells.append(self._make_cell(x, y, x * s + offset, y * step))
                x += 1
            y += 1
        return tuple(cells)

    def _diamond_cells(self) -> "tuple[tuple[Cell, ...], tuple[int, int]]":
        s = self.cell_size
        half_diag = s * COS45
        reach = math.ceil(math.hypot(self.width, self.height) / (2 * s)) + 1

        # Rectangle corners projected on the rotated axes
        corners = [(0.0, 0.0), (self.width, 0.0), (0.0, self.height), (self.width, self.height)]
        projected = [self._to_lattice(px, py) for px, py in corners]
        u_min = min(u for u, _ in projected)
        u_max = max(u for u, _ in projected)
        v_min = min(v for _, v in projected)
        v_max = max(v for _, v in projected)

        kept = []
        for j in range(-reach, reach):
            if not (j * s < v_max and (j + 1) * s > v_min):
                continue
            for i in range(-reach, reach):
                if not (i * s < u_max and (i + 1) * s > u_min):
                    continue
                cx, cy = self._from_lattice((i + 0.5) * s, (j + 0.5) * s)
                if cx - half_diag >= self.width or cx + half_diag <= 0:
                    continue
                if cy - half_diag >= self.height or cy + half_diag <= 0:
                    continue
                kept.append((i, j, cx, cy))

        if not kept:
            return (), (0, 0)

        i_min = min(k[0] for k in kept)
        j_min = min(k[1] for k in kept)
        cells = tuple(self._make_cell(i - i_min, j - j_min, cx, cy) for i, j, cx, cy in kept)
        return cells, (i_min, j_min)

    # --- Rotated frame helpers (diamond) ---

    def _to_lattice(self, px: float, py: float) -> "tuple[float, float]":
        cx0, cy0 = self._center
        dx = px - cx0
        dy = py - cy0
        return ((dx + dy) * COS45, (dy - dx) * COS45)

    def _from_lattice(self, u: float, v: float) -> "tuple[float, float]":
        cx0, cy0 = self._center
        return (cx0 + (u - v) * COS45, cy0 + (u + v) * COS45)

    # --- Footprints ---

    def footprint_bounds(self, cell: Cell) -> "tuple[float, float, float, float]":
        """(min_x, min_y, max_x, max_y) of the cell's footprint, unclipped."""
        s = self.cell_size
        cx, cy = cell.centroid
        if self.grid_type == GridType.SQUARE:
            return (cell.x * s, cell.y * s, (cell.x + 1) * s, (cell.y + 1) * s)
        if self.grid_type == GridType.DIAMOND:
            h = s * COS45
            return (cx - h, cy - h, cx + h, cy + h)
        return (cx - s / 2, cy - self._hex_radius, cx + s / 2, cy + self._hex_radius)

    def footprint_polygon(self, cell: Cell) -> "list[tuple[float, float]]":
        """Footprint vertices in image pixels, clockwise from the top."""
        cx, cy = cell.centroid
        if self.grid_type == GridType.SQUARE:
            x0, y0, x1, y1 = self.footprint_bounds(cell)
            return [(x0, y0), (x1, y0), (x1, y1), (x0, y1)]
        if self.grid_type == GridType.DIAMOND:
            h = self.cell_size * COS45
            return [(cx, cy - h), (cx + h, cy), (cx, cy + h), (cx - h, cy)]
        r = self._hex_radius
        w = self.cell_size / 2
        return [
            (cx, cy - r),
            (cx + w, cy - r / 2),
            (cx + w, cy + r / 2),
            (cx, cy + r),
            (cx - w, cy + r / 2),
            (cx - w, cy - r / 2),
        ]

    def _inside(self, cell: Cell, px, py):
        """Footprint membership test; works on scalars and numpy arrays."""
        s = self.cell_size
        if self.grid_type == GridType.SQUARE:
            x0 = cell.x * s
            y0 = cell.y * s
            return (px >= x0) & (px < x0 + s) & (py >= y0) & (py < y0 + s)

        if self.grid_type == GridType.DIAMOND:
            i_min, j_min = self._lattice[1]
            u, v = self._to_lattice(px, py)
            u0 = (cell.x + i_min) * s
            v0 = (cell.y + j_min) * s
            eps = EDGE_EPSILON * s
            return (u >= u0 - eps) & (u <= u0 + s + eps) & (v >= v0 - eps) & (v <= v0 + s + eps)

        cx, cy = cell.centroid
        dx = abs(px - cx)
        dy = abs(py - cy)
        eps = EDGE_EPSILON * s
        return (dx <= s / 2 + eps) & (dy + dx / SQRT3 <= self._hex_radius + eps)

    def contains(self, cell: Cell, px: float, py: float) -> bool:
        """Whether the point lies in the cell's footprint."""
        return bool(self._inside(cell, px, py))

    def footprint_mask(self, cell: Cell) -> "tuple[slice, slice, np.ndarray]":
        """Pixels whose centers fall inside the cell's footprint.

        Returns:
            Tuple of (row slice, column slice, boolean mask) where the mask has
            the shape of the sliced region. Empty slices for cells with no
            pixel centers inside the image.
        """
        min_x, min_y, max_x, max_y = self.footprint_bounds(cell)
        x0 = max(0, math.floor(min_x))
        y0 = max(0, math.floor(min_y))
        x1 = min(self.width, math.ceil(max_x))
        y1 = min(self.height, math.ceil(max_y))
        if x1 <= x0 or y1 <= y0:
            return slice(0, 0), slice(0, 0), np.zeros((0, 0), dtype=bool)

        px = (np.arange(x0, x1) + 0.5)[None, :]
        py = (np.arange(y0, y1) + 0.5)[:, None]
        mask = np.broadcast_to(self._inside(cell, px, py), (y1 - y0, x1 - x0))
        return slice(y0, y1), slice(x0, x1), np.ascontiguousarray(mask)

    # --- Hit testing ---

    def locate(self, px: float, py: float, strict: bool = False) -> "tuple[int, int] | None":
        """Lattice coordinate of the cell under an image-space point.

        Args:
            px: X coordinate in image pixels
            py: Y coordinate in image pixels
            strict: For honeycomb, require the point to be inside the circle
                rather than anywhere in the hexagonal footprint

        Returns:
            (x, y) of the hit cell, or None if no cell is there
        """
        s = self.cell_size
        if self.grid_type == GridType.SQUARE:
            key = (math.floor(px / s), math.floor(py / s))
            if not (0 <= px < self.width and 0 <= py < self.height):
                return None
            return key if key in self._keys else None

        if self.grid_type == GridType.DIAMOND:
            i_min, j_min = self._lattice[1]
            u, v = self._to_lattice(px, py)
            key = (math.floor(u / s) - i_min, math.floor(v / s) - j_min)
            return key if key in self._keys else None

        step = self.row_spacing
        row = round(py / step)
        best = None
        best_dist = float("inf")
        for y in (row - 1, row, row + 1):
            offset = s / 2 if y % 2 == 1 else 0.0
            col = round((px - offset) / s)
            for x in (col - 1, col, col + 1):
                if (x, y) not in self._keys:
                    continue
                dist = (px - (x * s + offset)) ** 2 + (py - y * step) ** 2
                if dist < best_dist:
                    best_dist = dist
                    best = (x, y)
        if best is None:
            return None
        if strict and best_dist > (s / 2) ** 2:
            return None
        return best

    def grid_extent(self) -> "tuple[float, float, float, float]":
        """Bounding box (min_x, min_y, max_x, max_y) of all footprints."""
        cells = self.cells()
        if not cells:
            return (0.0, 0.0, float(self.width), float(self.height))
        bounds = [self.footprint_bounds(cell) for cell in cells]
        return (
            min(b[0] for b in bounds),
            min(b[1] for b in bounds),
            max(b[2] for b in bounds),
            max(b[3] for b in bounds),
        )


def tessellate(grid_type: GridType, cell_size: float, width: int, height: int) -> "tuple[Cell, ...]":
    """Shortcut for Tessellation(...).cells()."""
    return Tessellation(grid_type, cell_size, width, height).cells()
