"""Data models and constants for the paint-by-number converter."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, NamedTuple

from .errors import ConfigError

# AIDEV-NOTE: Defaults mirror the web app this converter feeds - keep in sync
DEFAULT_CELL_SIZE = 20.0  # px
DEFAULT_PALETTE_SIZE = 16
DEFAULT_MAX_WIDTH = 800  # px, wider images are downscaled before processing

# Channels at or above this value on all of r, g, b count as paper/background
WHITE_THRESHOLD = 250

# Squared RGB distance under which two palette colors are considered the same
DEDUP_THRESHOLD_SQ = 100

# Configuration file path
CONFIG_FILE = Path.home() / ".paint_by_number_config.json"

_LABEL_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


class GridType(Enum):
    """Cell layouts supported by the tessellator."""

    SQUARE = "square"
    DIAMOND = "diamond"  # square lattice rotated 45 degrees
    HONEYCOMB = "honeycomb"  # staggered circles, hexagonal packing

    @classmethod
    def parse(cls, value: "GridType | str") -> "GridType":
        """Accept an enum member or its name; "standard" is the legacy square name."""
        if isinstance(value, GridType):
            return value
        text = str(value).strip().lower()
        if text == "standard":
            return cls.SQUARE
        try:
            return cls(text)
        except ValueError as e:
            raise ConfigError(f"Unknown grid type: {value!r}") from e


class CellShape(Enum):
    """Render/hit-test shape of a single cell."""

    SQUARE = "square"
    DIAMOND = "diamond"
    CIRCLE = "circle"


class SamplingPolicy(Enum):
    """How a cell's representative color is computed from its pixels."""

    AVERAGE = "average"  # area-weighted mean over the footprint
    CENTROID = "centroid"  # single pixel under the centroid
    MAJORITY = "majority"  # most frequent per-pixel palette code


QUANTIZATION_METHODS = ("kmeans", "median_cut", "octree")


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class ConversionConfig:
    """Settings for one image-to-grid conversion."""

    grid_type: GridType = GridType.SQUARE
    cell_size: float = DEFAULT_CELL_SIZE  # px, linear size of one cell
    palette_size: int = DEFAULT_PALETTE_SIZE  # maximum number of colors
    use_dithering: bool = False

    quantization_method: str = "kmeans"  # "kmeans", "median_cut", "octree"
    sampling: SamplingPolicy = SamplingPolicy.AVERAGE
    max_width: int | None = DEFAULT_MAX_WIDTH
    white_threshold: int = WHITE_THRESHOLD
    dither_workers: int = 1  # >1 selects the pipelined ditherer

    def validate(self) -> "ConversionConfig":
        """Check every field, returning a normalized copy.

        Raises:
            ConfigError: If any setting is out of range or unknown
        """
        grid_type = GridType.parse(self.grid_type)

        if isinstance(self.sampling, SamplingPolicy):
            sampling = self.sampling
        else:
            try:
                sampling = SamplingPolicy(str(self.sampling).lower())
            except ValueError as e:
                raise ConfigError(f"Unknown sampling policy: {self.sampling!r}") from e

        if isinstance(self.cell_size, bool) or not isinstance(self.cell_size, (int, float)):
            raise ConfigError(f"Cell size must be a number, got {self.cell_size!r}")
        if not math.isfinite(self.cell_size) or self.cell_size <= 0:
            raise ConfigError(f"Cell size must be positive, got {self.cell_size}")

        if not _is_int(self.palette_size):
            raise ConfigError(f"Palette size must be an integer, got {self.palette_size!r}")
        if self.palette_size <= 0:
            raise ConfigError(f"Palette size must be at least 1, got {self.palette_size}")

        if self.quantization_method not in QUANTIZATION_METHODS:
            raise ConfigError(f"Unknown quantization method: {self.quantization_method!r}")

        if self.max_width is not None:
            if not _is_int(self.max_width):
                raise ConfigError(f"Max width must be an integer or None, got {self.max_width!r}")
            if self.max_width <= 0:
                raise ConfigError(f"Max width must be positive, got {self.max_width}")

        if not _is_int(self.white_threshold):
            raise ConfigError(f"White threshold must be an integer, got {self.white_threshold!r}")
        if not 0 <= self.white_threshold <= 255:
            raise ConfigError(f"White threshold must be within 0-255, got {self.white_threshold}")

        if not _is_int(self.dither_workers):
            raise ConfigError(f"Dither workers must be an integer, got {self.dither_workers!r}")
        if self.dither_workers < 1:
            raise ConfigError(f"Dither workers must be at least 1, got {self.dither_workers}")

        return ConversionConfig(
            grid_type=grid_type,
            cell_size=float(self.cell_size),
            palette_size=self.palette_size,
            use_dithering=bool(self.use_dithering),
            quantization_method=self.quantization_method,
            sampling=sampling,
            max_width=self.max_width,
            white_threshold=self.white_threshold,
            dither_workers=self.dither_workers,
        )


class Color(NamedTuple):
    """An 8-bit RGB color. Equality is exact channel equality."""

    r: int
    g: int
    b: int

    @property
    def hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    @classmethod
    def from_hex(cls, value: str) -> "Color":
        text = value.lstrip("#")
        if len(text) != 6:
            raise ValueError(f"Not a #rrggbb color: {value!r}")
        return cls(int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))

    @property
    def brightness(self) -> float:
        """Perceived brightness 0-255 (ITU-R 601 weights)."""
        return (self.r * 299 + self.g * 587 + self.b * 114) / 1000

    def is_white(self, threshold: int = WHITE_THRESHOLD) -> bool:
        return self.r >= threshold and self.g >= threshold and self.b >= threshold


def index_to_label(index: int) -> str:
    """Label for the n-th visible code: 0-9, A-Z, then base-36 (10, 11, ...)."""
    if index < 0:
        raise ValueError(f"Label index must be non-negative, got {index}")
    if index < len(_LABEL_DIGITS):
        return _LABEL_DIGITS[index]
    digits = []
    while index:
        index, rem = divmod(index, len(_LABEL_DIGITS))
        digits.append(_LABEL_DIGITS[rem])
    return "".join(reversed(digits))


@dataclass(frozen=True)
class Palette:
    """Ordered palette; the index of a color is its code.

    AIDEV-NOTE: Background (near-white) entries keep their slot and code but
    get an empty label, so numbering of the visible colors has no gaps.
    """

    colors: "tuple[Color, ...]"
    white_threshold: int = WHITE_THRESHOLD
    labels: "tuple[str, ...]" = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        colors = tuple(Color(*(int(c) for c in color)) for color in self.colors)
        object.__setattr__(self, "colors", colors)

        labels = []
        seq = 0
        for color in colors:
            if color.is_white(self.white_threshold):
                labels.append("")
            else:
                labels.append(index_to_label(seq))
                seq += 1
        object.__setattr__(self, "labels", tuple(labels))

    def __len__(self) -> int:
        return len(self.colors)

    def __iter__(self) -> Iterator[Color]:
        return iter(self.colors)

    def __getitem__(self, code: int) -> Color:
        return self.colors[code]

    def label(self, code: int) -> str:
        return self.labels[code]

    def is_background(self, code: int) -> bool:
        return self.labels[code] == ""

    def code_for_label(self, label: str) -> int | None:
        """Reverse of label(); None for unknown or empty labels."""
        if not label:
            return None
        try:
            return self.labels.index(label)
        except ValueError:
            return None

    def nearest(self, color: "tuple[int, int, int]") -> int:
        """Code of the closest palette entry (Euclidean RGB, ties to lowest code)."""
        from .image_processing.utils import nearest_color_index

        return nearest_color_index(color, self.colors)

    def to_list(self) -> "list[dict[str, int]]":
        return [{"r": c.r, "g": c.g, "b": c.b} for c in self.colors]


@dataclass(frozen=True)
class Cell:
    """One tessellation unit.

    AIDEV-NOTE: (x, y) are lattice coordinates whose meaning depends on the
    grid type: row/column for square, rotated lattice indices for diamond,
    offset row coordinates for honeycomb. Centroid is in image pixels.
    """

    x: int
    y: int
    centroid: "tuple[float, float]"
    shape: CellShape
    size: float  # side (square/diamond) or diameter (circle) in px
    code: int = -1  # palette code, -1 until colorized

    @property
    def key(self) -> "tuple[int, int]":
        return (self.x, self.y)


SHAPE_FOR_GRID = {
    GridType.SQUARE: CellShape.SQUARE,
    GridType.DIAMOND: CellShape.DIAMOND,
    GridType.HONEYCOMB: CellShape.CIRCLE,
}


@dataclass(frozen=True)
class ConversionResult:
    """Immutable output of one successful conversion."""

    grid_type: GridType
    cell_size: float
    palette: Palette
    cells: "tuple[Cell, ...]"
    image_width: int = 0
    image_height: int = 0
    _index: "dict[tuple[int, int], Cell]" = field(
        init=False, compare=False, repr=False, default_factory=dict
    )

    def __post_init__(self):
        object.__setattr__(self, "cells", tuple(self.cells))
        object.__setattr__(self, "_index", {cell.key: cell for cell in self.cells})

    def cell_at(self, x: int, y: int) -> Cell | None:
        return self._index.get((x, y))

    @property
    def data_id(self) -> str:
        """Identifier used to match saved progress to a grid configuration."""
        return f"{self.grid_type.value}-{self.image_width}x{self.image_height}-{self.cell_size:g}"

    def code_counts(self) -> "dict[int, int]":
        counts: dict[int, int] = {}
        for cell in self.cells:
            counts[cell.code] = counts.get(cell.code, 0) + 1
        return counts

    def to_dict(self) -> dict:
        return {
            "grid_type": self.grid_type.value,
            "cell_size": self.cell_size,
            "image_width": self.image_width,
            "image_height": self.image_height,
            "white_threshold": self.palette.white_threshold,
            "palette": self.palette.to_list(),
            "cells": [
                {
                    "x": cell.x,
                    "y": cell.y,
                    "code": cell.code,
                    "centroid": [cell.centroid[0], cell.centroid[1]],
                }
                for cell in self.cells
            ],
        }

    def to_json(self, indent: int | None = None) -> str:
        """Canonical JSON: identical results always give identical text."""
        separators = (",", ":") if indent is None else (",", ": ")
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True, separators=separators)

    @classmethod
    def from_dict(cls, data: dict) -> "ConversionResult":
        grid_type = GridType.parse(data["grid_type"])
        cell_size = float(data["cell_size"])
        palette = Palette(
            colors=tuple(Color(p["r"], p["g"], p["b"]) for p in data["palette"]),
            white_threshold=int(data.get("white_threshold", WHITE_THRESHOLD)),
        )
        shape = SHAPE_FOR_GRID[grid_type]
        cells = tuple(
            Cell(
                x=int(c["x"]),
                y=int(c["y"]),
                centroid=(float(c["centroid"][0]), float(c["centroid"][1])),
                shape=shape,
                size=cell_size,
                code=int(c["code"]),
            )
            for c in data["cells"]
        )
        return cls(
            grid_type=grid_type,
            cell_size=cell_size,
            palette=palette,
            cells=cells,
            image_width=int(data.get("image_width", 0)),
            image_height=int(data.get("image_height", 0)),
        )

    @classmethod
    def from_json(cls, text: str) -> "ConversionResult":
        return cls.from_dict(json.loads(text))


class FilledSet:
    """Cells the user has colored in, keyed by lattice coordinate."""

    def __init__(self, coords: "dict[tuple[int, int], bool] | None" = None):
        self._filled: dict[tuple[int, int], bool] = {}
        for key, value in (coords or {}).items():
            if value:
                self._filled[(int(key[0]), int(key[1]))] = True

    def mark(self, x: int, y: int) -> None:
        self._filled[(x, y)] = True

    def clear(self) -> None:
        self._filled.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._filled

    def __len__(self) -> int:
        return len(self._filled)

    def __iter__(self) -> "Iterator[tuple[int, int]]":
        return iter(self._filled)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FilledSet):
            return NotImplemented
        return self._filled == other._filled

    def __repr__(self) -> str:
        return f"FilledSet({sorted(self._filled)!r})"

    def to_dict(self) -> "dict[str, bool]":
        """Serialize as {"x,y": true}, the web app's progress format."""
        return {f"{x},{y}": True for x, y in sorted(self._filled)}

    @classmethod
    def from_dict(cls, data: "dict[str, bool]") -> "FilledSet":
        filled = cls()
        for key, value in data.items():
            if not value:
                continue
            x_text, y_text = key.split(",")
            filled.mark(int(x_text), int(y_text))
        return filled
