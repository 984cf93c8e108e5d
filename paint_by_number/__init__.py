"""Paint-by-number conversion: images to coded cell grids."""

from .errors import ConfigError, ConversionCancelled, ConversionError, DecodeError, EmptyImageError
from .fill_state import FillStateEngine
from .image_processing import ImageConverter, convert, render_svg
from .models import (
    Cell,
    CellShape,
    Color,
    ConversionConfig,
    ConversionResult,
    FilledSet,
    GridType,
    Palette,
    SamplingPolicy,
)
from .session import PaintSession

__all__ = [
    "Cell",
    "CellShape",
    "Color",
    "ConfigError",
    "ConversionCancelled",
    "ConversionConfig",
    "ConversionError",
    "ConversionResult",
    "DecodeError",
    "EmptyImageError",
    "FillStateEngine",
    "FilledSet",
    "GridType",
    "ImageConverter",
    "PaintSession",
    "Palette",
    "SamplingPolicy",
    "convert",
    "render_svg",
]
