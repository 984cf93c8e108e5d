"""Image processing pipeline for image-to-grid conversion.

AIDEV-NOTE: This package handles the complete pipeline from raster image
to coded paint-by-number grid. Organized into modular components:
- processor: Main ImageConverter orchestrator
- quantization: Color palette reduction
- dithering: Per-pixel assignment strategies (nearest, Floyd-Steinberg)
- tessellation: Square, diamond and honeycomb layouts
- colorizer: Cell code assignment
- svg_export: Printable template output
- utils: Scaling, color, and nearest-palette utilities
"""

from .colorizer import colorize_cells
from .dithering import (
    FloydSteinbergStrategy,
    NearestStrategy,
    PipelinedFloydSteinbergStrategy,
    perceived_error,
    select_strategy,
)
from .processor import ImageConverter, convert
from .quantization import quantize_colors
from .svg_export import palette_legend, render_svg
from .tessellation import Tessellation, tessellate

__all__ = [
    "ImageConverter",
    "convert",
    "quantize_colors",
    "NearestStrategy",
    "FloydSteinbergStrategy",
    "PipelinedFloydSteinbergStrategy",
    "select_strategy",
    "perceived_error",
    "Tessellation",
    "tessellate",
    "colorize_cells",
    "render_svg",
    "palette_legend",
]
