"""Main image converter orchestrating the complete pipeline.

AIDEV-NOTE: This module handles the complete pipeline from raster image to
coded paint-by-number grid. Uses modular components for quantization,
dithering, tessellation and colorizing. The pipeline is a pure function of
(image bytes, config): it holds no state between calls.
"""

import io
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from ..errors import ConfigError, DecodeError, EmptyImageError
from ..models import ConversionConfig, ConversionResult, Palette
from .colorizer import colorize_cells
from .dithering import CancelCheck, _check_cancel, select_strategy
from .quantization import quantize_colors
from .tessellation import Tessellation
from .utils import flatten_alpha, has_few_colors, image_to_pixels, scale_image_to_width

ImageSource = Union[bytes, bytearray, str, Path, Image.Image]


class ImageConverter:
    """Converts images into coded cell grids."""

    def __init__(self, config: ConversionConfig | None = None):
        self.config = (config or ConversionConfig()).validate()

    def load_image(self, source: ImageSource) -> Image.Image:
        """Decode an image from bytes, a file path, or a PIL image.

        Args:
            source: Raw image bytes (PNG, JPG, etc.), path, or PIL Image

        Returns:
            Decoded PIL Image (pixel data loaded)

        Raises:
            DecodeError: If the data cannot be read as an image
        """
        if isinstance(source, Image.Image):
            return source

        try:
            if isinstance(source, (bytes, bytearray)):
                image = Image.open(io.BytesIO(bytes(source)))
            else:
                image = Image.open(source)
            # AIDEV-NOTE: Force the decode now so truncated files fail here
            image.load()
            return image
        except Exception as e:
            raise DecodeError(f"Failed to load image: {e}") from e

    def prepare_pixels(self, image: Image.Image) -> np.ndarray:
        """Flatten transparency, cap the width, and return the working buffer.

        AIDEV-NOTE: An image that already fits the palette is shrunk with
        NEAREST, so no blended colors appear and its palette stays exact.

        Raises:
            EmptyImageError: If the image has zero width or height
        """
        if image.width == 0 or image.height == 0:
            raise EmptyImageError(f"Image has zero area ({image.width}x{image.height})")

        rgb_image = flatten_alpha(image)
        resample = Image.Resampling.LANCZOS
        if has_few_colors(rgb_image, self.config.palette_size):
            resample = Image.Resampling.NEAREST
        scaled_image, _ = scale_image_to_width(rgb_image, self.config.max_width, resample)
        return image_to_pixels(scaled_image)

    def quantize_colors(self, pixels: np.ndarray) -> "tuple[Palette, np.ndarray]":
        """Reduce the buffer to at most config.palette_size colors."""
        return quantize_colors(
            pixels,
            self.config.palette_size,
            method=self.config.quantization_method,
            white_threshold=self.config.white_threshold,
        )

    def assign_pixels(
        self,
        pixels: np.ndarray,
        palette: Palette,
        cancel_check: CancelCheck = None,
    ) -> np.ndarray | None:
        """Per-pixel codes when dithering, None when matching is left to the colorizer."""
        if not self.config.use_dithering:
            return None
        strategy = select_strategy(True, self.config.dither_workers)
        return strategy.assign(pixels, palette, cancel_check)

    def tessellate(self, width: int, height: int) -> Tessellation:
        """Cell layout for a working buffer of the given size."""
        return Tessellation(self.config.grid_type, self.config.cell_size, width, height)

    def convert(self, source: ImageSource, cancel_check: CancelCheck = None) -> ConversionResult:
        """Execute the complete conversion pipeline.

        Args:
            source: Original image bytes (or path / PIL Image)
            cancel_check: Optional callable polled between stages; returning
                True aborts with ConversionCancelled

        Returns:
            ConversionResult with palette and coded cells

        Raises:
            DecodeError: Unreadable or corrupt image
            EmptyImageError: Zero-area image
            ConversionCancelled: cancel_check asked to stop
        """
        config = self.config
        print("Starting conversion pipeline...")

        print("Loading image...")
        image = self.load_image(source)
        pixels = self.prepare_pixels(image)
        height, width = pixels.shape[:2]
        print(f"Loaded image with size: {image.width}x{image.height} pixels (working size {width}x{height}).")
        _check_cancel(cancel_check)

        print(f"Quantizing to at most {config.palette_size} colors ({config.quantization_method})...")
        palette, _ = self.quantize_colors(pixels)
        print(f"Palette has {len(palette)} colors.")
        _check_cancel(cancel_check)

        codes = None
        if config.use_dithering:
            print("Dithering...")
            codes = self.assign_pixels(pixels, palette, cancel_check)
        _check_cancel(cancel_check)

        print(f"Tessellating {config.grid_type.value} grid (cell size {config.cell_size:g})...")
        tessellation = self.tessellate(width, height)
        cells = colorize_cells(tessellation, pixels, palette, codes=codes, policy=config.sampling)
        _check_cancel(cancel_check)

        print("Conversion complete.")
        print(f"Total cells: {len(cells)}")

        return ConversionResult(
            grid_type=config.grid_type,
            cell_size=config.cell_size,
            palette=palette,
            cells=cells,
            image_width=width,
            image_height=height,
        )


def convert(
    source: ImageSource,
    config: ConversionConfig | None = None,
    cancel_check: CancelCheck = None,
) -> ConversionResult:
    """Convert an image with the given settings.

    Raises:
        ConfigError: Invalid settings (checked before decoding)
    """
    if config is not None and not isinstance(config, ConversionConfig):
        raise ConfigError(f"Expected ConversionConfig, got {type(config).__name__}")
    return ImageConverter(config).convert(source, cancel_check)
