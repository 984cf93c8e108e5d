"""Utility functions for image processing and color operations.

AIDEV-NOTE: This module contains helper functions for scaling, color
distance, nearest-palette lookup and color naming used throughout the
conversion pipeline.
"""

from typing import TYPE_CHECKING, Sequence

import numpy as np
from PIL import Image

if TYPE_CHECKING:
    from ..models import Color

# Rows per chunk when matching pixels against a palette (bounds memory use)
NEAREST_CHUNK = 65536

# Basic colors everyone can recognize, matched by closest RGB
BASIC_COLOR_NAMES: "list[tuple[tuple[int, int, int], str]]" = [
    ((255, 255, 255), "White"),
    ((0, 0, 0), "Black"),
    ((128, 128, 128), "Gray"),
    ((192, 192, 192), "Light gray"),
    ((255, 0, 0), "Red"),
    ((255, 99, 71), "Tomato"),
    ((178, 34, 34), "Dark red"),
    ((255, 165, 0), "Orange"),
    ((255, 215, 0), "Gold"),
    ((255, 255, 0), "Yellow"),
    ((154, 205, 50), "Yellow green"),
    ((0, 128, 0), "Green"),
    ((0, 255, 0), "Lime"),
    ((0, 255, 127), "Spring green"),
    ((0, 206, 209), "Cyan"),
    ((0, 0, 255), "Blue"),
    ((65, 105, 225), "Royal blue"),
    ((0, 0, 139), "Dark blue"),
    ((128, 0, 128), "Purple"),
    ((255, 0, 255), "Magenta"),
    ((255, 192, 203), "Pink"),
    ((139, 69, 19), "Brown"),
    ((210, 180, 140), "Tan"),
    ((245, 245, 220), "Beige"),
]


def color_distance_sq(a: "Sequence[float]", b: "Sequence[float]") -> float:
    """Squared Euclidean distance between two RGB colors."""
    dr = a[0] - b[0]
    dg = a[1] - b[1]
    db = a[2] - b[2]
    return dr * dr + dg * dg + db * db


def nearest_color_index(color: "Sequence[float]", palette: "Sequence[Sequence[int]]") -> int:
    """Index of the closest palette color. Ties go to the lowest index."""
    best_index = 0
    best_dist = float("inf")
    for i, entry in enumerate(palette):
        dist = color_distance_sq(color, entry)
        if dist < best_dist:
            best_dist = dist
            best_index = i
    return best_index


def nearest_indices(pixels: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """Vectorized nearest-palette lookup.

    Args:
        pixels: Array of shape (N, 3), any numeric dtype
        palette: Array of shape (K, 3)

    Returns:
        int64 array of shape (N,) with palette indices

    AIDEV-NOTE: np.argmin returns the first minimum, so ties break to the
    lowest code exactly like nearest_color_index().
    """
    pixels = np.asarray(pixels, dtype=np.float64).reshape(-1, 3)
    palette = np.asarray(palette, dtype=np.float64).reshape(-1, 3)
    result = np.empty(len(pixels), dtype=np.int64)
    for start in range(0, len(pixels), NEAREST_CHUNK):
        chunk = pixels[start : start + NEAREST_CHUNK]
        diff = chunk[:, None, :] - palette[None, :, :]
        dist = (diff * diff).sum(axis=2)
        result[start : start + NEAREST_CHUNK] = np.argmin(dist, axis=1)
    return result


def palette_array(colors: "Sequence[Color]") -> np.ndarray:
    """Palette as a (K, 3) float64 array."""
    return np.asarray([tuple(c) for c in colors], dtype=np.float64).reshape(-1, 3)


def color_name(color: "Sequence[int]") -> str:
    """English name of the closest basic color."""
    best_name = "Other"
    best_dist = float("inf")
    for rgb, name in BASIC_COLOR_NAMES:
        dist = color_distance_sq(color, rgb)
        if dist < best_dist:
            best_dist = dist
            best_name = name
    return best_name


def flatten_alpha(image: Image.Image, background: "tuple[int, int, int]" = (255, 255, 255)) -> Image.Image:
    """Convert any mode to RGB, compositing transparency onto a background.

    AIDEV-NOTE: Transparent regions become white, which the palette treats
    as background, so they end up unlabelled instead of random colors.
    """
    if image.mode in ("RGBA", "LA", "PA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        base = Image.new("RGBA", rgba.size, background + (255,))
        base.alpha_composite(rgba)
        return base.convert("RGB")
    return image.convert("RGB")


def scale_image_to_width(
    image: Image.Image,
    max_width: int | None,
    resample: Image.Resampling = Image.Resampling.LANCZOS,
) -> "tuple[Image.Image, float]":
    """Downscale image so its width is at most max_width, keeping aspect ratio.

    Args:
        image: Input PIL image
        max_width: Width cap in pixels, None to keep the original size
        resample: Pillow resampling filter (NEAREST keeps the color set)

    Returns:
        Tuple of (scaled_image, scale_factor)

    AIDEV-NOTE: Never upscales. Both filters are deterministic, so identical
    bytes always give identical working buffers.
    """
    width, height = image.size
    if max_width is None or width <= max_width:
        return image, 1.0

    scale = max_width / width
    new_width = max_width
    new_height = max(1, round(height * scale))
    return image.resize((new_width, new_height), resample), scale


def has_few_colors(image: Image.Image, limit: int) -> bool:
    """Whether the image uses at most limit distinct colors."""
    return image.getcolors(maxcolors=limit) is not None


def image_to_pixels(image: Image.Image) -> np.ndarray:
    """RGB image as a (H, W, 3) uint8 array."""
    return np.asarray(image.convert("RGB"), dtype=np.uint8).reshape(image.height, image.width, 3)
