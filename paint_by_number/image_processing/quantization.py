"""Color quantization methods for reducing image color palettes.

AIDEV-NOTE: This module handles color quantization using K-means clustering
and PIL's built-in methods. K-means provides best results for photographs.
Every path is deterministic: identical pixels always give an identical
palette in an identical order, which re-processing and saved progress rely on.
"""

import numpy as np
from PIL import Image
from sklearn.cluster import KMeans

from ..errors import ConfigError, EmptyImageError
from ..models import DEDUP_THRESHOLD_SQ, QUANTIZATION_METHODS, WHITE_THRESHOLD, Palette
from .utils import color_distance_sq, nearest_indices

# Fixed seeds keep clustering reproducible across runs
KMEANS_RANDOM_STATE = 42
KMEANS_N_INIT = 4
SAMPLE_SEED = 1234

# Above this many distinct colors, K-means is fitted on a weighted sample
MAX_KMEANS_SAMPLES = 50_000

_PILLOW_METHODS = {
    "median_cut": Image.Quantize.MEDIANCUT,
    "octree": Image.Quantize.FASTOCTREE,
}


def quantize_colors(
    pixels: np.ndarray,
    num_colors: int,
    method: str = "kmeans",
    white_threshold: int = WHITE_THRESHOLD,
) -> "tuple[Palette, np.ndarray]":
    """Reduce an image to a limited color palette.

    Args:
        pixels: (H, W, 3) uint8 pixel buffer
        num_colors: Maximum palette size (K)
        method: Quantization method ('kmeans', 'median_cut', or 'octree')
        white_threshold: Background threshold carried by the palette

    Returns:
        Tuple of (palette, labels) where labels is an (H, W) array holding the
        nearest palette code of every pixel

    Raises:
        ConfigError: If num_colors < 1 or the method is unknown
        EmptyImageError: If the buffer has no pixels
    """
    if num_colors <= 0:
        raise ConfigError(f"Palette size must be at least 1, got {num_colors}")
    if method not in QUANTIZATION_METHODS:
        raise ConfigError(f"Unknown quantization method: {method!r}")

    height, width = pixels.shape[:2]
    flat = np.asarray(pixels, dtype=np.uint8).reshape(-1, 3)
    if len(flat) == 0:
        raise EmptyImageError("Cannot quantize an image with no pixels")

    keys = _pack(flat)
    unique_keys, first_index, inverse, counts = np.unique(
        keys, return_index=True, return_inverse=True, return_counts=True
    )
    inverse = inverse.reshape(-1)

    # Few enough colors: keep them exactly, ordered by first appearance
    if len(unique_keys) <= num_colors:
        order = np.argsort(first_index, kind="stable")
        rank = np.empty_like(order)
        rank[order] = np.arange(len(order))
        colors = flat[first_index[order]]
        palette = Palette(colors=tuple(map(tuple, colors)), white_threshold=white_threshold)
        return palette, rank[inverse].reshape(height, width)

    unique_colors = _unpack(unique_keys)
    if method == "kmeans":
        centers = quantize_kmeans(unique_colors, counts, num_colors)
    else:
        centers = quantize_pillow(pixels, num_colors, _PILLOW_METHODS[method])
    centers = np.clip(np.rint(centers), 0, 255).astype(np.uint8)

    # Assign unique colors to centers, then fan out to every pixel
    pixel_labels = nearest_indices(unique_colors, centers)[inverse]
    ordered = _order_by_first_appearance(pixel_labels)
    merged = deduplicate_colors([tuple(int(c) for c in centers[i]) for i in ordered])

    # Re-match against the merged palette and drop entries nothing maps to
    merged_arr = np.asarray(merged, dtype=np.uint8)
    unique_labels = nearest_indices(unique_colors, merged_arr)
    kept = _order_by_first_appearance(unique_labels[inverse])
    final = [merged[i] for i in kept]

    remap = np.zeros(len(merged), dtype=np.int64)
    remap[kept] = np.arange(len(kept))
    palette = Palette(colors=tuple(final), white_threshold=white_threshold)
    return palette, remap[unique_labels][inverse].reshape(height, width)


def quantize_kmeans(
    colors: np.ndarray,
    weights: np.ndarray,
    num_colors: int,
) -> np.ndarray:
    """K-means color quantization implementation.

    Args:
        colors: (N, 3) distinct colors of the image
        weights: (N,) pixel count of each distinct color
        num_colors: Number of clusters

    Returns:
        (num_colors, 3) float array of cluster centers

    AIDEV-NOTE: Fitting on distinct colors weighted by count gives the same
    clusters as fitting on every pixel but is much cheaper for flat images.
    """
    colors = np.asarray(colors, dtype=np.float64)
    weights = np.asarray(weights, dtype=np.float64)

    if len(colors) > MAX_KMEANS_SAMPLES:
        rng = np.random.default_rng(SAMPLE_SEED)
        pick = rng.choice(len(colors), size=MAX_KMEANS_SAMPLES, replace=False, p=weights / weights.sum())
        pick.sort()
        colors = colors[pick]
        weights = weights[pick]

    kmeans = KMeans(n_clusters=num_colors, random_state=KMEANS_RANDOM_STATE, n_init=KMEANS_N_INIT)
    kmeans.fit(colors, sample_weight=weights)
    return kmeans.cluster_centers_


def quantize_pillow(
    pixels: np.ndarray,
    num_colors: int,
    method: Image.Quantize,
) -> np.ndarray:
    """Pillow-based color quantization, returning the used palette entries."""
    image = Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8))
    quantized = image.quantize(colors=num_colors, method=method)

    palette_data = quantized.getpalette()
    if palette_data is None:
        return np.asarray([[128, 128, 128]], dtype=np.float64)  # Fallback gray

    entries = np.asarray(palette_data, dtype=np.float64).reshape(-1, 3)
    used = np.unique(np.asarray(quantized))
    return entries[used[used < len(entries)]]


def deduplicate_colors(
    colors: "list[tuple[int, int, int]]",
    threshold_sq: float = DEDUP_THRESHOLD_SQ,
) -> "list[tuple[int, int, int]]":
    """Merge near-duplicate colors into the earliest one, preserving order."""
    unique: list[tuple[int, int, int]] = []
    for color in colors:
        if any(color_distance_sq(color, kept) < threshold_sq for kept in unique):
            continue
        unique.append(color)
    return unique


def _order_by_first_appearance(labels: np.ndarray) -> "list[int]":
    """Distinct label values sorted by where they first occur."""
    values, first = np.unique(labels, return_index=True)
    return [int(v) for v in values[np.argsort(first, kind="stable")]]


def _pack(flat: np.ndarray) -> np.ndarray:
    flat = flat.astype(np.int32)
    return (flat[:, 0] << 16) | (flat[:, 1] << 8) | flat[:, 2]


def _unpack(keys: np.ndarray) -> np.ndarray:
    return np.stack([(keys >> 16) & 0xFF, (keys >> 8) & 0xFF, keys & 0xFF], axis=1).astype(np.uint8)
