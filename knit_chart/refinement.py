"""Centroid-refinement (k-means style) palette extraction.

White is pinned as centroid 0 so the background yarn never drifts. The
remaining centroids are seeded deterministically with a farthest-point
pass and then refined for a fixed number of iterations.
"""

from __future__ import annotations

import logging

import numpy as np

from knit_chart.color_utils import (
    BLACK,
    WHITE,
    Color,
    as_pixel_array,
    brightness_of,
    nearest_index,
    round_half_up,
    squared_distances,
)
from knit_chart.config import MAX_COLOR_COUNT

logger = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 20
DARK_BRIGHTNESS = 240


def _seed_centroids(pixels: np.ndarray, color_count: int) -> np.ndarray:
    """Initial (color_count + 1, 3) float centroids, white first."""
    white = np.array(WHITE, dtype=np.float64)

    if color_count == 1:
        dark = pixels[brightness_of(pixels) < DARK_BRIGHTNESS]
        second = dark.mean(axis=0) if len(dark) else np.array(BLACK, dtype=np.float64)
        return np.stack([white, second])

    centroids = [white]
    min_dist = squared_distances(pixels, white[np.newaxis, :])[:, 0]
    for _ in range(color_count):
        # argmax returns the first maximum, i.e. the lowest row-major index
        idx = int(np.argmax(min_dist))
        pick = pixels[idx]
        centroids.append(pick)
        min_dist = np.minimum(min_dist, squared_distances(pixels, pick[np.newaxis, :])[:, 0])
    return np.stack(centroids)


def extract_palette_by_refinement(
    pixels: np.ndarray,
    color_count: int,
    iterations: int = DEFAULT_ITERATIONS,
) -> list[Color]:
    """Cluster the image into ``color_count`` colours plus a fixed white.

    Args:
        pixels: (..., 3) uint8 RGB buffer.
        color_count: Colours wanted besides white (1-50).
        iterations: Assign / update rounds.

    Returns:
        Palette of ``color_count + 1`` colours, white first.
    """
    if not 1 <= color_count <= MAX_COLOR_COUNT:
        msg = f"color_count must be within 1-{MAX_COLOR_COUNT}, got {color_count}"
        raise ValueError(msg)

    flat = as_pixel_array(pixels).astype(np.float64)
    if len(flat) == 0:
        logger.info("Empty pixel buffer, returning white + black padding")
        return [WHITE] + [BLACK] * color_count

    centroids = _seed_centroids(flat, color_count)
    k = len(centroids)

    for it in range(iterations):
        labels = nearest_index(flat, centroids)
        counts = np.bincount(labels, minlength=k)
        sums = np.stack(
            [np.bincount(labels, weights=flat[:, ch], minlength=k) for ch in range(3)],
            axis=1,
        )

        # centroid 0 stays white, empty clusters keep their position
        update = counts > 0
        update[0] = False
        updated = centroids.copy()
        updated[update] = sums[update] / counts[update, np.newaxis]

        if np.array_equal(updated, centroids):
            logger.debug("Refinement converged after %d iterations", it)
            break
        centroids = updated

    logger.info("Refinement palette: %d colours from %d pixels", k, len(flat))

    rounded = np.clip(round_half_up(centroids), 0, 255)
    return [Color(int(r), int(g), int(b)) for r, g, b in rounded]
