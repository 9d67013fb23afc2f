"""Salience-bucket palette extraction.

Two scans over the pixels replace a full clustering pass:

- **main colours**: coarse buckets (60 levels per channel) ranked by
  pixel count, so flat areas win;
- **accent colours**: fine buckets (25 levels) over saturated pixels only,
  ranked by saturation, so a small but vivid detail (a red tongue on a
  muted face) still earns a palette slot.

White always takes slot 0 as the background yarn.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import numpy as np

from knit_chart.color_utils import (
    BLACK,
    WHITE,
    Color,
    as_pixel_array,
    is_near_black,
    is_near_white,
    saturation_of,
)
from knit_chart.config import MAX_COLOR_COUNT

logger = logging.getLogger(__name__)

MAIN_BUCKET_SIZE = 60
ACCENT_BUCKET_SIZE = 25
ACCENT_MIN_SATURATION = 0.35
ACCENT_MIN_PIXELS = 3
MAIN_DEDUP_DISTANCE = 70.0
ACCENT_DEDUP_DISTANCE = 50.0

BEIGE = Color(235, 210, 175)
CLEAN_RED = Color(205, 50, 50)

SnapRule = tuple[Callable[[Color], bool], Color]


@dataclass(frozen=True)
class BucketStats:
    """Running totals for one quantised cell of colour space."""

    key: tuple[int, int, int]
    count: int
    sum_r: int
    sum_g: int
    sum_b: int
    first_index: int

    def mean_color(self) -> Color:
        """Mean colour of the bucket, each channel rounded half-up."""
        n = self.count
        return Color(
            (2 * self.sum_r + n) // (2 * n),
            (2 * self.sum_g + n) // (2 * n),
            (2 * self.sum_b + n) // (2 * n),
        )


def accumulate_buckets(
    pixels: np.ndarray,
    bucket_size: int,
    mask: np.ndarray | None = None,
) -> list[BucketStats]:
    """Group pixels by channel values floored to multiples of *bucket_size*.

    Args:
        pixels: (N, 3) integer colours in row-major order.
        bucket_size: Width of a bucket along each channel.
        mask: Optional (N,) bool selecting which pixels take part.

    Returns:
        One :class:`BucketStats` per non-empty bucket, in order of first
        appearance.
    """
    indices = np.arange(len(pixels))
    if mask is not None:
        pixels = pixels[mask]
        indices = indices[mask]
    if len(pixels) == 0:
        return []

    keys = (pixels // bucket_size) * bucket_size
    uniq, first, inverse, counts = np.unique(
        keys, axis=0, return_index=True, return_inverse=True, return_counts=True,
    )
    inverse = inverse.reshape(-1)
    sums = np.stack(
        [
            np.bincount(inverse, weights=pixels[:, ch], minlength=len(uniq))
            for ch in range(3)
        ],
        axis=1,
    ).astype(np.int64)

    stats = [
        BucketStats(
            key=(int(k[0]), int(k[1]), int(k[2])),
            count=int(n),
            sum_r=int(s[0]),
            sum_g=int(s[1]),
            sum_b=int(s[2]),
            first_index=int(indices[f]),
        )
        for k, n, s, f in zip(uniq, counts, sums, first, strict=True)
    ]
    stats.sort(key=lambda s: s.first_index)
    return stats


# -- Snapping rules ----------------------------------------------------


def is_pale_low_saturation(c: Color) -> bool:
    """Washed-out light tones (skin, sand, cream) knit as one beige."""
    return c.saturation < 0.3 and c.r > 150


def is_reddish(c: Color) -> bool:
    return c.r > c.g and c.r > c.b


def is_halo(c: Color) -> bool:
    """Grey mid-tones left behind by anti-aliased edges."""
    return c.saturation < 0.12 and 40 < c.brightness < 210


MAIN_SNAP_RULES: tuple[SnapRule, ...] = (
    (is_near_black, BLACK),
    (is_pale_low_saturation, BEIGE),
)

ACCENT_SNAP_RULES: tuple[SnapRule, ...] = (
    (is_reddish, CLEAN_RED),
)


def snap(c: Color, rules: Sequence[SnapRule]) -> Color:
    """Replace *c* by the canonical colour of the first matching rule."""
    for predicate, canonical in rules:
        if predicate(c):
            return canonical
    return c


def _is_distinct(c: Color, palette: list[Color], threshold: float) -> bool:
    return all(p.distance(c) >= threshold for p in palette)


# -- Extraction --------------------------------------------------------


def extract_palette_by_salience(
    pixels: np.ndarray,
    color_count: int,
) -> list[Color]:
    """Pick ``color_count`` colours plus white from an image.

    Args:
        pixels: (..., 3) uint8 RGB buffer.
        color_count: Colours wanted besides the white background (0-50).

    Returns:
        Palette of exactly ``color_count + 1`` colours, white first.
    """
    if not 0 <= color_count <= MAX_COLOR_COUNT:
        msg = f"color_count must be within 0-{MAX_COLOR_COUNT}, got {color_count}"
        raise ValueError(msg)

    flat = as_pixel_array(pixels)
    n = color_count

    main_stats = accumulate_buckets(flat, MAIN_BUCKET_SIZE)
    main_stats.sort(key=lambda s: -s.count)
    main_colors = [s.mean_color() for s in main_stats]

    accent_stats = accumulate_buckets(
        flat, ACCENT_BUCKET_SIZE, mask=saturation_of(flat) > ACCENT_MIN_SATURATION,
    )
    accent_colors = [
        s.mean_color() for s in accent_stats if s.count >= ACCENT_MIN_PIXELS
    ]
    accent_colors.sort(key=lambda c: -c.saturation)

    logger.info(
        "Salience scan: %d main buckets, %d accent buckets",
        len(main_colors), len(accent_colors),
    )

    palette = [WHITE]

    # Main colours by frequency; the last slot stays free for the accent.
    for c in main_colors:
        if len(palette) >= n:
            break
        if is_near_white(c) or is_halo(c):
            continue
        if _is_distinct(c, palette, MAIN_DEDUP_DISTANCE):
            palette.append(snap(c, MAIN_SNAP_RULES))
            logger.debug("Main colour %s -> %s", c, palette[-1])

    if accent_colors and len(palette) <= n:
        accent = accent_colors[0]
        if _is_distinct(accent, palette, ACCENT_DEDUP_DISTANCE):
            palette.append(snap(accent, ACCENT_SNAP_RULES))
            logger.debug("Accent colour %s -> %s", accent, palette[-1])

    for c in main_colors:
        if len(palette) >= n + 1:
            break
        if not is_near_white(c) and _is_distinct(c, palette, MAIN_DEDUP_DISTANCE):
            palette.append(c)

    missing = n + 1 - len(palette)
    if missing > 0:
        logger.debug("Padding palette with %d x black", missing)
        palette.extend([BLACK] * missing)

    return palette
