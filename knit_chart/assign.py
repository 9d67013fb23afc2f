"""Per-pixel assignment of a finished palette."""

from __future__ import annotations

import logging
from collections.abc import Callable

import numpy as np

from knit_chart.color_utils import (
    Color,
    as_pixel_array,
    brightness_of,
    is_near_black,
    is_near_white,
    palette_array,
    saturation_of,
    squared_distances,
)
from knit_chart.errors import EmptyPalette

logger = logging.getLogger(__name__)

DARK_BRIGHTNESS = 60
LIGHT_BRIGHTNESS = 230
RED_PIXEL_SATURATION = 0.4
RED_ENTRY_MIN_SATURATION = 0.35


def is_red_like(c: Color) -> bool:
    return c.r > 150 and c.g < 100 and c.b < 100


def _first_index(palette: list[Color], predicate: Callable[[Color], bool]) -> int | None:
    return next((i for i, c in enumerate(palette) if predicate(c)), None)


def _check_palette(palette: list[Color]) -> np.ndarray:
    if len(palette) == 0:
        msg = "Palette must contain at least one colour"
        raise EmptyPalette(msg)
    return palette_array(palette)


def match_custom_palette(pixels: np.ndarray, palette: list[Color]) -> np.ndarray:
    """Map every pixel to its nearest palette colour.

    Ties go to the entry listed first. No snapping or halo handling.

    Args:
        pixels:  (..., 3) uint8 RGB buffer.
        palette: Non-empty list of colours.

    Returns:
        uint8 array with the same shape as *pixels*.
    """
    pal = _check_palette(palette)
    arr = np.asarray(pixels)
    flat = as_pixel_array(arr)

    choice = np.argmin(squared_distances(flat, pal), axis=1)
    logger.info("Matched %d pixels against %d custom colours", len(flat), len(pal))
    return pal[choice].astype(np.uint8).reshape(arr.shape)


def classify(pixels: np.ndarray, palette: list[Color]) -> np.ndarray:
    """Assign each pixel to a palette colour with perceptual overrides.

    Rules, first match wins:

    1. dark pixels go to the palette's near-black entry, if any;
    2. light pixels go to its near-white entry, if any;
    3. vivid red pixels go to its red-like entry, if any;
    4. anything else takes the nearest entry, except that the red-like
       entry is off limits to pixels with low saturation, so greyish
       edge pixels never turn into accent stitches.

    Args:
        pixels:  (..., 3) uint8 RGB buffer.
        palette: Non-empty list of colours.

    Returns:
        uint8 array with the same shape as *pixels*.
    """
    pal = _check_palette(palette)
    arr = np.asarray(pixels)
    flat = as_pixel_array(arr)

    brightness = brightness_of(flat)
    saturation = saturation_of(flat)

    black_idx = _first_index(palette, lambda c: is_near_black(c, 30))
    white_idx = _first_index(palette, lambda c: is_near_white(c, 240))
    red_idx = _first_index(palette, is_red_like)

    dist = squared_distances(flat, pal)
    if red_idx is not None:
        dist[saturation < RED_ENTRY_MIN_SATURATION, red_idx] = np.inf
    choice = np.argmin(dist, axis=1)

    # Overrides applied lowest priority first so rule 1 has the last word.
    if red_idx is not None:
        r, g, b = flat[:, 0], flat[:, 1], flat[:, 2]
        vivid_red = (
            (saturation > RED_PIXEL_SATURATION)
            & (r > 150)
            & (r > 1.5 * g)
            & (r > 1.5 * b)
        )
        choice[vivid_red] = red_idx
    if white_idx is not None:
        choice[brightness > LIGHT_BRIGHTNESS] = white_idx
    if black_idx is not None:
        choice[brightness < DARK_BRIGHTNESS] = black_idx

    logger.info("Classified %d pixels into %d colours", len(flat), len(pal))
    return pal[choice].astype(np.uint8).reshape(arr.shape)
