"""Colour model, hex codec and distance helpers."""

from __future__ import annotations

import math
import re
from typing import NamedTuple

import numpy as np

from knit_chart.errors import InvalidHex

_HEX_RE = re.compile(r"^#?([0-9a-f]{2})([0-9a-f]{2})([0-9a-f]{2})$", re.IGNORECASE)


class Color(NamedTuple):
    """An opaque 8-bit RGB colour."""

    r: int
    g: int
    b: int

    @property
    def brightness(self) -> float:
        return (self.r + self.g + self.b) / 3

    @property
    def saturation(self) -> float:
        """``(max - min) / max`` over the channels, 0 for black."""
        hi = max(self)
        if hi == 0:
            return 0.0
        return (hi - min(self)) / hi

    def distance(self, other: Color) -> float:
        """Euclidean distance in raw RGB space."""
        return math.sqrt(
            (self.r - other.r) ** 2
            + (self.g - other.g) ** 2
            + (self.b - other.b) ** 2
        )


WHITE = Color(255, 255, 255)
BLACK = Color(0, 0, 0)


def is_near_white(c: Color, threshold: int = 220) -> bool:
    return c.r > threshold and c.g > threshold and c.b > threshold


def is_near_black(c: Color, threshold: int = 50) -> bool:
    return c.r < threshold and c.g < threshold and c.b < threshold


# -- Hex codec ---------------------------------------------------------


def color_to_hex(c: Color) -> str:
    """Format a colour as ``#RRGGBB`` (uppercase)."""
    for channel in c:
        if not 0 <= channel <= 255:
            msg = f"Channel value {channel} outside 0-255 in {tuple(c)}"
            raise ValueError(msg)
    return "#{:02X}{:02X}{:02X}".format(*c)


def hex_to_color(hex_str: str) -> Color:
    """Parse ``#RRGGBB`` (case-insensitive, ``#`` optional) into a Color."""
    match = _HEX_RE.match(hex_str.strip()) if isinstance(hex_str, str) else None
    if match is None:
        msg = f"Invalid hex colour {hex_str!r}, expected '#RRGGBB'"
        raise InvalidHex(msg)
    return Color(*(int(part, 16) for part in match.groups()))


# -- Array helpers -----------------------------------------------------


def as_pixel_array(pixels: np.ndarray) -> np.ndarray:
    """Flatten an ``(..., 3)`` pixel buffer to ``(N, 3)`` int64."""
    arr = np.asarray(pixels)
    if arr.ndim < 1 or arr.shape[-1] != 3:
        msg = f"Pixel buffer must have a trailing RGB axis, got shape {arr.shape}"
        raise ValueError(msg)
    return arr.reshape(-1, 3).astype(np.int64)


def palette_array(palette: list[Color]) -> np.ndarray:
    """Palette as a ``(K, 3)`` int64 array."""
    return np.array([tuple(c) for c in palette], dtype=np.int64).reshape(-1, 3)


def round_half_up(values: np.ndarray) -> np.ndarray:
    """Round non-negative values with halves going up (not to even)."""
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5).astype(np.int64)


def brightness_of(pixels: np.ndarray) -> np.ndarray:
    """Per-pixel brightness for an ``(N, 3)`` array."""
    return pixels.sum(axis=1) / 3


def saturation_of(pixels: np.ndarray) -> np.ndarray:
    """Per-pixel saturation for an ``(N, 3)`` array (0 where max is 0)."""
    hi = pixels.max(axis=1).astype(np.float64)
    lo = pixels.min(axis=1).astype(np.float64)
    out = np.zeros(len(pixels), dtype=np.float64)
    np.divide(hi - lo, hi, out=out, where=hi > 0)
    return out


def squared_distances(
    pixels: np.ndarray,
    palette: np.ndarray,
    chunk_size: int = 4096,
) -> np.ndarray:
    """Pairwise squared Euclidean distance between pixels and palette entries.

    Args:
        pixels:  (N, 3) colours.
        palette: (K, 3) colours.
        chunk_size: Rows computed per batch (controls peak RAM).

    Returns:
        (N, K) float64 matrix.
    """
    p = np.asarray(pixels, dtype=np.float64)
    q = np.asarray(palette, dtype=np.float64)

    n = len(p)
    dist = np.empty((n, len(q)), dtype=np.float64)
    for i in range(0, n, chunk_size):
        j = min(i + chunk_size, n)
        diff = p[i:j, np.newaxis, :] - q[np.newaxis, :, :]
        dist[i:j] = np.sum(diff ** 2, axis=2)
    return dist


def nearest_index(pixels: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """Index of the nearest palette entry per pixel; ties go to the lowest index."""
    return np.argmin(squared_distances(pixels, palette), axis=1)
