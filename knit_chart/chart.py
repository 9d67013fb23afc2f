"""Image-to-chart pipeline: palette choice, pixel assignment, legend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from knit_chart.assign import classify, match_custom_palette
from knit_chart.color_utils import Color, as_pixel_array, color_to_hex
from knit_chart.config import PALETTE_MODES, STRATEGIES, ChartConfig
from knit_chart.refinement import extract_palette_by_refinement
from knit_chart.salience import extract_palette_by_salience
from knit_chart.yarns import resolve_yarn, yarn_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChartResult:
    """A finished chart.

    Attributes:
        grid:    (H, W, 3) uint8, one colour per stitch.
        palette: Colours the chart was built from, in legend order.
    """

    grid: np.ndarray
    palette: list[Color]

    @property
    def width(self) -> int:
        return self.grid.shape[1]

    @property
    def height(self) -> int:
        return self.grid.shape[0]


class LegendEntry(NamedTuple):
    color: Color
    name: str
    stitches: int


def _distinct_colors(pixels: np.ndarray) -> list[Color]:
    """Distinct colours in order of first appearance."""
    flat = as_pixel_array(pixels)
    if len(flat) == 0:
        return []
    uniq, first = np.unique(flat, axis=0, return_index=True)
    return [Color(int(r), int(g), int(b)) for r, g, b in uniq[np.argsort(first)]]


def resolve_custom_palette(entries: tuple[str, ...] | list[str]) -> list[Color]:
    """Parse yarn names / hex codes, dropping repeats but keeping order."""
    palette: list[Color] = []
    for entry in entries:
        c = resolve_yarn(entry)
        if c not in palette:
            palette.append(c)
    return palette


def build_chart(pixels: np.ndarray, config: ChartConfig | None = None) -> ChartResult:
    """Quantise an (H, W, 3) pixel buffer into a knitting chart.

    Args:
        pixels: (H, W, 3) uint8, already composited onto white and
            resampled to the chart size.
        config: Palette settings; defaults to :class:`ChartConfig`.

    Returns:
        :class:`ChartResult` with the stitch grid and its palette.
    """
    cfg = config or ChartConfig()
    if cfg.palette_mode not in PALETTE_MODES:
        msg = f"Unknown palette mode '{cfg.palette_mode}'. Available: {', '.join(PALETTE_MODES)}"
        raise ValueError(msg)
    if cfg.strategy not in STRATEGIES:
        msg = f"Unknown strategy '{cfg.strategy}'. Available: {', '.join(STRATEGIES)}"
        raise ValueError(msg)

    pixels = np.asarray(pixels, dtype=np.uint8)

    if cfg.palette_mode == "custom":
        palette = resolve_custom_palette(cfg.custom_palette)
        grid = match_custom_palette(pixels, palette)
        return ChartResult(grid, palette)

    if cfg.color_count == 0:
        logger.info("Colour count 0: keeping raw pixel colours")
        return ChartResult(pixels.copy(), _distinct_colors(pixels))

    if cfg.strategy == "refinement":
        palette = extract_palette_by_refinement(
            pixels, cfg.color_count, iterations=cfg.refinement_iterations,
        )
    else:
        palette = extract_palette_by_salience(pixels, cfg.color_count)

    logger.info(
        "Palette (%s): %s", cfg.strategy, ", ".join(color_to_hex(c) for c in palette),
    )
    return ChartResult(classify(pixels, palette), palette)


def grid_to_hex(grid: np.ndarray) -> list[list[str]]:
    """(H, W, 3) grid to rows of ``#RRGGBB`` strings for the chart editor."""
    return [[color_to_hex(Color(*map(int, px))) for px in row] for row in grid]


def palette_legend(grid: np.ndarray, palette: list[Color]) -> list[LegendEntry]:
    """Stitch count per palette colour, in palette order.

    Colours that no stitch uses, and repeated entries, are left out.
    """
    uniq, counts = np.unique(as_pixel_array(grid), axis=0, return_counts=True)
    used = {(int(r), int(g), int(b)): int(n) for (r, g, b), n in zip(uniq, counts, strict=True)}

    legend: list[LegendEntry] = []
    seen: set[Color] = set()
    for c in palette:
        if c in seen or tuple(c) not in used:
            continue
        seen.add(c)
        legend.append(LegendEntry(c, yarn_name(c), used[tuple(c)]))
    return legend
