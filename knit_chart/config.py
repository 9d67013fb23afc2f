"""Centralised configuration via a frozen dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

PALETTE_MODES = ("auto", "custom")
STRATEGIES = ("salience", "refinement")

MAX_BOUND = 200
MAX_COLOR_COUNT = 50


def clamp_bound(value: int) -> int:
    """Clamp a chart width / height bound to 1-200."""
    return max(1, min(MAX_BOUND, value))


def clamp_color_count(value: int) -> int:
    """Clamp the requested colour count to 0-50."""
    return max(0, min(MAX_COLOR_COUNT, value))


@dataclass(frozen=True)
class ChartConfig:
    """All tuneable parameters for a chart run.

    Attributes:
        max_width:      Maximum stitches per row.
        max_height:     Maximum number of rows.
        color_count:    Colours besides white in auto mode (0 = keep raw colours).
        palette_mode:   "auto" (derive from image) or "custom" (fixed yarns).
        strategy:       Auto-mode extractor - "salience" or "refinement".
        custom_palette: Yarn names or hex codes used in custom mode.
        refinement_iterations: Assign / update rounds for "refinement".
        pixel_upscale:  Each stitch becomes n x n in the output image.
        output_format:  Image format for saved files.
        save_comparison: Generate a side-by-side comparison grid.
        input_dir:      Folder to scan for source images.
        output_dir:     Folder for results.
    """

    # Chart size
    max_width: int = 50
    max_height: int = 50

    # Palette
    color_count: int = 3
    palette_mode: str = "auto"  # see PALETTE_MODES
    strategy: str = "salience"  # see STRATEGIES
    custom_palette: tuple[str, ...] = ()
    refinement_iterations: int = 20

    # Output
    pixel_upscale: int = 12
    output_format: str = "png"
    save_comparison: bool = True

    # Paths
    input_dir: Path = field(default_factory=lambda: Path("images"))
    output_dir: Path = field(default_factory=lambda: Path("output"))

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
        {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp", ".gif"}
    )
