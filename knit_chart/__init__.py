"""
Knit Chart Generator
====================

Turn any image into a knitting chart: a small grid of stitches in a
handful of yarn colours. Aspect ratio is preserved. Ships two palette
extractors:

- **Salience buckets** (frequent colours plus one reserved accent)
- **Centroid refinement** (k-means style, white pinned as background)

or maps the image onto a fixed set of yarns of your choice.
"""

__version__ = "1.0.0"

from knit_chart.assign import classify, match_custom_palette
from knit_chart.chart import (
    ChartResult,
    LegendEntry,
    build_chart,
    grid_to_hex,
    palette_legend,
)
from knit_chart.color_utils import Color, color_to_hex, hex_to_color
from knit_chart.config import ChartConfig
from knit_chart.errors import ChartError, EmptyPalette, InvalidDimensions, InvalidHex
from knit_chart.image_io import (
    SizeFit,
    fit_size,
    load_pixels,
    make_comparison_grid,
    save_upscaled,
)
from knit_chart.refinement import extract_palette_by_refinement
from knit_chart.salience import extract_palette_by_salience
from knit_chart.yarns import YARN_COLORS, yarn_name

__all__ = [
    "YARN_COLORS",
    "ChartConfig",
    "ChartError",
    "ChartResult",
    "Color",
    "EmptyPalette",
    "InvalidDimensions",
    "InvalidHex",
    "LegendEntry",
    "SizeFit",
    "build_chart",
    "classify",
    "color_to_hex",
    "extract_palette_by_refinement",
    "extract_palette_by_salience",
    "fit_size",
    "grid_to_hex",
    "hex_to_color",
    "load_pixels",
    "make_comparison_grid",
    "match_custom_palette",
    "palette_legend",
    "save_upscaled",
    "yarn_name",
]
