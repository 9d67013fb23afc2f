"""Image loading, chart sizing, saving and comparison-grid generation."""

from __future__ import annotations

import math
from pathlib import Path
from typing import BinaryIO, NamedTuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from knit_chart.color_utils import Color
from knit_chart.errors import InvalidDimensions


class SizeFit(NamedTuple):
    """Chart dimensions in stitches (width) and rows (height)."""

    width: int
    height: int


def fit_size(
    source_width: int,
    source_height: int,
    max_width: int,
    max_height: int,
) -> SizeFit:
    """Fit the source aspect ratio inside *max_width* x *max_height*.

    Whichever side hits its bound first is pinned to that bound; the other
    is scaled proportionally (rounded half-up, minimum 1).
    """
    if source_width <= 0 or source_height <= 0:
        msg = f"Source dimensions must be positive, got {source_width}x{source_height}"
        raise InvalidDimensions(msg)
    if max_width <= 0 or max_height <= 0:
        msg = f"Maximum dimensions must be positive, got {max_width}x{max_height}"
        raise InvalidDimensions(msg)

    aspect = source_width / source_height
    if source_width / max_width > source_height / max_height:
        w = max_width
        h = math.floor(max_width / aspect + 0.5)
    else:
        h = max_height
        w = math.floor(max_height * aspect + 0.5)
    return SizeFit(max(1, w), max(1, h))


def flatten_onto_white(img: Image.Image) -> Image.Image:
    """Composite any transparency onto a white background."""
    rgba = img.convert("RGBA")
    background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
    return Image.alpha_composite(background, rgba).convert("RGB")


def load_pixels(
    source: str | Path | BinaryIO,
    max_width: int = 50,
    max_height: int = 50,
) -> np.ndarray:
    """Load an image and resample it to its fitted chart size.

    Returns:
        (H, W, 3) uint8 array.
    """
    img = flatten_onto_white(Image.open(source))
    w, h = fit_size(img.width, img.height, max_width, max_height)
    img = img.resize((w, h), Image.LANCZOS)
    return np.array(img, dtype=np.uint8)


def save_upscaled(
    array: np.ndarray,
    path: str | Path,
    pixel_upscale: int = 12,
) -> None:
    """Save a small array as a nearest-neighbour-upscaled image."""
    img = Image.fromarray(array.astype(np.uint8))
    h, w = array.shape[:2]
    img = img.resize((w * pixel_upscale, h * pixel_upscale), Image.NEAREST)
    img.save(path)


def _load_font(size: int) -> ImageFont.ImageFont:
    try:
        return ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", size,
        )
    except OSError:
        return ImageFont.load_default()


def make_comparison_grid(
    original_path: str | Path,
    target: np.ndarray,
    chart: np.ndarray,
    palette: list[Color],
    output_path: str | Path,
    pixel_upscale: int = 12,
) -> None:
    """Create a 3-panel comparison: Original | Target | Chart, plus swatches.

    All panels are upscaled to the same pixel dimensions based on the
    target shape and *pixel_upscale*. The palette is drawn as a row of
    swatches under the panels, in palette order.
    """
    th, tw = target.shape[:2]
    panel_w = tw * pixel_upscale
    panel_h = th * pixel_upscale
    label_height = 36
    swatch = 28

    original = flatten_onto_white(Image.open(original_path)).resize(
        (panel_w, panel_h), Image.LANCZOS,
    )
    target_img = Image.fromarray(target).resize((panel_w, panel_h), Image.NEAREST)
    chart_img = Image.fromarray(chart).resize((panel_w, panel_h), Image.NEAREST)

    panels = [original, target_img, chart_img]
    labels = [
        "Original",
        f"Target {tw}x{th}",
        f"Chart ({len(palette)} colours)",
    ]

    gap = 8
    total_w = max(
        len(panels) * panel_w + (len(panels) - 1) * gap,
        len(palette) * (swatch + gap),
    )
    total_h = label_height + panel_h + gap + swatch + gap

    canvas = Image.new("RGB", (total_w, total_h), (30, 30, 30))
    draw = ImageDraw.Draw(canvas)
    font = _load_font(18)

    for i, (panel, label) in enumerate(zip(panels, labels, strict=False)):
        x = i * (panel_w + gap)
        canvas.paste(panel, (x, label_height))

        bbox = draw.textbbox((0, 0), label, font=font)
        text_w = bbox[2] - bbox[0]
        tx = x + (panel_w - text_w) // 2
        draw.text((tx, 6), label, fill=(220, 220, 220), font=font)

    y = label_height + panel_h + gap
    for i, colour in enumerate(palette):
        x = i * (swatch + gap)
        draw.rectangle(
            (x, y, x + swatch - 1, y + swatch - 1),
            fill=tuple(colour),
            outline=(220, 220, 220),
        )

    canvas.save(output_path)
