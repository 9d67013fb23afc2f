"""
Knit Chart — web front end

Run with:
    streamlit run streamlit_app.py
"""

from __future__ import annotations

import io
import json

import numpy as np
import streamlit as st
from PIL import Image, ImageDraw

from knit_chart.chart import build_chart, grid_to_hex, palette_legend
from knit_chart.color_utils import color_to_hex
from knit_chart.config import MAX_BOUND, MAX_COLOR_COUNT, STRATEGIES, ChartConfig
from knit_chart.errors import ChartError
from knit_chart.image_io import fit_size, flatten_onto_white
from knit_chart.yarns import YARN_COLORS

# -- Page config -------------------------------------------------------
st.set_page_config(
    page_title="Knit Chart",
    page_icon=None,
    layout="wide",
    initial_sidebar_state="expanded",
)

_DEFAULTS = ChartConfig()


# -- Helpers -----------------------------------------------------------

def _draw_chart(grid: np.ndarray, cell_w: int = 20, cell_h: int = 15) -> Image.Image:
    """Render the grid with 4:3 stitch cells and a line every 10 stitches."""
    h, w = grid.shape[:2]
    img = Image.fromarray(grid).resize((w * cell_w, h * cell_h), Image.NEAREST)
    draw = ImageDraw.Draw(img)
    for x in range(w + 1):
        colour = (60, 60, 60) if x % 10 == 0 else (200, 200, 200)
        draw.line([(x * cell_w, 0), (x * cell_w, h * cell_h)], fill=colour)
    for y in range(h + 1):
        colour = (60, 60, 60) if y % 10 == 0 else (200, 200, 200)
        draw.line([(0, y * cell_h), (w * cell_w, y * cell_h)], fill=colour)
    return img


# -- Title -------------------------------------------------------------
st.title("Knit Chart")
st.caption(
    "Upload an image and get a knitting chart in a few yarn colours. "
    "White is always kept as the background yarn; pick how many colours "
    "to add on top, or choose your own yarns."
)

# -- Controls ----------------------------------------------------------
with st.sidebar:
    max_width = st.number_input("Max stitches per row", 1, MAX_BOUND, _DEFAULTS.max_width)
    max_height = st.number_input("Max rows", 1, MAX_BOUND, _DEFAULTS.max_height)

    mode = st.radio("Colours", ["Detect from image", "Choose yarns"], horizontal=True)
    palette_mode = "auto" if mode == "Detect from image" else "custom"

    if palette_mode == "auto":
        color_count = st.number_input(
            "Colours besides white (0 = all colours)", 0, MAX_COLOR_COUNT,
            _DEFAULTS.color_count,
        )
        strategy = st.selectbox("Extractor", STRATEGIES)
        custom: tuple[str, ...] = ()
    else:
        color_count = _DEFAULTS.color_count
        strategy = _DEFAULTS.strategy
        chosen = st.multiselect("Yarns", list(YARN_COLORS))
        extra = st.color_picker("Custom colour", "#FF0000")
        add_extra = st.checkbox("Include custom colour")
        custom = tuple(chosen) + ((extra,) if add_extra else ())

cfg = ChartConfig(
    max_width=int(max_width),
    max_height=int(max_height),
    color_count=int(color_count),
    palette_mode=palette_mode,
    strategy=strategy,
    custom_palette=custom,
)

# -- Upload ------------------------------------------------------------
uploaded = st.file_uploader(
    "Select image", type=["jpg", "jpeg", "png", "webp", "bmp", "gif"],
)

if uploaded is not None:
    original = flatten_onto_white(Image.open(io.BytesIO(uploaded.getvalue())))
    w, h = fit_size(original.width, original.height, cfg.max_width, cfg.max_height)
    st.markdown(
        f"Original {original.width} × {original.height} px "
        f"(ratio {original.width / original.height:.2f}) → "
        f"**{w} × {h}** stitches"
    )

    generate = st.button(
        "GENERATE CHART",
        type="primary",
        use_container_width=True,
        disabled=palette_mode == "custom" and not custom,
    )
    if generate:
        target = np.array(original.resize((w, h), Image.LANCZOS), dtype=np.uint8)
        try:
            result = build_chart(target, cfg)
        except ChartError as exc:
            st.error(str(exc))
            st.stop()

        chart_img = _draw_chart(result.grid)
        col_chart, col_legend = st.columns([3, 1])
        with col_chart:
            st.image(chart_img, use_container_width=True)
        with col_legend:
            for entry in palette_legend(result.grid, result.palette):
                hex_str = color_to_hex(entry.color)
                st.markdown(
                    f'<span style="display:inline-block;width:1em;height:1em;'
                    f'background:{hex_str};border:1px solid #999"></span> '
                    f"{entry.name} — {entry.stitches} stitches",
                    unsafe_allow_html=True,
                )

        buf = io.BytesIO()
        chart_img.save(buf, format="PNG")
        dl1, dl2 = st.columns(2)
        with dl1:
            st.download_button(
                "SAVE PNG",
                data=buf.getvalue(),
                file_name="knit_chart.png",
                mime="image/png",
                use_container_width=True,
            )
        with dl2:
            st.download_button(
                "SAVE JSON",
                data=json.dumps({
                    "width": result.width,
                    "height": result.height,
                    "palette": [color_to_hex(c) for c in result.palette],
                    "grid": grid_to_hex(result.grid),
                }),
                file_name="knit_chart.json",
                mime="application/json",
                use_container_width=True,
            )
