"""Catalogue of stock yarn colours."""

from __future__ import annotations

from knit_chart.color_utils import Color, color_to_hex, hex_to_color
from knit_chart.errors import InvalidHex

# Stock yarn shades: name -> hex
YARN_COLORS: dict[str, str] = {
    "White": "#FFFFFF",
    "Cream": "#FFFDD0",
    "Light grey": "#C0C0C0",
    "Mid grey": "#808080",
    "Charcoal": "#36454F",
    "Black": "#1A1A1A",
    "Navy": "#000080",
    "Royal blue": "#4169E1",
    "Sky blue": "#87CEEB",
    "Dusty pink": "#FFB6C1",
    "Raspberry": "#E30B5C",
    "Burgundy": "#800020",
    "Rust": "#B7410E",
    "Terracotta": "#E2725B",
    "Mustard": "#FFDB58",
    "Honey": "#EB9605",
    "Forest green": "#228B22",
    "Jade": "#00A86B",
    "Mint": "#98FF98",
    "Lavender": "#E6E6FA",
    "Plum": "#8E4585",
    "Coral": "#FF7F50",
    "Camel": "#C19A6B",
    "Chocolate": "#7B3F00",
}

_BY_HEX = {hex_str: name for name, hex_str in YARN_COLORS.items()}
_BY_NAME = {name.lower(): hex_str for name, hex_str in YARN_COLORS.items()}


def yarn_name(c: Color) -> str:
    """Catalogue name for an exact colour match, otherwise its hex code."""
    hex_str = color_to_hex(c)
    return _BY_HEX.get(hex_str, hex_str)


def resolve_yarn(entry: str) -> Color:
    """Turn a yarn name (case-insensitive) or hex code into a Color."""
    hex_str = _BY_NAME.get(entry.strip().lower())
    if hex_str is not None:
        return hex_to_color(hex_str)
    try:
        return hex_to_color(entry)
    except InvalidHex:
        msg = f"{entry!r} is neither a yarn name nor a '#RRGGBB' hex colour"
        raise InvalidHex(msg) from None
