"""Error kinds raised by the chart pipeline."""

from __future__ import annotations


class ChartError(ValueError):
    """Base class for bad input detected by the chart pipeline."""


class InvalidDimensions(ChartError):
    """Source or bound dimensions are not positive."""


class InvalidHex(ChartError):
    """A colour string is not a ``#RRGGBB`` hex code."""


class EmptyPalette(ChartError):
    """A palette-matching call was given no colours."""
