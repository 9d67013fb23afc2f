#!/usr/bin/env python3
"""
main.py — Quick-start entry point.

Drop images into ``images/`` and run:

    python main.py batch

Or chart a single image:

    python -m knit_chart.cli chart my_photo.jpg --colors 4
    python -m knit_chart.cli chart my_photo.jpg --yarns "White,Navy,Rust"
"""

from knit_chart.cli import app

if __name__ == "__main__":
    app()
