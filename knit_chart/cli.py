"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from knit_chart.chart import ChartResult, build_chart, grid_to_hex, palette_legend
from knit_chart.color_utils import color_to_hex
from knit_chart.config import ChartConfig, clamp_bound, clamp_color_count
from knit_chart.image_io import load_pixels, make_comparison_grid, save_upscaled
from knit_chart.yarns import YARN_COLORS

app = typer.Typer(
    name="knit-chart",
    help="Turn images into knitting charts in a handful of yarn colours.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


def _collect_images(folder: Path, extensions: frozenset[str]) -> list[Path]:
    if not folder.exists():
        return []
    return sorted(
        f for f in folder.iterdir()
        if f.is_file() and f.suffix.lower() in extensions
    )


def _make_config(
    max_width: int,
    max_height: int,
    colors: int,
    strategy: str,
    yarns: str | None,
    upscale: int,
    **kwargs,
) -> ChartConfig:
    custom = tuple(y.strip() for y in yarns.split(",") if y.strip()) if yarns else ()
    return ChartConfig(
        max_width=clamp_bound(max_width),
        max_height=clamp_bound(max_height),
        color_count=clamp_color_count(colors),
        palette_mode="custom" if yarns is not None else "auto",
        strategy=strategy,
        custom_palette=custom,
        pixel_upscale=upscale,
        **kwargs,
    )


def _print_legend(result: ChartResult) -> None:
    table = Table(title=f"{result.width} x {result.height} stitches", title_justify="left")
    table.add_column("")
    table.add_column("Yarn")
    table.add_column("Hex")
    table.add_column("Stitches", justify="right")
    for entry in palette_legend(result.grid, result.palette):
        hex_str = color_to_hex(entry.color)
        table.add_row(f"[on {hex_str}]    [/]", entry.name, hex_str, str(entry.stitches))
    console.print(table)


# Defaults come from ChartConfig - single source of truth
_DEFAULTS = ChartConfig()


# -- single-image command ----------------------------------------------

@app.command()
def chart(
    target: Path = typer.Argument(..., help="Path to the source image"),
    output: Path = typer.Option(Path("output/chart.png"), "--output", "-o"),
    max_width: int = typer.Option(
        _DEFAULTS.max_width, "--max-width", "-W", help="Maximum stitches per row (1-200)",
    ),
    max_height: int = typer.Option(
        _DEFAULTS.max_height, "--max-height", "-H", help="Maximum rows (1-200)",
    ),
    colors: int = typer.Option(
        _DEFAULTS.color_count, "--colors", "-c",
        help="Colours besides white (0 = keep raw colours)",
    ),
    strategy: str = typer.Option(
        _DEFAULTS.strategy, "--strategy", help="'salience' or 'refinement'",
    ),
    yarns: str | None = typer.Option(
        None, "--yarns", "-y",
        help="Comma-separated yarn names or hex colours, e.g. 'White,Navy,#CD3232'",
    ),
    json_out: Path | None = typer.Option(
        None, "--json", help="Also write the chart as a JSON grid of hex colours",
    ),
    upscale: int = typer.Option(_DEFAULTS.pixel_upscale, "--upscale", "-u"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Chart a single image."""
    _setup_logging(verbose)

    cfg = _make_config(max_width, max_height, colors, strategy, yarns, upscale)
    output.parent.mkdir(parents=True, exist_ok=True)

    try:
        pixels = load_pixels(target, cfg.max_width, cfg.max_height)
        result = build_chart(pixels, cfg)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc

    save_upscaled(result.grid, output, cfg.pixel_upscale)

    if json_out is not None:
        json_out.parent.mkdir(parents=True, exist_ok=True)
        json_out.write_text(json.dumps({
            "width": result.width,
            "height": result.height,
            "palette": [color_to_hex(c) for c in result.palette],
            "grid": grid_to_hex(result.grid),
        }, indent=2))

    _print_legend(result)
    console.print(f"[green]✓[/green] Saved to {output}")


# -- batch command -----------------------------------------------------

@app.command()
def batch(
    input_dir: Path = typer.Option(
        _DEFAULTS.input_dir, "--input", "-i", help="Folder with source images",
    ),
    output_dir: Path = typer.Option(
        _DEFAULTS.output_dir, "--output", "-o", help="Results folder",
    ),
    max_width: int = typer.Option(_DEFAULTS.max_width, "--max-width", "-W"),
    max_height: int = typer.Option(_DEFAULTS.max_height, "--max-height", "-H"),
    colors: int = typer.Option(_DEFAULTS.color_count, "--colors", "-c"),
    strategy: str = typer.Option(_DEFAULTS.strategy, "--strategy"),
    yarns: str | None = typer.Option(None, "--yarns", "-y"),
    comparison: bool = typer.Option(
        _DEFAULTS.save_comparison, "--comparison/--no-comparison",
        help="Save an Original | Target | Chart comparison image",
    ),
    upscale: int = typer.Option(_DEFAULTS.pixel_upscale, "--upscale", "-u"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Chart all images in INPUT_DIR and write results to OUTPUT_DIR."""
    _setup_logging(verbose)

    cfg = _make_config(
        max_width, max_height, colors, strategy, yarns, upscale,
        save_comparison=comparison,
        input_dir=input_dir,
        output_dir=output_dir,
    )

    input_dir.mkdir(exist_ok=True)
    output_dir.mkdir(exist_ok=True)

    images = _collect_images(input_dir, cfg.SUPPORTED_EXTENSIONS)
    if not images:
        console.print(f"\n[yellow]No images found in {input_dir}/[/yellow]")
        console.print("Place .jpg / .png / ... files there and re-run.\n")
        raise typer.Exit(0)

    palette_desc = (
        f"custom ({len(cfg.custom_palette)} yarns)"
        if cfg.palette_mode == "custom"
        else f"{cfg.strategy}, white + {cfg.color_count}"
    )
    console.print(Panel.fit(
        f"[bold]KNIT CHART GENERATOR[/bold]\n"
        f"Max size: {cfg.max_width}x{cfg.max_height}  |  Palette: {palette_desc}\n"
        f"Images: {len(images)}",
        border_style="cyan",
    ))

    for idx, img_path in enumerate(images, 1):
        stem = img_path.stem
        console.rule(f"[bold cyan][{idx}/{len(images)}] {img_path.name}[/bold cyan]")
        t_total = time.perf_counter()

        try:
            target = load_pixels(img_path, cfg.max_width, cfg.max_height)
            result = build_chart(target, cfg)
        except ValueError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(1) from exc

        chart_path = output_dir / f"{stem}_chart.{cfg.output_format}"
        save_upscaled(result.grid, chart_path, cfg.pixel_upscale)

        if cfg.save_comparison:
            comp_path = output_dir / f"{stem}_comparison.{cfg.output_format}"
            make_comparison_grid(
                img_path, target, result.grid, result.palette, comp_path,
                cfg.pixel_upscale,
            )

        _print_legend(result)
        elapsed = time.perf_counter() - t_total
        console.print(
            f"  [green]✓[/green] {chart_path.name}  "
            f"[dim]{result.width}x{result.height}  time={elapsed:.1f}s[/dim]"
        )

    console.print(Panel.fit(
        f"[bold green]ALL DONE[/bold green] - results in [bold]{output_dir}/[/bold]",
        border_style="green",
    ))


# -- yarn catalogue ----------------------------------------------------

@app.command("yarns")
def list_yarns() -> None:
    """List the stock yarn colours usable with --yarns."""
    table = Table(title="Yarn colours", title_justify="left")
    table.add_column("")
    table.add_column("Name")
    table.add_column("Hex")
    for name, hex_str in YARN_COLORS.items():
        table.add_row(f"[on {hex_str}]    [/]", name, hex_str)
    console.print(table)


if __name__ == "__main__":
    app()
