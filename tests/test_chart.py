"""Tests for the knit_chart package."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest
from PIL import Image
from typer.testing import CliRunner

from knit_chart.assign import classify, match_custom_palette
from knit_chart.chart import (
    build_chart,
    grid_to_hex,
    palette_legend,
    resolve_custom_palette,
)
from knit_chart.cli import app
from knit_chart.color_utils import (
    BLACK,
    WHITE,
    Color,
    color_to_hex,
    hex_to_color,
    saturation_of,
)
from knit_chart.config import ChartConfig, clamp_bound, clamp_color_count
from knit_chart.errors import EmptyPalette, InvalidDimensions, InvalidHex
from knit_chart.image_io import (
    fit_size,
    load_pixels,
    make_comparison_grid,
    save_upscaled,
)
from knit_chart.refinement import extract_palette_by_refinement
from knit_chart.salience import (
    BEIGE,
    CLEAN_RED,
    MAIN_SNAP_RULES,
    BucketStats,
    accumulate_buckets,
    extract_palette_by_salience,
    snap,
)
from knit_chart.yarns import resolve_yarn, yarn_name

# -- Fixtures ----------------------------------------------------------

W, H = 10, 6  # non-square for aspect ratio testing

SLATE = Color(100, 120, 140)
VIVID_RED = Color(230, 30, 40)


def _image(*runs: tuple[tuple[int, int, int], int], width: int = 10) -> np.ndarray:
    """Build an (H, width, 3) image from (colour, pixel count) runs."""
    flat = np.concatenate(
        [np.tile(np.array(c, dtype=np.uint8), (n, 1)) for c, n in runs],
    )
    return flat.reshape(-1, width, 3)


@pytest.fixture
def target() -> np.ndarray:
    """Synthetic non-square target image."""
    rng = np.random.default_rng(456)
    return rng.integers(0, 256, size=(H, W, 3), dtype=np.uint8)


@pytest.fixture
def accent_image() -> np.ndarray:
    """White background, a muted slate figure and a small red detail."""
    return _image((WHITE, 60), (SLATE, 30), (VIVID_RED, 10))


@pytest.fixture
def tmp_image(tmp_path: Path) -> Path:
    """Write a small non-square test PNG to disk."""
    img = Image.fromarray(
        np.random.default_rng(7).integers(0, 256, (48, 64, 3), dtype=np.uint8),
    )
    p = tmp_path / "test.png"
    img.save(p)
    return p


# -- Config ------------------------------------------------------------

class TestConfig:
    def test_defaults(self) -> None:
        cfg = ChartConfig()
        assert (cfg.max_width, cfg.max_height) == (50, 50)
        assert cfg.color_count == 3
        assert cfg.palette_mode == "auto"
        assert cfg.strategy == "salience"

    def test_frozen(self) -> None:
        cfg = ChartConfig()
        with pytest.raises(AttributeError):
            cfg.max_width = 128  # type: ignore[misc]

    def test_clamping(self) -> None:
        assert clamp_bound(0) == 1
        assert clamp_bound(500) == 200
        assert clamp_bound(80) == 80
        assert clamp_color_count(-3) == 0
        assert clamp_color_count(99) == 50


# -- Aspect ratio ------------------------------------------------------

class TestFitSize:
    def test_width_binds(self) -> None:
        assert fit_size(200, 100, 50, 50) == (50, 25)

    def test_height_binds(self) -> None:
        fit = fit_size(100, 200, 50, 50)
        assert fit.width == 25
        assert fit.height == 50

    def test_uneven_bounds(self) -> None:
        # 4:3 image into a tall, narrow box: width is the limit
        assert fit_size(400, 300, 40, 100) == (40, 30)

    def test_minimum_one(self) -> None:
        w, h = fit_size(1000, 1, 32, 32)
        assert w == 32
        assert h == 1

    def test_within_bounds(self) -> None:
        for sw, sh in [(1920, 1080), (1080, 1920), (333, 777), (5, 5), (640, 480)]:
            for mw, mh in [(1, 1), (50, 50), (200, 30), (17, 200)]:
                w, h = fit_size(sw, sh, mw, mh)
                assert 1 <= w <= mw
                assert 1 <= h <= mh
                scale = min(mw / sw, mh / sh)
                assert abs(w - sw * scale) <= 1
                assert abs(h - sh * scale) <= 1

    @pytest.mark.parametrize("dims", [(0, 10), (10, 0), (-5, 10)])
    def test_invalid_source(self, dims: tuple[int, int]) -> None:
        with pytest.raises(InvalidDimensions):
            fit_size(dims[0], dims[1], 50, 50)


# -- Colour model & hex codec ------------------------------------------

class TestColor:
    def test_brightness(self) -> None:
        assert Color(30, 60, 90).brightness == 60

    def test_saturation(self) -> None:
        assert BLACK.saturation == 0
        assert WHITE.saturation == 0
        assert Color(200, 0, 0).saturation == 1
        assert Color(200, 100, 150).saturation == pytest.approx(0.5)

    def test_saturation_array_matches_scalar(self) -> None:
        colours = [BLACK, WHITE, SLATE, VIVID_RED, Color(0, 0, 1)]
        arr = np.array(colours)
        np.testing.assert_allclose(saturation_of(arr), [c.saturation for c in colours])

    def test_distance(self) -> None:
        assert Color(0, 0, 0).distance(Color(3, 4, 0)) == 5

    def test_hex_scenarios(self) -> None:
        assert color_to_hex(BLACK) == "#000000"
        assert color_to_hex(WHITE) == "#FFFFFF"
        assert color_to_hex(Color(10, 171, 5)) == "#0AAB05"

    def test_hex_round_trip(self) -> None:
        rng = np.random.default_rng(3)
        for r, g, b in rng.integers(0, 256, size=(50, 3)):
            c = Color(int(r), int(g), int(b))
            assert hex_to_color(color_to_hex(c)) == c

    def test_hex_case_insensitive(self) -> None:
        assert hex_to_color("#cd3232") == Color(205, 50, 50)
        assert hex_to_color("CD3232") == Color(205, 50, 50)

    @pytest.mark.parametrize("bad", ["", "#FFF", "#GGGGGG", "#1234567", "red"])
    def test_invalid_hex(self, bad: str) -> None:
        with pytest.raises(InvalidHex):
            hex_to_color(bad)

    def test_out_of_range_channel(self) -> None:
        with pytest.raises(ValueError):
            color_to_hex(Color(256, 0, 0))


# -- Salience-bucket extraction ----------------------------------------

class TestSalience:
    def test_bucket_mean_rounds_half_up(self) -> None:
        stats = BucketStats((0, 0, 0), count=2, sum_r=3, sum_g=1, sum_b=5, first_index=0)
        assert stats.mean_color() == Color(2, 1, 3)

    def test_buckets_in_first_appearance_order(self) -> None:
        pixels = np.array([[200, 0, 0], [10, 10, 10], [210, 5, 5], [20, 0, 0]])
        stats = accumulate_buckets(pixels, 60)
        assert [s.key for s in stats] == [(180, 0, 0), (0, 0, 0)]
        assert [s.count for s in stats] == [2, 2]
        assert stats[0].mean_color() == Color(205, 3, 3)

    def test_snap_rules(self) -> None:
        assert snap(Color(10, 20, 30), MAIN_SNAP_RULES) == BLACK
        assert snap(Color(200, 180, 160), MAIN_SNAP_RULES) == BEIGE
        assert snap(SLATE, MAIN_SNAP_RULES) == SLATE

    @pytest.mark.parametrize("n", [1, 2, 3, 8, 20])
    def test_palette_length(self, target: np.ndarray, n: int) -> None:
        palette = extract_palette_by_salience(target, n)
        assert len(palette) == n + 1
        assert palette[0] == WHITE

    def test_zero_colours(self, target: np.ndarray) -> None:
        assert extract_palette_by_salience(target, 0) == [WHITE]

    def test_invalid_count(self, target: np.ndarray) -> None:
        with pytest.raises(ValueError):
            extract_palette_by_salience(target, 51)

    def test_all_white(self) -> None:
        pixels = np.full((4, 4, 3), 255, dtype=np.uint8)
        palette = extract_palette_by_salience(pixels, 3)
        assert palette == [WHITE, BLACK, BLACK, BLACK]

        grid = classify(pixels, palette)
        assert (grid == 255).all()
        used = {tuple(px) for px in grid.reshape(-1, 3)}
        assert all(tuple(c) not in used for c in palette[1:])

    def test_black_and_red_stay_distinct(self) -> None:
        pixels = np.array(
            [[[255, 255, 255], [255, 255, 255]], [[10, 10, 10], [200, 30, 30]]],
            dtype=np.uint8,
        )
        palette = extract_palette_by_salience(pixels, 2)
        assert palette == [WHITE, BLACK, Color(200, 30, 30)]

        grid = classify(pixels, palette)
        np.testing.assert_array_equal(grid[1, 0], BLACK)
        np.testing.assert_array_equal(grid[1, 1], [200, 30, 30])

    def test_accent_reserved_and_snapped(self, accent_image: np.ndarray) -> None:
        palette = extract_palette_by_salience(accent_image, 2)
        assert palette == [WHITE, SLATE, CLEAN_RED]

    def test_halo_skipped(self) -> None:
        pixels = _image((WHITE, 40), ((128, 128, 128), 30), ((20, 20, 20), 30))
        palette = extract_palette_by_salience(pixels, 2)
        assert palette[:2] == [WHITE, BLACK]

    def test_pale_tone_snaps_to_beige(self) -> None:
        pixels = _image((WHITE, 50), ((200, 180, 160), 50))
        assert extract_palette_by_salience(pixels, 2) == [WHITE, BEIGE, BLACK]

    def test_entries_distinct(self, accent_image: np.ndarray) -> None:
        palette = extract_palette_by_salience(accent_image, 2)
        for i, a in enumerate(palette):
            for b in palette[i + 1:]:
                assert a.distance(b) >= 50

    def test_distance_checked_before_snapping(self) -> None:
        pixels = _image((WHITE, 50), ((170, 40, 40), 40), ((250, 20, 20), 10))
        palette = extract_palette_by_salience(pixels, 2)
        # The raw accent is 85 away from the main red; its snapped form is not
        assert palette == [WHITE, Color(170, 40, 40), CLEAN_RED]
        assert palette[1].distance(palette[2]) < 50


# -- Centroid refinement -----------------------------------------------

class TestRefinement:
    @pytest.mark.parametrize("n", [1, 2, 5, 12])
    def test_palette_length(self, target: np.ndarray, n: int) -> None:
        palette = extract_palette_by_refinement(target, n)
        assert len(palette) == n + 1
        assert palette[0] == WHITE

    def test_single_colour_is_dark_mean(self) -> None:
        pixels = _image((WHITE, 8), ((10, 20, 30), 1), ((30, 40, 50), 1))
        assert extract_palette_by_refinement(pixels, 1) == [WHITE, Color(20, 30, 40)]

    def test_single_colour_all_white(self) -> None:
        pixels = np.full((3, 3, 3), 255, dtype=np.uint8)
        assert extract_palette_by_refinement(pixels, 1) == [WHITE, BLACK]

    def test_farthest_point_seeding(self) -> None:
        pixels = np.array(
            [[[255, 255, 255], [0, 0, 0]], [[255, 0, 0], [0, 0, 255]]],
            dtype=np.uint8,
        )
        palette = extract_palette_by_refinement(pixels, 2)
        assert palette == [WHITE, Color(0, 0, 128), Color(255, 0, 0)]

    def test_tie_goes_to_lowest_index(self) -> None:
        pixels = np.array(
            [[[255, 255, 255], [0, 0, 0]], [[0, 0, 255], [255, 0, 0]]],
            dtype=np.uint8,
        )
        palette = extract_palette_by_refinement(pixels, 2)
        assert palette == [WHITE, Color(128, 0, 0), Color(0, 0, 255)]

    def test_deterministic(self, target: np.ndarray) -> None:
        assert extract_palette_by_refinement(target, 4) == extract_palette_by_refinement(target, 4)

    def test_fewer_colours_than_requested(self) -> None:
        pixels = np.tile(np.array([[255, 255, 255], [0, 0, 0]], dtype=np.uint8), (4, 1))
        palette = extract_palette_by_refinement(pixels, 4)
        # Surplus seeds repeat the first pixel and never win a pixel
        assert palette == [WHITE, BLACK, WHITE, WHITE, WHITE]

        grid = classify(pixels, palette)
        legend = palette_legend(grid, palette)
        assert [(e.color, e.stitches) for e in legend] == [(WHITE, 4), (BLACK, 4)]

    def test_invalid_count(self, target: np.ndarray) -> None:
        with pytest.raises(ValueError):
            extract_palette_by_refinement(target, 0)


# -- Classification ----------------------------------------------------

class TestClassify:
    def test_dark_pixel_goes_black(self) -> None:
        palette = [WHITE, BLACK, Color(120, 60, 30)]
        grid = classify(np.array([[70, 40, 20]], dtype=np.uint8), palette)
        np.testing.assert_array_equal(grid[0], BLACK)

    def test_light_pixel_goes_white(self) -> None:
        palette = [WHITE, Color(235, 235, 200)]
        grid = classify(np.array([[240, 240, 215]], dtype=np.uint8), palette)
        np.testing.assert_array_equal(grid[0], WHITE)

    def test_vivid_red_goes_to_red_entry(self) -> None:
        palette = [WHITE, BLACK, CLEAN_RED, Color(230, 120, 120)]
        grid = classify(np.array([[240, 100, 100]], dtype=np.uint8), palette)
        np.testing.assert_array_equal(grid[0], CLEAN_RED)

    def test_dark_rule_beats_red_rule(self) -> None:
        # brightness 53.3, and vivid enough to count as red
        palette = [WHITE, BLACK, CLEAN_RED]
        grid = classify(np.array([[160, 0, 0]], dtype=np.uint8), palette)
        np.testing.assert_array_equal(grid[0], BLACK)

    def test_muted_pixel_never_red(self) -> None:
        palette = [WHITE, Color(160, 90, 90), Color(100, 100, 100)]
        grid = classify(np.array([[150, 100, 100]], dtype=np.uint8), palette)
        np.testing.assert_array_equal(grid[0], [100, 100, 100])

    def test_accent_image(self, accent_image: np.ndarray) -> None:
        palette = extract_palette_by_salience(accent_image, 2)
        grid = classify(accent_image, palette).reshape(-1, 3)
        np.testing.assert_array_equal(grid[:60], np.tile(WHITE, (60, 1)))
        np.testing.assert_array_equal(grid[60:90], np.tile(SLATE, (30, 1)))
        np.testing.assert_array_equal(grid[90:], np.tile(CLEAN_RED, (10, 1)))

    def test_idempotent(self, target: np.ndarray) -> None:
        before = target.copy()
        palette = extract_palette_by_salience(target, 4)
        a = classify(target, palette)
        b = classify(target, palette)
        np.testing.assert_array_equal(a, b)
        np.testing.assert_array_equal(target, before)
        assert a.shape == target.shape
        assert a.dtype == np.uint8

    def test_empty_palette(self, target: np.ndarray) -> None:
        with pytest.raises(EmptyPalette):
            classify(target, [])


# -- Custom palette ----------------------------------------------------

class TestCustomPalette:
    def test_only_palette_colours(self, target: np.ndarray) -> None:
        palette = resolve_custom_palette(["White", "Navy", "Rust", "Mustard"])
        grid = match_custom_palette(target, palette)
        assert grid.shape == target.shape
        used = {tuple(px) for px in grid.reshape(-1, 3)}
        assert used <= {tuple(c) for c in palette}

    def test_single_entry(self, target: np.ndarray) -> None:
        grid = match_custom_palette(target, [Color(1, 2, 3)])
        assert (grid.reshape(-1, 3) == [1, 2, 3]).all()

    def test_tie_goes_to_first(self) -> None:
        palette = [Color(90, 100, 100), Color(110, 100, 100)]
        grid = match_custom_palette(np.array([[100, 100, 100]], dtype=np.uint8), palette)
        np.testing.assert_array_equal(grid[0], [90, 100, 100])

    def test_no_accent_override(self) -> None:
        # Plain nearest match: the dark pixel is closer to brown than black
        palette = [BLACK, Color(120, 60, 30)]
        grid = match_custom_palette(np.array([[70, 40, 20]], dtype=np.uint8), palette)
        np.testing.assert_array_equal(grid[0], [120, 60, 30])

    def test_empty_palette(self, target: np.ndarray) -> None:
        with pytest.raises(EmptyPalette):
            match_custom_palette(target, [])


# -- Yarns -------------------------------------------------------------

class TestYarns:
    def test_name_lookup(self) -> None:
        assert yarn_name(WHITE) == "White"
        assert yarn_name(Color(1, 2, 3)) == "#010203"

    def test_resolve(self) -> None:
        assert resolve_yarn("navy") == Color(0, 0, 128)
        assert resolve_yarn(" #cd3232 ") == CLEAN_RED
        with pytest.raises(InvalidHex):
            resolve_yarn("Tartan")

    def test_custom_palette_dedupes(self) -> None:
        palette = resolve_custom_palette(["White", "#FFFFFF", "Navy"])
        assert palette == [WHITE, Color(0, 0, 128)]


# -- Pipeline ----------------------------------------------------------

class TestBuildChart:
    def test_pass_through(self, target: np.ndarray) -> None:
        result = build_chart(target, ChartConfig(color_count=0))
        np.testing.assert_array_equal(result.grid, target)
        assert len(result.palette) == len({tuple(px) for px in target.reshape(-1, 3)})

    def test_auto_salience(self, accent_image: np.ndarray) -> None:
        result = build_chart(accent_image, ChartConfig(color_count=2))
        assert result.palette == [WHITE, SLATE, CLEAN_RED]
        assert (result.width, result.height) == (10, 10)

    def test_auto_refinement(self, target: np.ndarray) -> None:
        result = build_chart(target, ChartConfig(color_count=3, strategy="refinement"))
        assert len(result.palette) == 4
        used = {tuple(px) for px in result.grid.reshape(-1, 3)}
        assert used <= {tuple(c) for c in result.palette}

    def test_custom(self, target: np.ndarray) -> None:
        cfg = ChartConfig(palette_mode="custom", custom_palette=("White", "#000000"))
        result = build_chart(target, cfg)
        assert result.palette == [WHITE, BLACK]

    def test_custom_requires_colours(self, target: np.ndarray) -> None:
        with pytest.raises(EmptyPalette):
            build_chart(target, ChartConfig(palette_mode="custom"))

    def test_unknown_mode(self, target: np.ndarray) -> None:
        with pytest.raises(ValueError):
            build_chart(target, ChartConfig(palette_mode="magic"))
        with pytest.raises(ValueError):
            build_chart(target, ChartConfig(strategy="median-cut"))

    def test_grid_to_hex(self) -> None:
        grid = np.array([[[255, 255, 255], [205, 50, 50]]], dtype=np.uint8)
        assert grid_to_hex(grid) == [["#FFFFFF", "#CD3232"]]

    def test_legend(self, accent_image: np.ndarray) -> None:
        result = build_chart(accent_image, ChartConfig(color_count=2))
        legend = palette_legend(result.grid, result.palette)
        assert [e.color for e in legend] == [WHITE, SLATE, CLEAN_RED]
        assert [e.stitches for e in legend] == [60, 30, 10]
        assert legend[0].name == "White"

    def test_legend_skips_unused(self) -> None:
        pixels = np.full((2, 2, 3), 255, dtype=np.uint8)
        result = build_chart(pixels, ChartConfig(color_count=3))
        legend = palette_legend(result.grid, result.palette)
        assert [(e.color, e.stitches) for e in legend] == [(WHITE, 4)]


# -- Image I/O ---------------------------------------------------------

class TestImageIO:
    def test_load_preserves_aspect(self, tmp_image: Path) -> None:
        # tmp_image is 64x48 (w x h)
        arr = load_pixels(tmp_image, max_width=32, max_height=32)
        assert arr.shape == (24, 32, 3)
        assert arr.dtype == np.uint8

    def test_transparency_becomes_white(self, tmp_path: Path) -> None:
        p = tmp_path / "clear.png"
        Image.new("RGBA", (8, 4), (0, 0, 0, 0)).save(p)
        arr = load_pixels(p, 8, 8)
        assert arr.shape == (4, 8, 3)
        assert (arr == 255).all()

    def test_save_upscaled(self, tmp_path: Path) -> None:
        arr = np.random.default_rng(1).integers(0, 256, (6, 10, 3), dtype=np.uint8)
        out = tmp_path / "test_upscaled.png"
        save_upscaled(arr, out, pixel_upscale=4)
        assert out.exists()
        img = Image.open(out)
        assert img.size == (40, 24)  # 10*4, 6*4

    def test_comparison_grid(self, tmp_image: Path, tmp_path: Path) -> None:
        target = load_pixels(tmp_image, 16, 16)
        result = build_chart(target, ChartConfig(color_count=3))
        out = tmp_path / "comparison.png"
        make_comparison_grid(tmp_image, target, result.grid, result.palette, out, 4)
        assert out.exists()


# -- CLI ---------------------------------------------------------------

class TestCLI:
    runner = CliRunner()

    def test_chart_command(self, tmp_image: Path, tmp_path: Path) -> None:
        out = tmp_path / "chart.png"
        js = tmp_path / "chart.json"
        res = self.runner.invoke(
            app,
            ["chart", str(tmp_image), "-o", str(out), "-W", "20", "-H", "20",
             "-c", "2", "--json", str(js), "-u", "2"],
        )
        assert res.exit_code == 0, res.output
        assert Image.open(out).size == (40, 30)
        data = json.loads(js.read_text())
        assert (data["width"], data["height"]) == (20, 15)
        assert len(data["palette"]) == 3
        assert len(data["grid"]) == 15

    def test_chart_custom_yarns(self, tmp_image: Path, tmp_path: Path) -> None:
        out = tmp_path / "chart.png"
        res = self.runner.invoke(
            app, ["chart", str(tmp_image), "-o", str(out), "--yarns", "White,Navy"],
        )
        assert res.exit_code == 0, res.output

    def test_bad_yarn_exits(self, tmp_image: Path, tmp_path: Path) -> None:
        out = tmp_path / "chart.png"
        res = self.runner.invoke(
            app, ["chart", str(tmp_image), "-o", str(out), "--yarns", "Tartan"],
        )
        assert res.exit_code == 1

    def test_batch(self, tmp_image: Path, tmp_path: Path) -> None:
        out_dir = tmp_path / "out"
        res = self.runner.invoke(
            app, ["batch", "-i", str(tmp_image.parent), "-o", str(out_dir), "-u", "2"],
        )
        assert res.exit_code == 0, res.output
        assert (out_dir / "test_chart.png").exists()
        assert (out_dir / "test_comparison.png").exists()

    def test_unknown_strategy_exits(self, tmp_image: Path, tmp_path: Path) -> None:
        out = tmp_path / "chart.png"
        res = self.runner.invoke(
            app, ["chart", str(tmp_image), "-o", str(out), "--strategy", "kmeans"],
        )
        assert res.exit_code == 1
        assert "Unknown strategy" in res.output

    def test_yarns_command(self) -> None:
        res = self.runner.invoke(app, ["yarns"])
        assert res.exit_code == 0
        assert "Navy" in res.output
