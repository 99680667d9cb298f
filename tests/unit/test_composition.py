"""Tests for colorgate.core.composition: subject extent and bottom blank space."""

from __future__ import annotations

import pytest
from PIL import Image, ImageDraw

from colorgate.core.composition import analyze_composition
from colorgate.core.raster import RasterImage


def _page(*boxes: tuple[int, int, int, int], width: int = 100, height: int = 100) -> RasterImage:
    image = Image.new("L", (width, height), 255)
    draw = ImageDraw.Draw(image)
    for box in boxes:
        draw.rectangle(box, fill=0)
    return RasterImage(image)


class TestAnalyzeComposition:
    def test_blank_page(self):
        composition = analyze_composition(_page())
        assert composition.subject_height_ratio == 0.0
        assert composition.bottom_blank_ratio == 1.0

    def test_subject_height_spans_top_to_bottom_ink(self):
        # Ink on rows 10 and 69: extent 59 of 100 rows.
        composition = analyze_composition(_page((20, 10, 30, 10), (20, 69, 30, 69)))
        assert composition.subject_height_ratio == pytest.approx(0.59)

    def test_full_page_subject(self):
        composition = analyze_composition(_page((0, 0, 99, 0), (0, 99, 99, 99)))
        assert composition.subject_height_ratio == pytest.approx(0.99)

    def test_bottom_strip_with_ground_line(self):
        # Bottom strip is rows 88-99 (12 rows); a 3-row ground line inks a quarter.
        composition = analyze_composition(_page((0, 95, 99, 97)))
        assert composition.bottom_blank_ratio == pytest.approx(0.75)

    def test_content_above_bottom_strip_leaves_it_blank(self):
        composition = analyze_composition(_page((10, 10, 90, 80)))
        assert composition.bottom_blank_ratio == 1.0

    def test_all_black_page(self):
        composition = analyze_composition(RasterImage(Image.new("L", (50, 50), 0)))
        assert composition.bottom_blank_ratio == 0.0
        assert composition.subject_height_ratio == pytest.approx(49 / 50)
