"""Aggregate pixel statistics for binarized and source images."""

from __future__ import annotations

from dataclasses import dataclass

from PIL import ImageChops

from .raster import RasterImage

# A pixel whose RGB channels spread further apart than this is "coloured".
COLOR_SPREAD_THRESHOLD = 30
# Mean brightness band that counts as mid-gray (anti-aliasing, shading).
GRAY_LOW = 30
GRAY_HIGH = 220
# Share of coloured / gray pixels above which the source is flagged.
COLOR_PIXEL_RATIO = 0.05
GRAY_PIXEL_RATIO = 0.10


def black_pixel_count(binary: RasterImage) -> int:
    """Count black pixels in a binarized raster.

    Every pixel is counted exactly once through the Pillow histogram.
    """
    if binary.mode != "L":
        raise ValueError(f"Expected a single-band binarized raster, got mode {binary.mode}")
    histogram = binary.image.histogram()
    return sum(histogram[:128])


def black_ratio(binary: RasterImage) -> float:
    """Fraction of pixels that are black, in ``[0, 1]``."""
    total = binary.pixel_count
    if total == 0:
        return 0.0
    return black_pixel_count(binary) / total


@dataclass(frozen=True)
class ColorProbe:
    """Colour and gray content of a source image before binarization."""

    color_ratio: float
    gray_ratio: float

    @property
    def had_color(self) -> bool:
        return self.color_ratio > COLOR_PIXEL_RATIO

    @property
    def had_gray(self) -> bool:
        return self.gray_ratio > GRAY_PIXEL_RATIO


def probe_color_content(raster: RasterImage) -> ColorProbe:
    """Measure how much real colour and mid-gray the source image carries.

    A pixel is coloured when the largest difference between its R, G and B
    channels exceeds 30.  Among the remaining pixels, those with luminance
    strictly between 30 and 220 count as gray.

    Args:
        raster: Decoded source image (RGB or L).

    Returns:
        ColorProbe with both ratios.
    """
    total = raster.pixel_count
    if total == 0:
        return ColorProbe(color_ratio=0.0, gray_ratio=0.0)

    luma = raster.image.convert("L")

    if raster.mode == "L":
        color_pixels = 0
        neutral_mask = None
    else:
        red, green, blue = raster.image.convert("RGB").split()
        spread = ImageChops.lighter(
            ImageChops.lighter(ImageChops.difference(red, green), ImageChops.difference(green, blue)),
            ImageChops.difference(red, blue),
        )
        spread_histogram = spread.histogram()
        color_pixels = sum(spread_histogram[COLOR_SPREAD_THRESHOLD + 1 :])
        neutral_mask = spread.point(
            [255 if value <= COLOR_SPREAD_THRESHOLD else 0 for value in range(256)]
        )

    gray_histogram = luma.histogram(mask=neutral_mask)
    gray_pixels = sum(gray_histogram[GRAY_LOW + 1 : GRAY_HIGH])

    return ColorProbe(color_ratio=color_pixels / total, gray_ratio=gray_pixels / total)
