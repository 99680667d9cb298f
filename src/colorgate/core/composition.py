"""Page composition measurements on a binarized page.

Two layout problems show up often in generated coloring pages: a subject
that only fills a small band of the page, and an empty strip along the
bottom edge.  Both are measured here and reported as soft warnings by the
quality gate; neither fails a page.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from PIL import ImageChops

from .raster import RasterImage

# Share of the page height, counted from the bottom edge, inspected for
# blank paper.
BOTTOM_REGION_RATIO = 0.12


@dataclass(frozen=True)
class Composition:
    """Vertical layout of the black content on a page.

    Attributes:
        subject_height_ratio: Distance between the topmost and bottommost
            black rows as a share of the page height.  0.0 for a blank page.
        bottom_blank_ratio: White share of the bottom strip of the page.
    """

    subject_height_ratio: float
    bottom_blank_ratio: float


def analyze_composition(binary: RasterImage) -> Composition:
    """Measure subject extent and bottom blank space of a binarized page."""
    image = binary.image if binary.mode == "L" else binary.image.convert("L")
    width, height = image.size
    if width == 0 or height == 0:
        return Composition(subject_height_ratio=0.0, bottom_blank_ratio=1.0)

    # getbbox() finds non-zero pixels, so invert to look for black ink.
    bbox = ImageChops.invert(image).getbbox()
    if bbox is None:
        subject_height_ratio = 0.0
    else:
        top, bottom = bbox[1], bbox[3] - 1
        subject_height_ratio = (bottom - top) / height

    region_top = min(math.floor(height * (1 - BOTTOM_REGION_RATIO)), height - 1)
    region = image.crop((0, region_top, width, height))
    histogram = region.histogram()
    region_total = region.width * region.height
    bottom_blank_ratio = sum(histogram[128:]) / region_total

    return Composition(
        subject_height_ratio=subject_height_ratio,
        bottom_blank_ratio=bottom_blank_ratio,
    )
