"""Silhouette detection through connected-component analysis.

A single large connected black region almost always means a filled
silhouette rather than line art.  The black ratio alone cannot tell "one
big filled shape" apart from "many thin lines", so the quality gate also
looks at the largest 4-connected black component.

Components are found on a downsampled copy of the binarized page (128 px
wide by default) to bound cost.  The flood fill uses an explicit stack, so
large uniform regions never recurse.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from PIL import Image

from .raster import BLACK, WHITE, RasterImage

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_WIDTH = 128

# Components smaller than this many sample pixels count as "tiny"; a page
# with hundreds of them is usually stippled or textured.
TINY_COMPONENT_PIXELS = 20


@dataclass(frozen=True)
class BlobAnalysis:
    """Connected-component summary of a downsampled binary image.

    Attributes:
        largest_component: Pixel count of the largest black component.
        component_count: Number of distinct black components.
        tiny_component_count: Components under ``TINY_COMPONENT_PIXELS``.
        sample_width: Width of the analysed sample.
        sample_height: Height of the analysed sample.
    """

    largest_component: int
    component_count: int
    sample_width: int
    sample_height: int
    tiny_component_count: int = 0

    @property
    def largest_blob_percent(self) -> float:
        """Largest component as a share of the sample area, in ``[0, 1]``."""
        area = self.sample_width * self.sample_height
        if area == 0:
            return 0.0
        return self.largest_component / area


def downsample(binary: RasterImage, sample_width: int = DEFAULT_SAMPLE_WIDTH) -> RasterImage:
    """Shrink a binary raster to ``sample_width`` pixels wide.

    Aspect ratio is preserved.  Box averaging followed by a 128 cut-off keeps
    the sample binary: a sample pixel is black when most of the source
    pixels it covers are black.  Images already narrower than
    ``sample_width`` are returned unchanged.
    """
    if sample_width < 1:
        raise ValueError(f"sample_width must be positive, got {sample_width}")

    image = binary.image if binary.mode == "L" else binary.image.convert("L")
    if image.width <= sample_width:
        return RasterImage(image.copy())

    sample_height = max(1, round(image.height * sample_width / image.width))
    reduced = image.resize((sample_width, sample_height), Image.Resampling.BOX)
    return RasterImage(reduced.point([BLACK if value < 128 else WHITE for value in range(256)]))


def find_components(binary: RasterImage, sample_width: int = DEFAULT_SAMPLE_WIDTH) -> BlobAnalysis:
    """Find 4-connected black components on a downsampled copy.

    Each pixel is visited at most once; a pixel is marked visited when it is
    pushed onto the stack.

    Args:
        binary: Binarized raster (0 = black, 255 = white).
        sample_width: Width of the downsampled copy.

    Returns:
        BlobAnalysis for the sample.
    """
    sample = downsample(binary, sample_width)
    width, height = sample.width, sample.height
    pixels = sample.image.tobytes()
    total = width * height

    visited = bytearray(total)
    largest = 0
    count = 0
    tiny = 0

    for start in range(total):
        if visited[start] or pixels[start] >= 128:
            continue

        count += 1
        size = 0
        visited[start] = 1
        stack = [start]

        while stack:
            index = stack.pop()
            size += 1
            x = index % width

            if x > 0:
                neighbour = index - 1
                if not visited[neighbour] and pixels[neighbour] < 128:
                    visited[neighbour] = 1
                    stack.append(neighbour)
            if x < width - 1:
                neighbour = index + 1
                if not visited[neighbour] and pixels[neighbour] < 128:
                    visited[neighbour] = 1
                    stack.append(neighbour)
            if index >= width:
                neighbour = index - width
                if not visited[neighbour] and pixels[neighbour] < 128:
                    visited[neighbour] = 1
                    stack.append(neighbour)
            if index + width < total:
                neighbour = index + width
                if not visited[neighbour] and pixels[neighbour] < 128:
                    visited[neighbour] = 1
                    stack.append(neighbour)

        if size > largest:
            largest = size
        if size < TINY_COMPONENT_PIXELS:
            tiny += 1

    logger.debug(
        "Blob scan on %dx%d sample: %d components (%d tiny), largest=%d px.",
        width,
        height,
        count,
        tiny,
        largest,
    )
    return BlobAnalysis(
        largest_component=largest,
        component_count=count,
        sample_width=width,
        sample_height=height,
        tiny_component_count=tiny,
    )


def largest_blob_percent(binary: RasterImage, sample_width: int = DEFAULT_SAMPLE_WIDTH) -> float:
    """Share of the downsampled area covered by the largest black component."""
    return find_components(binary, sample_width).largest_blob_percent
