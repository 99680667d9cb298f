"""Raster decoding, grayscale conversion and binarization.

Every function here is pure: it takes a :class:`RasterImage` and returns a
new one, leaving its input untouched. Pillow does the pixel work, so the
results are bit-identical for identical inputs.

Pipeline
--------
::

    raw bytes ──decode_image──▶ RasterImage (RGB / L)
              ──grayscale────▶ RasterImage (L)
              ──binarize─────▶ RasterImage (L, values 0 or 255)
              ──encode_png───▶ corrected PNG bytes
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from .errors import DecodeError

logger = logging.getLogger(__name__)

# Formats accepted at the decoder boundary.  WEBP is included because some
# upstream image APIs return it when asked for compressed output.
SUPPORTED_FORMATS = frozenset({"PNG", "JPEG", "WEBP"})

BLACK = 0
WHITE = 255


@dataclass(frozen=True)
class RasterImage:
    """An owned pixel buffer with its dimensions.

    The wrapped Pillow image is never mutated after construction; pipeline
    stages always build a new ``RasterImage``.

    Attributes:
        image: The Pillow image holding the pixels.
    """

    image: Image.Image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def mode(self) -> str:
        return self.image.mode

    @property
    def channels(self) -> int:
        """Number of bands per pixel (1 for grayscale, 3 for RGB)."""
        return len(self.image.getbands())

    @property
    def pixel_count(self) -> int:
        return self.image.width * self.image.height

    def is_binary(self) -> bool:
        """True when the image is single-band and holds only 0 and 255."""
        if self.image.mode != "L":
            return False
        histogram = self.image.histogram()
        return sum(histogram[1:255]) == 0


def decode_image(data: bytes) -> RasterImage:
    """Decode PNG/JPEG bytes into a :class:`RasterImage`.

    Transparent images are flattened onto a white background, since a
    printed page has white paper behind every transparent pixel.

    Args:
        data: Raw encoded image bytes.

    Returns:
        RasterImage in mode ``"RGB"`` or ``"L"``.

    Raises:
        DecodeError: If the buffer is empty, corrupt, or not a supported
            format.
    """
    if not data:
        raise DecodeError("Image buffer is empty")

    try:
        with Image.open(io.BytesIO(data)) as opened:
            image_format = opened.format
            if image_format not in SUPPORTED_FORMATS:
                raise DecodeError(f"Unsupported image format: {image_format}")
            opened.load()
            image = _flatten(opened)
    except DecodeError:
        raise
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Could not decode image: {e}") from e

    logger.debug("Decoded %s image %dx%d (mode=%s).", image_format, image.width, image.height, image.mode)
    return RasterImage(image)


def decode_base64_image(text: str) -> RasterImage:
    """Decode a base64 string (optionally a ``data:`` URL) into a raster.

    Raises:
        DecodeError: If the text is not valid base64 or not a decodable image.
    """
    return decode_image(base64_to_bytes(text))


def base64_to_bytes(text: str) -> bytes:
    """Convert base64 text to bytes, stripping a data URL prefix if present."""
    payload = text.strip()
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64 image data: {e}") from e


def _flatten(image: Image.Image) -> Image.Image:
    """Composite transparency onto white and normalise the colour mode."""
    has_alpha = image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )
    if has_alpha:
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (WHITE, WHITE, WHITE, 255))
        return Image.alpha_composite(background, rgba).convert("RGB")

    if image.mode in ("RGB", "L"):
        return image.copy()

    if image.mode.startswith("I"):
        # 16-bit grayscale ("I;16", "I;16B", or "I" on older Pillow) spans
        # 0-65535; a plain convert would clip everything above 255 to white.
        return image.convert("I").point(lambda value: value * (1 / 256)).convert("L")

    # Palette, CMYK and 1-bit images go through RGB.
    return image.convert("RGB")


def grayscale(raster: RasterImage) -> RasterImage:
    """Convert to single-band luminance (ITU-R 601-2 luma)."""
    if raster.mode == "L":
        return RasterImage(raster.image.copy())
    return RasterImage(raster.image.convert("L"))


def _threshold_table(threshold: int) -> list[int]:
    return [BLACK if value < threshold else WHITE for value in range(256)]


def binarize(gray: RasterImage, threshold: int) -> RasterImage:
    """Threshold a grayscale raster to pure black and white.

    Pixels with value ``< threshold`` become 0 (black); all others 255.

    Args:
        gray: Grayscale raster.  Non-grayscale input is converted first.
        threshold: Cut-off in 1-255.

    Returns:
        New single-band raster containing only 0 and 255.

    Raises:
        ValueError: If ``threshold`` is outside 1-255.
    """
    if not 1 <= threshold <= 255:
        raise ValueError(f"threshold must be 1-255, got {threshold}")

    if gray.mode != "L":
        gray = grayscale(gray)

    return RasterImage(gray.image.point(_threshold_table(threshold)))


def encode_png(raster: RasterImage) -> bytes:
    """Encode a raster as lossless PNG bytes."""
    buffer = io.BytesIO()
    raster.image.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


def to_base64_png(raster: RasterImage) -> str:
    """Encode a raster as base64 PNG text (no data URL prefix)."""
    return base64.b64encode(encode_png(raster)).decode("ascii")
