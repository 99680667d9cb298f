"""Shared pytest fixtures for colorgate tests."""

import io
import shutil
import struct
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest
from PIL import Image, ImageDraw

from colorgate.core.config import ColorgateConfig
from colorgate.generators.base import ImageGenerator


def make_png(
    width: int = 256,
    height: int = 384,
    background=255,
    mode: str = "L",
    draw: Callable[[ImageDraw.ImageDraw], None] | None = None,
) -> bytes:
    """Render a synthetic page and return it as PNG bytes."""
    image = Image.new(mode, (width, height), background)
    if draw is not None:
        draw(ImageDraw.Draw(image))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def make_png16(
    width: int = 256,
    height: int = 384,
    background: int = 65535,
    rows: tuple[int, ...] = (),
    value: int = 0,
) -> bytes:
    """Render a 16-bit grayscale page, setting full-width ``rows`` to ``value``."""
    pixels = bytearray()
    for y in range(height):
        level = value if y in rows else background
        pixels += struct.pack("<H", level) * width
    image = Image.frombytes("I;16", (width, height), bytes(pixels))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class ScriptedGenerator(ImageGenerator):
    """Image generator that replays a fixed script of results.

    Each script item is either image bytes or an exception instance to
    raise.  The last item repeats once the script runs out.
    """

    name = "scripted"

    def __init__(self, script):
        if not script:
            raise ValueError("script must not be empty")
        self.script = list(script)
        self.prompts: list[str] = []
        self.sizes: list[str] = []
        self.closed = False

    async def generate(self, prompt, size="1024x1536"):
        self.prompts.append(prompt)
        self.sizes.append(size)
        item = self.script[min(len(self.prompts), len(self.script)) - 1]
        if isinstance(item, BaseException):
            raise item
        return item

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def aclose(self):
        self.closed = True


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingEventSink:
    """Event sink that keeps every event in memory."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def emit(self, event: str, **fields) -> None:
        self.events.append((event, fields))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> list[dict]:
        return [fields for event, fields in self.events if event == name]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> ColorgateConfig:
    """Configuration with zero delays, local paths and a dummy API key."""
    return ColorgateConfig(
        _env_file=None,
        max_retries=3,
        retry_delay_seconds=0.0,
        inter_batch_delay_seconds=0.0,
        batch_size=2,
        models_dir=temp_dir / "models",
        device="cpu",
        torch_dtype="float32",
        openai_api_key="test-key",
    )


@pytest.fixture
def white_png() -> bytes:
    """An all-white page."""
    return make_png()


@pytest.fixture
def black_png() -> bytes:
    """An all-black page."""
    return make_png(background=0)


@pytest.fixture
def line_art_png() -> bytes:
    """Five separate 4 px horizontal strokes; passes every gate."""

    def strokes(draw):
        for y in (40, 100, 160, 220, 280):
            draw.rectangle([32, y, 223, y + 3], fill=0)

    return make_png(draw=strokes)


@pytest.fixture
def silhouette_png() -> bytes:
    """A single filled 96x96 square: low black ratio, one large blob."""
    return make_png(draw=lambda draw: draw.rectangle([64, 64, 159, 159], fill=0))


@pytest.fixture
def striped_png() -> bytes:
    """Alternating 4 px black and white full-width stripes (50% black)."""

    def stripes(draw):
        for y in range(0, 384, 8):
            draw.rectangle([0, y, 255, y + 3], fill=0)

    return make_png(draw=stripes)


@pytest.fixture
def dark_fill_png16() -> bytes:
    """A 16-bit page filled with 1000/65535, visually black."""
    return make_png16(background=1000)


@pytest.fixture
def line_art_png16() -> bytes:
    """A 16-bit white page with one 4 px dark stroke (8000/65535)."""
    return make_png16(rows=(100, 101, 102, 103), value=8000)


@pytest.fixture
def scripted_generator():
    """Factory for :class:`ScriptedGenerator` instances."""
    return ScriptedGenerator


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def event_recorder() -> RecordingEventSink:
    return RecordingEventSink()
