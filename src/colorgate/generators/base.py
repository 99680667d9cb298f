"""Image generator interface and backend factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal

from colorgate.core.config import ColorgateConfig

ImageSize = Literal["1024x1024", "1024x1536", "1536x1024"]

DEFAULT_SIZE: ImageSize = "1024x1536"


def parse_size(size: str) -> tuple[int, int]:
    """Split a ``"WIDTHxHEIGHT"`` string into integers.

    Raises:
        ValueError: If the string is not in that form.
    """
    try:
        width_text, height_text = size.lower().split("x")
        width, height = int(width_text), int(height_text)
    except ValueError as e:
        raise ValueError(f"Invalid image size '{size}', expected WIDTHxHEIGHT") from e
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size '{size}', dimensions must be positive")
    return width, height


class ImageGenerator(ABC):
    """Turns a prompt into encoded image bytes.

    Implementations must raise
    :class:`~colorgate.generators.errors.RetryableGenerationError` or
    :class:`~colorgate.generators.errors.NonRetryableGenerationError` for
    upstream failures so the retry loop can act on them.
    """

    name: str = "base"

    @abstractmethod
    async def generate(self, prompt: str, size: ImageSize = DEFAULT_SIZE) -> bytes:
        """Generate one image and return its encoded bytes (PNG or JPEG)."""

    async def aclose(self) -> None:
        """Release any resources held by the generator."""
        return None


def create_generator(config: ColorgateConfig) -> ImageGenerator:
    """Instantiate the backend named by ``config.generator_backend``."""
    if config.generator_backend == "openai":
        from colorgate.generators.openai_generator import OpenAIImageGenerator

        return OpenAIImageGenerator(config)

    if config.generator_backend == "diffusers":
        from colorgate.generators.diffusers_generator import DiffusersImageGenerator

        return DiffusersImageGenerator(config)

    raise ValueError(f"Unknown generator backend: {config.generator_backend}")
