"""Image generator backends and their error taxonomy."""

from .base import ImageGenerator, ImageSize, create_generator, parse_size
from .errors import GenerationError, NonRetryableGenerationError, RetryableGenerationError

__all__ = [
    "ImageGenerator",
    "ImageSize",
    "create_generator",
    "parse_size",
    "GenerationError",
    "NonRetryableGenerationError",
    "RetryableGenerationError",
]
