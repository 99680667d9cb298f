"""Local diffusers backend.

:class:`DiffusersImageGenerator` runs a HuggingFace text-to-image pipeline
in-process.  The pipeline is loaded lazily on first use and shared by all
pages; calls are serialised with a lock because a pipeline cannot run two
generations at once.

Key behaviour
-------------
- **Lazy loading**: ``torch`` and ``diffusers`` are imported inside the
  methods, so the rest of colorgate works without them installed.
- **Turbo models**: IDs containing ``"turbo"`` run with guidance 0.0.
- **Fresh seed per call**: every attempt draws a new random seed, so a
  retry produces a different image.
- **Error classification**: load failures are non-retryable
  (``model_unavailable``); out-of-memory and other runtime failures during
  inference are retryable.

Usage
-----
::

    from colorgate.core.config import ColorgateConfig
    from colorgate.generators.diffusers_generator import DiffusersImageGenerator

    generator = DiffusersImageGenerator(ColorgateConfig(generator_backend="diffusers"))
    png_bytes = await generator.generate("a friendly dragon", "1024x1024")
    await generator.aclose()
"""

from __future__ import annotations

import asyncio
import gc
import io
import logging
import random
import threading

from colorgate.core.config import ColorgateConfig
from colorgate.generators.base import DEFAULT_SIZE, ImageGenerator, ImageSize, parse_size
from colorgate.generators.errors import NonRetryableGenerationError, RetryableGenerationError

logger = logging.getLogger(__name__)

_DTYPE_MAP: dict | None = None

# Turbo-distilled models default to guidance 0.0; others use this value.
DEFAULT_GUIDANCE_SCALE = 5.0


def _get_dtype_map() -> dict:
    """Return the dtype string to ``torch.dtype`` mapping, importing torch lazily."""
    global _DTYPE_MAP
    if _DTYPE_MAP is None:
        import torch

        _DTYPE_MAP = {
            "bfloat16": torch.bfloat16,
            "float16": torch.float16,
            "float32": torch.float32,
        }
    return _DTYPE_MAP


class DiffusersImageGenerator(ImageGenerator):
    """Image generator running a local diffusers pipeline.

    Attributes:
        _config: Application configuration (model ID, device, dtype, steps).
        _pipeline: The loaded pipeline, or ``None``.
        _lock: Serialises pipeline loading and inference across threads.
    """

    name = "diffusers"

    def __init__(self, config: ColorgateConfig, seed_source: random.Random | None = None):
        self._config = config
        self._pipeline = None
        self._lock = threading.Lock()
        self._random = seed_source or random.Random()

    @property
    def is_loaded(self) -> bool:
        return self._pipeline is not None

    @property
    def is_turbo(self) -> bool:
        return "turbo" in self._config.diffusers_model_id.lower()

    def load_model(self) -> None:
        """Load the configured pipeline if it is not loaded yet.

        Raises:
            NonRetryableGenerationError: If the model cannot be loaded.
        """
        if self._pipeline is not None:
            return

        model_id = self._config.diffusers_model_id
        try:
            import torch
            from diffusers import AutoPipelineForText2Image
        except ImportError as e:
            raise NonRetryableGenerationError(
                "model_unavailable",
                "The diffusers backend requires torch and diffusers to be installed",
                original_message=str(e),
            ) from e

        torch_dtype = _get_dtype_map().get(self._config.torch_dtype, torch.bfloat16)
        logger.info(
            "Loading model '%s' (dtype=%s, device=%s, cache=%s).",
            model_id,
            self._config.torch_dtype,
            self._config.device,
            self._config.models_dir,
        )

        try:
            pipeline = AutoPipelineForText2Image.from_pretrained(
                model_id,
                torch_dtype=torch_dtype,
                cache_dir=str(self._config.models_dir),
            )
            pipeline = pipeline.to(self._config.device)
        except Exception as e:
            logger.exception("Failed to load model '%s'.", model_id)
            raise NonRetryableGenerationError(
                "model_unavailable",
                f"Could not load model '{model_id}'",
                original_message=str(e),
            ) from e

        self._pipeline = pipeline
        logger.info("Model '%s' loaded successfully.", model_id)

    def generate_sync(self, prompt: str, size: ImageSize = DEFAULT_SIZE, seed: int | None = None) -> bytes:
        """Blocking generation; returns PNG bytes."""
        width, height = parse_size(size)
        if seed is None:
            seed = self._random.randrange(2**32)

        with self._lock:
            self.load_model()

            import torch

            guidance_scale = 0.0 if self.is_turbo else DEFAULT_GUIDANCE_SCALE
            generator = torch.Generator(device=self._config.device).manual_seed(seed)

            logger.info(
                "Generating image: %dx%d, %d steps, guidance=%.1f, seed=%d.",
                width,
                height,
                self._config.num_inference_steps,
                guidance_scale,
                seed,
            )
            try:
                output = self._pipeline(
                    prompt=prompt,
                    width=width,
                    height=height,
                    num_inference_steps=self._config.num_inference_steps,
                    guidance_scale=guidance_scale,
                    generator=generator,
                )
            except RuntimeError as e:
                code = "out_of_memory" if "out of memory" in str(e).lower() else "generation_failed"
                logger.warning("Local generation failed (%s): %s", code, e)
                raise RetryableGenerationError(code, original_message=str(e)) from e

        images = getattr(output, "images", None) or []
        if not images:
            raise RetryableGenerationError("generation_failed", "Pipeline returned no images")

        buffer = io.BytesIO()
        images[0].save(buffer, format="PNG")
        return buffer.getvalue()

    async def generate(self, prompt: str, size: ImageSize = DEFAULT_SIZE) -> bytes:
        if not prompt.strip():
            raise ValueError("Prompt cannot be empty")
        return await asyncio.to_thread(self.generate_sync, prompt, size)

    def unload(self) -> None:
        """Drop the pipeline and free GPU memory.  Safe when nothing is loaded."""
        if self._pipeline is None:
            return

        logger.info("Unloading model '%s'.", self._config.diffusers_model_id)
        self._pipeline = None
        gc.collect()

        try:
            import torch
        except ImportError:
            return
        if torch.cuda.is_available():
            torch.cuda.empty_cache()

    def _close_sync(self) -> None:
        with self._lock:
            self.unload()

    async def aclose(self) -> None:
        # Waits for a running generation to release the lock without
        # blocking the event loop.
        await asyncio.to_thread(self._close_sync)
