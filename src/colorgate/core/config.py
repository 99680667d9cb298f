"""Configuration management for colorgate.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the COLORGATE_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (COLORGATE_* prefix)
2. .env file in the project root
3. Default values defined in ColorgateConfig

Example .env file:
    COLORGATE_DEFAULT_TIER=detailed
    COLORGATE_MAX_RETRIES=3
    COLORGATE_BATCH_SIZE=2
    COLORGATE_OPENAI_API_KEY=sk-...

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
Components accept an explicit config object so tests can inject their own.

Usage Example
-------------
    from colorgate.core.config import config

    print(config.max_retries)
    thresholds = config.thresholds_for("simple")

Retry and Batch Settings
------------------------
- max_retries: attempts per page (generation + validation), default 3
- retry_delay_seconds / retry_backoff: pause between attempts, scaled by
  attempt index (linear or exponential)
- batch_size / inter_batch_delay_seconds: pages run concurrently per
  sub-batch and the pause between sub-batches
- batch_timeout_seconds: whole-run budget; pages not yet started when it
  runs out are reported as skipped

See Also
--------
- colorgate.core.thresholds: per-tier threshold table
- .env.example: template with all available configuration options
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .thresholds import ComplexityTier, QualityThresholds, get_thresholds


class ColorgateConfig(BaseSettings):
    """Main configuration for the colorgate quality gate and retry engine.

    Values are loaded from environment variables with the COLORGATE_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Quality Gate Settings:
        default_tier : ComplexityTier
            Tier used when a request does not name one
        binarization_threshold : int | None
            Overrides the tier profile's binarization threshold when set
        blob_sample_width : int
            Width of the downsampled copy used for silhouette detection
        reject_color_input : bool
            Fail the gate when the source image carried real colour

    Retry Settings:
        max_retries : int
            Maximum generation+validation attempts per page
        retry_delay_seconds : float
            Base delay between consecutive attempts
        retry_backoff : Literal["linear", "exponential"]
            How the delay grows with the attempt index

    Batch Settings:
        batch_size : int
            Pages generated concurrently per sub-batch
        inter_batch_delay_seconds : float
            Pause between sub-batches
        batch_timeout_seconds : float | None
            Budget for a whole batch run (None = unlimited)

    Generator Settings:
        generator_backend : Literal["openai", "diffusers"]
            Which Image Generator implementation the API server uses
        image_size : str
            Default requested image size
        openai_api_key : str | None
            API key for the OpenAI backend
        openai_image_model : str
            OpenAI image model name
        diffusers_model_id : str
            HuggingFace model ID for the local diffusers backend
        torch_dtype : Literal["bfloat16", "float16", "float32"]
            Torch dtype for local inference
        device : str
            Device for local inference (cuda, mps, or cpu)
        num_inference_steps : int
            Diffusion steps for the local backend
        models_dir : Path
            Directory to cache downloaded models

    Server Settings:
        server_host : str
            Bind address for the uvicorn server
        server_port : int
            Server port (1024-65535)
        log_level : str
            Root logging level applied by the CLI entry point

    Examples
    --------
        >>> custom_config = ColorgateConfig(max_retries=5, batch_size=4)
        >>> custom_config.thresholds_for("detailed").max_black_ratio
        0.55
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="COLORGATE_",
        case_sensitive=False,
    )

    # Quality gate settings
    default_tier: ComplexityTier = Field(
        default=ComplexityTier.MEDIUM,
        description="Complexity tier used when a request does not specify one",
    )
    binarization_threshold: int | None = Field(
        default=None,
        description="Override for the tier binarization threshold (pixel < threshold is black)",
        ge=1,
        le=255,
    )
    blob_sample_width: int = Field(
        default=128,
        description="Width of the downsampled copy used for blob detection",
        ge=16,
        le=1024,
    )
    reject_color_input: bool = Field(
        default=False,
        description="Fail the gate when the generated image contained real colour",
    )

    # Retry settings
    max_retries: int = Field(
        default=3,
        description="Maximum generation attempts per page",
        ge=1,
        le=10,
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        description="Base delay between attempts",
        ge=0.0,
    )
    retry_backoff: Literal["linear", "exponential"] = Field(
        default="linear",
        description="Delay scaling by attempt index",
    )

    # Batch settings
    batch_size: int = Field(
        default=2,
        description="Pages generated concurrently per sub-batch",
        ge=1,
        le=16,
    )
    inter_batch_delay_seconds: float = Field(
        default=3.0,
        description="Pause between sub-batches to respect upstream rate limits",
        ge=0.0,
    )
    batch_timeout_seconds: float | None = Field(
        default=None,
        description="Budget for a whole batch run; unstarted pages are skipped once exceeded",
        gt=0.0,
    )

    # Generator settings
    generator_backend: Literal["openai", "diffusers"] = Field(
        default="openai",
        description="Image Generator implementation used by the API server",
    )
    image_size: Literal["1024x1024", "1024x1536", "1536x1024"] = Field(
        default="1024x1536",
        description="Default image size (portrait suits US Letter pages)",
    )
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key (falls back to OPENAI_API_KEY in the client)",
    )
    openai_image_model: str = Field(
        default="gpt-image-1",
        description="OpenAI image model",
    )
    openai_timeout_seconds: float = Field(
        default=120.0,
        description="Per-request timeout for the OpenAI backend",
        gt=0.0,
    )
    diffusers_model_id: str = Field(
        default="stabilityai/sdxl-turbo",
        description="HuggingFace model ID for the local diffusers backend",
    )
    torch_dtype: Literal["bfloat16", "float16", "float32"] = Field(
        default="bfloat16",
        description="Torch dtype for local inference",
    )
    device: str = Field(
        default="cuda",
        description="Device to run local inference on (cuda/cpu)",
    )
    num_inference_steps: int = Field(
        default=4,
        description="Diffusion steps for the local backend",
        ge=1,
        le=50,
    )
    models_dir: Path = Field(
        default=Path("models"),
        description="Directory to cache models",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=7870,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root logging level",
    )

    def thresholds_for(self, tier: ComplexityTier | str | None = None) -> QualityThresholds:
        """Resolve the threshold profile for a tier.

        Args:
            tier: Complexity tier (enum or its string value). None selects
                ``default_tier``.

        Returns:
            QualityThresholds with the binarization override applied.

        Raises:
            ValueError: If the tier name is unknown.
        """
        resolved = ComplexityTier(tier) if tier is not None else self.default_tier
        thresholds = get_thresholds(resolved)
        if self.binarization_threshold is not None:
            thresholds = thresholds.with_binarization(self.binarization_threshold)
        return thresholds


# Global configuration instance
# Loads values from environment variables (COLORGATE_* prefix) and .env file.
config = ColorgateConfig()
