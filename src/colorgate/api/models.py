"""Pydantic request models for the colorgate API.

FastAPI uses these for request validation and OpenAPI documentation.

Models
------
PageSpec
    One page of a batch: its index, prompt and optional tier.
BatchGenerateRequest
    Payload for ``POST /api/batch/generate``.
QualityCheckRequest
    Payload for ``POST /api/quality/check``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from colorgate.core.thresholds import ComplexityTier

MAX_PAGES_PER_REQUEST = 100


class PageSpec(BaseModel):
    """A single page to generate.

    Attributes:
        page_index: Caller-assigned page number, echoed back in the result.
        prompt: Page description sent to the image generator.
        tier: Optional per-page tier overriding the request tier.
    """

    page_index: int = Field(..., ge=0, description="Caller-assigned page number.")
    prompt: str = Field(
        ...,
        min_length=1,
        pattern=r"\S",
        description="Prompt for the first attempt; must contain non-whitespace text.",
    )
    tier: ComplexityTier | None = Field(default=None, description="Per-page complexity tier.")


class BatchGenerateRequest(BaseModel):
    """Request body for ``POST /api/batch/generate``.

    Attributes:
        pages: Pages to generate, in the order results should be returned.
        tier: Complexity tier for pages that do not set their own.
        size: Requested image size; the configured default when omitted.
    """

    pages: list[PageSpec] = Field(
        ...,
        min_length=1,
        max_length=MAX_PAGES_PER_REQUEST,
        description="Pages to generate, in result order.",
    )
    tier: ComplexityTier | None = Field(default=None, description="Default tier for the batch.")
    size: Literal["1024x1024", "1024x1536", "1536x1024"] | None = Field(
        default=None,
        description="Image size (WIDTHxHEIGHT).",
    )


class QualityCheckRequest(BaseModel):
    """Request body for ``POST /api/quality/check``."""

    image_base64: str = Field(
        ...,
        min_length=1,
        description="PNG or JPEG image as base64 (a data: URL prefix is accepted).",
    )
    tier: ComplexityTier | None = Field(default=None, description="Tier whose thresholds apply.")
