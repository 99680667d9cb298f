"""OpenAI Images API backend.

Sends the prompt verbatim to the Images API and returns the encoded image.
Upstream failures are classified into retryable and non-retryable errors
by :func:`classify_openai_error`; the SDK's own retry loop is disabled so
retries are governed in one place.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os

import httpx
import openai
from openai import AsyncOpenAI

from colorgate.core.config import ColorgateConfig
from colorgate.generators.base import DEFAULT_SIZE, ImageGenerator, ImageSize
from colorgate.generators.errors import (
    GenerationError,
    NonRetryableGenerationError,
    RetryableGenerationError,
)

logger = logging.getLogger(__name__)


def classify_openai_error(error: Exception) -> GenerationError:
    """Map an exception from the OpenAI SDK to a classified error.

    Unknown failures are treated as retryable ``generation_failed``.
    """
    if isinstance(error, GenerationError):
        return error

    if isinstance(error, openai.APITimeoutError):
        return RetryableGenerationError("timeout", original_message=str(error))

    if isinstance(error, openai.APIConnectionError):
        return RetryableGenerationError("network_error", original_message=str(error))

    if isinstance(error, openai.APIStatusError):
        status = error.status_code
        code = str(error.code or "").lower()
        message = error.message or str(error)
        lowered = message.lower()
        details = {
            "http_status": status,
            "original_message": message,
            "request_id": getattr(error, "request_id", None),
        }

        if code == "billing_hard_limit_reached" or "billing" in lowered:
            return NonRetryableGenerationError("billing_limit", **details)
        if code == "insufficient_quota" or "quota" in lowered:
            return NonRetryableGenerationError("insufficient_quota", **details)
        if code == "content_policy_violation" or "safety system" in lowered or "content policy" in lowered:
            return NonRetryableGenerationError("content_policy", **details)
        if code == "account_deactivated" or "deactivated" in lowered:
            return NonRetryableGenerationError("account_deactivated", **details)
        if "organization" in lowered and "suspended" in lowered:
            return NonRetryableGenerationError("organization_suspended", **details)
        if status == 401:
            return NonRetryableGenerationError("invalid_api_key", **details)
        if status == 403:
            return NonRetryableGenerationError("unauthorized", **details)
        if status == 429:
            return RetryableGenerationError("rate_limit", **details)
        if status >= 500:
            return RetryableGenerationError("server_error", **details)
        return RetryableGenerationError("generation_failed", **details)

    return RetryableGenerationError("generation_failed", original_message=str(error))


class OpenAIImageGenerator(ImageGenerator):
    """Image generator backed by the OpenAI Images API.

    Args:
        config: Application configuration (model, key, timeout).
        client: Optional pre-built ``AsyncOpenAI`` client, mainly for tests.
    """

    name = "openai"

    def __init__(self, config: ColorgateConfig, client: AsyncOpenAI | None = None):
        self._config = config
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = self._config.openai_api_key or os.environ.get("OPENAI_API_KEY")
            if not api_key:
                raise NonRetryableGenerationError("invalid_api_key", "No OpenAI API key configured")
            self._client = AsyncOpenAI(
                api_key=api_key,
                timeout=self._config.openai_timeout_seconds,
                max_retries=0,
            )
        return self._client

    async def generate(self, prompt: str, size: ImageSize = DEFAULT_SIZE) -> bytes:
        if not prompt.strip():
            raise ValueError("Prompt cannot be empty")

        client = self._get_client()
        model = self._config.openai_image_model

        request: dict = {"model": model, "prompt": prompt, "n": 1, "size": size}
        # dall-e models default to URL responses; gpt-image models always return base64.
        if model.startswith("dall-e"):
            request["response_format"] = "b64_json"

        logger.info("Requesting %s image from %s (%d prompt chars).", size, model, len(prompt))
        try:
            response = await client.images.generate(**request)
        except openai.OpenAIError as e:
            error = classify_openai_error(e)
            logger.warning(
                "OpenAI image request failed: %s (status=%s, retryable=%s).",
                error.code,
                error.http_status,
                error.retryable,
            )
            raise error from e

        return await self._extract_image(response)

    async def _extract_image(self, response) -> bytes:
        data = getattr(response, "data", None) or []
        if not data:
            raise RetryableGenerationError("generation_failed", "Image API returned no image data")

        item = data[0]
        if getattr(item, "b64_json", None):
            try:
                return base64.b64decode(item.b64_json)
            except (binascii.Error, ValueError) as e:
                raise RetryableGenerationError(
                    "generation_failed", "Image API returned invalid base64 data"
                ) from e

        if getattr(item, "url", None):
            return await self._download(item.url)

        raise RetryableGenerationError("generation_failed", "Image API response had no image payload")

    async def _download(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(timeout=self._config.openai_timeout_seconds) as http:
                response = await http.get(url)
                response.raise_for_status()
                return response.content
        except httpx.HTTPError as e:
            raise RetryableGenerationError(
                "network_error", f"Failed to download generated image: {e}"
            ) from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
