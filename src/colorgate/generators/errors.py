"""Classified errors raised by image generators.

Generators translate every upstream failure into one of two classes before
it reaches the retry loop:

- :class:`RetryableGenerationError`: transient trouble (rate limits, 5xx,
  timeouts, dropped connections).  The same page may be attempted again.
- :class:`NonRetryableGenerationError`: terminal trouble (billing, auth,
  content policy, account state).  Retrying cannot help, so the page is
  marked fatal immediately.

The retry loop trusts this classification verbatim.
"""

from __future__ import annotations

from typing import Any

from colorgate.core.errors import ColorgateError

RETRYABLE_CODES = frozenset(
    {
        "rate_limit",
        "server_error",
        "timeout",
        "network_error",
        "generation_failed",
        "out_of_memory",
    }
)

NON_RETRYABLE_CODES = frozenset(
    {
        "billing_limit",
        "insufficient_quota",
        "invalid_api_key",
        "unauthorized",
        "content_policy",
        "account_deactivated",
        "organization_suspended",
        "model_unavailable",
    }
)

USER_MESSAGES: dict[str, str] = {
    "billing_limit": "Billing limit reached. Add credits or raise the limit with your image provider.",
    "insufficient_quota": "Quota exceeded. Check the plan and billing details of your image provider.",
    "invalid_api_key": "Invalid API key. Check the configured key.",
    "unauthorized": "Not authorized to use the image API.",
    "content_policy": "The prompt was rejected by the content policy. Adjust the page description.",
    "account_deactivated": "The image provider account has been deactivated.",
    "organization_suspended": "The image provider organization has been suspended.",
    "model_unavailable": "The configured image model could not be loaded.",
    "rate_limit": "Rate limited by the image provider.",
    "server_error": "The image provider had a server error.",
    "timeout": "The image request timed out.",
    "network_error": "Could not reach the image provider.",
    "generation_failed": "Image generation failed.",
    "out_of_memory": "The local model ran out of memory.",
}


class GenerationError(ColorgateError):
    """Base class for classified generation failures.

    Attributes:
        code: Machine-readable error code.
        http_status: Upstream HTTP status, when there was one.
        original_message: Upstream error text, kept for logs.
        request_id: Upstream request identifier, when available.
    """

    retryable: bool = False

    def __init__(
        self,
        code: str,
        message: str | None = None,
        *,
        http_status: int | None = None,
        original_message: str | None = None,
        request_id: str | None = None,
    ):
        self.code = code
        self.http_status = http_status
        self.original_message = original_message
        self.request_id = request_id
        super().__init__(message or USER_MESSAGES.get(code, code))

    @property
    def user_message(self) -> str:
        return USER_MESSAGES.get(self.code, str(self))

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "retryable": self.retryable,
            "http_status": self.http_status,
            "request_id": self.request_id,
        }


class RetryableGenerationError(GenerationError):
    """Transient failure; the attempt may be repeated."""

    retryable = True

    def __init__(self, code: str = "generation_failed", message: str | None = None, **kwargs: Any):
        super().__init__(code, message, **kwargs)

    @property
    def suggested_delay(self) -> float:
        """Minimum pause in seconds before the next attempt."""
        if self.code == "rate_limit":
            return 5.0
        if self.code == "server_error":
            return 2.0
        return 1.0


class NonRetryableGenerationError(GenerationError):
    """Terminal failure; the page must not be attempted again."""

    retryable = False
