"""Per-page attempt state machine.

One page goes through at most ``max_retries`` generation + validation
attempts::

    pending ─▶ generating ─▶ validating ─┬─▶ accepted
                  ▲                      ├─▶ retrying ─┐
                  └──────────────────────┼─────────────┘
                                         ├─▶ exhausted
                  generating ────────────┴─▶ fatal

- A non-retryable generator error ends the page immediately as ``fatal``.
- A retryable generator error or an undecodable image uses up the attempt
  but leaves the prompt unchanged.
- A quality-gate failure escalates the prompt for the next attempt.
- When the last attempt fails, the page is ``exhausted`` and keeps the most
  recent corrected image, which is still usable but marked as not passing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from colorgate.core.config import ColorgateConfig
from colorgate.core.errors import DecodeError
from colorgate.core.quality_gate import FailureReason, GateResult, QualityGate, QualityMetrics
from colorgate.core.raster import RasterImage
from colorgate.core.thresholds import ComplexityTier
from colorgate.generators.base import DEFAULT_SIZE, ImageGenerator, ImageSize
from colorgate.generators.errors import NonRetryableGenerationError, RetryableGenerationError
from colorgate.workflows.escalation import EscalationStrategy
from colorgate.workflows.events import (
    ATTEMPT_FINISHED,
    ATTEMPT_STARTED,
    PAGE_FINISHED,
    PAGE_STATE,
    EventSink,
    LoggingEventSink,
)

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]
GateProvider = Callable[[ComplexityTier | None], QualityGate]


class AttemptState(str, Enum):
    """Lifecycle states of a page."""

    PENDING = "pending"
    GENERATING = "generating"
    VALIDATING = "validating"
    RETRYING = "retrying"
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"
    FATAL = "fatal"
    SKIPPED = "skipped"


TERMINAL_STATES = frozenset(
    {AttemptState.ACCEPTED, AttemptState.EXHAUSTED, AttemptState.FATAL, AttemptState.SKIPPED}
)


@dataclass(frozen=True)
class PageRequest:
    """A page to generate.

    Attributes:
        page_index: Caller-assigned page number; echoed back in the outcome.
        prompt: Base prompt for the first attempt.
        tier: Complexity tier, or None for the configured default.
    """

    page_index: int
    prompt: str
    tier: ComplexityTier | None = None


@dataclass(frozen=True)
class AttemptRecord:
    """What happened during one attempt."""

    attempt_index: int
    prompt_used: str
    passed: bool = False
    metrics: QualityMetrics | None = None
    failure_reason: FailureReason | None = None
    error_code: str | None = None
    error_message: str | None = None
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_index": self.attempt_index,
            "passed": self.passed,
            "failure_reason": self.failure_reason.value if self.failure_reason else None,
            "metrics": self.metrics.as_dict() if self.metrics else None,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class PageOutcome:
    """Terminal result for a single page.

    ``final_image`` is the binarized page: the accepted image, or for an
    exhausted page the last image that made it through validation.
    """

    page_index: int
    state: AttemptState
    passed: bool
    attempts: tuple[AttemptRecord, ...] = ()
    final_image: RasterImage | None = None
    final_png: bytes | None = None
    last_error: FailureReason | None = None
    error_code: str | None = None
    error_message: str | None = None
    warnings: tuple[str, ...] = field(default=())

    @property
    def status(self) -> Literal["done", "failed"]:
        """``done`` when the page has an image to use, else ``failed``."""
        return "done" if self.final_png is not None else "failed"

    @classmethod
    def skipped(cls, page_index: int) -> PageOutcome:
        return cls(
            page_index=page_index,
            state=AttemptState.SKIPPED,
            passed=False,
            error_code="batch_timeout",
            error_message="Page was not started before the batch timeout",
        )


class AttemptRunner:
    """Drives the attempt state machine for one page at a time.

    Args:
        generator: Image generator used for every attempt.
        gate: A quality gate, or a callable returning the gate for a tier.
        max_retries: Maximum attempts per page.
        retry_delay: Base delay in seconds between attempts.
        backoff: ``"linear"`` or ``"exponential"`` growth of the delay.
        size: Requested image size.
        event_sink: Receives progress events.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        generator: ImageGenerator,
        gate: QualityGate | GateProvider,
        *,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        backoff: Literal["linear", "exponential"] = "linear",
        size: ImageSize = DEFAULT_SIZE,
        event_sink: EventSink | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        self.generator = generator
        self._gate_provider: GateProvider = (
            (lambda _tier: gate) if isinstance(gate, QualityGate) else gate
        )
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.backoff = backoff
        self.size = size
        self.events = event_sink or LoggingEventSink()
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        generator: ImageGenerator,
        config: ColorgateConfig,
        *,
        size: ImageSize | None = None,
        event_sink: EventSink | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> AttemptRunner:
        return cls(
            generator,
            lambda tier: QualityGate.from_config(config, tier),
            max_retries=config.max_retries,
            retry_delay=config.retry_delay_seconds,
            backoff=config.retry_backoff,
            size=size or config.image_size,
            event_sink=event_sink,
            sleep=sleep,
        )

    def delay_for(self, attempt_index: int) -> float:
        """Delay before the attempt with zero-based ``attempt_index``."""
        if attempt_index <= 0:
            return 0.0
        if self.backoff == "exponential":
            return self.retry_delay * (2 ** (attempt_index - 1))
        return self.retry_delay * attempt_index

    async def run(self, request: PageRequest) -> PageOutcome:
        """Run attempts for ``request`` until it is accepted, exhausted or fatal."""
        gate = self._gate_provider(request.tier)
        strategy = EscalationStrategy(request.prompt)
        records: list[AttemptRecord] = []
        last_result: GateResult | None = None
        last_reason: FailureReason | None = None
        last_code: str | None = None
        last_message: str | None = None
        upstream_delay = 0.0
        self._transition(request, AttemptState.PENDING, 0)

        for attempt_index in range(self.max_retries):
            if attempt_index > 0:
                self._transition(request, AttemptState.RETRYING, attempt_index)
                delay = max(self.delay_for(attempt_index), upstream_delay)
                if delay > 0:
                    await self._sleep(delay)
            upstream_delay = 0.0

            prompt = strategy.prompt
            self.events.emit(
                ATTEMPT_STARTED,
                page_index=request.page_index,
                attempt=attempt_index + 1,
                max_attempts=self.max_retries,
            )
            self._transition(request, AttemptState.GENERATING, attempt_index)

            try:
                data = await self.generator.generate(prompt, self.size)
            except NonRetryableGenerationError as e:
                record = AttemptRecord(
                    attempt_index=attempt_index,
                    prompt_used=prompt,
                    failure_reason=FailureReason.GENERATION_ERROR,
                    error_code=e.code,
                    error_message=str(e),
                )
                records.append(record)
                self._attempt_finished(request, record)
                logger.warning(
                    "Page %d failed permanently on attempt %d: %s.",
                    request.page_index,
                    attempt_index + 1,
                    e.code,
                )
                return self._finish(
                    PageOutcome(
                        page_index=request.page_index,
                        state=AttemptState.FATAL,
                        passed=False,
                        attempts=tuple(records),
                        last_error=FailureReason.GENERATION_ERROR,
                        error_code=e.code,
                        error_message=str(e),
                    )
                )
            except RetryableGenerationError as e:
                record = AttemptRecord(
                    attempt_index=attempt_index,
                    prompt_used=prompt,
                    failure_reason=FailureReason.GENERATION_ERROR,
                    error_code=e.code,
                    error_message=str(e),
                )
                records.append(record)
                self._attempt_finished(request, record)
                last_reason, last_code, last_message = FailureReason.GENERATION_ERROR, e.code, str(e)
                upstream_delay = e.suggested_delay
                continue

            self._transition(request, AttemptState.VALIDATING, attempt_index)
            try:
                result = await asyncio.to_thread(gate.check, data)
            except DecodeError as e:
                record = AttemptRecord(
                    attempt_index=attempt_index,
                    prompt_used=prompt,
                    failure_reason=FailureReason.FETCH_ERROR,
                    error_code="decode_error",
                    error_message=str(e),
                )
                records.append(record)
                self._attempt_finished(request, record)
                last_reason, last_code, last_message = FailureReason.FETCH_ERROR, "decode_error", str(e)
                continue

            record = AttemptRecord(
                attempt_index=attempt_index,
                prompt_used=prompt,
                passed=result.passed,
                metrics=result.metrics,
                failure_reason=result.failure_reason,
                warnings=result.warnings,
            )
            records.append(record)
            self._attempt_finished(request, record)
            last_result = result

            if result.passed:
                return self._finish(
                    PageOutcome(
                        page_index=request.page_index,
                        state=AttemptState.ACCEPTED,
                        passed=True,
                        attempts=tuple(records),
                        final_image=result.corrected_image,
                        final_png=result.corrected_png,
                        warnings=result.warnings,
                    )
                )

            last_reason, last_code, last_message = result.failure_reason, None, None
            if attempt_index < self.max_retries - 1:
                strategy.escalate(result.failure_reason, attempt_index + 1)

        return self._finish(
            PageOutcome(
                page_index=request.page_index,
                state=AttemptState.EXHAUSTED,
                passed=False,
                attempts=tuple(records),
                final_image=last_result.corrected_image if last_result else None,
                final_png=last_result.corrected_png if last_result else None,
                last_error=last_reason,
                error_code=last_code,
                error_message=last_message,
                warnings=last_result.warnings if last_result else (),
            )
        )

    def _attempt_finished(self, request: PageRequest, record: AttemptRecord) -> None:
        self.events.emit(
            ATTEMPT_FINISHED,
            page_index=request.page_index,
            attempt=record.attempt_index + 1,
            passed=record.passed,
            failure_reason=record.failure_reason.value if record.failure_reason else None,
            error_code=record.error_code,
        )

    def _transition(self, request: PageRequest, state: AttemptState, attempt_index: int) -> None:
        self.events.emit(
            PAGE_STATE,
            page_index=request.page_index,
            state=state.value,
            attempt=attempt_index + 1,
        )

    def _finish(self, outcome: PageOutcome) -> PageOutcome:
        self.events.emit(
            PAGE_STATE,
            page_index=outcome.page_index,
            state=outcome.state.value,
            attempt=len(outcome.attempts),
        )
        self.events.emit(
            PAGE_FINISHED,
            page_index=outcome.page_index,
            state=outcome.state.value,
            passed=outcome.passed,
            attempts=len(outcome.attempts),
        )
        return outcome
