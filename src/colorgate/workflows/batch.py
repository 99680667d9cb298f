"""Batch scheduling of many pages.

Pages are split into fixed-size sub-batches.  Pages inside a sub-batch run
concurrently; the next sub-batch starts only after every page of the
current one is terminal, with a pause in between to respect upstream rate
limits.  Outcomes are always reported in request order, and one page's
failure never affects the others.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from colorgate.core.config import ColorgateConfig
from colorgate.generators.base import ImageGenerator, ImageSize
from colorgate.workflows.attempts import AttemptRunner, AttemptState, PageOutcome, PageRequest, SleepFunc
from colorgate.workflows.events import (
    BATCH_FINISHED,
    BATCH_STARTED,
    BATCH_TIMEOUT,
    SUB_BATCH_STARTED,
    EventSink,
    LoggingEventSink,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchResult:
    """All page outcomes of a batch run, in request order."""

    outcomes: tuple[PageOutcome, ...]
    timed_out: bool = False

    @property
    def success_count(self) -> int:
        """Pages that passed every quality gate."""
        return sum(1 for outcome in self.outcomes if outcome.passed)

    @property
    def fail_count(self) -> int:
        return len(self.outcomes) - self.success_count

    def count(self, state: AttemptState) -> int:
        return sum(1 for outcome in self.outcomes if outcome.state == state)


def partition(requests: Sequence[PageRequest], batch_size: int) -> list[list[PageRequest]]:
    """Split requests into consecutive sub-batches of at most ``batch_size``."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")
    return [list(requests[start : start + batch_size]) for start in range(0, len(requests), batch_size)]


class BatchScheduler:
    """Runs pages through an :class:`AttemptRunner` in sequential sub-batches.

    Args:
        runner: Attempt runner shared by every page.
        batch_size: Pages run concurrently per sub-batch.
        inter_batch_delay: Seconds to wait between sub-batches.
        timeout: Budget in seconds for the whole run.  Once exceeded, pages
            of sub-batches that have not started are reported as skipped.
        event_sink: Receives progress events.
        sleep: Awaitable sleep, replaceable in tests.
        clock: Monotonic clock used for the timeout budget.
    """

    def __init__(
        self,
        runner: AttemptRunner,
        *,
        batch_size: int = 2,
        inter_batch_delay: float = 3.0,
        timeout: float | None = None,
        event_sink: EventSink | None = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.runner = runner
        self.batch_size = batch_size
        self.inter_batch_delay = inter_batch_delay
        self.timeout = timeout
        self.events = event_sink or runner.events
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        generator: ImageGenerator,
        config: ColorgateConfig,
        *,
        size: ImageSize | None = None,
        event_sink: EventSink | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> BatchScheduler:
        """Build a scheduler and its runner from configuration."""
        sink = event_sink or LoggingEventSink()
        runner = AttemptRunner.from_config(generator, config, size=size, event_sink=sink, sleep=sleep)
        return cls(
            runner,
            batch_size=config.batch_size,
            inter_batch_delay=config.inter_batch_delay_seconds,
            timeout=config.batch_timeout_seconds,
            event_sink=sink,
            sleep=sleep,
        )

    async def run(self, requests: Sequence[PageRequest]) -> BatchResult:
        """Run every page and return outcomes in request order."""
        sub_batches = partition(list(requests), self.batch_size)
        self.events.emit(BATCH_STARTED, pages=len(requests), sub_batches=len(sub_batches))

        started = self._clock()
        outcomes: list[PageOutcome] = []
        timed_out = False

        for number, sub_batch in enumerate(sub_batches):
            if number > 0 and self.inter_batch_delay > 0:
                await self._sleep(self.inter_batch_delay)

            if self.timeout is not None and self._clock() - started >= self.timeout:
                remaining = [request for pending in sub_batches[number:] for request in pending]
                outcomes.extend(PageOutcome.skipped(request.page_index) for request in remaining)
                timed_out = True
                logger.warning(
                    "Batch timeout after %.1fs; skipping %d unstarted page(s).",
                    self._clock() - started,
                    len(remaining),
                )
                self.events.emit(BATCH_TIMEOUT, skipped=[request.page_index for request in remaining])
                break

            self.events.emit(
                SUB_BATCH_STARTED,
                sub_batch=number + 1,
                pages=[request.page_index for request in sub_batch],
            )
            outcomes.extend(await asyncio.gather(*(self._run_page(request) for request in sub_batch)))

        result = BatchResult(outcomes=tuple(outcomes), timed_out=timed_out)
        self.events.emit(
            BATCH_FINISHED,
            success_count=result.success_count,
            fail_count=result.fail_count,
            exhausted=result.count(AttemptState.EXHAUSTED),
            fatal=result.count(AttemptState.FATAL),
            skipped=result.count(AttemptState.SKIPPED),
            timed_out=timed_out,
        )
        return result

    async def _run_page(self, request: PageRequest) -> PageOutcome:
        try:
            return await self.runner.run(request)
        except Exception as e:
            logger.exception("Unexpected error while generating page %d.", request.page_index)
            return PageOutcome(
                page_index=request.page_index,
                state=AttemptState.FATAL,
                passed=False,
                error_code="internal_error",
                error_message=str(e),
            )
