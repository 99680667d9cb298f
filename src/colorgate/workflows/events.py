"""Structured progress events for batch runs.

The scheduler and attempt runner report progress through an
:class:`EventSink`.  The default sink logs each event; callers that want
to stream progress (for example to a UI) can provide their own sink.

Events emitted
--------------
- ``batch_started``: total pages, sub-batch count
- ``sub_batch_started``: sub-batch number and its page indices
- ``attempt_started`` / ``attempt_finished``: per page and attempt
- ``page_state``: every state change of a page (pending, generating,
  validating, retrying and the terminal state)
- ``page_finished``: terminal state of a page
- ``batch_timeout``: pages skipped after the run budget ran out
- ``batch_finished``: success, failure and per-state counts
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

BATCH_STARTED = "batch_started"
SUB_BATCH_STARTED = "sub_batch_started"
ATTEMPT_STARTED = "attempt_started"
ATTEMPT_FINISHED = "attempt_finished"
PAGE_STATE = "page_state"
PAGE_FINISHED = "page_finished"
BATCH_TIMEOUT = "batch_timeout"
BATCH_FINISHED = "batch_finished"


class EventSink:
    """Receives progress events.  The base implementation discards them."""

    def emit(self, event: str, **fields: Any) -> None:
        pass


class LoggingEventSink(EventSink):
    """Writes every event to the ``colorgate.workflows.events`` logger."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def emit(self, event: str, **fields: Any) -> None:
        if not logger.isEnabledFor(self.level):
            return
        details = " ".join(f"{key}={value}" for key, value in fields.items())
        logger.log(self.level, "%s %s", event, details)
