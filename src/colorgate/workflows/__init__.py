"""Retry orchestration: escalation, per-page attempts and batch scheduling."""

from .attempts import AttemptRecord, AttemptRunner, AttemptState, PageOutcome, PageRequest
from .batch import BatchResult, BatchScheduler, partition
from .escalation import EscalationStrategy, escalate_prompt
from .events import EventSink, LoggingEventSink

__all__ = [
    "AttemptRecord",
    "AttemptRunner",
    "AttemptState",
    "PageOutcome",
    "PageRequest",
    "BatchResult",
    "BatchScheduler",
    "partition",
    "EscalationStrategy",
    "escalate_prompt",
    "EventSink",
    "LoggingEventSink",
]
