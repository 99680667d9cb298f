"""Colorgate - print-safe quality gate and retry orchestration for coloring pages."""

__version__ = "0.1.0"

from colorgate.core.config import ColorgateConfig, config
from colorgate.core.quality_gate import FailureReason, QualityGate
from colorgate.core.thresholds import ComplexityTier
from colorgate.workflows.attempts import AttemptRunner, PageOutcome, PageRequest
from colorgate.workflows.batch import BatchResult, BatchScheduler

__all__ = [
    "ColorgateConfig",
    "config",
    "FailureReason",
    "QualityGate",
    "ComplexityTier",
    "AttemptRunner",
    "PageOutcome",
    "PageRequest",
    "BatchResult",
    "BatchScheduler",
]
