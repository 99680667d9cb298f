"""Complexity tiers and their quality-gate threshold profiles.

One canonical table governs every evaluation. The values encode print
policy for outline-only coloring pages:

=========  ============  ====  =========  ========
Tier       binarization  warn  max_black  max_blob
=========  ============  ====  =========  ========
simple     200           0.35  0.55       0.05
medium     200           0.35  0.55       0.05
detailed   200           0.35  0.55       0.05
=========  ============  ====  =========  ========

The tiers currently share one profile. They stay separate entries so a
tier can be tightened without touching call sites.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class ComplexityTier(str, Enum):
    """Target detail level of a coloring page."""

    SIMPLE = "simple"
    MEDIUM = "medium"
    DETAILED = "detailed"


@dataclass(frozen=True)
class QualityThresholds:
    """Threshold profile applied by the quality gate.

    Attributes:
        binarization_threshold: Gray value below which a pixel becomes black.
        warn_black_ratio: Black ratio above which a soft warning is recorded.
        max_black_ratio: Black ratio above which the page fails as a black fill.
        max_blob_percent: Largest-blob share above which the page fails as a
            silhouette.
    """

    binarization_threshold: int
    warn_black_ratio: float
    max_black_ratio: float
    max_blob_percent: float

    def __post_init__(self) -> None:
        if not 1 <= self.binarization_threshold <= 255:
            raise ValueError(
                f"binarization_threshold must be 1-255, got {self.binarization_threshold}"
            )
        for name in ("warn_black_ratio", "max_black_ratio", "max_blob_percent"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within 0-1, got {value}")
        if self.warn_black_ratio > self.max_black_ratio:
            raise ValueError("warn_black_ratio cannot exceed max_black_ratio")

    def with_binarization(self, threshold: int) -> QualityThresholds:
        """Return a copy using a different binarization threshold."""
        return replace(self, binarization_threshold=threshold)

    def as_dict(self) -> dict[str, float]:
        return {
            "binarization_threshold": self.binarization_threshold,
            "warn_black_ratio": self.warn_black_ratio,
            "max_black_ratio": self.max_black_ratio,
            "max_blob_percent": self.max_blob_percent,
        }


DEFAULT_BINARIZATION_THRESHOLD = 200

# Soft-warning limits shared by every tier.  Crossing them adds a warning
# to a passing page but never fails it.
MIN_SUBJECT_HEIGHT_RATIO = 0.60
MAX_BOTTOM_BLANK_RATIO = 0.92
MAX_TINY_COMPONENT_COUNT = 500

TIER_THRESHOLDS: dict[ComplexityTier, QualityThresholds] = {
    ComplexityTier.SIMPLE: QualityThresholds(
        binarization_threshold=DEFAULT_BINARIZATION_THRESHOLD,
        warn_black_ratio=0.35,
        max_black_ratio=0.55,
        max_blob_percent=0.05,
    ),
    ComplexityTier.MEDIUM: QualityThresholds(
        binarization_threshold=DEFAULT_BINARIZATION_THRESHOLD,
        warn_black_ratio=0.35,
        max_black_ratio=0.55,
        max_blob_percent=0.05,
    ),
    ComplexityTier.DETAILED: QualityThresholds(
        binarization_threshold=DEFAULT_BINARIZATION_THRESHOLD,
        warn_black_ratio=0.35,
        max_black_ratio=0.55,
        max_blob_percent=0.05,
    ),
}


def get_thresholds(tier: ComplexityTier | str) -> QualityThresholds:
    """Look up the threshold profile for a tier.

    Raises:
        ValueError: If ``tier`` is not a known tier name.
    """
    return TIER_THRESHOLDS[ComplexityTier(tier)]
