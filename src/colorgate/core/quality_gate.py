"""Print-safety quality gate for generated coloring pages.

The gate decodes a generated image, converts it to pure black and white,
measures it, and decides whether the page is printable.  Evaluation order
is fixed and the first failing check wins:

1. ``color``: the source carried real colour (only when colour rejection
   is enabled; otherwise colour is recorded and binarization removes it)
2. ``black_fill``: black ratio above ``max_black_ratio``
3. ``silhouette``: largest connected black blob above ``max_blob_percent``
4. pass, with soft warnings when the black ratio exceeds
   ``warn_black_ratio``, the subject fills too little of the page height,
   the bottom strip is blank, or the page is covered in tiny specks

Everything here is deterministic: the same bytes and thresholds always
produce the same verdict, metrics and corrected image.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .blobs import DEFAULT_SAMPLE_WIDTH, find_components
from .composition import analyze_composition
from .config import ColorgateConfig
from .raster import RasterImage, binarize, decode_image, encode_png, grayscale
from .statistics import black_ratio, probe_color_content
from .thresholds import (
    MAX_BOTTOM_BLANK_RATIO,
    MAX_TINY_COMPONENT_COUNT,
    MIN_SUBJECT_HEIGHT_RATIO,
    ComplexityTier,
    QualityThresholds,
)

logger = logging.getLogger(__name__)


class FailureReason(str, Enum):
    """Why an attempt did not produce an accepted page."""

    NONE = "none"
    COLOR = "color"
    BLACK_FILL = "black_fill"
    SILHOUETTE = "silhouette"
    FETCH_ERROR = "fetch_error"
    GENERATION_ERROR = "generation_error"


@dataclass(frozen=True)
class QualityMetrics:
    """Measurements taken from one binarized page.

    Attributes:
        black_ratio: Fraction of black pixels in the full-resolution image.
        largest_blob_percent: Largest black component as a share of the
            downsampled area.
        width: Image width in pixels.
        height: Image height in pixels.
        had_color: Source image contained real colour.
        had_gray: Source image contained significant mid-gray.
        component_count: Number of black components in the downsample.
        tiny_component_count: Components too small to be deliberate strokes.
        subject_height_ratio: Vertical extent of the black content as a
            share of the page height, or None when not measured.
        bottom_blank_ratio: White share of the bottom strip, or None when
            not measured.
    """

    black_ratio: float
    largest_blob_percent: float
    width: int
    height: int
    had_color: bool = False
    had_gray: bool = False
    component_count: int = 0
    tiny_component_count: int = 0
    subject_height_ratio: float | None = None
    bottom_blank_ratio: float | None = None

    @property
    def was_color_corrected(self) -> bool:
        return self.had_color or self.had_gray

    def as_dict(self) -> dict[str, Any]:
        return {
            "black_ratio": round(self.black_ratio, 6),
            "largest_blob_percent": round(self.largest_blob_percent, 6),
            "width": self.width,
            "height": self.height,
            "had_color": self.had_color,
            "had_gray": self.had_gray,
            "component_count": self.component_count,
            "tiny_component_count": self.tiny_component_count,
            "subject_height_ratio": _rounded(self.subject_height_ratio),
            "bottom_blank_ratio": _rounded(self.bottom_blank_ratio),
        }


def _rounded(value: float | None) -> float | None:
    return None if value is None else round(value, 6)


@dataclass(frozen=True)
class GateVerdict:
    """Outcome of applying thresholds to a set of metrics."""

    passed: bool
    failure_reason: FailureReason | None = None
    warnings: tuple[str, ...] = ()


def evaluate(
    metrics: QualityMetrics,
    thresholds: QualityThresholds,
    *,
    reject_color: bool = False,
) -> GateVerdict:
    """Apply the threshold profile to metrics.

    Exactly one outcome is produced: either a pass or a single failure
    reason, checked in precedence order.
    """
    if reject_color and metrics.had_color:
        return GateVerdict(passed=False, failure_reason=FailureReason.COLOR)

    if metrics.black_ratio > thresholds.max_black_ratio:
        return GateVerdict(passed=False, failure_reason=FailureReason.BLACK_FILL)

    if metrics.largest_blob_percent > thresholds.max_blob_percent:
        return GateVerdict(passed=False, failure_reason=FailureReason.SILHOUETTE)

    warnings: list[str] = []
    if metrics.black_ratio > thresholds.warn_black_ratio:
        warnings.append(
            f"High black coverage ({metrics.black_ratio:.1%}); the page may use a lot of ink"
        )
    if metrics.was_color_corrected:
        warnings.append("Source image contained colour or gray and was converted to pure black and white")
    if (
        metrics.subject_height_ratio is not None
        and metrics.subject_height_ratio < MIN_SUBJECT_HEIGHT_RATIO
    ):
        warnings.append(
            f"Subject only fills {metrics.subject_height_ratio:.0%} of the page height"
            f" (min {MIN_SUBJECT_HEIGHT_RATIO:.0%})"
        )
    if metrics.bottom_blank_ratio is not None and metrics.bottom_blank_ratio > MAX_BOTTOM_BLANK_RATIO:
        warnings.append(
            f"Bottom of the page is {metrics.bottom_blank_ratio:.0%} empty"
            f" (max {MAX_BOTTOM_BLANK_RATIO:.0%})"
        )
    if metrics.tiny_component_count > MAX_TINY_COMPONENT_COUNT:
        warnings.append(
            f"Too many tiny blobs ({metrics.tiny_component_count}); possible texture or stippling"
        )

    return GateVerdict(passed=True, warnings=tuple(warnings))


@dataclass(frozen=True)
class GateResult:
    """Full result of running the quality gate on one image.

    Attributes:
        corrected_image: The binarized page.
        corrected_png: The binarized page encoded as PNG.
        metrics: Measurements the verdict was based on.
        passed: True when every check passed.
        failure_reason: The first failing check, or None when passed.
        warnings: Soft warnings (never affect ``passed``).
        thresholds: The profile the page was judged against.
    """

    corrected_image: RasterImage
    corrected_png: bytes
    metrics: QualityMetrics
    passed: bool
    failure_reason: FailureReason | None
    thresholds: QualityThresholds
    warnings: tuple[str, ...] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "failure_reason": self.failure_reason.value if self.failure_reason else None,
            "warnings": list(self.warnings),
            "black_ratio_warning": self.metrics.black_ratio > self.thresholds.warn_black_ratio,
            "metrics": self.metrics.as_dict(),
            "thresholds": self.thresholds.as_dict(),
        }


class QualityGate:
    """Decode, binarize, measure and judge generated pages.

    Args:
        thresholds: Threshold profile to judge against.
        sample_width: Width of the downsample used for blob detection.
        reject_color_input: Fail pages whose source carried real colour.

    Example:
        >>> gate = QualityGate(get_thresholds("medium"))
        >>> result = gate.check(png_bytes)
        >>> result.passed, result.failure_reason
    """

    def __init__(
        self,
        thresholds: QualityThresholds,
        sample_width: int = DEFAULT_SAMPLE_WIDTH,
        reject_color_input: bool = False,
    ):
        self.thresholds = thresholds
        self.sample_width = sample_width
        self.reject_color_input = reject_color_input

    @classmethod
    def from_config(
        cls, config: ColorgateConfig, tier: ComplexityTier | str | None = None
    ) -> QualityGate:
        """Build a gate for ``tier`` using configuration overrides."""
        return cls(
            thresholds=config.thresholds_for(tier),
            sample_width=config.blob_sample_width,
            reject_color_input=config.reject_color_input,
        )

    def check(self, data: bytes) -> GateResult:
        """Run the full gate on encoded image bytes.

        Raises:
            DecodeError: If the bytes cannot be decoded.
        """
        return self.check_image(decode_image(data))

    def check_image(self, source: RasterImage) -> GateResult:
        """Run the full gate on an already decoded raster."""
        probe = probe_color_content(source)
        binary = binarize(grayscale(source), self.thresholds.binarization_threshold)
        blobs = find_components(binary, self.sample_width)
        composition = analyze_composition(binary)

        metrics = QualityMetrics(
            black_ratio=black_ratio(binary),
            largest_blob_percent=blobs.largest_blob_percent,
            width=binary.width,
            height=binary.height,
            had_color=probe.had_color,
            had_gray=probe.had_gray,
            component_count=blobs.component_count,
            tiny_component_count=blobs.tiny_component_count,
            subject_height_ratio=composition.subject_height_ratio,
            bottom_blank_ratio=composition.bottom_blank_ratio,
        )
        verdict = evaluate(metrics, self.thresholds, reject_color=self.reject_color_input)

        if verdict.passed:
            logger.info(
                "Quality gate passed (black=%.3f, blob=%.3f).",
                metrics.black_ratio,
                metrics.largest_blob_percent,
            )
        else:
            logger.info(
                "Quality gate failed: %s (black=%.3f, blob=%.3f).",
                verdict.failure_reason.value,
                metrics.black_ratio,
                metrics.largest_blob_percent,
            )

        return GateResult(
            corrected_image=binary,
            corrected_png=encode_png(binary),
            metrics=metrics,
            passed=verdict.passed,
            failure_reason=verdict.failure_reason,
            thresholds=self.thresholds,
            warnings=verdict.warnings,
        )
