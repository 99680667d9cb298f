"""Core image analysis and configuration for colorgate."""

from .composition import Composition, analyze_composition
from .config import ColorgateConfig, config
from .errors import ColorgateError, DecodeError
from .quality_gate import (
    FailureReason,
    GateResult,
    GateVerdict,
    QualityGate,
    QualityMetrics,
    evaluate,
)
from .raster import RasterImage, binarize, decode_base64_image, decode_image, encode_png, grayscale
from .thresholds import ComplexityTier, QualityThresholds, get_thresholds

__all__ = [
    "Composition",
    "analyze_composition",
    "ColorgateConfig",
    "config",
    "ColorgateError",
    "DecodeError",
    "FailureReason",
    "GateResult",
    "GateVerdict",
    "QualityGate",
    "QualityMetrics",
    "evaluate",
    "RasterImage",
    "binarize",
    "decode_base64_image",
    "decode_image",
    "encode_png",
    "grayscale",
    "ComplexityTier",
    "QualityThresholds",
    "get_thresholds",
]
