"""Tests for colorgate.core.config: configuration management.

Tests cover:
- Default values for the gate, retry, batch and server settings.
- Environment variable overrides via the COLORGATE_ prefix.
- Pydantic validation constraints (ranges and literals).
- Threshold resolution through thresholds_for().
"""

from __future__ import annotations

import os

import pytest
from pydantic import ValidationError

from colorgate.core.config import ColorgateConfig
from colorgate.core.thresholds import ComplexityTier


@pytest.fixture
def clean_env(monkeypatch):
    """Remove any COLORGATE_ variables from the environment."""
    for key in list(os.environ):
        if key.startswith("COLORGATE_"):
            monkeypatch.delenv(key, raising=False)


class TestConfigDefaults:
    """Verify that ColorgateConfig provides the documented defaults."""

    def test_retry_defaults(self, clean_env):
        cfg = ColorgateConfig(_env_file=None)
        assert cfg.max_retries == 3
        assert cfg.retry_delay_seconds == 1.0
        assert cfg.retry_backoff == "linear"

    def test_batch_defaults(self, clean_env):
        cfg = ColorgateConfig(_env_file=None)
        assert cfg.batch_size == 2
        assert cfg.inter_batch_delay_seconds == 3.0
        assert cfg.batch_timeout_seconds is None

    def test_gate_defaults(self, clean_env):
        cfg = ColorgateConfig(_env_file=None)
        assert cfg.default_tier == ComplexityTier.MEDIUM
        assert cfg.binarization_threshold is None
        assert cfg.blob_sample_width == 128
        assert cfg.reject_color_input is False

    def test_generator_defaults(self, clean_env):
        cfg = ColorgateConfig(_env_file=None)
        assert cfg.generator_backend == "openai"
        assert cfg.image_size == "1024x1536"
        assert cfg.openai_image_model == "gpt-image-1"

    def test_server_defaults(self, clean_env):
        cfg = ColorgateConfig(_env_file=None)
        assert cfg.server_port == 7870
        assert cfg.log_level == "INFO"


class TestEnvironmentOverrides:
    def test_env_prefix(self, clean_env, monkeypatch):
        monkeypatch.setenv("COLORGATE_MAX_RETRIES", "5")
        monkeypatch.setenv("COLORGATE_DEFAULT_TIER", "detailed")
        monkeypatch.setenv("COLORGATE_RETRY_BACKOFF", "exponential")
        cfg = ColorgateConfig(_env_file=None)
        assert cfg.max_retries == 5
        assert cfg.default_tier == ComplexityTier.DETAILED
        assert cfg.retry_backoff == "exponential"

    def test_env_file(self, clean_env, temp_dir):
        env_file = temp_dir / ".env"
        env_file.write_text("COLORGATE_BATCH_SIZE=4\n")
        cfg = ColorgateConfig(_env_file=env_file)
        assert cfg.batch_size == 4


class TestValidation:
    @pytest.mark.parametrize(
        "field,value",
        [
            ("max_retries", 0),
            ("batch_size", 0),
            ("server_port", 80),
            ("binarization_threshold", 300),
            ("retry_backoff", "quadratic"),
            ("image_size", "640x480"),
            ("batch_timeout_seconds", 0),
        ],
    )
    def test_invalid_values_rejected(self, clean_env, field, value):
        with pytest.raises(ValidationError):
            ColorgateConfig(_env_file=None, **{field: value})


class TestThresholdsFor:
    def test_default_tier_used(self, test_config):
        assert test_config.thresholds_for() == test_config.thresholds_for(ComplexityTier.MEDIUM)

    def test_override_applied(self, clean_env):
        cfg = ColorgateConfig(_env_file=None, binarization_threshold=180)
        assert cfg.thresholds_for("simple").binarization_threshold == 180
        assert cfg.thresholds_for("simple").max_black_ratio == 0.55

    def test_unknown_tier(self, test_config):
        with pytest.raises(ValueError):
            test_config.thresholds_for("heroic")
