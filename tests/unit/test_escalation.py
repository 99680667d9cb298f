"""Tests for colorgate.workflows.escalation."""

from __future__ import annotations

import pytest

from colorgate.core.quality_gate import FailureReason
from colorgate.workflows.escalation import (
    ESCALATION_BLOCKS,
    EscalationStrategy,
    escalate_prompt,
    escalation_block,
)

BASE = "A friendly dragon reading a book"


class TestEscalatePrompt:
    @pytest.mark.parametrize(
        "reason", [FailureReason.FETCH_ERROR, FailureReason.GENERATION_ERROR, FailureReason.NONE]
    )
    def test_non_content_failures_leave_prompt_unchanged(self, reason):
        assert escalate_prompt(reason, 1, BASE) == BASE

    def test_first_escalation_uses_standard_block(self):
        prompt = escalate_prompt(FailureReason.SILHOUETTE, 1, BASE)
        standard, critical = ESCALATION_BLOCKS[FailureReason.SILHOUETTE]
        assert prompt.startswith(BASE)
        assert standard in prompt
        assert critical not in prompt

    def test_repeat_escalation_uses_critical_block(self):
        prompt = escalate_prompt(
            FailureReason.SILHOUETTE, 2, BASE, history=[FailureReason.SILHOUETTE]
        )
        assert ESCALATION_BLOCKS[FailureReason.SILHOUETTE][1] in prompt

    def test_accepts_reason_strings(self):
        assert escalation_block("black_fill", 1) is not None

    def test_is_pure(self):
        assert escalate_prompt(FailureReason.BLACK_FILL, 1, BASE) == escalate_prompt(
            FailureReason.BLACK_FILL, 1, BASE
        )


class TestEscalationStrategy:
    def test_prompts_are_monotonic(self):
        strategy = EscalationStrategy(BASE)
        prompts = [strategy.prompt]
        for attempt_index, reason in enumerate(
            [FailureReason.SILHOUETTE, FailureReason.BLACK_FILL, FailureReason.SILHOUETTE], start=1
        ):
            prompts.append(strategy.escalate(reason, attempt_index))

        for earlier, later in zip(prompts, prompts[1:]):
            assert later.startswith(earlier)
            assert len(later) > len(earlier)

    def test_history_tracks_applied_reasons(self):
        strategy = EscalationStrategy(BASE)
        strategy.escalate(FailureReason.BLACK_FILL, 1)
        strategy.escalate(FailureReason.GENERATION_ERROR, 2)
        strategy.escalate(FailureReason.BLACK_FILL, 3)

        assert strategy.history == [FailureReason.BLACK_FILL, FailureReason.BLACK_FILL]
        standard, critical = ESCALATION_BLOCKS[FailureReason.BLACK_FILL]
        assert standard in strategy.prompt
        assert critical in strategy.prompt

    def test_base_prompt_kept(self):
        strategy = EscalationStrategy(BASE)
        strategy.escalate(FailureReason.COLOR, 1)
        assert strategy.base_prompt == BASE
