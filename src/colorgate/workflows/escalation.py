"""Prompt escalation after quality-gate failures.

When a page fails the gate, the next attempt reuses the previous prompt
with a corrective block appended that targets the failure.  Escalation is
additive: blocks are never removed or reordered, so each retry prompt
starts with the prompt of the attempt before it.

The first correction for a given failure reason uses its standard block;
repeat corrections for the same reason use the stronger critical block.
Failures that are not about the image content (fetch and generation
errors) leave the prompt unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable

from colorgate.core.quality_gate import FailureReason

# (standard, critical) corrective text per failure reason.
ESCALATION_BLOCKS: dict[FailureReason, tuple[str, str]] = {
    FailureReason.BLACK_FILL: (
        "REDUCE BLACK: Thinner lines, fewer details, more white space, simpler shapes. "
        "Zero gray, zero gradients, zero shading.",
        "CRITICAL: MUCH thinner lines, minimal detail, maximum white space, outline-only style. "
        "Large areas must stay white. Absolutely no gray tones, gradients or filled areas.",
    ),
    FailureReason.SILHOUETTE: (
        "OUTLINE ONLY: NO SOLID FILLS. NO BLACK PATCHES. All dark areas must be outlines with "
        "white interiors. Eyes are small hollow circles with tiny dot pupils. Hair and fur are "
        "drawn as individual strands or outline shapes, never solid black.",
        "CRITICAL: The previous image contained a filled silhouette. Draw every shape as a thin "
        "outline. Eyes, hair, clothing and shadows must be outlines with white interiors. "
        "No filled regions of any size.",
    ),
    FailureReason.COLOR: (
        "PURE BLACK AND WHITE: Use only #000000 black lines on #FFFFFF white. "
        "No color, no gray tones.",
        "CRITICAL: The previous image had color. This must be monochrome line art only, "
        "black outlines on a white background.",
    ),
}


def escalation_block(
    failure_reason: FailureReason | str,
    attempt_index: int,
    history: Iterable[FailureReason | str] = (),
) -> str | None:
    """Return the corrective block for the attempt about to run, or None.

    Args:
        failure_reason: Why the previous attempt failed.
        attempt_index: Zero-based index of the upcoming attempt.
        history: Reasons already escalated for this page, oldest first.
    """
    reason = FailureReason(failure_reason)
    blocks = ESCALATION_BLOCKS.get(reason)
    if blocks is None:
        return None

    standard, critical = blocks
    repeated = reason in {FailureReason(previous) for previous in history}
    text = critical if repeated else standard
    return f"=== RETRY {attempt_index + 1}: {reason.value.upper()} CORRECTION ===\n{text}"


def escalate_prompt(
    failure_reason: FailureReason | str,
    attempt_index: int,
    base_prompt: str,
    history: Iterable[FailureReason | str] = (),
) -> str:
    """Append the corrective block for ``failure_reason`` to ``base_prompt``.

    ``base_prompt`` is the prompt of the failed attempt, so calling this once
    per retry accumulates blocks.  Reasons without a corrective block return
    ``base_prompt`` unchanged.
    """
    block = escalation_block(failure_reason, attempt_index, history)
    if block is None:
        return base_prompt
    return f"{base_prompt}\n\n{block}"


class EscalationStrategy:
    """Tracks the escalating prompt for a single page.

    Example:
        >>> strategy = EscalationStrategy("a cat in a garden")
        >>> prompt = strategy.escalate(FailureReason.SILHOUETTE, attempt_index=1)
        >>> prompt.startswith("a cat in a garden")
        True
    """

    def __init__(self, base_prompt: str):
        self.base_prompt = base_prompt
        self.prompt = base_prompt
        self.history: list[FailureReason] = []

    def escalate(self, failure_reason: FailureReason | str, attempt_index: int) -> str:
        """Update and return the prompt for the upcoming attempt."""
        reason = FailureReason(failure_reason)
        escalated = escalate_prompt(reason, attempt_index, self.prompt, self.history)
        if escalated != self.prompt:
            self.history.append(reason)
        self.prompt = escalated
        return self.prompt
