"""
Token-by-token generation loop driving the sampling orchestrator.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sampler_lite.core.context import SamplingContext
from sampler_lite.core.orchestrator import Outcome, SamplingOrchestrator, Stopped
from sampler_lite.interfaces import EvaluatingBackend

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Tokens produced by one call to ``generate``.

    Attributes:
        token_ids: Accepted token ids, prompt excluded
        finish_reason: "length", "eos", or the StopReason value that ended
            the session
        outcome: Last per-step outcome, None if no step ran
    """

    token_ids: List[int] = field(default_factory=list)
    finish_reason: str = "length"
    outcome: Optional[Outcome] = None


def generate(
    backend: EvaluatingBackend,
    orchestrator: SamplingOrchestrator,
    context: SamplingContext,
    prompt_ids: Sequence[int],
    max_new_tokens: int = 50,
    guidance_prompt_ids: Optional[Sequence[int]] = None,
) -> GenerationResult:
    """Generate up to ``max_new_tokens`` tokens after ``prompt_ids``.

    The prompt is accepted without advancing the grammar and becomes the
    session prelude.

    Args:
        backend: Model evaluated over the growing sequence
        orchestrator: Per-step sampler
        context: Session context
        prompt_ids: Prompt token ids
        max_new_tokens: Maximum number of generated tokens
        guidance_prompt_ids: Prompt of the guidance backend, when the
            orchestrator uses classifier-free guidance

    Returns:
        GenerationResult with the generated tokens and why generation ended

    Raises:
        ValueError: If prompt_ids is empty or max_new_tokens is negative
    """
    if not prompt_ids:
        raise ValueError("prompt_ids cannot be empty")
    if max_new_tokens < 0:
        raise ValueError(f"max_new_tokens must be non-negative, got {max_new_tokens}")

    for token_id in prompt_ids:
        orchestrator.accept(context, token_id, apply_grammar=False)
    context.set_prelude_len(len(context.history))

    tokens = list(prompt_ids)
    result = GenerationResult()
    eos_token_id = backend.eos_token_id()

    for _ in range(max_new_tokens):
        backend.evaluate(tokens)
        if orchestrator.guidance is not None and guidance_prompt_ids is not None:
            orchestrator.guidance.evaluate(list(guidance_prompt_ids) + result.token_ids)

        outcome = orchestrator.sample(context)
        result.outcome = outcome
        if isinstance(outcome, Stopped):
            result.finish_reason = outcome.reason.value
            break

        orchestrator.accept(context, outcome.token_id)
        tokens.append(outcome.token_id)
        result.token_ids.append(outcome.token_id)

        if eos_token_id is not None and outcome.token_id == eos_token_id:
            result.finish_reason = "eos"
            break

    logger.info(
        "generated %d tokens, finish reason: %s",
        len(result.token_ids),
        result.finish_reason,
    )
    return result
