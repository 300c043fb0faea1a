"""
Per-step sampling procedure.

One call to ``SamplingOrchestrator.sample`` turns the inference scores for a
position into a single token id, or into a stop outcome when a stopping
heuristic fires. Accepting the token is a separate step.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Union

import torch

from sampler_lite.core.context import SamplingContext
from sampler_lite.errors import LogWriteError
from sampler_lite.grammar.refresher import DynamicGrammarRefresher
from sampler_lite.interfaces import InferenceBackend, Transcript
from sampler_lite.sampling import transforms
from sampler_lite.sampling.candidates import CandidateSet
from sampler_lite.sampling.penalties import PenaltyEngine
from sampler_lite.sampling.pipeline import DistributionPipeline
from sampler_lite.stopping.heuristics import StopChecker, StopReason

logger = logging.getLogger(__name__)

# Candidates used to estimate the Zipf exponent in mirostat 1.0
MIROSTAT_M = 100


@dataclass(frozen=True)
class Continue:
    """A token was selected; the session goes on."""

    token_id: int


@dataclass(frozen=True)
class Stopped:
    """A stopping heuristic ended the session."""

    reason: StopReason


Outcome = Union[Continue, Stopped]


class SamplingOrchestrator:
    """Composes penalties, grammar, stopping checks and token selection.

    Attributes:
        backend: Inference collaborator providing scores and token text
        guidance: Optional second inference context for classifier-free guidance
        refresher: Dynamic grammar refresher, used when the session
            parameters name a dynamic grammar
        stop_checker: Stopping heuristics; None disables them
        transcript: Session transcript written on steps without a grammar
    """

    def __init__(
        self,
        backend: InferenceBackend,
        guidance: Optional[InferenceBackend] = None,
        refresher: Optional[DynamicGrammarRefresher] = None,
        stop_checker: Optional[StopChecker] = None,
        transcript: Optional[Transcript] = None,
    ):
        self.backend = backend
        self.guidance = guidance
        self.refresher = refresher
        self.stop_checker = stop_checker
        self.transcript = transcript

    def _biased_logits(self, ctx: SamplingContext, idx: int) -> torch.Tensor:
        logits = torch.as_tensor(
            self.backend.scores_for_position(idx), dtype=torch.float32
        ).flatten().clone()
        for token_id, bias in ctx.params.logit_bias.items():
            if token_id < logits.numel():
                logits[token_id] += bias
        return logits

    def _filter_by_grammar(self, ctx: SamplingContext, candidates: CandidateSet) -> None:
        params = ctx.params
        if params.dynamic_grammar and self.refresher is not None:
            self.refresher.refresh(ctx.grammar, ctx.history)
            unfiltered = candidates.logits
            ctx.grammar.filter_candidates(candidates)
            if not torch.isfinite(candidates.logits).any():
                logger.warning(
                    "refreshed grammar admits no candidate, sampling unconstrained"
                )
                ctx.grammar.release()
                candidates.logits = unfiltered
                candidates.probs = None
        elif ctx.grammar.active:
            now = time.perf_counter()
            elapsed = 0.0 if ctx.last_sample_time is None else now - ctx.last_sample_time
            logger.debug(
                "grammar stacks: %s, elapsed: %.6fs",
                getattr(ctx.grammar.automaton, "stack_count", "?"),
                elapsed,
            )
            ctx.grammar.filter_candidates(candidates)
        elif self.transcript is not None:
            try:
                self.transcript.append(ctx.history.generated_text())
            except LogWriteError as e:
                logger.warning("%s", e)

    def _select(self, ctx: SamplingContext, candidates: CandidateSet) -> int:
        params = ctx.params
        temp = params.temperature

        if temp < 0.0:
            transforms.softmax(candidates)
            return int(candidates.ids[0])
        if temp == 0.0:
            return transforms.greedy(candidates)

        if params.mirostat == 1:
            transforms.temperature(candidates, temp)
            token_id, ctx.mirostat_mu = transforms.mirostat(
                candidates,
                params.mirostat_tau,
                params.mirostat_eta,
                MIROSTAT_M,
                ctx.mirostat_mu,
                self.backend.vocab_size(),
                ctx.generator,
            )
            return token_id
        if params.mirostat == 2:
            transforms.temperature(candidates, temp)
            token_id, ctx.mirostat_mu = transforms.mirostat_v2(
                candidates,
                params.mirostat_tau,
                params.mirostat_eta,
                ctx.mirostat_mu,
                ctx.generator,
            )
            return token_id

        DistributionPipeline(params).run(candidates, params.min_keep)
        return transforms.sample_token(candidates, ctx.generator)

    def sample(self, ctx: SamplingContext, idx: int = -1) -> Outcome:
        """Select the next token for position ``idx``.

        Args:
            ctx: Session context
            idx: Position whose scores are sampled

        Returns:
            Continue with the selected token id, or Stopped with the reason
        """
        candidates = CandidateSet.from_logits(self._biased_logits(ctx, idx))
        ctx.candidates = candidates

        if self.guidance is not None:
            transforms.classifier_free_guidance(
                candidates,
                self.guidance.scores_for_position(-1),
                ctx.params.cfg_scale,
            )

        if not ctx.history.is_empty():
            PenaltyEngine(ctx.params).apply(
                candidates, ctx.history, self.backend.newline_token_id()
            )

            if self.stop_checker is not None:
                reason = self.stop_checker.check(ctx.history)
                if reason is not None:
                    return Stopped(reason)

        self._filter_by_grammar(ctx, candidates)
        ctx.last_sample_time = time.perf_counter()

        token_id = self._select(ctx, candidates)
        logger.debug("sampled token %d (%r)", token_id, self.backend.token_to_text(token_id))
        return Continue(token_id)

    def accept(
        self, ctx: SamplingContext, token_id: int, apply_grammar: bool = True
    ) -> None:
        """Record ``token_id`` in the history and advance the grammar.

        Raises:
            GrammarAcceptError: If the active grammar does not admit the token
        """
        ctx.history.append(token_id)
        if apply_grammar:
            ctx.grammar.accept(token_id)
