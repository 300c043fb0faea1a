"""
Repetition, frequency and presence penalties over a trailing token window.
"""

from collections import Counter
from typing import Optional, Sequence

import torch

from sampler_lite.history.history_store import HistoryStore
from sampler_lite.sampling.candidates import CandidateSet
from sampler_lite.sampling.params import SamplingParams


def apply_penalties(
    candidates: CandidateSet,
    last_tokens: Sequence[int],
    penalty_repeat: float,
    penalty_freq: float,
    penalty_present: float,
) -> None:
    """Penalize every candidate that appears in ``last_tokens``.

    A positive logit is divided by the repeat penalty and a non-positive one
    multiplied by it, so the penalty always lowers the score. The frequency
    penalty scales with the occurrence count; the presence penalty is applied
    once per seen token.
    """
    if not last_tokens:
        return
    if penalty_repeat == 1.0 and penalty_freq == 0.0 and penalty_present == 0.0:
        return

    counts = Counter(last_tokens)
    seen_ids = torch.tensor(sorted(counts), dtype=torch.long)
    mask = torch.isin(candidates.ids, seen_ids)
    if not mask.any():
        return

    count = torch.tensor(
        [counts.get(int(t), 0) for t in candidates.ids[mask]], dtype=torch.float32
    )
    logits = candidates.logits[mask]
    logits = torch.where(logits <= 0, logits * penalty_repeat, logits / penalty_repeat)
    logits = logits - count * penalty_freq - penalty_present

    candidates.logits = candidates.logits.clone()
    candidates.logits[mask] = logits
    candidates.sorted = False
    candidates.probs = None


class PenaltyEngine:
    """Applies the configured penalties using the session history.

    Attributes:
        params: Session sampling parameters
    """

    def __init__(self, params: SamplingParams):
        self.params = params

    def window_length(self, history: HistoryStore) -> int:
        """Number of trailing tokens to penalize."""
        last_n = self.params.penalty_last_n
        if last_n < 0:
            last_n = history.capacity
        return min(last_n, history.capacity)

    def apply(
        self,
        candidates: CandidateSet,
        history: HistoryStore,
        newline_token_id: Optional[int] = None,
    ) -> None:
        """Penalize candidates seen in the trailing window.

        Args:
            candidates: Candidate set to mutate
            history: Session history
            newline_token_id: Token whose score is restored when
                ``penalize_nl`` is False
        """
        last_tokens = history.recent_tokens(self.window_length(history))
        if not last_tokens:
            return

        nl_logit = None
        if not self.params.penalize_nl and newline_token_id is not None:
            nl_logit = candidates.logit_of(newline_token_id)

        apply_penalties(
            candidates,
            last_tokens,
            self.params.penalty_repeat,
            self.params.penalty_freq,
            self.params.penalty_present,
        )

        if nl_logit is not None:
            candidates.set_logit(newline_token_id, nl_logit)
