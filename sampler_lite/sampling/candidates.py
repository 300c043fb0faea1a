"""
Candidate set: the working list of (token id, logit, probability) triples.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Union

import torch


@dataclass
class CandidateSet:
    """Candidates considered for selection at one sampling step.

    The three tensors are kept aligned: entry i of ``ids``, ``logits`` and
    ``probs`` describe the same token. Filtering transforms shrink all of
    them together. ``probs`` is None until a transform normalizes the set.

    Attributes:
        ids: Token ids, int64 [n]
        logits: Scores, float32 [n]
        probs: Probabilities, float32 [n] or None
        sorted: True if entries are ordered by descending logit
    """

    ids: torch.Tensor
    logits: torch.Tensor
    probs: Optional[torch.Tensor] = None
    sorted: bool = False

    @classmethod
    def from_logits(
        cls, logits: Union[torch.Tensor, Sequence[float]]
    ) -> "CandidateSet":
        """Populate one entry per vocabulary token, in token id order."""
        scores = torch.as_tensor(logits, dtype=torch.float32).flatten().clone()
        ids = torch.arange(scores.numel(), dtype=torch.long)
        return cls(ids=ids, logits=scores)

    def __len__(self) -> int:
        return int(self.ids.numel())

    def index_of(self, token_id: int) -> Optional[int]:
        """Return the position of ``token_id`` in the set, or None."""
        hits = (self.ids == token_id).nonzero(as_tuple=True)[0]
        if hits.numel() == 0:
            return None
        return int(hits[0])

    def logit_of(self, token_id: int) -> Optional[float]:
        pos = self.index_of(token_id)
        return None if pos is None else float(self.logits[pos])

    def set_logit(self, token_id: int, value: float) -> None:
        pos = self.index_of(token_id)
        if pos is not None:
            self.logits[pos] = value
            self.sorted = False

    def select(self, index: torch.Tensor, keep_sorted: bool = False) -> None:
        """Keep (and reorder to) the entries at ``index``."""
        self.ids = self.ids[index]
        self.logits = self.logits[index]
        if self.probs is not None:
            self.probs = self.probs[index]
        self.sorted = keep_sorted

    def truncate(self, size: int) -> None:
        """Keep the first ``size`` entries."""
        size = max(0, min(size, len(self)))
        self.ids = self.ids[:size]
        self.logits = self.logits[:size]
        if self.probs is not None:
            self.probs = self.probs[:size]

    def surviving_ids(self) -> set:
        """Ids of candidates that can still be drawn."""
        alive = torch.isfinite(self.logits) | (self.logits > 0)
        if self.probs is not None:
            alive = alive & (self.probs > 0)
        return set(self.ids[alive].tolist())
