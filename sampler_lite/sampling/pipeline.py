"""
Ordered distribution pipeline.

The configured ``samplers_sequence`` string decides which transforms run and
in which order. Filtering before or after temperature scaling yields
different distributions, so the order is left to the caller.
"""

import logging
from typing import Callable, Dict

from sampler_lite.sampling import transforms
from sampler_lite.sampling.candidates import CandidateSet
from sampler_lite.sampling.params import SamplingParams

logger = logging.getLogger(__name__)


class DistributionPipeline:
    """Applies the transforms named by ``params.samplers_sequence``.

    Attributes:
        params: Session sampling parameters
    """

    def __init__(self, params: SamplingParams):
        self.params = params
        self._stages: Dict[str, Callable[[CandidateSet, int], None]] = {
            "k": self._top_k,
            "f": lambda c, keep: transforms.tail_free(c, params.tfs_z, keep),
            "y": lambda c, keep: transforms.typical(c, params.typical_p, keep),
            "p": lambda c, keep: transforms.top_p(c, params.top_p, keep),
            "m": lambda c, keep: transforms.min_p(c, params.min_p, keep),
            "t": lambda c, keep: transforms.temperature(c, params.temperature),
        }

    def _top_k(self, candidates: CandidateSet, min_keep: int) -> None:
        k = self.params.top_k if self.params.top_k > 0 else len(candidates)
        transforms.top_k(candidates, k, min_keep)

    def run(self, candidates: CandidateSet, min_keep: int = 1) -> None:
        """Apply each known stage in sequence order; unknown codes are skipped."""
        for code in self.params.samplers_sequence:
            stage = self._stages.get(code)
            if stage is None:
                continue
            stage(candidates, min_keep)
            logger.debug("after %r: %d candidates", code, len(candidates))
