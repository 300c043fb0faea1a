"""
Token sampling strategies and distribution shaping.

Provides:
- SamplingParams: Per-session sampling configuration
- CandidateSet: Working set of (token id, logit, probability) triples
- transforms: top-k, top-p, min-p, tail-free, typical, temperature,
  mirostat, classifier-free guidance, greedy and categorical selection
- PenaltyEngine: Repetition, frequency and presence penalties
- DistributionPipeline: Caller-ordered transform sequence
"""

from sampler_lite.sampling.candidates import CandidateSet
from sampler_lite.sampling.params import PIPELINE_CODES, SamplingParams
from sampler_lite.sampling.penalties import PenaltyEngine, apply_penalties
from sampler_lite.sampling.pipeline import DistributionPipeline

__all__ = [
    "CandidateSet",
    "SamplingParams",
    "PIPELINE_CODES",
    "PenaltyEngine",
    "apply_penalties",
    "DistributionPipeline",
]
