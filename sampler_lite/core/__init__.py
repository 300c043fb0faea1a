"""
Sampling sessions and the per-step decision procedure.

Provides:
- SamplingContext: Per-session mutable state
- SamplingOrchestrator: Penalties, grammar, stopping and token selection
- Continue / Stopped: Typed per-step outcomes
- generate / GenerationResult: Token-by-token generation loop
- HFInferenceBackend: Inference collaborator over a transformers model
"""

from sampler_lite.core.context import SamplingContext
from sampler_lite.core.generation import GenerationResult, generate
from sampler_lite.core.hf_backend import HFInferenceBackend
from sampler_lite.core.orchestrator import Continue, Outcome, SamplingOrchestrator, Stopped

__all__ = [
    "SamplingContext",
    "SamplingOrchestrator",
    "Continue",
    "Stopped",
    "Outcome",
    "generate",
    "GenerationResult",
    "HFInferenceBackend",
]
