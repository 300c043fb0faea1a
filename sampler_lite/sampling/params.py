"""
Sampling parameters for a generation session.

This module defines the immutable per-session configuration consumed by the
penalty engine, the distribution pipeline and the orchestrator.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional


PIPELINE_CODES = {
    "k": "top_k",
    "f": "tfs_z",
    "y": "typical_p",
    "p": "top_p",
    "m": "min_p",
    "t": "temp",
}


@dataclass(frozen=True)
class SamplingParams:
    """Parameters for sampling strategies.

    Attributes:
        n_prev: Capacity of the recent-token window used for penalties
        n_probs: Number of probabilities to keep; the pipeline never filters
            below max(1, n_probs) candidates
        top_k: Top-k cutoff (<= 0 uses the vocabulary size)
        top_p: Nucleus cutoff (1.0 disables)
        min_p: Min-p cutoff relative to the most likely token (0.0 disables)
        tfs_z: Tail-free sampling z (1.0 disables)
        typical_p: Locally typical sampling mass (1.0 disables)
        temperature: < 0 greedy with probabilities, 0 greedy, > 0 sampling
        penalty_last_n: Trailing tokens to penalize (< 0 uses n_prev, 0 disables)
        penalty_repeat: Repetition penalty (1.0 disables)
        penalty_freq: Frequency penalty (0.0 disables)
        penalty_present: Presence penalty (0.0 disables)
        penalize_nl: Whether the newline token takes part in penalties
        mirostat: 0 disabled, 1 mirostat, 2 mirostat 2.0
        mirostat_tau: Target surprise
        mirostat_eta: Learning rate
        samplers_sequence: Ordered pipeline codes (see PIPELINE_CODES)
        logit_bias: Additive bias per token id
        grammar: Static grammar text
        dynamic_grammar: Grammar identifier for the refresh service
        cfg_scale: Classifier-free guidance scale
        seed: Seed for the session random generator
    """

    n_prev: int = 64
    n_probs: int = 0
    top_k: int = 40
    top_p: float = 0.95
    min_p: float = 0.05
    tfs_z: float = 1.0
    typical_p: float = 1.0
    temperature: float = 0.8
    penalty_last_n: int = 64
    penalty_repeat: float = 1.1
    penalty_freq: float = 0.0
    penalty_present: float = 0.0
    penalize_nl: bool = True
    mirostat: int = 0
    mirostat_tau: float = 5.0
    mirostat_eta: float = 0.1
    samplers_sequence: str = "kfypmt"
    logit_bias: Dict[int, float] = field(default_factory=dict)
    grammar: str = ""
    dynamic_grammar: str = ""
    cfg_scale: float = 1.0
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        """Validate parameter ranges.

        Raises:
            ValueError: If a parameter is out of range.
        """
        if self.n_prev < 0:
            raise ValueError(f"n_prev must be non-negative, got {self.n_prev}")
        if self.mirostat not in (0, 1, 2):
            raise ValueError(f"mirostat must be 0, 1 or 2, got {self.mirostat}")
        if self.mirostat_eta <= 0:
            raise ValueError(
                f"mirostat_eta must be positive, got {self.mirostat_eta}"
            )
        for name in ("top_p", "min_p", "typical_p"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        for token_id in self.logit_bias:
            if not isinstance(token_id, int) or token_id < 0:
                raise ValueError(f"logit_bias keys must be token ids, got {token_id!r}")

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "SamplingParams":
        """Build parameters from a mapping, ignoring unknown keys.

        Logit-bias keys are converted to int so mappings loaded from JSON
        (string keys) are accepted.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in values.items() if k in known}
        if "logit_bias" in kwargs and kwargs["logit_bias"] is not None:
            kwargs["logit_bias"] = {
                int(k): float(v) for k, v in kwargs["logit_bias"].items()
            }
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert parameters to a plain dictionary."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values["logit_bias"] = dict(self.logit_bias)
        return values

    @property
    def min_keep(self) -> int:
        """Floor on surviving candidates for pipeline transforms."""
        return max(1, self.n_probs)

    def describe(self) -> str:
        """Return a human readable summary of the penalty and filter knobs."""
        return (
            f"\trepeat_last_n = {self.penalty_last_n}, repeat_penalty = {self.penalty_repeat:.3f}, "
            f"frequency_penalty = {self.penalty_freq:.3f}, presence_penalty = {self.penalty_present:.3f}\n"
            f"\ttop_k = {self.top_k}, tfs_z = {self.tfs_z:.3f}, top_p = {self.top_p:.3f}, "
            f"min_p = {self.min_p:.3f}, typical_p = {self.typical_p:.3f}, temp = {self.temperature:.3f}\n"
            f"\tmirostat = {self.mirostat}, mirostat_lr = {self.mirostat_eta:.3f}, "
            f"mirostat_ent = {self.mirostat_tau:.3f}"
        )

    def describe_order(self) -> str:
        """Return the order in which transforms are applied."""
        result = "CFG -> Penalties "
        if self.mirostat == 0:
            for code in self.samplers_sequence:
                name = PIPELINE_CODES.get(code)
                if name is not None:
                    result += f"-> {name} "
        else:
            result += "-> mirostat "
        return result
