"""
Distribution transforms over a candidate set.

Each transform mutates a CandidateSet in place. Filtering transforms never
leave fewer than ``min_keep`` candidates.
"""

import math
from typing import Optional, Tuple

import torch

from sampler_lite.sampling.candidates import CandidateSet


def softmax(candidates: CandidateSet) -> None:
    """Sort by descending logit and fill in probabilities."""
    if not candidates.sorted:
        _, order = torch.sort(candidates.logits, descending=True, stable=True)
        candidates.select(order, keep_sorted=True)
    candidates.probs = torch.softmax(candidates.logits, dim=-1)


def temperature(candidates: CandidateSet, temp: float) -> None:
    """Apply temperature scaling."""
    candidates.logits = candidates.logits / temp
    candidates.probs = None


def top_k(candidates: CandidateSet, k: int, min_keep: int = 1) -> None:
    """Top-k filtering."""
    if k <= 0:
        k = len(candidates)
    k = min(max(k, min_keep), len(candidates))

    if not candidates.sorted:
        _, order = torch.sort(candidates.logits, descending=True, stable=True)
        candidates.select(order, keep_sorted=True)
    candidates.truncate(k)


def top_p(candidates: CandidateSet, p: float, min_keep: int = 1) -> None:
    """Top-p (nucleus) filtering."""
    if p >= 1.0:
        return

    softmax(candidates)
    cumulative = torch.cumsum(candidates.probs, dim=0)
    positions = torch.arange(len(candidates))

    # Keep the shortest prefix reaching p, but at least min_keep tokens
    reached = (cumulative >= p) & (positions + 1 >= min_keep)
    if reached.any():
        candidates.truncate(int(reached.nonzero()[0]) + 1)


def min_p(candidates: CandidateSet, p: float, min_keep: int = 1) -> None:
    """Min-p filtering relative to the most likely candidate."""
    if p <= 0.0 or len(candidates) == 0:
        return

    softmax(candidates)
    threshold = p * candidates.probs[0]
    keep = int((candidates.probs >= threshold).sum())
    candidates.truncate(max(keep, min_keep))


def tail_free(candidates: CandidateSet, z: float, min_keep: int = 1) -> None:
    """Tail-free sampling over the second derivative of sorted probabilities."""
    if z >= 1.0 or len(candidates) <= 2:
        return

    softmax(candidates)
    probs = candidates.probs
    first = probs[:-1] - probs[1:]
    second = (first[:-1] - first[1:]).abs()

    total = second.sum()
    if total > 1e-6:
        second = second / total

    cumulative = torch.cumsum(second, dim=0)
    positions = torch.arange(second.numel())
    beyond = (cumulative > z) & (positions >= min_keep)
    if beyond.any():
        candidates.truncate(int(beyond.nonzero()[0]))


def typical(candidates: CandidateSet, p: float, min_keep: int = 1) -> None:
    """Locally typical sampling."""
    if p >= 1.0:
        return

    softmax(candidates)
    probs = candidates.probs
    log_probs = torch.log(probs)
    entropy = -torch.nansum(probs * log_probs)
    shifted = (-log_probs - entropy).abs()

    _, order = torch.sort(shifted, stable=True)
    cumulative = torch.cumsum(probs[order], dim=0)
    positions = torch.arange(len(candidates))

    last = len(candidates)
    beyond = (cumulative > p) & (positions >= min_keep - 1)
    if beyond.any():
        last = int(beyond.nonzero()[0]) + 1

    candidates.select(order[:last])


def classifier_free_guidance(
    candidates: CandidateSet, guidance_logits: torch.Tensor, scale: float
) -> None:
    """Blend logits with a guidance distribution in log-probability space."""
    guidance = torch.as_tensor(guidance_logits, dtype=torch.float32).flatten()
    guidance = torch.log_softmax(guidance[candidates.ids], dim=-1)
    base = torch.log_softmax(candidates.logits, dim=-1)

    candidates.logits = guidance + scale * (base - guidance)
    candidates.probs = None


def greedy(candidates: CandidateSet) -> int:
    """Greedy selection (argmax over logits)."""
    return int(candidates.ids[torch.argmax(candidates.logits)])


def sample_token(
    candidates: CandidateSet, generator: Optional[torch.Generator] = None
) -> int:
    """Draw one token from the categorical distribution of the candidates."""
    softmax(candidates)
    index = torch.multinomial(candidates.probs, num_samples=1, generator=generator)
    return int(candidates.ids[index])


def _surprise(candidates: CandidateSet, token_id: int) -> float:
    pos = candidates.index_of(token_id)
    return -math.log2(float(candidates.probs[pos]))


def _estimate_mirostat_k(
    probs: torch.Tensor, m: int, mu: float, n_vocab: int
) -> int:
    """Estimate the truncation size from the Zipf exponent of the top m tokens."""
    m = min(m, probs.numel())
    if m < 2:
        return 1

    i = torch.arange(m - 1, dtype=torch.float64)
    t = torch.log((i + 2) / (i + 1))
    top = probs[:m].double()
    b = torch.log(top[:-1] / top[1:])
    valid = torch.isfinite(b)
    if not valid.any():
        return 1

    s_hat = float((t[valid] * b[valid]).sum() / (t[valid] * t[valid]).sum())
    epsilon_hat = s_hat - 1
    try:
        k = ((epsilon_hat * (2 ** mu)) / (1 - n_vocab ** (-epsilon_hat))) ** (1 / s_hat)
    except (ZeroDivisionError, OverflowError):
        return probs.numel()
    if isinstance(k, complex) or math.isnan(k):
        return probs.numel()
    return max(1, min(int(k), probs.numel()))


def mirostat(
    candidates: CandidateSet,
    tau: float,
    eta: float,
    m: int,
    mu: float,
    n_vocab: int,
    generator: Optional[torch.Generator] = None,
) -> Tuple[int, float]:
    """Mirostat 1.0.

    Returns:
        Tuple of (token_id, updated mu)
    """
    softmax(candidates)
    k = _estimate_mirostat_k(candidates.probs, m, mu, n_vocab)
    top_k(candidates, k, min_keep=1)

    token_id = sample_token(candidates, generator)
    observed = _surprise(candidates, token_id)
    return token_id, mu - eta * (observed - tau)


def mirostat_v2(
    candidates: CandidateSet,
    tau: float,
    eta: float,
    mu: float,
    generator: Optional[torch.Generator] = None,
) -> Tuple[int, float]:
    """Mirostat 2.0.

    Returns:
        Tuple of (token_id, updated mu)
    """
    softmax(candidates)

    # Probabilities are sorted, so surprise is ascending
    surprise = -torch.log2(candidates.probs)
    keep = int((surprise <= mu).sum())
    candidates.truncate(max(keep, 1))

    token_id = sample_token(candidates, generator)
    observed = _surprise(candidates, token_id)
    return token_id, mu - eta * (observed - tau)
