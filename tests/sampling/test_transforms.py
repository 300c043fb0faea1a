"""
Tests for distribution transforms over candidate sets.
"""

import math

import pytest
import torch

from sampler_lite.sampling import transforms
from sampler_lite.sampling.candidates import CandidateSet


def _from_probs(probs):
    return CandidateSet.from_logits([math.log(p) for p in probs])


@pytest.mark.unit
def test_from_logits_populates_one_entry_per_token():
    """Test the candidate set covers the whole vocabulary in id order."""
    candidates = CandidateSet.from_logits([0.5, -1.0, 2.0])
    assert len(candidates) == 3
    assert candidates.ids.tolist() == [0, 1, 2]
    assert candidates.probs is None
    assert not candidates.sorted


@pytest.mark.unit
def test_softmax_sorts_and_normalizes():
    """Test softmax orders by descending logit and fills probabilities."""
    candidates = CandidateSet.from_logits([0.0, 2.0, 1.0])
    transforms.softmax(candidates)
    assert candidates.ids.tolist() == [1, 2, 0]
    assert candidates.sorted
    assert float(candidates.probs.sum()) == pytest.approx(1.0)
    assert torch.all(candidates.probs[:-1] >= candidates.probs[1:])


@pytest.mark.unit
def test_temperature_scales_logits():
    """Test temperature divides every logit."""
    candidates = CandidateSet.from_logits([1.0, -2.0])
    transforms.temperature(candidates, 0.5)
    assert candidates.logits.tolist() == [2.0, -4.0]


@pytest.mark.unit
def test_top_k_keeps_highest():
    """Test top-k keeps the k highest-scoring tokens."""
    candidates = CandidateSet.from_logits([0.1, 3.0, 2.0, -1.0])
    transforms.top_k(candidates, 2)
    assert candidates.ids.tolist() == [1, 2]


@pytest.mark.unit
def test_top_k_respects_min_keep():
    """Test top-k never keeps fewer than min_keep tokens."""
    candidates = CandidateSet.from_logits([0.1, 3.0, 2.0, -1.0])
    transforms.top_k(candidates, 1, min_keep=3)
    assert len(candidates) == 3


@pytest.mark.unit
def test_top_k_non_positive_keeps_all():
    """Test k <= 0 keeps the whole vocabulary."""
    candidates = CandidateSet.from_logits([0.1, 3.0, 2.0])
    transforms.top_k(candidates, 0)
    assert len(candidates) == 3


@pytest.mark.unit
def test_top_p_keeps_shortest_prefix():
    """Test nucleus filtering keeps the smallest set reaching p."""
    candidates = _from_probs([0.5, 0.3, 0.2])
    transforms.top_p(candidates, 0.6)
    assert candidates.ids.tolist() == [0, 1]


@pytest.mark.unit
def test_top_p_one_is_noop():
    """Test p = 1.0 disables nucleus filtering."""
    candidates = _from_probs([0.5, 0.3, 0.2])
    transforms.top_p(candidates, 1.0)
    assert len(candidates) == 3


@pytest.mark.unit
def test_min_p_relative_threshold():
    """Test min-p drops tokens below min_p times the top probability."""
    candidates = _from_probs([0.5, 0.3, 0.2])
    transforms.min_p(candidates, 0.5)
    assert candidates.ids.tolist() == [0, 1]


@pytest.mark.unit
def test_tail_free_disabled_at_one():
    """Test z = 1.0 disables tail-free sampling."""
    candidates = _from_probs([0.4, 0.3, 0.2, 0.1])
    transforms.tail_free(candidates, 1.0)
    assert len(candidates) == 4


@pytest.mark.unit
def test_tail_free_trims_tail():
    """Test a small z removes the flat tail."""
    candidates = _from_probs([0.7, 0.1, 0.08, 0.06, 0.04, 0.02])
    transforms.tail_free(candidates, 0.5)
    assert 1 <= len(candidates) < 6
    assert candidates.ids.tolist()[0] == 0


@pytest.mark.unit
def test_typical_reduces_candidates():
    """Test typical sampling keeps a subset when p < 1."""
    candidates = _from_probs([0.6, 0.2, 0.1, 0.05, 0.05])
    transforms.typical(candidates, 0.5)
    assert 1 <= len(candidates) < 5


@pytest.mark.unit
def test_greedy_picks_max_logit():
    """Test greedy returns the highest-logit token id."""
    candidates = CandidateSet.from_logits([0.1, 5.0, 0.2])
    assert transforms.greedy(candidates) == 1


@pytest.mark.unit
def test_sample_token_draws_from_survivors():
    """Test categorical draws only return surviving tokens."""
    generator = torch.Generator().manual_seed(0)
    for _ in range(20):
        candidates = CandidateSet.from_logits([0.0, 1.0, float("-inf"), 0.5])
        assert transforms.sample_token(candidates, generator) in {0, 1, 3}


@pytest.mark.unit
def test_sample_token_is_reproducible_with_seed():
    """Test equal seeds give equal draws."""
    draws = []
    for _ in range(2):
        generator = torch.Generator().manual_seed(42)
        draws.append(
            [
                transforms.sample_token(CandidateSet.from_logits([0.0] * 8), generator)
                for _ in range(10)
            ]
        )
    assert draws[0] == draws[1]


@pytest.mark.unit
def test_cfg_scale_one_keeps_base_distribution():
    """Test guidance scale 1 reproduces the base log-probabilities."""
    base = [0.1, 5.0, 0.2]
    candidates = CandidateSet.from_logits(base)
    transforms.classifier_free_guidance(candidates, torch.tensor([10.0, 0.0, 0.0]), 1.0)
    expected = torch.log_softmax(torch.tensor(base), dim=-1)
    assert torch.allclose(candidates.logits, expected, atol=1e-5)


@pytest.mark.unit
def test_cfg_scale_zero_uses_guidance():
    """Test guidance scale 0 replaces logits with the guidance distribution."""
    candidates = CandidateSet.from_logits([0.1, 5.0, 0.2])
    transforms.classifier_free_guidance(candidates, torch.tensor([10.0, 0.0, 0.0]), 0.0)
    assert transforms.greedy(candidates) == 0


@pytest.mark.unit
def test_mirostat_v2_zero_mu_selects_top_token():
    """Test mirostat 2.0 with mu = 0 truncates to the most likely token."""
    candidates = _from_probs([0.1, 0.6, 0.3])
    token_id, mu = transforms.mirostat_v2(candidates, tau=5.0, eta=0.1, mu=0.0)
    assert token_id == 1
    # The single survivor has probability 1, so its surprise is 0
    assert mu == pytest.approx(0.5)


@pytest.mark.unit
def test_mirostat_v1_updates_mu():
    """Test mirostat 1.0 returns a vocabulary token and moves mu."""
    generator = torch.Generator().manual_seed(0)
    candidates = _from_probs([0.4, 0.3, 0.2, 0.1])
    token_id, mu = transforms.mirostat(
        candidates, tau=5.0, eta=0.1, m=100, mu=10.0, n_vocab=4, generator=generator
    )
    assert token_id in {0, 1, 2, 3}
    assert mu != 10.0
