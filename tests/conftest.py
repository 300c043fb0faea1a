"""
Pytest configuration and shared fixtures for sampler-lite tests.

This module provides reusable fakes for the engine's collaborators:
- FakeBackend: list-vocabulary inference backend with scripted logits
- RecordingGrammarService: grammar service returning canned responses
- CPU device enforcement
"""

import os
from typing import Callable, List, Optional, Sequence, Union

import pytest
import torch

from sampler_lite.grammar.automaton import GbnfGrammarBackend
from sampler_lite.sampling.params import SamplingParams


# Force CPU-only testing by disabling CUDA
os.environ["CUDA_VISIBLE_DEVICES"] = ""


VOCAB = ["<eos>", "a", "b", "c", " ", "\n", "ab", "in", "\n\n", "x"]
EOS_ID = 0
NEWLINE_ID = 5


Logits = Union[Sequence[float], Callable[[List[int]], Sequence[float]]]


class FakeBackend:
    """Inference backend over a fixed vocabulary.

    ``logits`` is either one row reused for every step, or a callable
    mapping the evaluated token ids to a row.
    """

    def __init__(
        self,
        vocab: Sequence[str] = VOCAB,
        logits: Optional[Logits] = None,
        newline_id: Optional[int] = NEWLINE_ID,
        eos_id: Optional[int] = EOS_ID,
    ):
        self.vocab = list(vocab)
        self.logits = logits if logits is not None else [0.0] * len(self.vocab)
        self.newline_id = newline_id
        self.eos_id = eos_id
        self.evaluated: List[List[int]] = []

    def evaluate(self, token_ids: Sequence[int]) -> None:
        self.evaluated.append(list(token_ids))

    def scores_for_position(self, index: int) -> torch.Tensor:
        row = self.logits
        if callable(row):
            row = row(self.evaluated[-1] if self.evaluated else [])
        return torch.tensor(row, dtype=torch.float32)

    def vocab_size(self) -> int:
        return len(self.vocab)

    def token_to_text(self, token_id: int) -> str:
        return self.vocab[token_id]

    def newline_token_id(self) -> Optional[int]:
        return self.newline_id

    def eos_token_id(self) -> Optional[int]:
        return self.eos_id


class RecordingGrammarService:
    """Grammar service that records requests and replays canned output."""

    def __init__(self, output: str = "", error: Optional[Exception] = None):
        self.output = output
        self.error = error
        self.requests: List[tuple] = []

    def request(self, grammar_id: str, preceding_text: str, new_token_text: str) -> str:
        self.requests.append((grammar_id, preceding_text, new_token_text))
        if self.error is not None:
            raise self.error
        return self.output


class RecordingTranscript:
    """Transcript collecting records in memory."""

    def __init__(self, error: Optional[Exception] = None):
        self.records: List[tuple] = []
        self.error = error

    def append(self, session_text: str, service_output: str = "") -> None:
        if self.error is not None:
            raise self.error
        self.records.append((session_text, service_output))


@pytest.fixture(scope="session")
def cpu_device() -> torch.device:
    """Force CPU device for all tests."""
    return torch.device("cpu")


@pytest.fixture
def backend() -> FakeBackend:
    """Fake inference backend over VOCAB with uniform logits."""
    return FakeBackend()


@pytest.fixture
def grammar_backend(backend: FakeBackend) -> GbnfGrammarBackend:
    """GBNF grammar backend sharing the fake backend's vocabulary."""
    return GbnfGrammarBackend(backend.token_to_text, backend.eos_token_id())


@pytest.fixture
def greedy_params() -> SamplingParams:
    """Deterministic parameters without penalties."""
    return SamplingParams(temperature=0.0, penalty_repeat=1.0, seed=0)


@pytest.fixture
def make_backend():
    """Factory for FakeBackend instances with custom logits."""
    return FakeBackend


@pytest.fixture
def make_service():
    """Factory for RecordingGrammarService instances."""
    return RecordingGrammarService


@pytest.fixture
def make_transcript():
    """Factory for RecordingTranscript instances."""
    return RecordingTranscript
