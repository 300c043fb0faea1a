"""
Per-session sampling state.
"""

import logging
from typing import Callable, Optional

import torch

from sampler_lite.errors import GrammarParseError
from sampler_lite.grammar.state_machine import GrammarStateMachine
from sampler_lite.history.history_store import HistoryStore
from sampler_lite.interfaces import GrammarBackend
from sampler_lite.sampling.candidates import CandidateSet
from sampler_lite.sampling.params import SamplingParams

logger = logging.getLogger(__name__)


class SamplingContext:
    """Mutable state of one generation session.

    A context owns its history, its grammar automaton and its random
    generator; two contexts never share mutable state.

    Attributes:
        params: Session sampling parameters
        history: Recent window, full history and prelude offset
        grammar: Grammar state machine (Inactive when no grammar is in use)
        candidates: Candidate set of the current step
        mirostat_mu: Mirostat accumulator, persists across steps
        generator: Session random generator
        last_sample_time: perf_counter() of the previous sample call
    """

    def __init__(
        self,
        params: SamplingParams,
        token_to_text: Callable[[int], str],
        grammar_backend: Optional[GrammarBackend] = None,
    ):
        self.params = params
        self.history = HistoryStore(params.n_prev, token_to_text)
        self.grammar = GrammarStateMachine(grammar_backend)
        self.candidates: Optional[CandidateSet] = None
        self.mirostat_mu = 0.0
        self.generator = torch.Generator()
        self._seed_generator()
        self.last_sample_time: Optional[float] = None

    @classmethod
    def create(
        cls,
        params: SamplingParams,
        token_to_text: Callable[[int], str],
        grammar_backend: Optional[GrammarBackend] = None,
    ) -> "SamplingContext":
        """Create a context, compiling the static grammar if one is configured.

        A grammar that fails to compile is logged and the session runs
        unconstrained.
        """
        ctx = cls(params, token_to_text, grammar_backend)
        if params.grammar:
            try:
                ctx.grammar.init(params.grammar)
            except GrammarParseError as e:
                logger.error("failed to parse grammar: %s", e)
        return ctx

    def _seed_generator(self) -> None:
        if self.params.seed is None:
            self.generator.seed()
        else:
            self.generator.manual_seed(self.params.seed)

    def free(self) -> None:
        """Release the owned grammar automaton."""
        self.grammar.release()

    def __enter__(self) -> "SamplingContext":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.free()

    def reset(self) -> None:
        """Clear history, rebuild the grammar from its source and zero mirostat."""
        self.history.reset()
        self.grammar.reset()
        self.candidates = None
        self.mirostat_mu = 0.0
        self.last_sample_time = None
        self._seed_generator()

    def copy_to(self, dst: "SamplingContext") -> None:
        """Copy history, grammar position and mirostat state into ``dst``."""
        self.grammar.duplicate(dst.grammar)
        dst.history = self.history.copy()
        dst.mirostat_mu = self.mirostat_mu
        dst.generator.set_state(self.generator.get_state())

    def last(self) -> Optional[int]:
        """Most recently accepted token."""
        return self.history.last()

    def prev_str(self, n: int) -> str:
        """Text of the last ``n`` accepted tokens held in the recent window."""
        return "".join(
            self.history.token_to_text(t) for t in self.history.recent_tokens(n)
        )

    def set_prelude_len(self, n: int) -> None:
        self.history.set_prelude_offset(n)

    def prev_all_str(self, start_skip: int = 0, end_skip: int = 0) -> str:
        """Text of the full history with ``start_skip``/``end_skip`` tokens dropped."""
        return self.history.history_text(start_skip, end_skip)
