"""
Grammar state machine owning at most one automaton.

States: Inactive (no automaton) and Active (one automaton). Installing a new
automaton always releases the previous one first.
"""

import logging
from typing import Optional

from sampler_lite.errors import GrammarParseError, MissingRootSymbolError
from sampler_lite.interfaces import CompiledGrammar, GrammarAutomaton, GrammarBackend
from sampler_lite.sampling.candidates import CandidateSet

logger = logging.getLogger(__name__)

ROOT_SYMBOL = "root"


class GrammarStateMachine:
    """Single-owner handle around a grammar automaton.

    Attributes:
        backend: Grammar compiler and automaton factory
        source: Last successfully compiled grammar, retained for reset
    """

    def __init__(self, backend: Optional[GrammarBackend] = None):
        self.backend = backend
        self.source: Optional[CompiledGrammar] = None
        self._automaton: Optional[GrammarAutomaton] = None

    @property
    def active(self) -> bool:
        return self._automaton is not None

    @property
    def automaton(self) -> Optional[GrammarAutomaton]:
        return self._automaton

    def release(self) -> None:
        """Destroy the owned automaton, if any."""
        if self._automaton is not None:
            self._automaton.close()
            self._automaton = None

    def _install(self, automaton: GrammarAutomaton) -> None:
        self.release()
        self._automaton = automaton

    def _instantiate(self, grammar: CompiledGrammar) -> GrammarAutomaton:
        if self.backend is None:
            raise GrammarParseError("no grammar backend configured")
        if ROOT_SYMBOL not in grammar.symbol_ids:
            raise MissingRootSymbolError(f'grammar does not contain a "{ROOT_SYMBOL}" rule')
        return self.backend.instantiate(grammar, grammar.symbol_ids[ROOT_SYMBOL])

    def init(self, grammar_text: str) -> None:
        """Compile ``grammar_text`` and install a fresh automaton at "root".

        The previous automaton is released first, so on failure the machine
        is left Inactive.

        Raises:
            GrammarParseError: If compilation fails or yields no rules
            MissingRootSymbolError: If there is no "root" rule
        """
        if self.backend is None:
            raise GrammarParseError("no grammar backend configured")

        self.release()
        self.source = None

        grammar = self.backend.compile(grammar_text)
        if not grammar.rules:
            raise GrammarParseError("failed to parse grammar")

        automaton = self._instantiate(grammar)
        self.source = grammar
        self._install(automaton)

    def reset(self) -> None:
        """Rebuild the automaton from the retained source, from scratch."""
        self.release()
        if self.source is not None:
            self._install(self._instantiate(self.source))

    def duplicate(self, dst: "GrammarStateMachine") -> None:
        """Copy the current automaton position into ``dst``."""
        dst.release()
        if dst.backend is None:
            dst.backend = self.backend
        dst.source = self.source
        if self._automaton is not None:
            dst._install(self._automaton.copy())

    def filter_candidates(self, candidates: CandidateSet) -> None:
        """Mask candidates that the grammar does not allow."""
        if self._automaton is not None:
            self._automaton.filter(candidates)

    def accept(self, token_id: int) -> None:
        """Advance the automaton by one token; no-op when Inactive."""
        if self._automaton is not None:
            self._automaton.accept(token_id)
