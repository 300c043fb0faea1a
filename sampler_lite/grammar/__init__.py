"""
Grammar-constrained decoding.

Provides:
- GrammarStateMachine: Single-owner automaton handle (init/reset/duplicate)
- GbnfGrammarBackend, StackAutomaton: GBNF compiler and stack automaton
- parse_gbnf: Grammar text compiler
- DynamicGrammarRefresher: Per-step grammar replacement from a service
- SubprocessGrammarService: Service implementation running a command
- TranscriptLogger: Append-only session transcript
- fix_grammar, GrammarFixup: Ordered fix-ups for service grammars
"""

from sampler_lite.grammar.automaton import GbnfGrammarBackend, StackAutomaton
from sampler_lite.grammar.fixups import DEFAULT_FIXUPS, GrammarFixup, fix_grammar
from sampler_lite.grammar.gbnf import CharSet, RuleRef, parse_gbnf
from sampler_lite.grammar.refresher import (
    DynamicGrammarRefresher,
    RefreshPolicy,
    extract_grammar,
)
from sampler_lite.grammar.service import SubprocessGrammarService
from sampler_lite.grammar.state_machine import GrammarStateMachine
from sampler_lite.grammar.transcript import TranscriptLogger

__all__ = [
    "GrammarStateMachine",
    "GbnfGrammarBackend",
    "StackAutomaton",
    "CharSet",
    "RuleRef",
    "parse_gbnf",
    "DynamicGrammarRefresher",
    "RefreshPolicy",
    "extract_grammar",
    "SubprocessGrammarService",
    "TranscriptLogger",
    "GrammarFixup",
    "DEFAULT_FIXUPS",
    "fix_grammar",
]
