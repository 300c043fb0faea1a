"""
Stack automaton over a compiled grammar.

The automaton tracks every way the text accepted so far can be a prefix of
the grammar language. Each way is a stack of pending elements (top at the
end) whose top is always a character terminal; an empty stack means the
grammar is complete. Accepting a character pops matching terminals and
expands the rule references beneath them.
"""

from typing import Callable, FrozenSet, Iterable, Optional, Set, Tuple

import torch

from sampler_lite.errors import GrammarAcceptError
from sampler_lite.grammar.gbnf import CharSet, Element, RuleRef, parse_gbnf
from sampler_lite.interfaces import CompiledGrammar
from sampler_lite.sampling.candidates import CandidateSet

Stack = Tuple[Element, ...]


class StackAutomaton:
    """Grammar position as a set of pending-element stacks.

    Attributes:
        grammar: Compiled grammar
        root_id: Symbol id of the start rule
        token_to_text: Token-to-text collaborator
        eos_token_id: End-of-sequence token, legal only when complete
    """

    def __init__(
        self,
        grammar: CompiledGrammar,
        root_id: int,
        token_to_text: Callable[[int], str],
        eos_token_id: Optional[int] = None,
        stacks: Optional[Iterable[Stack]] = None,
    ):
        self.grammar = grammar
        self.root_id = root_id
        self.token_to_text = token_to_text
        self.eos_token_id = eos_token_id
        if stacks is None:
            stacks = self._expand((RuleRef(root_id),))
        self.stacks: FrozenSet[Stack] = frozenset(stacks)
        self.closed = False

    def _expand(self, stack: Stack) -> Set[Stack]:
        """Expand rule references on top until every stack tops a terminal."""
        result: Set[Stack] = set()
        pending = [stack]
        seen: Set[Stack] = set()
        while pending:
            current = pending.pop()
            if current in seen:
                continue
            seen.add(current)
            if not current or isinstance(current[-1], CharSet):
                result.add(current)
                continue
            rest = current[:-1]
            for alternative in self.grammar.rules[current[-1].rule_id]:
                pending.append(rest + tuple(reversed(alternative)))
        return result

    def _advance(self, stacks: Iterable[Stack], ch: str) -> Set[Stack]:
        result: Set[Stack] = set()
        for stack in stacks:
            if stack and stack[-1].matches(ch):
                result |= self._expand(stack[:-1])
        return result

    def _consume(self, text: str) -> Set[Stack]:
        stacks: Set[Stack] = set(self.stacks)
        for ch in text:
            stacks = self._advance(stacks, ch)
            if not stacks:
                break
        return stacks

    @property
    def stack_count(self) -> int:
        return len(self.stacks)

    def is_complete(self) -> bool:
        """True if the accepted text is a full sentence of the grammar."""
        return any(not stack for stack in self.stacks)

    def allows(self, token_id: int) -> bool:
        """Check whether ``token_id`` is a legal continuation."""
        if self.eos_token_id is not None and token_id == self.eos_token_id:
            return self.is_complete()
        text = self.token_to_text(token_id)
        return bool(text) and bool(self._consume(text))

    def filter(self, candidates: CandidateSet) -> None:
        """Set the logit of every illegal candidate to -inf."""
        alive = torch.isfinite(candidates.logits) | (candidates.logits > 0)
        keep = [
            bool(is_alive) and self.allows(token_id)
            for token_id, is_alive in zip(candidates.ids.tolist(), alive.tolist())
        ]
        mask = torch.tensor(keep, dtype=torch.bool)
        candidates.logits = torch.where(
            mask, candidates.logits, torch.full_like(candidates.logits, float("-inf"))
        )
        candidates.probs = None
        candidates.sorted = False

    def accept(self, token_id: int) -> None:
        """Advance by one token.

        Raises:
            GrammarAcceptError: If the token is not a legal continuation
        """
        if self.eos_token_id is not None and token_id == self.eos_token_id:
            if self.is_complete():
                return
            raise GrammarAcceptError("end of sequence before the grammar is complete")

        stacks = self._consume(self.token_to_text(token_id))
        if not stacks:
            raise GrammarAcceptError(f"token {token_id} is not allowed by the grammar")
        self.stacks = frozenset(stacks)

    def copy(self) -> "StackAutomaton":
        return StackAutomaton(
            self.grammar,
            self.root_id,
            self.token_to_text,
            self.eos_token_id,
            stacks=self.stacks,
        )

    def close(self) -> None:
        self.stacks = frozenset()
        self.closed = True


class GbnfGrammarBackend:
    """Grammar backend pairing the GBNF compiler with StackAutomaton.

    Attributes:
        token_to_text: Token-to-text collaborator shared with automata
        eos_token_id: End-of-sequence token id, if the vocabulary has one
    """

    def __init__(
        self,
        token_to_text: Callable[[int], str],
        eos_token_id: Optional[int] = None,
    ):
        self.token_to_text = token_to_text
        self.eos_token_id = eos_token_id

    def compile(self, text: str) -> CompiledGrammar:
        return parse_gbnf(text)

    def instantiate(self, grammar: CompiledGrammar, root_id: int) -> StackAutomaton:
        return StackAutomaton(grammar, root_id, self.token_to_text, self.eos_token_id)
