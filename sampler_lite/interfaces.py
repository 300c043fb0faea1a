"""
Interfaces of the collaborators the sampling engine depends on.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

import torch

from sampler_lite.sampling.candidates import CandidateSet


class InferenceBackend(Protocol):
    """Produces per-token scores and converts tokens to text."""

    def scores_for_position(self, index: int) -> Union[torch.Tensor, Sequence[float]]:
        """Raw scores (length = vocabulary size) for an evaluated position."""
        ...

    def vocab_size(self) -> int: ...

    def token_to_text(self, token_id: int) -> str: ...

    def newline_token_id(self) -> Optional[int]: ...

    def eos_token_id(self) -> Optional[int]: ...


@dataclass(frozen=True)
class CompiledGrammar:
    """Output of a grammar compiler.

    Attributes:
        rules: Rule alternatives indexed by symbol id
        symbol_ids: Mapping from rule name to symbol id
    """

    rules: List[Any] = field(default_factory=list)
    symbol_ids: Dict[str, int] = field(default_factory=dict)


class GrammarAutomaton(Protocol):
    """Stateful position within a compiled grammar."""

    def accept(self, token_id: int) -> None: ...

    def filter(self, candidates: CandidateSet) -> None:
        """Mask candidates that are not legal continuations."""
        ...

    def copy(self) -> "GrammarAutomaton":
        """Deep copy of the current position."""
        ...

    def close(self) -> None: ...


class GrammarBackend(Protocol):
    """Compiles grammar text and instantiates automata."""

    def compile(self, text: str) -> CompiledGrammar:
        """Compile grammar text.

        Raises:
            GrammarParseError: If the text is malformed
        """
        ...

    def instantiate(self, grammar: CompiledGrammar, root_id: int) -> GrammarAutomaton: ...


class GrammarService(Protocol):
    """External service returning a grammar for the next token."""

    def request(self, grammar_id: str, preceding_text: str, new_token_text: str) -> str:
        """Return the raw service response.

        Raises:
            ExternalServiceError: If the service cannot be reached
        """
        ...


class Transcript(Protocol):
    """Append-only diagnostic log of the session."""

    def append(self, session_text: str, service_output: str = "") -> None:
        """Append one record.

        Raises:
            LogWriteError: If the record could not be written
        """
        ...


class EvaluatingBackend(InferenceBackend, Protocol):
    """Inference collaborator that can run the model over a token sequence."""

    def evaluate(self, token_ids: Sequence[int]) -> None:
        """Compute scores for every position of ``token_ids``."""
        ...
