"""
Dynamic grammar refresh.

On every sampling step the refresher asks an external service for the
grammar that constrains the next token, repairs known quirks in the emitted
text, and swaps it into the grammar state machine. Every failure here is
non-fatal: the step proceeds without grammar constraints.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from sampler_lite.errors import ExternalServiceError, GrammarParseError, LogWriteError
from sampler_lite.grammar.fixups import DEFAULT_FIXUPS, GrammarFixup, fix_grammar
from sampler_lite.grammar.state_machine import GrammarStateMachine
from sampler_lite.history.history_store import HistoryStore
from sampler_lite.interfaces import GrammarService, Transcript

logger = logging.getLogger(__name__)

DEFAULT_DELIMITER = "LSP: Grammar:\n"


@dataclass(frozen=True)
class RefreshPolicy:
    """How service responses are turned into grammar text.

    Attributes:
        delimiter: Marker preceding the grammar in the service output
        fixups: Ordered text fix-ups applied to the extracted grammar
    """

    delimiter: str = DEFAULT_DELIMITER
    fixups: Sequence[GrammarFixup] = DEFAULT_FIXUPS


def extract_grammar(output: str, delimiter: str = DEFAULT_DELIMITER) -> str:
    """Return the text after the first ``delimiter`` with leading whitespace removed.

    Returns an empty string when the delimiter is missing.
    """
    pos = output.find(delimiter)
    if pos < 0:
        return ""
    return output[pos + len(delimiter) :].lstrip(" \n\r\t\f\v")


class DynamicGrammarRefresher:
    """Fetches and installs a fresh grammar for each sampling step.

    Attributes:
        service: External grammar service
        grammar_id: Identifier sent with every request
        transcript: Optional session transcript
        policy: Response parsing policy
    """

    def __init__(
        self,
        service: GrammarService,
        grammar_id: str,
        transcript: Optional[Transcript] = None,
        policy: Optional[RefreshPolicy] = None,
    ):
        self.service = service
        self.grammar_id = grammar_id
        self.transcript = transcript
        self.policy = policy or RefreshPolicy()

    def _preceding_text(self, history: HistoryStore) -> str:
        # Generated text without the token that was just accepted
        if len(history) < history.prelude_offset + 1:
            return ""
        return history.generated_text(end_skip=1)

    def refresh(self, machine: GrammarStateMachine, history: HistoryStore) -> bool:
        """Replace the machine's automaton with the service's current grammar.

        Returns:
            True if a grammar is active after the refresh
        """
        last = history.last()
        new_token = history.token_to_text(last) if last is not None else ""

        try:
            output = self.service.request(
                self.grammar_id, self._preceding_text(history), new_token
            )
        except ExternalServiceError as e:
            logger.warning("grammar refresh failed, sampling unconstrained: %s", e)
            machine.release()
            return False

        if self.transcript is not None:
            try:
                self.transcript.append(history.generated_text(), output)
            except LogWriteError as e:
                logger.warning("%s", e)

        grammar_text = fix_grammar(
            extract_grammar(output, self.policy.delimiter), self.policy.fixups
        )
        logger.debug("refreshed grammar:\n%s", grammar_text)

        try:
            machine.init(grammar_text)
        except GrammarParseError as e:
            logger.error("failed to parse refreshed grammar: %s", e)
            return False
        return True
