"""
Early-termination checks over the generated text.

Two independent checks run before token selection on every step:
- sentinel: the text of the last few tokens ends with a fixed marker
- repetition: the generated text ends with a short substring repeated many
  times in a row, or with a long run of spaces and tabs
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from sampler_lite.history.history_store import HistoryStore

logger = logging.getLogger(__name__)

_BLANK = " \t"


class StopReason(enum.Enum):
    """Why a session ended early."""

    SENTINEL = "sentinel"
    REPETITION = "repetition"


@dataclass(frozen=True)
class StopPolicy:
    """Stopping heuristics configuration.

    Attributes:
        sentinel: Marker ending the session; None disables the check
        sentinel_tokens: Number of trailing tokens whose text is matched
            against the sentinel
        max_length: Longest substring length checked for repetition
        min_repetitions: Consecutive copies needed to count as repetition
        whitespace_run: Trailing spaces/tabs treated as degenerate output
    """

    sentinel: Optional[str] = "in\n\n"
    sentinel_tokens: int = 3
    max_length: int = 30
    min_repetitions: int = 5
    whitespace_run: int = 40

    def __post_init__(self) -> None:
        if self.sentinel_tokens < 1:
            raise ValueError(
                f"sentinel_tokens must be positive, got {self.sentinel_tokens}"
            )
        if self.max_length < 1:
            raise ValueError(f"max_length must be positive, got {self.max_length}")
        if self.min_repetitions < 2:
            raise ValueError(
                f"min_repetitions must be at least 2, got {self.min_repetitions}"
            )
        if self.whitespace_run < 1:
            raise ValueError(
                f"whitespace_run must be positive, got {self.whitespace_run}"
            )


def _is_blank(text: str) -> bool:
    return all(ch in _BLANK for ch in text)


def ends_with_repeated_substring(
    text: str, max_length: int, min_repetitions: int, whitespace_run: int = 40
) -> bool:
    """Check whether ``text`` ends in degenerate repetition.

    Args:
        text: Text to inspect
        max_length: Longest candidate substring length
        min_repetitions: Consecutive copies required
        whitespace_run: Length of a trailing space/tab run that counts as
            repetition on its own

    Returns:
        True if some substring of length 1..max_length is repeated at least
        ``min_repetitions`` times at the end of ``text``
    """
    if len(text) >= whitespace_run and _is_blank(text[-whitespace_run:]):
        return True

    for length in range(1, max_length + 1):
        if len(text) < min_repetitions * length:
            break

        tail = text[-length:]
        # Ordinary indentation is left to the whitespace rule above
        if _is_blank(tail):
            continue

        span = text[-min_repetitions * length :]
        if span == tail * min_repetitions:
            return True
    return False


class StopChecker:
    """Evaluates the stopping heuristics against a session history.

    Attributes:
        policy: Stopping configuration
    """

    def __init__(self, policy: Optional[StopPolicy] = None):
        self.policy = policy or StopPolicy()

    def sentinel_reached(self, history: HistoryStore) -> bool:
        sentinel = self.policy.sentinel
        if not sentinel:
            return False
        count = min(self.policy.sentinel_tokens, len(history))
        tail = history.history_text(len(history) - count, 0)
        return tail.endswith(sentinel)

    def repetition_detected(self, history: HistoryStore) -> bool:
        return ends_with_repeated_substring(
            history.generated_text(),
            self.policy.max_length,
            self.policy.min_repetitions,
            self.policy.whitespace_run,
        )

    def check(self, history: HistoryStore) -> Optional[StopReason]:
        """Return the reason to stop, or None to keep generating."""
        if self.sentinel_reached(history):
            logger.info("sentinel %r reached, stopping", self.policy.sentinel)
            return StopReason.SENTINEL
        if self.repetition_detected(history):
            logger.info("repetition detected in generated text, stopping")
            return StopReason.REPETITION
        return None
