"""
Token history for a sampling session.

The store keeps two views of the accepted tokens:
- a fixed-capacity recent window, zero-filled at creation and on reset,
  used by the penalty engine
- the full, append-only session history, used to reconstruct generated
  text for stopping heuristics and grammar refresh

A prelude offset marks the leading tokens (e.g. a fixed prompt prefix) that
are excluded when reconstructing generated-so-far text.
"""

from collections import deque
from typing import Callable, Deque, List, Optional

from sampler_lite.errors import RangeError


class HistoryStore:
    """Recent-token ring plus full session log.

    Attributes:
        capacity: Fixed length of the recent window.
        token_to_text: Converts a token id to its text piece.
    """

    def __init__(self, capacity: int, token_to_text: Callable[[int], str]):
        """Initialize HistoryStore.

        Args:
            capacity: Length of the recent window
            token_to_text: Token-to-text collaborator

        Raises:
            ValueError: If capacity is negative
        """
        if capacity < 0:
            raise ValueError(f"capacity must be non-negative, got {capacity}")

        self.capacity = capacity
        self.token_to_text = token_to_text
        self._window: Deque[int] = deque([0] * capacity, maxlen=capacity)
        self._full: List[int] = []
        self._prelude_offset = 0

    @property
    def window(self) -> List[int]:
        return list(self._window)

    @property
    def full_history(self) -> List[int]:
        return list(self._full)

    @property
    def prelude_offset(self) -> int:
        return self._prelude_offset

    def __len__(self) -> int:
        return len(self._full)

    def is_empty(self) -> bool:
        return not self._full

    def append(self, token_id: int) -> None:
        """Push a token onto the window (evicting the oldest) and the full log."""
        if self.capacity > 0:
            self._window.append(token_id)
        self._full.append(token_id)

    def last(self) -> Optional[int]:
        """Most recently accepted token, or None before the first accept."""
        return self._full[-1] if self._full else None

    def window_slice(self, n: int) -> List[int]:
        """Last ``n`` window entries (``n`` clamped to the capacity)."""
        n = max(0, min(n, self.capacity))
        if n == 0:
            return []
        return list(self._window)[-n:]

    def recent_tokens(self, n: int) -> List[int]:
        """Last ``n`` window entries that hold accepted tokens, never padding."""
        return self.window_slice(min(n, len(self._full)))

    def window_text(self, n: int) -> str:
        """Text of the last ``n`` window entries."""
        return "".join(self.token_to_text(t) for t in self.window_slice(n))

    def history_text(self, start_skip: int = 0, end_skip: int = 0) -> str:
        """Reconstruct text for ``full_history[start_skip:len - end_skip]``.

        Raises:
            RangeError: If the skips are negative or exceed the history length
        """
        total = len(self._full)
        if start_skip < 0 or end_skip < 0 or start_skip + end_skip > total:
            raise RangeError(
                f"cannot skip {start_skip} + {end_skip} tokens of a "
                f"{total}-token history"
            )
        tokens = self._full[start_skip : total - end_skip]
        return "".join(self.token_to_text(t) for t in tokens)

    def generated_text(self, end_skip: int = 0) -> str:
        """History text after the prelude."""
        return self.history_text(self._prelude_offset, end_skip)

    def set_prelude_offset(self, offset: int) -> None:
        """Mark the first ``offset`` tokens as prelude.

        Raises:
            RangeError: If offset is negative or beyond the history length
        """
        if offset < 0 or offset > len(self._full):
            raise RangeError(
                f"prelude offset {offset} outside history of {len(self._full)} tokens"
            )
        self._prelude_offset = offset

    def reset(self) -> None:
        """Zero-fill the window and clear full history and prelude offset."""
        self._window = deque([0] * self.capacity, maxlen=self.capacity)
        self._full = []
        self._prelude_offset = 0

    def copy(self) -> "HistoryStore":
        """Independent copy sharing only the token-to-text collaborator."""
        clone = HistoryStore(self.capacity, self.token_to_text)
        clone._window = deque(self._window, maxlen=self.capacity)
        clone._full = list(self._full)
        clone._prelude_offset = self._prelude_offset
        return clone
