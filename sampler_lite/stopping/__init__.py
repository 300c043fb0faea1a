"""
Stopping heuristics for generation sessions.

Provides:
- StopPolicy: Sentinel and repetition thresholds
- StopReason: Why a session ended
- StopChecker: Evaluates the heuristics against a history
- ends_with_repeated_substring: Trailing repetition detector
"""

from sampler_lite.stopping.heuristics import (
    StopChecker,
    StopPolicy,
    StopReason,
    ends_with_repeated_substring,
)

__all__ = [
    "StopChecker",
    "StopPolicy",
    "StopReason",
    "ends_with_repeated_substring",
]
