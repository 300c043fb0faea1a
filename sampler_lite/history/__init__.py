"""
Session token history.

Provides:
- HistoryStore: Fixed-size recent window plus full session log
"""

from sampler_lite.history.history_store import HistoryStore

__all__ = ["HistoryStore"]
