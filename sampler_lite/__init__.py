"""
sampler_lite: token sampling engine for autoregressive language models.

This package turns per-token model scores into the next token:
- Repetition, frequency and presence penalties over recent history
- Caller-ordered distribution transforms, greedy and mirostat selection
- Grammar-constrained sampling with static or dynamically refreshed grammars
- Stopping heuristics with typed session outcomes
"""

__version__ = "0.1.0"
__author__ = "sampler-lite contributors"

__all__ = []
