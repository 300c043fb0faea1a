"""
Error taxonomy for the sampling engine.

Only RangeError and GrammarAcceptError signal caller bugs. The remaining
errors are reported through logging by the component that catches them and
never stop the generation loop.
"""


class SamplingError(Exception):
    """Base class for all sampler_lite errors."""


class GrammarParseError(SamplingError):
    """Grammar text could not be compiled into a non-empty rule set."""


class MissingRootSymbolError(GrammarParseError):
    """Compiled grammar has no "root" rule."""


class GrammarAcceptError(SamplingError):
    """A token was accepted that the active grammar does not admit."""


class RangeError(SamplingError, ValueError):
    """Invalid skip or window bounds."""


class ExternalServiceError(SamplingError):
    """Grammar refresh service unreachable or returned unusable output."""


class LogWriteError(SamplingError):
    """Transcript log could not be written."""
