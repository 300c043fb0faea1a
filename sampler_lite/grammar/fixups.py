"""
Textual fix-ups for grammars emitted by the completion service.

The upstream grammar generator has a few known quirks. Each fix-up is a
single deterministic regex substitution; they run in list order.
"""

import re
from dataclasses import dataclass
from typing import Pattern, Sequence


@dataclass(frozen=True)
class GrammarFixup:
    """One named regex substitution.

    Attributes:
        name: Short identifier used in logs and tests
        pattern: Compiled pattern to search for
        replacement: ``re.sub`` replacement template
    """

    name: str
    pattern: Pattern[str]
    replacement: str

    def apply(self, grammar: str) -> str:
        return self.pattern.sub(self.replacement, grammar)


# A required whitespace run becomes optional
OPTIONAL_WHITESPACE = GrammarFixup(
    "optional-whitespace",
    re.compile(r"whitespace ::= \[ \\n\]\+"),
    r"whitespace ::= [ \\n]*",
)

# "whitespace" emitted as a literal instead of a rule reference
WHITESPACE_REFERENCE = GrammarFixup(
    "whitespace-reference",
    re.compile(r'::= "whitespace"'),
    r"::= whitespace",
)

# Rule names cannot contain underscores
NEW_TOKENS_NAME = GrammarFixup(
    "new-tokens-name",
    re.compile(r"new_tokens"),
    r"new-tokens",
)

# Whitespace precedes every new-token alternative rather than standing alone
NEW_TOKENS_GROUPING = GrammarFixup(
    "new-tokens-grouping",
    re.compile(r"new-tokens ::= whitespace \| (.+)"),
    r"new-tokens ::= whitespace (\1)",
)

DEFAULT_FIXUPS = (
    OPTIONAL_WHITESPACE,
    WHITESPACE_REFERENCE,
    NEW_TOKENS_NAME,
    NEW_TOKENS_GROUPING,
)


def fix_grammar(grammar: str, fixups: Sequence[GrammarFixup] = DEFAULT_FIXUPS) -> str:
    """Apply ``fixups`` to ``grammar`` in order."""
    for fixup in fixups:
        grammar = fixup.apply(grammar)
    return grammar
