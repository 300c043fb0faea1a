"""
Tests for the ordered grammar fix-ups.
"""

import re

import pytest

from sampler_lite.grammar.fixups import (
    DEFAULT_FIXUPS,
    NEW_TOKENS_GROUPING,
    NEW_TOKENS_NAME,
    OPTIONAL_WHITESPACE,
    WHITESPACE_REFERENCE,
    GrammarFixup,
    fix_grammar,
)


@pytest.mark.unit
def test_optional_whitespace():
    """Test a required whitespace run becomes optional."""
    assert OPTIONAL_WHITESPACE.apply(r"whitespace ::= [ \n]+") == r"whitespace ::= [ \n]*"


@pytest.mark.unit
def test_optional_whitespace_leaves_other_rules():
    """Test only the whitespace rule is rewritten."""
    text = r"spaces ::= [ \n]+"
    assert OPTIONAL_WHITESPACE.apply(text) == text


@pytest.mark.unit
def test_whitespace_reference():
    """Test a quoted whitespace literal becomes a rule reference."""
    assert WHITESPACE_REFERENCE.apply('ws ::= "whitespace"') == "ws ::= whitespace"


@pytest.mark.unit
def test_new_tokens_name():
    """Test the underscored rule name is hyphenated everywhere."""
    text = "root ::= new_tokens\nnew_tokens ::= x"
    assert NEW_TOKENS_NAME.apply(text) == "root ::= new-tokens\nnew-tokens ::= x"


@pytest.mark.unit
def test_new_tokens_grouping():
    """Test the alternatives after whitespace are grouped together."""
    text = 'new-tokens ::= whitespace | "a" | "b"'
    assert NEW_TOKENS_GROUPING.apply(text) == 'new-tokens ::= whitespace ("a" | "b")'


@pytest.mark.unit
def test_new_tokens_grouping_stays_on_one_line():
    """Test the grouping does not swallow following rules."""
    text = 'new-tokens ::= whitespace | "a"\nroot ::= new-tokens'
    assert fix_grammar(text, [NEW_TOKENS_GROUPING]) == (
        'new-tokens ::= whitespace ("a")\nroot ::= new-tokens'
    )


@pytest.mark.unit
def test_default_order_renames_before_grouping():
    """Test the default list renames the rule before regrouping it."""
    assert [f.name for f in DEFAULT_FIXUPS] == [
        "optional-whitespace",
        "whitespace-reference",
        "new-tokens-name",
        "new-tokens-grouping",
    ]
    text = 'new_tokens ::= whitespace | "a"'
    assert fix_grammar(text) == 'new-tokens ::= whitespace ("a")'


@pytest.mark.unit
def test_custom_fixups():
    """Test callers can supply their own fix-up list."""
    upper = GrammarFixup("upper", re.compile("a"), "A")
    assert fix_grammar("banana", [upper]) == "bAnAnA"
    assert fix_grammar("banana", []) == "banana"
