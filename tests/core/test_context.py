"""
Tests for SamplingContext lifecycle: create, reset, copy and free.
"""

import logging

import pytest

from sampler_lite.core.context import SamplingContext
from sampler_lite.errors import RangeError
from sampler_lite.sampling.params import SamplingParams

GRAMMAR = 'root ::= "a" "b" | "b" "c"\n'


def _allowed(ctx, vocab_size=10):
    return {t for t in range(vocab_size) if ctx.grammar.automaton.allows(t)}


@pytest.fixture
def make_context(backend, grammar_backend):
    def _make(**kwargs):
        return SamplingContext.create(
            SamplingParams(**kwargs), backend.token_to_text, grammar_backend
        )

    return _make


@pytest.mark.unit
def test_create_without_grammar(make_context):
    """Test a context without grammar text starts Inactive and empty."""
    ctx = make_context()
    assert not ctx.grammar.active
    assert ctx.history.is_empty()
    assert ctx.mirostat_mu == 0.0
    assert ctx.candidates is None
    assert ctx.last_sample_time is None


@pytest.mark.unit
def test_create_compiles_static_grammar(make_context):
    """Test the static grammar is compiled at creation."""
    ctx = make_context(grammar=GRAMMAR)
    assert ctx.grammar.active
    assert _allowed(ctx) == {1, 2, 6}


@pytest.mark.unit
def test_create_with_bad_grammar_continues_unconstrained(make_context, caplog):
    """Test a malformed static grammar is reported and sampling continues."""
    with caplog.at_level(logging.ERROR):
        ctx = make_context(grammar="root ::= missing\n")
    assert not ctx.grammar.active
    assert "failed to parse grammar" in caplog.text


@pytest.mark.unit
def test_window_length_fixed(make_context):
    """Test the recent window always has n_prev entries."""
    ctx = make_context(n_prev=4)
    for token_id in [1, 2, 3, 4, 5, 6, 7]:
        ctx.history.append(token_id % 10)
        assert len(ctx.history.window) == 4


@pytest.mark.unit
def test_reset_clears_state(make_context):
    """Test reset clears history, rewinds the grammar and zeroes mirostat."""
    ctx = make_context(grammar=GRAMMAR, n_prev=4)
    ctx.history.append(1)
    ctx.grammar.accept(1)
    ctx.mirostat_mu = 3.5
    ctx.last_sample_time = 12.0

    ctx.reset()

    assert ctx.history.is_empty()
    assert ctx.history.window == [0, 0, 0, 0]
    assert ctx.mirostat_mu == 0.0
    assert ctx.last_sample_time is None
    assert _allowed(ctx) == {1, 2, 6}


@pytest.mark.unit
def test_reset_is_idempotent(make_context):
    """Test resetting twice matches a freshly created context."""
    ctx = make_context(grammar=GRAMMAR)
    ctx.history.append(2)
    ctx.grammar.accept(2)
    ctx.reset()
    ctx.reset()

    fresh = make_context(grammar=GRAMMAR)
    assert _allowed(ctx) == _allowed(fresh)
    assert ctx.history.window == fresh.history.window
    assert ctx.mirostat_mu == fresh.mirostat_mu


@pytest.mark.unit
def test_reset_reseeds_generator(make_context):
    """Test a seeded context replays the same random stream after reset."""
    ctx = make_context(seed=11)
    first = ctx.generator.get_state()
    ctx.reset()
    assert ctx.generator.get_state().equal(first)


@pytest.mark.unit
def test_copy_to_without_aliasing(make_context):
    """Test a copied context advances independently of its source."""
    src = make_context(grammar=GRAMMAR)
    src.history.append(9)
    src.mirostat_mu = 1.5

    dst = make_context(grammar=GRAMMAR)
    src.copy_to(dst)
    assert dst.history.full_history == [9]
    assert dst.mirostat_mu == 1.5

    src.history.append(1)
    src.grammar.accept(1)
    dst.history.append(2)
    dst.grammar.accept(2)

    assert src.history.full_history == [9, 1]
    assert dst.history.full_history == [9, 2]
    assert _allowed(src) == {2}
    assert _allowed(dst) == {3}


@pytest.mark.unit
def test_free_releases_grammar(make_context):
    """Test free destroys the owned automaton."""
    ctx = make_context(grammar=GRAMMAR)
    automaton = ctx.grammar.automaton
    ctx.free()
    assert not ctx.grammar.active
    assert automaton.closed


@pytest.mark.unit
def test_context_manager_frees(make_context):
    """Test leaving the with block frees the context."""
    with make_context(grammar=GRAMMAR) as ctx:
        assert ctx.grammar.active
    assert not ctx.grammar.active


@pytest.mark.unit
def test_text_accessors(make_context):
    """Test last, prev_str and prev_all_str."""
    ctx = make_context(n_prev=2)
    assert ctx.last() is None
    for token_id in [1, 2, 3]:
        ctx.history.append(token_id)
    assert ctx.last() == 3
    assert ctx.prev_str(5) == "bc"
    assert ctx.prev_all_str() == "abc"
    assert ctx.prev_all_str(1, 1) == "b"


@pytest.mark.unit
def test_prev_str_skips_window_padding(make_context):
    """Test prev_str never includes the zero padding."""
    ctx = make_context(n_prev=4)
    ctx.history.append(2)
    assert ctx.prev_str(4) == "b"


@pytest.mark.unit
def test_set_prelude_len(make_context):
    """Test the prelude length bounds."""
    ctx = make_context()
    ctx.history.append(1)
    ctx.set_prelude_len(1)
    assert ctx.history.prelude_offset == 1
    with pytest.raises(RangeError):
        ctx.set_prelude_len(2)


@pytest.mark.unit
def test_copy_into_context_without_grammar_backend(make_context, backend):
    """Test a context created without a grammar backend can reset a copied grammar."""
    src = make_context(grammar=GRAMMAR)
    src.grammar.accept(1)
    dst = SamplingContext.create(SamplingParams(), backend.token_to_text)

    src.copy_to(dst)
    assert _allowed(dst) == {2}

    dst.reset()
    assert dst.grammar.active
    assert _allowed(dst) == _allowed(make_context(grammar=GRAMMAR))
