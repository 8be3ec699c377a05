"""Unit tests for VocabularyDescriptor construction and split patterns."""

import dataclasses

import pytest

import ranktok as rt
from ranktok.errors import PatternError, VocabularyError
from ranktok.pattern import compile_pattern

from conftest import ENDOFTEXT, with_single_bytes


# Derived values
# ---------------------------------------------------------------------------


def test_max_token_value_includes_special_tokens(hello_vocab, hello_ranks):
    assert hello_vocab.max_token_value == len(hello_ranks)
    assert hello_vocab.n_vocab == len(hello_ranks) + 1


def test_max_token_value_without_special_tokens(hello_ranks):
    vocab = rt.VocabularyDescriptor("plain", rt.TokenPattern.R50K.value, hello_ranks)
    assert vocab.max_token_value == max(hello_ranks.values())
    assert dict(vocab.special_tokens) == {}


def test_decoders_invert_tables(hello_vocab):
    assert hello_vocab.decoder[7] == b"hello"
    assert hello_vocab.special_decoder[hello_vocab.max_token_value] == ENDOFTEXT.encode()


def test_accepts_token_pattern_member(hello_ranks):
    vocab = rt.VocabularyDescriptor("enum", rt.TokenPattern.CL100K, hello_ranks)
    assert vocab.pattern == rt.TokenPattern.CL100K.value


# Immutability
# ---------------------------------------------------------------------------


def test_tables_are_read_only(hello_vocab):
    with pytest.raises(TypeError):
        hello_vocab.ranks[b"new"] = 10_000
    with pytest.raises(TypeError):
        hello_vocab.special_tokens["<|new|>"] = 10_000


def test_fields_are_frozen(hello_vocab):
    with pytest.raises(dataclasses.FrozenInstanceError):
        hello_vocab.name = "other"


def test_source_tables_are_copied(hello_ranks):
    """Mutating the input dicts afterwards does not change the descriptor."""
    specials = {ENDOFTEXT: len(hello_ranks)}
    vocab = rt.VocabularyDescriptor("copy", rt.TokenPattern.R50K.value, hello_ranks, specials)
    hello_ranks[b"extra"] = 99_999
    specials["<|late|>"] = 99_998
    assert b"extra" not in vocab.ranks
    assert "<|late|>" not in vocab.special_tokens


# Validation
# ---------------------------------------------------------------------------


def test_missing_single_byte_rejected(hello_ranks):
    del hello_ranks[b"z"]
    with pytest.raises(VocabularyError) as exc_info:
        rt.VocabularyDescriptor("broken", rt.TokenPattern.R50K.value, hello_ranks)
    assert exc_info.value.missing_bytes == [ord("z")]


def test_special_ids_must_not_reuse_ranks(hello_ranks):
    with pytest.raises(VocabularyError) as exc_info:
        rt.VocabularyDescriptor(
            "overlap", rt.TokenPattern.R50K.value, hello_ranks, {ENDOFTEXT: 7}
        )
    assert exc_info.value.overlapping == {7}


def test_special_ids_may_fill_gaps_between_ranks():
    """Ids only have to be disjoint, not in a separate range."""
    ranks = with_single_bytes({})
    ranks[b"ab"] = 300
    vocab = rt.VocabularyDescriptor("gap", rt.TokenPattern.R50K.value, ranks, {ENDOFTEXT: 256})
    assert vocab.max_token_value == 300


def test_duplicate_ranks_rejected(hello_ranks):
    hello_ranks[b"hi"] = 7
    with pytest.raises(VocabularyError):
        rt.VocabularyDescriptor("dupe", rt.TokenPattern.R50K.value, hello_ranks)


def test_duplicate_special_ids_rejected(hello_ranks):
    n = len(hello_ranks)
    with pytest.raises(VocabularyError):
        rt.VocabularyDescriptor(
            "dupe", rt.TokenPattern.R50K.value, hello_ranks, {"<|a|>": n, "<|b|>": n}
        )


def test_invalid_pattern_rejected(hello_ranks):
    with pytest.raises(PatternError) as exc_info:
        rt.VocabularyDescriptor("bad", r"(\p{L}+", hello_ranks)
    assert exc_info.value.pattern == r"(\p{L}+"


def test_explicit_n_vocab(hello_ranks):
    n = len(hello_ranks) + 1
    vocab = rt.VocabularyDescriptor(
        "sized", rt.TokenPattern.R50K.value, hello_ranks, {ENDOFTEXT: n - 1}, explicit_n_vocab=n
    )
    assert vocab.n_vocab == n

    with pytest.raises(VocabularyError):
        rt.VocabularyDescriptor(
            "sized", rt.TokenPattern.R50K.value, hello_ranks, {ENDOFTEXT: n - 1}, explicit_n_vocab=n + 1
        )


def test_explicit_n_vocab_detects_gaps(hello_ranks):
    """Right token count but a gap in the ids is rejected."""
    n = len(hello_ranks) + 1
    with pytest.raises(VocabularyError):
        rt.VocabularyDescriptor(
            "gappy", rt.TokenPattern.R50K.value, hello_ranks, {ENDOFTEXT: n + 5}, explicit_n_vocab=n
        )


# Patterns
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("name", ["r50k", "CL100K", "o200k"])
def test_builtin_patterns_compile(name):
    compile_pattern(rt.get_pattern(name))


def test_unknown_pattern_name():
    with pytest.raises(PatternError):
        rt.get_pattern("nope")


def test_list_patterns():
    assert rt.list_patterns() == ["R50K", "CL100K", "O200K"]


@pytest.mark.parametrize("pattern", list(rt.TokenPattern))
def test_builtin_patterns_cover_text(pattern):
    """Pieces of the built-in patterns tile the input without gaps."""
    text = "Hello, World!  It's 2024...\n\n\tcafé 日本語 🎉 don't  "
    pieces = list(rt.split_pieces(compile_pattern(pattern.value), text))
    assert "".join(pieces) == text
