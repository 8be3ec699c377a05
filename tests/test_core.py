"""Unit tests for the byte pair merge engine."""

from collections.abc import Iterator

import pytest

import ranktok as rt
from ranktok import core
from ranktok.errors import DecodeError

from conftest import ENDOFTEXT, with_single_bytes


# Merging
# ---------------------------------------------------------------------------


def test_tie_merges_leftmost_pair():
    """With "ab" and "bc" at the same rank, "ab" is merged first."""
    ranks = {b"a": 0, b"b": 1, b"c": 2, b"ab": 5, b"bc": 5}
    assert rt.byte_pair_merge(b"abc", ranks) == [b"ab", b"c"]
    assert rt.encode_piece(b"abc", ranks) == [5, 2]


def test_lower_rank_wins_over_position():
    ranks = {b"a": 0, b"b": 1, b"c": 2, b"ab": 6, b"bc": 5}
    assert rt.byte_pair_merge(b"abc", ranks) == [b"a", b"bc"]


def test_merge_reaches_whole_word(hello_ranks):
    """Repeated merges rebuild "hello" twice from single bytes."""
    assert rt.byte_pair_merge(b"hellohello", hello_ranks) == [b"hello", b"hello"]
    assert rt.encode_piece(b"hellohello", hello_ranks) == [7, 7]


def test_merge_stops_at_fixed_point(hello_ranks):
    """Pairs without a table entry are never merged."""
    assert rt.byte_pair_merge(b"xyz", hello_ranks) == [b"x", b"y", b"z"]
    assert rt.byte_pair_merge(b"helo", hello_ranks) == [b"he", b"l", b"o"]


def test_merge_preserves_bytes(hello_ranks):
    piece = "héllo wörld".encode("utf-8")
    assert b"".join(rt.byte_pair_merge(piece, hello_ranks)) == piece


def test_empty_piece(hello_ranks):
    assert rt.byte_pair_merge(b"", hello_ranks) == []
    assert rt.encode_piece(b"", hello_ranks) == []


def test_every_single_byte_encodes(hello_ranks):
    """Each byte value on its own, valid UTF-8 or not, has a rank."""
    for b in range(256):
        assert rt.encode_piece(bytes([b]), hello_ranks) == [hello_ranks[bytes([b])]]


def test_whole_piece_skips_merging(hello_ranks, monkeypatch):
    """A piece already in the table is returned without a merge scan."""

    def fail(piece, ranks):
        raise AssertionError("merge scan should not run")

    monkeypatch.setattr(core, "byte_pair_merge", fail)
    assert rt.encode_piece(b"hello", hello_ranks) == [7]
    with pytest.raises(AssertionError):
        core.encode_piece(b"hellohello", hello_ranks)


def test_long_piece_in_table_is_single_lookup():
    """A long run that is itself a token never enters the quadratic loop."""
    long_tok = b"q" * 50_000
    ranks = with_single_bytes({long_tok: 0})
    assert rt.encode_piece(long_tok, ranks) == [0]


# Segmentation
# ---------------------------------------------------------------------------


def test_split_pieces_is_lazy(hello_vocab):
    pieces = rt.split_pieces(hello_vocab.compiled_pattern, "hello world")
    assert isinstance(pieces, Iterator)
    assert list(pieces) == ["hello", " world"]


# CoreBPE
# ---------------------------------------------------------------------------


@pytest.fixture
def engine(hello_vocab):
    return rt.CoreBPE(hello_vocab)


def test_encode_ordinary_ignores_special_tokens(engine, hello_vocab):
    tokens = engine.encode_ordinary(f"hello{ENDOFTEXT}")
    assert tokens[0] == 7
    assert hello_vocab.special_tokens[ENDOFTEXT] not in tokens
    assert engine.decode_bytes(tokens) == f"hello{ENDOFTEXT}".encode()


def test_encode_with_special(engine, hello_vocab):
    eot = hello_vocab.special_tokens[ENDOFTEXT]
    tokens = engine.encode_with_special(f"hello{ENDOFTEXT}hello", {ENDOFTEXT: eot})
    assert tokens == [7, eot, 7]


def test_encode_with_special_adjacent_and_edges(engine, hello_vocab):
    eot = hello_vocab.special_tokens[ENDOFTEXT]
    text = f"{ENDOFTEXT}{ENDOFTEXT}hello{ENDOFTEXT}"
    assert engine.encode_with_special(text, {ENDOFTEXT: eot}) == [eot, eot, 7, eot]


def test_encode_with_special_prefers_longest(hello_ranks):
    n = len(hello_ranks)
    vocab = rt.VocabularyDescriptor(
        "fim",
        rt.TokenPattern.R50K.value,
        hello_ranks,
        {"<|fim|>": n, "<|fim|>x": n + 1},
    )
    engine = rt.CoreBPE(vocab)
    allowed = dict(vocab.special_tokens)
    assert engine.encode_with_special("<|fim|>xhello", allowed) == [n + 1, 7]


def test_encode_with_no_allowed_specials_is_ordinary(engine):
    text = f"hello{ENDOFTEXT}"
    assert engine.encode_with_special(text, {}) == engine.encode_ordinary(text)


def test_decode_special_token(engine, hello_vocab):
    eot = hello_vocab.special_tokens[ENDOFTEXT]
    assert engine.decode_bytes([7, eot]) == f"hello{ENDOFTEXT}".encode()


def test_decode_unknown_token(engine, hello_vocab):
    bad = hello_vocab.max_token_value + 1
    with pytest.raises(DecodeError) as exc_info:
        engine.decode_bytes([7, bad])
    assert exc_info.value.invalid_tok == bad
    assert str(bad) in str(exc_info.value)


def test_cached_engine_matches_uncached(hello_vocab):
    cache = rt.PieceCache()
    cached = rt.CoreBPE(hello_vocab, cache)
    plain = rt.CoreBPE(hello_vocab)
    text = "hellohello\nhello\nhellohello"

    first = cached.encode_ordinary(text)
    second = cached.encode_ordinary(text)
    assert first == second == plain.encode_ordinary(text)
    # pieces already in the table are not cached
    assert b"hello" not in cache
    assert b"hellohello" in cache
    assert cache.info().hits >= 1
