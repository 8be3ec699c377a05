"""Shared fixtures: a tiny hand-built vocabulary around the word "hello"."""

import pytest

import ranktok as rt

ENDOFTEXT = "<|endoftext|>"


def with_single_bytes(ranks: dict[bytes, int]) -> dict[bytes, int]:
    """Return ``ranks`` plus every missing single byte, ranked after the rest."""
    full = dict(ranks)
    next_rank = max(full.values(), default=-1) + 1
    for b in range(256):
        if bytes([b]) not in full:
            full[bytes([b])] = next_rank
            next_rank += 1
    return full


@pytest.fixture
def hello_ranks() -> dict[bytes, int]:
    """Ranks where "hello" is a single token built from h/e/l/o merges."""
    return with_single_bytes(
        {
            b"h": 0,
            b"e": 1,
            b"l": 2,
            b"o": 3,
            b"he": 4,
            b"ll": 5,
            b"hell": 6,
            b"hello": 7,
        }
    )


@pytest.fixture
def hello_vocab(hello_ranks) -> rt.VocabularyDescriptor:
    """Descriptor over ``hello_ranks`` with one special token after the ranks."""
    return rt.VocabularyDescriptor(
        name="hello",
        pattern=rt.TokenPattern.R50K.value,
        ranks=hello_ranks,
        special_tokens={ENDOFTEXT: len(hello_ranks)},
    )


@pytest.fixture
def hello_encoding(hello_vocab) -> rt.Encoding:
    return rt.Encoding(hello_vocab, use_cache=True, cache_size=None)


@pytest.fixture
def uncached_encoding(hello_vocab) -> rt.Encoding:
    return rt.Encoding(hello_vocab, use_cache=False)
