"""
Core Byte Pair Encoding (BPE) operations over a fixed rank table.

Encoding splits text into pieces with the vocabulary's regex, then merges the
bytes of each piece independently. Merging a piece of ``n`` bytes costs
O(n^2) rank lookups in the worst case (no pair ever merges); no cutoff is
applied, pieces are bounded by the split pattern in practice.
"""

import sys
from collections.abc import Iterable, Iterator, Mapping
from functools import lru_cache
from typing import Final

import regex as re

from .cache import PieceCache
from .errors import DecodeError
from .types import Rank, RankTable, TokenBytes
from .vocabulary import VocabularyDescriptor

# rank given to pairs missing from the table: they never merge
_NO_MERGE: Final[int] = sys.maxsize


def split_pieces(pattern: re.Pattern, text: str) -> Iterator[str]:
    """Lazily yield the regex matches of ``text`` from left to right."""
    for m in pattern.finditer(text):
        yield m.group(0)


def byte_pair_merge(piece: bytes, ranks: RankTable) -> list[bytes]:
    """
    Merge the bytes of ``piece`` into the parts given by the rank table.

    Starting from single bytes, the adjacent pair whose concatenation has the
    lowest rank is merged until no adjacent pair is in the table. Among pairs
    with equal rank the leftmost one is merged first.

    :param piece: Raw bytes of one piece.
    :param ranks: Token bytes -> rank.
    :return: Merged parts in left-to-right order; joined they equal ``piece``.
    """
    # part i is piece[bounds[i]:bounds[i + 1]]
    bounds = list(range(len(piece) + 1))

    def pair_rank(i: int) -> int:
        # rank of part i merged with part i + 1
        return ranks.get(piece[bounds[i] : bounds[i + 2]], _NO_MERGE)

    pair_ranks = [pair_rank(i) for i in range(len(piece) - 1)]

    while pair_ranks:
        best = min(pair_ranks)
        if best == _NO_MERGE:
            break
        # index() finds the leftmost pair among equal ranks
        i = pair_ranks.index(best)
        del bounds[i + 1]
        del pair_ranks[i]
        # only the pairs touching the merged part change
        if i < len(pair_ranks):
            pair_ranks[i] = pair_rank(i)
        if i > 0:
            pair_ranks[i - 1] = pair_rank(i - 1)

    return [piece[bounds[i] : bounds[i + 1]] for i in range(len(bounds) - 1)]


def encode_piece(piece: bytes, ranks: RankTable) -> list[Rank]:
    """
    Encode one piece into ranks.

    A piece that is itself in the table maps to its rank without merging.
    """
    rank = ranks.get(piece)
    if rank is not None:
        return [rank]
    # every part is in the table: merges bottom out at single bytes
    return [ranks[part] for part in byte_pair_merge(piece, ranks)]


@lru_cache(maxsize=64)
def _special_split_pattern(specials: frozenset[str]) -> re.Pattern:
    """Compile a pattern whose matches are exactly the given special tokens."""
    # longest first so a special token never loses to one of its own prefixes
    alts = sorted(specials, key=lambda s: (-len(s), s))
    # capturing group keeps the matched specials in re.split() output
    return re.compile("(" + "|".join(re.escape(seq) for seq in alts) + ")")


class CoreBPE:
    """
    BPE engine bound to one vocabulary.

    :param vocab: Vocabulary to encode with.
    :param cache: Optional memo of merged pieces, shared between calls.
    """

    def __init__(self, vocab: VocabularyDescriptor, cache: PieceCache | None = None) -> None:
        self.vocab = vocab
        self.cache = cache

    def _encode_chunk(self, piece: bytes) -> Iterable[Rank]:
        """Encode one piece, consulting the cache for pieces that need merging."""
        ranks = self.vocab.ranks
        # whole-piece hits are already a single lookup; keep them out of the cache
        if self.cache is None or piece in ranks:
            return encode_piece(piece, ranks)

        cached = self.cache.get(piece)
        if cached is not None:
            return cached
        return self.cache.put(piece, tuple(encode_piece(piece, ranks)))

    def encode_ordinary(self, text: str) -> list[Rank]:
        """Encode ``text`` treating special token strings as plain text."""
        tokens: list[Rank] = []
        for piece in split_pieces(self.vocab.compiled_pattern, text):
            tokens.extend(self._encode_chunk(piece.encode("utf-8", errors="replace")))
        return tokens

    def encode_with_special(self, text: str, allowed: Mapping[str, Rank]) -> list[Rank]:
        """
        Encode ``text`` with the ``allowed`` special tokens kept atomic.

        Text is split on the allowed special token strings; each of them maps
        to its reserved id and the spans in between are encoded ordinarily.

        :param text: Text to encode.
        :param allowed: Special token string -> id to recognise in ``text``.
        """
        if not allowed:
            return self.encode_ordinary(text)

        special_pat = _special_split_pattern(frozenset(allowed))
        tokens: list[Rank] = []
        # re.split() with one capturing group alternates text, special, text, ...
        for idx, chunk in enumerate(special_pat.split(text)):
            if idx % 2:
                tokens.append(allowed[chunk])
            elif chunk:
                tokens.extend(self.encode_ordinary(chunk))
        return tokens

    def decode_single_token_bytes(self, token: Rank) -> TokenBytes:
        """
        Return the bytes of one token id.

        :raises DecodeError: If ``token`` is neither a rank nor a special id.
        """
        tok_bytes = self.vocab.decoder.get(token)
        if tok_bytes is None:
            tok_bytes = self.vocab.special_decoder.get(token)
            if tok_bytes is None:
                raise DecodeError("token not found in vocabulary", invalid_tok=token)
        return tok_bytes

    def decode_bytes(self, tokens: Iterable[Rank]) -> bytes:
        """
        Concatenate the bytes of ``tokens``.

        The result is not necessarily valid UTF-8, e.g. when the ids split a
        multi-byte character.

        :raises DecodeError: On the first id that is not in the vocabulary.
        """
        return b"".join(self.decode_single_token_bytes(tok) for tok in tokens)


__all__ = [
    "split_pieces",
    "byte_pair_merge",
    "encode_piece",
    "CoreBPE",
]
