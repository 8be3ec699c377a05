"""
Immutable description of a model's tokenizer vocabulary.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType

import regex as re

from .errors import VocabularyError
from .load import ensure_byte_coverage
from .pattern import TokenPattern, compile_pattern
from .types import DecodeTable, Rank, RankTable, SpecialTokens

log = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class VocabularyDescriptor:
    """
    Split pattern, mergeable ranks and special tokens of one vocabulary.

    All tables are copied into read-only mappings on construction, so a
    descriptor can be shared between threads without locking.

    :param name: Vocabulary name, e.g. ``"cl100k_base"``.
    :param pattern: Regex used to split text into pieces before merging.
    :param ranks: Token bytes -> rank. Must contain every single byte.
    :param special_tokens: Special token string -> id. Ids must not be ranks.
    :param explicit_n_vocab: Expected total vocabulary size, checked if given.
    :raises PatternError: If ``pattern`` does not compile.
    :raises VocabularyError: If the tables are incomplete or inconsistent.
    """

    name: str
    pattern: str
    ranks: RankTable
    special_tokens: SpecialTokens = field(default_factory=dict)
    explicit_n_vocab: int | None = None

    compiled_pattern: re.Pattern = field(init=False, repr=False)
    decoder: DecodeTable = field(init=False, repr=False)
    special_decoder: DecodeTable = field(init=False, repr=False)
    max_token_value: Rank = field(init=False)

    def __post_init__(self) -> None:
        pattern = (
            self.pattern.value if isinstance(self.pattern, TokenPattern) else self.pattern
        )
        compiled = compile_pattern(pattern)

        ranks = dict(self.ranks)
        special_tokens = dict(self.special_tokens)

        ensure_byte_coverage(ranks, name=self.name)

        # the rank table must be invertible for decoding
        decoder = {rank: tok for tok, rank in ranks.items()}
        if len(decoder) != len(ranks):
            raise VocabularyError("mergeable ranks must be unique", name=self.name)

        overlapping = set(special_tokens.values()) & decoder.keys()
        if overlapping:
            raise VocabularyError(
                "special token ids overlap with mergeable ranks",
                name=self.name,
                overlapping=overlapping,
            )

        special_decoder = {tok: seq.encode("utf-8") for seq, tok in special_tokens.items()}
        if len(special_decoder) != len(special_tokens):
            raise VocabularyError("special token ids must be unique", name=self.name)

        max_token_value = max(max(decoder), max(special_decoder, default=0))

        if self.explicit_n_vocab is not None:
            if len(ranks) + len(special_tokens) != self.explicit_n_vocab:
                raise VocabularyError(
                    f"expected {self.explicit_n_vocab} tokens, "
                    f"got {len(ranks) + len(special_tokens)}",
                    name=self.name,
                )
            if max_token_value != self.explicit_n_vocab - 1:
                raise VocabularyError(
                    f"expected max token value {self.explicit_n_vocab - 1}, "
                    f"got {max_token_value}",
                    name=self.name,
                )

        # frozen dataclass: derived fields are set once here
        object.__setattr__(self, "pattern", pattern)
        object.__setattr__(self, "compiled_pattern", compiled)
        object.__setattr__(self, "ranks", MappingProxyType(ranks))
        object.__setattr__(self, "special_tokens", MappingProxyType(special_tokens))
        object.__setattr__(self, "decoder", MappingProxyType(decoder))
        object.__setattr__(self, "special_decoder", MappingProxyType(special_decoder))
        object.__setattr__(self, "max_token_value", max_token_value)

        log.debug(
            f"vocabulary {self.name}: {len(ranks)} ranks, "
            f"{len(special_tokens)} special tokens, max token {max_token_value}"
        )

    @property
    def n_vocab(self) -> int:
        """Size of the id space, ``max_token_value + 1``."""
        return self.max_token_value + 1


__all__ = ["VocabularyDescriptor"]
