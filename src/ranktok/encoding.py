"""Public encode/decode entry point bound to one vocabulary."""

import logging
import os
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor

from ._config import _cache_size, _is_cache_enabled
from .cache import CacheInfo, PieceCache
from .core import CoreBPE
from .errors import DecodeError, SpecialTokenError
from .strategy import SpecialTokenStrategy
from .types import Rank, TokenBytes
from .vocabulary import VocabularyDescriptor

log = logging.getLogger(__name__)

_ENDOFTEXT = "<|endoftext|>"


class Encoding:
    """
    Encode text to token ids and back with a fixed vocabulary.

    Merged pieces are memoised in a :class:`PieceCache` owned by the
    encoding; cached and uncached results are identical.

    :param vocab: Vocabulary descriptor to encode with.
    :param use_cache: Memoise merged pieces. Defaults to the process setting
                      (see :func:`ranktok.disable_cache`).
    :param cache_size: Maximum number of cached pieces, ``None`` for no limit.
                       Defaults to ``RANKTOK_CACHE_SIZE`` or 65536.

    .. code-block:: python

        enc = ranktok.get_encoding("cl100k_base")
        tokens = enc.encode("hello world")
        assert enc.decode(tokens) == "hello world"
    """

    def __init__(
        self,
        vocab: VocabularyDescriptor,
        *,
        use_cache: bool | None = None,
        cache_size: int | None = -1,
    ) -> None:
        self.vocab = vocab
        if use_cache is None:
            use_cache = _is_cache_enabled()
        # -1: size not given by the caller
        if cache_size == -1:
            cache_size = _cache_size()
        self._cache = PieceCache(cache_size) if use_cache else None
        self._core = CoreBPE(vocab, self._cache)
        log.debug(
            f"encoding {vocab.name} ready "
            f"(cache: {'off' if self._cache is None else cache_size or 'unbounded'})"
        )

    def __repr__(self) -> str:
        return f"<Encoding {self.name!r}>"

    @property
    def name(self) -> str:
        return self.vocab.name

    @property
    def n_vocab(self) -> int:
        """Number of ids in the vocabulary, ``max_token_value + 1``."""
        return self.vocab.n_vocab

    @property
    def max_token_value(self) -> Rank:
        return self.vocab.max_token_value

    @property
    def special_tokens_set(self) -> set[str]:
        return set(self.vocab.special_tokens)

    @property
    def eot_token(self) -> Rank:
        """Id of ``<|endoftext|>``."""
        try:
            return self.vocab.special_tokens[_ENDOFTEXT]
        except KeyError:
            raise SpecialTokenError(f"{self.name} has no {_ENDOFTEXT} token") from None

    # Encoding
    # ===================================================================================

    def encode_ordinary(self, text: str) -> list[Rank]:
        """
        Encode text without special token handling.

        Special token strings in ``text`` are encoded as ordinary bytes.
        """
        return self._core.encode_ordinary(text)

    def encode(self, text: str, strategy: SpecialTokenStrategy | None = None) -> list[Rank]:
        """
        Encode text into a sequence of token ids.

        Without a ``strategy`` this is :meth:`encode_ordinary`. With one, the
        special tokens it selects are replaced by their reserved ids.

        :param text: Text to encode.
        :param strategy: Strategy choosing which special tokens to substitute.
        :raises SpecialTokenError: If the strategy rejects the text.
        """
        if strategy is None:
            return self._core.encode_ordinary(text)

        allowed = strategy.select(text, self.vocab.special_tokens)
        return self._core.encode_with_special(text, allowed)

    def encode_batch(
        self,
        texts: Sequence[str],
        strategy: SpecialTokenStrategy | None = None,
        num_workers: int | None = None,
    ) -> list[list[Rank]]:
        """
        Encode many texts, in parallel threads when more than one worker is used.

        :param texts: Texts to encode.
        :param strategy: Optional special token handling strategy.
        :param num_workers: Thread count; defaults to the CPU count, ``0`` means 1.
        :returns: Token sequences in input order.
        """
        if not texts:
            return []

        if num_workers is None:
            workers = os.cpu_count() or 1
        else:
            workers = max(1, num_workers)

        if workers == 1 or len(texts) == 1:
            return [self.encode(text, strategy) for text in texts]

        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda text: self.encode(text, strategy), texts))

    def encode_single_token(self, text_or_bytes: str | bytes) -> Rank:
        """
        Return the id of a string or byte sequence that is exactly one token.

        :raises KeyError: If it is neither a mergeable token nor a special token.
        """
        if isinstance(text_or_bytes, str):
            if text_or_bytes in self.vocab.special_tokens:
                return self.vocab.special_tokens[text_or_bytes]
            text_or_bytes = text_or_bytes.encode("utf-8")
        return self.vocab.ranks[text_or_bytes]

    def count_tokens(self, text: str) -> int:
        """Number of tokens :meth:`encode_ordinary` produces for ``text``."""
        return len(self._core.encode_ordinary(text))

    # Decoding
    # ===================================================================================

    def decode_bytes(self, tokens: Iterable[Rank]) -> bytes:
        """
        Decode token ids into raw bytes.

        :raises DecodeError: If any id is not in the vocabulary.
        """
        return self._core.decode_bytes(tokens)

    def decode(self, tokens: Iterable[Rank], errors: str = "replace") -> str:
        """
        Decode token ids into text.

        Ids that split a multi-byte character produce invalid UTF-8; with the
        default ``errors="replace"`` such bytes become U+FFFD.

        :param tokens: Token ids to decode.
        :param errors: How to handle invalid UTF-8, as for :meth:`bytes.decode`.
        :raises DecodeError: If any id is not in the vocabulary, or the bytes
                             are not valid UTF-8 and ``errors="strict"``.
        """
        data = self._core.decode_bytes(tokens)
        try:
            return data.decode("utf-8", errors=errors)
        except UnicodeDecodeError as e:
            raise DecodeError("decoded bytes are not valid utf-8", name=self.name) from e

    def decode_single_token_bytes(self, token: Rank) -> TokenBytes:
        """
        Return the bytes of a single token id.

        :raises DecodeError: If ``token`` is not in the vocabulary.
        """
        return self._core.decode_single_token_bytes(token)

    def decode_tokens_bytes(self, tokens: Iterable[Rank]) -> list[TokenBytes]:
        """Return the bytes of each token id, in order."""
        return [self._core.decode_single_token_bytes(tok) for tok in tokens]

    def decode_batch(
        self, token_batch: Sequence[Sequence[Rank]], errors: str = "replace"
    ) -> list[str]:
        """Decode several token sequences."""
        return [self.decode(tokens, errors=errors) for tokens in token_batch]

    # Introspection
    # ===================================================================================

    def token_byte_values(self) -> list[TokenBytes]:
        """Return the byte values of all mergeable tokens, ordered by rank."""
        return [self.vocab.decoder[rank] for rank in sorted(self.vocab.decoder)]

    def cache_info(self) -> CacheInfo | None:
        """Piece cache statistics, or ``None`` when caching is disabled."""
        if self._cache is None:
            return None
        return self._cache.info()


__all__ = ["Encoding"]
