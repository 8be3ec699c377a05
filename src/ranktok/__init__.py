"""ranktok: byte-level BPE encoding over fixed rank vocabularies."""

from ._config import disable_cache, enable_cache
from .cache import CacheInfo, PieceCache
from .core import CoreBPE, byte_pair_merge, encode_piece, split_pieces
from .encoding import Encoding
from .errors import (
    DecodeError,
    PatternError,
    RankFileError,
    RankTokError,
    SpecialTokenError,
    StrategyError,
    VocabularyError,
)
from .load import (
    load_legacy_ranks,
    load_native_ranks,
    parse_legacy_ranks,
    parse_native_ranks,
)
from .pattern import TokenPattern, get_pattern, list_patterns
from .registry import (
    count_tokens,
    decode,
    encode,
    encoding_for_model,
    encoding_name_for_model,
    get_encoding,
    list_encodings,
    register_encoding,
    register_model,
)
from .strategy import (
    AllowAllStrategy,
    AllowCustomStrategy,
    AllowNoneRaiseStrategy,
    AllowNoneStrategy,
    SpecialTokenStrategy,
    get_strategy,
    list_strategies,
)
from .vocabulary import VocabularyDescriptor

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ranktok")
except PackageNotFoundError:
    __version__ = "dev"

__all__ = [
    "Encoding",
    "VocabularyDescriptor",
    "CoreBPE",
    "PieceCache",
    "CacheInfo",
    "TokenPattern",
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "RankTokError",
    "VocabularyError",
    "DecodeError",
    "RankFileError",
    "PatternError",
    "SpecialTokenError",
    "StrategyError",
    "byte_pair_merge",
    "encode_piece",
    "split_pieces",
    "load_native_ranks",
    "load_legacy_ranks",
    "parse_native_ranks",
    "parse_legacy_ranks",
    "get_encoding",
    "encoding_for_model",
    "encoding_name_for_model",
    "list_encodings",
    "register_encoding",
    "register_model",
    "encode",
    "decode",
    "count_tokens",
    "get_strategy",
    "get_pattern",
    "list_patterns",
    "list_strategies",
    "enable_cache",
    "disable_cache",
]
