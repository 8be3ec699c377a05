"""
Core types for rank-based tokenization.
"""

from collections.abc import Mapping

type Rank = int
type TokenBytes = bytes
type RankTable = Mapping[TokenBytes, Rank]
type DecodeTable = Mapping[Rank, TokenBytes]
type SpecialTokens = Mapping[str, Rank]
