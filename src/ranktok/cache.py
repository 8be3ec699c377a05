"""Thread-safe memo of already merged pieces."""

import threading
from dataclasses import dataclass

from .types import Rank


@dataclass(frozen=True)
class CacheInfo:
    """Snapshot of piece cache statistics."""

    hits: int
    misses: int
    size: int
    max_size: int | None


class PieceCache:
    """
    Map piece bytes to the ranks they merge into.

    Entries are never evicted or invalidated: a piece always merges to the
    same ranks for a given rank table. Once ``max_size`` entries are stored,
    new pieces are computed but no longer remembered.

    Two threads may compute the same piece at the same time; the first
    insert wins and both results are identical.
    """

    def __init__(self, max_size: int | None = None) -> None:
        self.max_size = max_size
        self._entries: dict[bytes, tuple[Rank, ...]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, piece: bytes) -> tuple[Rank, ...] | None:
        """Return cached ranks for ``piece`` or ``None``."""
        # dict reads are atomic, only the counters need the lock
        ranks = self._entries.get(piece)
        with self._lock:
            if ranks is None:
                self._misses += 1
            else:
                self._hits += 1
        return ranks

    def put(self, piece: bytes, ranks: tuple[Rank, ...]) -> tuple[Rank, ...]:
        """Insert ``ranks`` unless present; return the stored (or given) value."""
        with self._lock:
            existing = self._entries.get(piece)
            if existing is not None:
                return existing
            if self.max_size is None or len(self._entries) < self.max_size:
                self._entries[piece] = ranks
        return ranks

    def info(self) -> CacheInfo:
        with self._lock:
            return CacheInfo(self._hits, self._misses, len(self._entries), self.max_size)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, piece: bytes) -> bool:
        return piece in self._entries


__all__ = ["CacheInfo", "PieceCache"]
