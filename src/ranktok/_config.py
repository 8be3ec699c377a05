"""Process-wide switches, overridable through environment variables."""

import os

DEFAULT_FETCH_TIMEOUT: float = 60.0
DEFAULT_CACHE_SIZE: int = 65536

_cache_enabled: bool = True


def enable_cache() -> None:
    """Enable the piece cache for encodings created from now on."""
    global _cache_enabled
    _cache_enabled = True


def disable_cache() -> None:
    """Disable the piece cache for encodings created from now on."""
    global _cache_enabled
    _cache_enabled = False


def _is_cache_enabled() -> bool:
    """Check if the piece cache is enabled (respects env var override)."""
    if os.environ.get("RANKTOK_DISABLE_CACHE", "").strip() == "1":
        return False
    return _cache_enabled


def _cache_size() -> int | None:
    """Return the default piece cache ceiling; ``None`` means unbounded."""
    raw = os.environ.get("RANKTOK_CACHE_SIZE", "").strip()
    if not raw:
        return DEFAULT_CACHE_SIZE
    try:
        size = int(raw)
    except ValueError:
        return DEFAULT_CACHE_SIZE
    # 0 disables the ceiling
    return size if size > 0 else None


def _fetch_timeout() -> float:
    """Return the HTTP timeout in seconds used when fetching rank files."""
    raw = os.environ.get("RANKTOK_FETCH_TIMEOUT", "").strip()
    try:
        return float(raw) if raw else DEFAULT_FETCH_TIMEOUT
    except ValueError:
        return DEFAULT_FETCH_TIMEOUT
