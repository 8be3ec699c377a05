"""Custom exception hierarchy for ranktok errors."""

import regex as re

from .types import Rank


class RankTokError(Exception):
    """Base exception for all ranktok errors."""


class VocabularyError(RankTokError):
    """Raised when a vocabulary is incomplete, inconsistent or unknown."""

    def __init__(
        self,
        message: str,
        *,
        name: str | None = None,
        missing_bytes: list[int] | None = None,
        overlapping: set[Rank] | None = None,
        invalid_tok: Rank | None = None,
    ) -> None:
        """Initialize with optional details that get appended to the message."""
        extra = " "
        if name:
            extra += f"(vocabulary: {name}) "
        # decoding: token not in vocabulary
        if invalid_tok is not None:
            extra += f"(invalid token: {invalid_tok}) "
        # load time: incomplete single byte coverage
        if missing_bytes:
            shown = ", ".join(str(b) for b in missing_bytes[:8])
            more = "..." if len(missing_bytes) > 8 else ""
            extra += f"(missing bytes: {shown}{more}) "
        # load time: special token ids reuse ranks
        if overlapping:
            extra += f"(overlapping ids: {sorted(overlapping)}) "
        super().__init__(message + extra)
        self.name = name
        self.missing_bytes = missing_bytes
        self.overlapping = overlapping
        self.invalid_tok = invalid_tok


class DecodeError(VocabularyError):
    """Raised when token ids cannot be turned back into bytes or text."""


class RankFileError(RankTokError):
    """Raised when reading or parsing a rank file fails."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        line_no: int | None = None,
    ) -> None:
        extra = " "
        if source:
            extra += f"(source: {source}) "
        if line_no is not None:
            extra += f"(line: {line_no}) "
        super().__init__(message + extra)
        self.source = source
        self.line_no = line_no


class PatternError(RankTokError):
    """Raised when compiling and/or validating regex patterns."""

    def __init__(
        self,
        message: str,
        *,
        pattern: str | None = None,
        regex_err: re.error | None = None,
    ) -> None:
        """
        Initialize PatternError with pattern details.

        Args:
            message: Error message.
            pattern: The regex pattern that failed.
            regex_err: The underlying regex error from the regex library.
        """
        extra = " "
        if pattern:
            extra += f"(pattern: {pattern!r}) "
        if regex_err:
            extra += f"(reason: {regex_err}) "
        super().__init__(message + extra)
        self.pattern = pattern
        self.regex_err = regex_err


class SpecialTokenError(RankTokError):
    """Raised when special token handling fails."""

    def __init__(self, message: str, *, found_tokens: set[str] | None = None) -> None:
        """Initialize with optional found_tokens that get appended to the message."""
        if found_tokens:
            message = f"{message} (found: {', '.join(sorted(found_tokens))})"
        super().__init__(message)
        self.found_tokens = found_tokens


class StrategyError(RankTokError):
    """Raised when a special token strategy cannot be created."""

    def __init__(
        self,
        message: str,
        *,
        invalid_name: str | None = None,
        available_strats: list[str] | None = None,
    ) -> None:
        extra = " "
        if invalid_name:
            extra += f"(available: {available_strats}) (got {invalid_name}) "
        super().__init__(message + extra)
        self.invalid_name = invalid_name
        self.available_strats = available_strats
