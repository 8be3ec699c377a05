"""
Loaders that turn vocabulary files into rank tables.

Two on-disk formats are supported:

- native rank files: one ``<base64 bytes> <rank>`` record per line.
- legacy data-gym files (``vocab.bpe``, optionally checked against
  ``encoder.json``): merge pairs in priority order, written with the
  byte-to-unicode remapping of the original GPT-2 release.
"""

import base64
import hashlib
import json
import logging
from pathlib import Path
from typing import Final

import requests

from ._config import _fetch_timeout
from ._decorators import measure_time
from .errors import RankFileError, VocabularyError
from .types import Rank, RankTable

log = logging.getLogger(__name__)

# byte value -> code point used for it in legacy vocabulary files
_BYTE_TO_CODEPOINT: Final[tuple[int, ...]] = (
    256, 257, 258, 259, 260, 261, 262, 263, 264, 265, 266, 267, 268, 269, 270, 271,
    272, 273, 274, 275, 276, 277, 278, 279, 280, 281, 282, 283, 284, 285, 286, 287,
    288, 33, 34, 35, 36, 37, 38, 39, 40, 41, 42, 43, 44, 45, 46, 47,
    48, 49, 50, 51, 52, 53, 54, 55, 56, 57, 58, 59, 60, 61, 62, 63,
    64, 65, 66, 67, 68, 69, 70, 71, 72, 73, 74, 75, 76, 77, 78, 79,
    80, 81, 82, 83, 84, 85, 86, 87, 88, 89, 90, 91, 92, 93, 94, 95,
    96, 97, 98, 99, 100, 101, 102, 103, 104, 105, 106, 107, 108, 109, 110, 111,
    112, 113, 114, 115, 116, 117, 118, 119, 120, 121, 122, 123, 124, 125, 126, 289,
    290, 291, 292, 293, 294, 295, 296, 297, 298, 299, 300, 301, 302, 303, 304, 305,
    306, 307, 308, 309, 310, 311, 312, 313, 314, 315, 316, 317, 318, 319, 320, 321,
    322, 161, 162, 163, 164, 165, 166, 167, 168, 169, 170, 171, 172, 323, 174, 175,
    176, 177, 178, 179, 180, 181, 182, 183, 184, 185, 186, 187, 188, 189, 190, 191,
    192, 193, 194, 195, 196, 197, 198, 199, 200, 201, 202, 203, 204, 205, 206, 207,
    208, 209, 210, 211, 212, 213, 214, 215, 216, 217, 218, 219, 220, 221, 222, 223,
    224, 225, 226, 227, 228, 229, 230, 231, 232, 233, 234, 235, 236, 237, 238, 239,
    240, 241, 242, 243, 244, 245, 246, 247, 248, 249, 250, 251, 252, 253, 254, 255,
)

_LEGACY_CHAR_TO_BYTE: Final[dict[str, int]] = {
    chr(cp): b for b, cp in enumerate(_BYTE_TO_CODEPOINT)
}

# single bytes are ranked 0..255 in code point order: printable bytes keep
# their own code point, the rest were shifted above 255
_LEGACY_BYTE_ORDER: Final[tuple[int, ...]] = tuple(
    sorted(range(256), key=lambda b: _BYTE_TO_CODEPOINT[b])
)

# entries of encoder.json that are not mergeable tokens
_LEGACY_RESERVED: Final[frozenset[str]] = frozenset({"<|endoftext|>", "<|startoftext|>"})


def read_source(source: str | Path, expected_hash: str | None = None) -> bytes:
    """
    Read a vocabulary source from a local path or an http(s) URL.

    :param source: File path or URL.
    :param expected_hash: Optional sha256 hex digest the contents must match.
    :return: Raw file contents.
    :raises RankFileError: If the source cannot be read or the hash does not match.
    """
    src = str(source)
    if src.startswith(("http://", "https://")):
        log.info(f"fetching rank file from {src}")
        try:
            resp = requests.get(src, timeout=_fetch_timeout())
            resp.raise_for_status()
        except requests.RequestException as e:
            raise RankFileError("failed to fetch rank file", source=src) from e
        contents = resp.content
    else:
        path = Path(source)
        if not path.exists():
            raise RankFileError("rank file does not exist", source=src)
        try:
            contents = path.read_bytes()
        except OSError as e:
            raise RankFileError("failed to read rank file", source=src) from e

    if expected_hash is not None:
        actual = hashlib.sha256(contents).hexdigest()
        if actual != expected_hash.lower():
            raise RankFileError(
                f"hash mismatch: expected {expected_hash}, got {actual}", source=src
            )

    return contents


def ensure_byte_coverage(ranks: RankTable, name: str | None = None) -> None:
    """
    Verify that every single byte value has a rank.

    :raises VocabularyError: If any of the 256 single-byte sequences is missing.
    """
    missing = [b for b in range(256) if bytes([b]) not in ranks]
    if missing:
        raise VocabularyError(
            "vocabulary must contain every single byte",
            name=name,
            missing_bytes=missing,
        )


def parse_native_ranks(contents: bytes, strict: bool = False) -> dict[bytes, Rank]:
    """
    Parse native rank file contents.

    Malformed records (bad base64, missing or non-integer rank) are skipped
    unless ``strict`` is set.

    :param contents: Raw file contents.
    :param strict: Raise on the first malformed record instead of skipping it.
    :return: Mapping of token bytes to rank.
    :raises RankFileError: In strict mode, for the first malformed record.
    """
    ranks: dict[bytes, Rank] = {}
    skipped = 0

    for line_no, line in enumerate(contents.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            # unpacking fails on a missing rank field as well as on extra fields
            tok, rank = line.split()
            value = int(rank)
            if value < 0:
                raise ValueError(f"negative rank {value}")
            # binascii.Error is a ValueError
            ranks[base64.b64decode(tok, validate=True)] = value
        except ValueError as e:
            if strict:
                raise RankFileError("malformed rank record", line_no=line_no) from e
            log.debug(f"skipping malformed rank record at line {line_no}: {e}")
            skipped += 1

    if skipped:
        log.debug(f"skipped {skipped} malformed rank records")

    return ranks


@measure_time
def load_native_ranks(
    source: str | Path,
    expected_hash: str | None = None,
    strict: bool = False,
) -> dict[bytes, Rank]:
    """
    Load a native rank file from disk or a URL.

    :param source: File path or URL.
    :param expected_hash: Optional sha256 hex digest of the file.
    :param strict: Fail on malformed records instead of skipping them.
    :return: Mapping of token bytes to rank covering all single bytes.
    :raises RankFileError: If the file cannot be read or (strict) parsed.
    :raises VocabularyError: If single bytes are missing from the result.
    """
    contents = read_source(source, expected_hash)
    try:
        ranks = parse_native_ranks(contents, strict=strict)
    except RankFileError as e:
        raise RankFileError(
            "malformed rank record", source=str(source), line_no=e.line_no
        ) from e
    ensure_byte_coverage(ranks, name=str(source))
    log.info(f"loaded {len(ranks)} ranks from {source}")
    return ranks


def _decode_legacy(value: str) -> bytes:
    """Map a remapped legacy token string back to its raw bytes."""
    return bytes(_LEGACY_CHAR_TO_BYTE[c] for c in value)


def parse_legacy_ranks(
    vocab_bpe: bytes, encoder_json: bytes | None = None
) -> dict[bytes, Rank]:
    """
    Build a rank table from legacy ``vocab.bpe`` contents.

    Single bytes take ranks 0..255, then each accepted merge line takes the
    next rank in file order.

    :param vocab_bpe: Contents of the merge file.
    :param encoder_json: Optional contents of the matching ``encoder.json``
                         used to cross-check the derived table.
    :return: Mapping of token bytes to rank.
    :raises RankFileError: If the files are not valid text/json or disagree.
    """
    try:
        text = vocab_bpe.decode("utf-8")
    except UnicodeDecodeError as e:
        raise RankFileError("merge file is not valid utf-8") from e

    ranks: dict[bytes, Rank] = {
        bytes([b]): rank for rank, b in enumerate(_LEGACY_BYTE_ORDER)
    }
    next_rank = len(ranks)

    for line_no, line in enumerate(text.splitlines(), start=1):
        # header line: "#version: 0.2"
        if not line.strip() or line.startswith("#version"):
            continue
        fields = line.split()
        if len(fields) != 2:
            log.debug(f"skipping merge line {line_no}: expected 2 fields")
            continue
        try:
            merged = _decode_legacy(fields[0]) + _decode_legacy(fields[1])
        except KeyError as e:
            log.debug(f"skipping merge line {line_no}: unknown character {e}")
            continue
        ranks[merged] = next_rank
        next_rank += 1

    if encoder_json is not None:
        _check_legacy_encoder(ranks, encoder_json)

    return ranks


def _check_legacy_encoder(ranks: dict[bytes, Rank], encoder_json: bytes) -> None:
    """Verify that ``encoder.json`` agrees with ranks derived from the merges."""
    try:
        encoder: dict[str, int] = json.loads(encoder_json)
    except ValueError as e:
        raise RankFileError("encoder file is not valid json") from e

    try:
        expected = {
            _decode_legacy(tok): rank
            for tok, rank in encoder.items()
            if tok not in _LEGACY_RESERVED
        }
    except KeyError as e:
        raise RankFileError(f"encoder file has unknown character {e}") from e

    if expected != ranks:
        raise RankFileError(
            f"encoder file disagrees with merge file "
            f"({len(expected)} encoder entries, {len(ranks)} derived ranks)"
        )


@measure_time
def load_legacy_ranks(
    vocab_bpe_source: str | Path,
    encoder_json_source: str | Path | None = None,
    *,
    vocab_bpe_hash: str | None = None,
    encoder_json_hash: str | None = None,
) -> dict[bytes, Rank]:
    """
    Load a legacy data-gym vocabulary from disk or URLs.

    :param vocab_bpe_source: Path or URL of ``vocab.bpe``.
    :param encoder_json_source: Optional path or URL of ``encoder.json``.
    :param vocab_bpe_hash: Optional sha256 hex digest of ``vocab.bpe``.
    :param encoder_json_hash: Optional sha256 hex digest of ``encoder.json``.
    :return: Mapping of token bytes to rank covering all single bytes.
    :raises RankFileError: If a file cannot be read, parsed or cross-checked.
    """
    vocab_bpe = read_source(vocab_bpe_source, vocab_bpe_hash)
    encoder_json = None
    if encoder_json_source is not None:
        encoder_json = read_source(encoder_json_source, encoder_json_hash)

    ranks = parse_legacy_ranks(vocab_bpe, encoder_json)
    ensure_byte_coverage(ranks, name=str(vocab_bpe_source))
    log.info(f"loaded {len(ranks)} legacy ranks from {vocab_bpe_source}")
    return ranks


__all__ = [
    "read_source",
    "ensure_byte_coverage",
    "parse_native_ranks",
    "load_native_ranks",
    "parse_legacy_ranks",
    "load_legacy_ranks",
]
