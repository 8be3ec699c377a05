"""Named vocabularies and model name resolution."""

import logging
import threading
from collections.abc import Callable
from typing import Final

from .encoding import Encoding
from .errors import VocabularyError
from .load import load_legacy_ranks, load_native_ranks
from .pattern import TokenPattern
from .types import Rank
from .vocabulary import VocabularyDescriptor

log = logging.getLogger(__name__)

ENDOFTEXT: Final[str] = "<|endoftext|>"
FIM_PREFIX: Final[str] = "<|fim_prefix|>"
FIM_MIDDLE: Final[str] = "<|fim_middle|>"
FIM_SUFFIX: Final[str] = "<|fim_suffix|>"
ENDOFPROMPT: Final[str] = "<|endofprompt|>"

_BLOB_URL: Final[str] = "https://openaipublic.blob.core.windows.net"

type VocabularyConstructor = Callable[[], VocabularyDescriptor]


# Built-in vocabularies
# ===================================================================================


def _gpt2() -> VocabularyDescriptor:
    ranks = load_legacy_ranks(
        f"{_BLOB_URL}/gpt-2/encodings/main/vocab.bpe",
        f"{_BLOB_URL}/gpt-2/encodings/main/encoder.json",
        vocab_bpe_hash="1ce1664773c50f3e0cc8842619a93edc4624525b7b371ad3e1e6be2cf1a4f4c3",
        encoder_json_hash="196139668be63f3b5d6574427317ae82f612a97c5d1cdaf36ed2256dbf636783",
    )
    return VocabularyDescriptor(
        name="gpt2",
        pattern=TokenPattern.R50K.value,
        ranks=ranks,
        special_tokens={ENDOFTEXT: 50256},
        explicit_n_vocab=50257,
    )


def _r50k_base() -> VocabularyDescriptor:
    ranks = load_native_ranks(
        f"{_BLOB_URL}/encodings/r50k_base.tiktoken",
        expected_hash="306cd27f03c1a714eca7108e03d66b7dc042abe8c258b44c199a7ed9838dd930",
    )
    return VocabularyDescriptor(
        name="r50k_base",
        pattern=TokenPattern.R50K.value,
        ranks=ranks,
        special_tokens={ENDOFTEXT: 50256},
        explicit_n_vocab=50257,
    )


def _p50k_ranks() -> dict[bytes, Rank]:
    return load_native_ranks(
        f"{_BLOB_URL}/encodings/p50k_base.tiktoken",
        expected_hash="94b5ca7dff4d00767bc256fdd1b27e5b17361d7b8a5f968547f9f23eb70d2069",
    )


def _p50k_base() -> VocabularyDescriptor:
    return VocabularyDescriptor(
        name="p50k_base",
        pattern=TokenPattern.R50K.value,
        ranks=_p50k_ranks(),
        special_tokens={ENDOFTEXT: 50256},
        explicit_n_vocab=50281,
    )


def _p50k_edit() -> VocabularyDescriptor:
    return VocabularyDescriptor(
        name="p50k_edit",
        pattern=TokenPattern.R50K.value,
        ranks=_p50k_ranks(),
        special_tokens={
            ENDOFTEXT: 50256,
            FIM_PREFIX: 50281,
            FIM_MIDDLE: 50282,
            FIM_SUFFIX: 50283,
        },
    )


def _cl100k_base() -> VocabularyDescriptor:
    ranks = load_native_ranks(
        f"{_BLOB_URL}/encodings/cl100k_base.tiktoken",
        expected_hash="223921b76ee99bde995b7ff738513eef100fb51d18c93597a113bcffe865b2a7",
    )
    return VocabularyDescriptor(
        name="cl100k_base",
        pattern=TokenPattern.CL100K.value,
        ranks=ranks,
        special_tokens={
            ENDOFTEXT: 100257,
            FIM_PREFIX: 100258,
            FIM_MIDDLE: 100259,
            FIM_SUFFIX: 100260,
            ENDOFPROMPT: 100276,
        },
    )


def _o200k_base() -> VocabularyDescriptor:
    ranks = load_native_ranks(
        f"{_BLOB_URL}/encodings/o200k_base.tiktoken",
        expected_hash="446a9538cb6c348e3516120d7c08b09f57c36495e2acfffe59a5bf8b0cfb1a2d",
    )
    return VocabularyDescriptor(
        name="o200k_base",
        pattern=TokenPattern.O200K.value,
        ranks=ranks,
        special_tokens={ENDOFTEXT: 199999, ENDOFPROMPT: 200018},
    )


_ENCODING_CONSTRUCTORS: dict[str, VocabularyConstructor] = {
    "gpt2": _gpt2,
    "r50k_base": _r50k_base,
    "p50k_base": _p50k_base,
    "p50k_edit": _p50k_edit,
    "cl100k_base": _cl100k_base,
    "o200k_base": _o200k_base,
}

# model name -> encoding name
_MODEL_TO_ENCODING: dict[str, str] = {
    # chat
    "gpt-4o": "o200k_base",
    "gpt-4": "cl100k_base",
    "gpt-3.5-turbo": "cl100k_base",
    "gpt-3.5": "cl100k_base",
    "gpt-35-turbo": "cl100k_base",
    # base
    "davinci-002": "cl100k_base",
    "babbage-002": "cl100k_base",
    # embeddings
    "text-embedding-ada-002": "cl100k_base",
    "text-embedding-3-small": "cl100k_base",
    "text-embedding-3-large": "cl100k_base",
    # completions
    "text-davinci-003": "p50k_base",
    "text-davinci-002": "p50k_base",
    "text-davinci-001": "r50k_base",
    "text-curie-001": "r50k_base",
    "text-babbage-001": "r50k_base",
    "text-ada-001": "r50k_base",
    "davinci": "r50k_base",
    "curie": "r50k_base",
    "babbage": "r50k_base",
    "ada": "r50k_base",
    # code
    "code-davinci-002": "p50k_base",
    "code-davinci-001": "p50k_base",
    "code-cushman-002": "p50k_base",
    "code-cushman-001": "p50k_base",
    "davinci-codex": "p50k_base",
    "cushman-codex": "p50k_base",
    # edit
    "text-davinci-edit-001": "p50k_edit",
    "code-davinci-edit-001": "p50k_edit",
    # open source
    "gpt2": "gpt2",
    "gpt-2": "gpt2",
}

# dated and fine-tuned variants, e.g. "gpt-4-0613" or "gpt-3.5-turbo-16k"
_MODEL_PREFIX_TO_ENCODING: dict[str, str] = {
    "o1-": "o200k_base",
    "chatgpt-4o-": "o200k_base",
    "gpt-4o-": "o200k_base",
    "gpt-4-": "cl100k_base",
    "gpt-3.5-turbo-": "cl100k_base",
    "gpt-35-turbo-": "cl100k_base",
    "text-embedding-ada-002-": "cl100k_base",
    "ft:gpt-4": "cl100k_base",
    "ft:gpt-3.5-turbo": "cl100k_base",
    "ft:davinci-002": "cl100k_base",
    "ft:babbage-002": "cl100k_base",
}

_encodings: dict[str, Encoding] = {}
_lock = threading.RLock()


# Registry
# ===================================================================================


def list_encodings() -> list[str]:
    """Return names of all registered vocabularies."""
    return list(_ENCODING_CONSTRUCTORS.keys())


def register_encoding(
    name: str, constructor: VocabularyConstructor, *, replace: bool = False
) -> None:
    """
    Register a vocabulary constructor under ``name``.

    The constructor runs once, on the first :func:`get_encoding` call.

    :param name: Encoding name.
    :param constructor: Zero-argument callable returning the descriptor.
    :param replace: Allow overriding an existing registration.
    :raises VocabularyError: If ``name`` is taken and ``replace`` is false.
    """
    with _lock:
        if name in _ENCODING_CONSTRUCTORS and not replace:
            raise VocabularyError("encoding already registered", name=name)
        _ENCODING_CONSTRUCTORS[name] = constructor
        # drop an encoding built by a previous constructor
        _encodings.pop(name, None)


def register_model(model: str, encoding_name: str) -> None:
    """Map a model name to a registered encoding."""
    if encoding_name not in _ENCODING_CONSTRUCTORS:
        raise VocabularyError("unknown encoding name", name=encoding_name)
    _MODEL_TO_ENCODING[model] = encoding_name


def get_encoding(name: str) -> Encoding:
    """
    Return the shared encoding for a vocabulary name.

    The vocabulary is loaded on first use (which may download its rank file)
    and reused for the lifetime of the process.

    :raises VocabularyError: If ``name`` is not registered.
    :raises RankFileError: If the rank file cannot be loaded.
    """
    enc = _encodings.get(name)
    if enc is not None:
        return enc

    with _lock:
        # another thread may have finished loading while we waited
        if name in _encodings:
            return _encodings[name]

        constructor = _ENCODING_CONSTRUCTORS.get(name)
        if constructor is None:
            raise VocabularyError(
                f"unknown encoding name, available: {', '.join(list_encodings())}",
                name=name,
            )

        log.info(f"constructing encoding {name}")
        enc = Encoding(constructor())
        _encodings[name] = enc
        return enc


def encoding_name_for_model(model: str) -> str:
    """
    Resolve a model name to its encoding name.

    Exact names are tried first, then known prefixes (longest first).

    :raises VocabularyError: If the model is unknown.
    """
    if model in _MODEL_TO_ENCODING:
        return _MODEL_TO_ENCODING[model]

    for prefix in sorted(_MODEL_PREFIX_TO_ENCODING, key=len, reverse=True):
        if model.startswith(prefix):
            return _MODEL_PREFIX_TO_ENCODING[prefix]

    raise VocabularyError(
        "could not map model to an encoding, use get_encoding() with an explicit name",
        name=model,
    )


def encoding_for_model(model: str) -> Encoding:
    """Return the shared encoding used by ``model``."""
    return get_encoding(encoding_name_for_model(model))


# Model-level shortcuts
# ===================================================================================


def encode(model: str, text: str) -> list[Rank]:
    """Encode ``text`` for ``model`` without special token handling."""
    return encoding_for_model(model).encode_ordinary(text)


def decode(model: str, tokens: list[Rank]) -> str:
    """Decode ``tokens`` produced for ``model``."""
    return encoding_for_model(model).decode(tokens)


def count_tokens(model: str, text: str) -> int:
    """Number of tokens ``text`` takes for ``model``."""
    return encoding_for_model(model).count_tokens(text)


__all__ = [
    "ENDOFTEXT",
    "FIM_PREFIX",
    "FIM_MIDDLE",
    "FIM_SUFFIX",
    "ENDOFPROMPT",
    "list_encodings",
    "register_encoding",
    "register_model",
    "get_encoding",
    "encoding_name_for_model",
    "encoding_for_model",
    "encode",
    "decode",
    "count_tokens",
]
