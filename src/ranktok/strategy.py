"""Special token handling for the full encode path."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Final, Literal, overload, override

from .errors import SpecialTokenError, StrategyError
from .types import Rank

log = logging.getLogger(__name__)


def _present(text: str, special_toks: Mapping[str, Rank]) -> set[str]:
    """Return the special token strings that occur in ``text``."""
    return {seq for seq in special_toks if seq in text}


class SpecialTokenStrategy(ABC):
    """Decide which special tokens are kept atomic when encoding ``text``."""

    @abstractmethod
    def select(self, text: str, special_toks: Mapping[str, Rank]) -> dict[str, Rank]:
        """Return the special tokens to substitute by their reserved ids."""


class AllowAllStrategy(SpecialTokenStrategy):
    """Every registered special token is substituted."""

    @override
    def select(self, text: str, special_toks: Mapping[str, Rank]) -> dict[str, Rank]:
        if not special_toks:
            log.warning("no special tokens registered")
        return dict(special_toks)


class AllowNoneStrategy(SpecialTokenStrategy):
    """Special token strings are encoded as ordinary text."""

    @override
    def select(self, text: str, special_toks: Mapping[str, Rank]) -> dict[str, Rank]:
        found = _present(text, special_toks)
        if found:
            log.warning(f"encoding special tokens as text: {sorted(found)}")
        return {}


class AllowNoneRaiseStrategy(SpecialTokenStrategy):
    """Text containing any special token string is rejected."""

    @override
    def select(self, text: str, special_toks: Mapping[str, Rank]) -> dict[str, Rank]:
        found = _present(text, special_toks)
        if found:
            raise SpecialTokenError(
                "special tokens found in text but not allowed", found_tokens=found
            )
        return {}


class AllowCustomStrategy(SpecialTokenStrategy):
    """
    Only the named special tokens are substituted.

    Other special token strings in the text are encoded as ordinary text.
    """

    def __init__(self, allowed_subset: set[str]) -> None:
        super().__init__()
        self.allowed_subset = frozenset(allowed_subset)

    @override
    def select(self, text: str, special_toks: Mapping[str, Rank]) -> dict[str, Rank]:
        unknown = self.allowed_subset - special_toks.keys()
        if unknown:
            raise SpecialTokenError(
                "allowed special tokens are not in the vocabulary", found_tokens=set(unknown)
            )
        return {seq: special_toks[seq] for seq in self.allowed_subset}


StrategyName = Literal["all", "none", "none-raise", "custom"]

_SPECIAL_TOKEN_STRATEGIES: Final[dict[str, type[SpecialTokenStrategy]]] = {
    "all": AllowAllStrategy,
    "none": AllowNoneStrategy,
    "none-raise": AllowNoneRaiseStrategy,
    "custom": AllowCustomStrategy,
}


def list_strategies() -> list[str]:
    """Return available special token strategy names."""
    return list(_SPECIAL_TOKEN_STRATEGIES.keys())


@overload
def get_strategy(
    name: Literal["all", "none", "none-raise"],
) -> SpecialTokenStrategy: ...


@overload
def get_strategy(
    name: Literal["custom"], allowed_subset: set[str]
) -> AllowCustomStrategy: ...


def get_strategy(
    name: StrategyName = "none-raise", allowed_subset: set[str] | None = None
) -> SpecialTokenStrategy:
    """
    Create a special token strategy by name.

    :param name: "all" substitutes every special token, "none" encodes them as
                 text, "none-raise" rejects text containing them, "custom"
                 substitutes only ``allowed_subset``.
    :param allowed_subset: Required when name="custom".
    :raises StrategyError: If name is unknown or allowed_subset is missing for custom.

    .. code-block:: python

        strategy = get_strategy("all")
        strategy = get_strategy("custom", allowed_subset={"<|endoftext|>"})
    """
    if name not in _SPECIAL_TOKEN_STRATEGIES:
        raise StrategyError(
            "unknown strategy name",
            invalid_name=name,
            available_strats=list_strategies(),
        )

    if name == "custom":
        if allowed_subset is None:
            raise StrategyError("allowed_subset is required for custom strategy")
        return AllowCustomStrategy(allowed_subset)

    return _SPECIAL_TOKEN_STRATEGIES[name]()


__all__ = [
    "StrategyName",
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "list_strategies",
    "get_strategy",
]
