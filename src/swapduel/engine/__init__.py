"""Deterministic, headless round resolution engine for swapduel.

IMPORTANT: This package must never do network or file I/O.
"""

from .actions import ExchangeAction, KeepAction, RevealAction
from .errors import (
    AlreadyRevealedError,
    AlreadySwappedError,
    DecisionProviderError,
    DecisionProviderTimeout,
    IllegalActionError,
    MatchAlreadyCompleteError,
    MatchRuleError,
    OutOfTurnError,
)
from .match import MatchConfig, MatchState, StepResult, new_match, step
from .types import Card, CardCatalog, Player, Rarity

__all__ = [
    "AlreadyRevealedError",
    "AlreadySwappedError",
    "Card",
    "CardCatalog",
    "DecisionProviderError",
    "DecisionProviderTimeout",
    "ExchangeAction",
    "IllegalActionError",
    "KeepAction",
    "MatchAlreadyCompleteError",
    "MatchConfig",
    "MatchRuleError",
    "MatchState",
    "OutOfTurnError",
    "Player",
    "Rarity",
    "RevealAction",
    "StepResult",
    "new_match",
    "step",
]
