from __future__ import annotations

from dataclasses import dataclass

from .types import Player


@dataclass(frozen=True)
class RevealAction:
    player: Player


@dataclass(frozen=True)
class KeepAction:
    player: Player


@dataclass(frozen=True)
class ExchangeAction:
    player: Player


Action = RevealAction | KeepAction | ExchangeAction
SwapDecision = KeepAction | ExchangeAction
