from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

from .actions import Action, ExchangeAction, KeepAction, RevealAction, SwapDecision
from .match import MatchState, is_complete, step
from .serialize import action_to_dict, card_to_dict
from .types import PLAYERS, Card, CardCatalog, Player, other

Difficulty = Literal["easy", "normal", "hard"]
DecisionType = Literal["keep", "exchange"]

# Fraction of the average booster draw a card must reach to be kept.
_KEEP_BAR: dict[str, float] = {"easy": 0.75, "normal": 1.0, "hard": 1.0}


@dataclass(frozen=True)
class DecisionConfig:
    """Opponent tuning parameters.

    difficulty:
      easy   = keeps mediocre cards
      normal = keeps anything at or above the average draw
      hard   = like normal, but gambles when behind and protects a lead
    style is free text passed through to rationales and the remote agent.
    """

    difficulty: Difficulty = "normal"
    style: str = "balanced"
    confidence_threshold: float = 0.5


@dataclass(frozen=True)
class Decision:
    action_type: DecisionType
    rationale: str
    confidence: float

    def __post_init__(self) -> None:
        if self.action_type not in ("keep", "exchange"):
            raise ValueError(f"Unknown decision type: {self.action_type!r}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("confidence must be within [0, 1]")

    def to_action(self, player: Player) -> SwapDecision:
        if self.action_type == "exchange":
            return ExchangeAction(player=player)
        return KeepAction(player=player)


@dataclass(frozen=True)
class VisibleGameState:
    """What a decision provider gets to see when deciding for ``player``."""

    round: int
    player: Player
    hands: dict[Player, tuple[Card, ...]]
    revealed: dict[Player, tuple[bool, ...]]
    swapped: dict[Player, bool]
    history: tuple[Action, ...]

    def current_card(self) -> Card:
        return self.hands[self.player][self.round - 1]

    def revealed_total(self, player: Player) -> int:
        return sum(
            c.points for c, shown in zip(self.hands[player], self.revealed[player]) if shown
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "round": self.round,
            "player": self.player,
            "hands": {p: [card_to_dict(c) for c in h] for p, h in self.hands.items()},
            "revealed": {p: list(r) for p, r in self.revealed.items()},
            "swapped": dict(self.swapped),
            "history": [action_to_dict(a) for a in self.history],
        }


class DecisionProvider(Protocol):
    def decide(self, state: VisibleGameState, config: DecisionConfig) -> Decision: ...


class AsyncDecisionProvider(Protocol):
    async def decide(self, state: VisibleGameState, config: DecisionConfig) -> Decision: ...


def visible_state(state: MatchState, player: Player) -> VisibleGameState:
    return VisibleGameState(
        round=state.round,
        player=player,
        hands={p: tuple(state.players[p].hand) for p in PLAYERS},
        revealed={p: tuple(state.players[p].revealed) for p in PLAYERS},
        swapped={p: state.players[p].swapped for p in PLAYERS},
        history=tuple(state.action_log),
    )


class BotHeuristic:
    """Local, synchronous keep/exchange heuristic.

    Deterministic for a given visible state, config and catalog.
    """

    def __init__(self, catalog: CardCatalog) -> None:
        self.catalog = catalog

    def best_option(self) -> Card | None:
        pool = self.catalog.booster_pool()
        if not pool:
            return None
        return min(pool, key=lambda c: (-c.points, self.catalog.index_of(c.name)))

    def expected_draw(self) -> float:
        pool = self.catalog.booster_pool()
        if not pool:
            return 0.0
        return sum(c.points for c in pool) / len(pool)

    def _keep_bar(self, state: VisibleGameState, config: DecisionConfig) -> float:
        expected = self.expected_draw()
        bar = expected * _KEEP_BAR.get(config.difficulty, 1.0)
        if config.difficulty == "hard":
            lead = state.revealed_total(state.player) - state.revealed_total(other(state.player))
            if lead < 0:
                bar = expected * 1.15
            elif lead > expected:
                bar = expected * 0.85
        return bar

    def decide(self, state: VisibleGameState, config: DecisionConfig) -> Decision:
        current = state.current_card()
        best = self.best_option()
        if best is None or state.swapped[state.player]:
            return Decision(
                action_type="keep",
                rationale=f"Keeping {current.label}: there is nothing to swap for in this {config.style} game.",
                confidence=1.0,
            )

        expected = self.expected_draw()
        bar = self._keep_bar(state, config)
        margin = abs(current.points - bar) / max(best.points, 1)
        confidence = round(min(1.0, 0.5 + margin / 2), 3)

        if current.points < bar:
            return Decision(
                action_type="exchange",
                rationale=(
                    f"Swapping {current.label} ({current.points} pts): a fresh draw averages "
                    f"{expected:.0f} and could land {best.label} ({best.points} pts). "
                    f"That suits a {config.style} strategy."
                ),
                confidence=confidence,
            )
        return Decision(
            action_type="keep",
            rationale=(
                f"Keeping {current.label} ({current.points} pts): it holds up against the "
                f"{expected:.0f}-point average draw in this {config.style} strategy."
            ),
            confidence=confidence,
        )


def take_half_round(
    state: MatchState,
    player: Player,
    provider: DecisionProvider,
    config: DecisionConfig | None = None,
) -> Decision | None:
    """Play ``player``'s half-round with a synchronous provider.

    Reveals the current card and, when a swap decision is owed, asks the
    provider and applies its answer. Returns the decision, or None when no
    decision was needed.
    """
    config = config or DecisionConfig()
    if is_complete(state) or state.current_player != player:
        return None
    res = step(state, RevealAction(player=player))
    if not res.ok or state.awaiting_decision != player:
        return None
    decision = provider.decide(visible_state(state, player), config)
    res = step(state, decision.to_action(player))
    if not res.ok:
        # A second swap is never legal; fall back to keeping the card.
        step(state, KeepAction(player=player))
    return decision
