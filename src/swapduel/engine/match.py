from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Iterable, Literal, Sequence

from .actions import Action, ExchangeAction, KeepAction, RevealAction
from .errors import (
    AlreadyRevealedError,
    AlreadySwappedError,
    IllegalActionError,
    MatchAlreadyCompleteError,
    MatchRuleError,
    OutOfTurnError,
)
from .types import PLAYERS, Card, CardCatalog, Outcome, Player, other

Event = dict[str, object]
Half = Literal["first", "second"]
Phase = Literal["round_in_progress", "awaiting_decision", "decision_pending", "match_complete"]


@dataclass(frozen=True)
class MatchConfig:
    hand_size: int = 3
    rounds: int = 3
    # Offer the swap again in later rounds after a "keep". Off by default:
    # the offer is made once, at the player's first reveal.
    reoffer_swap_after_keep: bool = False


@dataclass(frozen=True)
class SwapRecord:
    round: int
    old: Card
    new: Card


@dataclass
class PlayerState:
    hand: list[Card]
    revealed: list[bool]
    swapped: bool = False
    swap_offered: bool = False
    swaps: list[SwapRecord] = field(default_factory=list)


@dataclass
class StepResult:
    ok: bool
    events: list[Event]
    error: MatchRuleError | None = None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


@dataclass
class MatchState:
    catalog: CardCatalog
    config: MatchConfig
    seed: int
    rng: random.Random
    players: dict[Player, PlayerState]
    starting_player: Player
    current_player: Player
    round: int = 1
    half: Half = "first"
    outcome: Outcome = "in_progress"
    awaiting_decision: Player | None = None
    decision_in_flight: Player | None = None
    loot_claimed: Card | None = None
    action_log: list[Action] = field(default_factory=list)
    event_log: list[Event] = field(default_factory=list)

    @property
    def round_index(self) -> int:
        return self.round - 1


def score_hand(hand: Iterable[Card]) -> int:
    return sum(c.points for c in hand)


def outcome_for(total_a: int, total_b: int) -> Outcome:
    if total_a > total_b:
        return "a_wins"
    if total_b > total_a:
        return "b_wins"
    return "draw"


def _reject(error: MatchRuleError) -> StepResult:
    return StepResult(ok=False, events=[], error=error)


def _emit(state: MatchState, event: Event) -> None:
    state.event_log.append(event)


def _swap_owed(state: MatchState, player: Player) -> bool:
    ps = state.players[player]
    if ps.swapped:
        return False
    return not ps.swap_offered or state.config.reoffer_swap_after_keep


def _resolve(state: MatchState) -> None:
    totals = {p: score_hand(state.players[p].hand) for p in PLAYERS}
    state.outcome = outcome_for(totals["A"], totals["B"])
    _emit(
        state,
        {
            "type": "MATCH_COMPLETED",
            "outcome": state.outcome,
            "total_a": totals["A"],
            "total_b": totals["B"],
        },
    )


def _end_half_round(state: MatchState) -> None:
    state.awaiting_decision = None
    state.decision_in_flight = None
    if state.half == "first":
        state.half = "second"
        state.current_player = other(state.current_player)
        _emit(state, {"type": "TURN_PASSED", "round": state.round, "player": state.current_player})
        return

    _emit(state, {"type": "ROUND_COMPLETED", "round": state.round})
    if state.round < state.config.rounds:
        state.round += 1
        state.half = "first"
        # The starting player leads every round.
        state.current_player = state.starting_player
        _emit(state, {"type": "ROUND_STARTED", "round": state.round, "player": state.current_player})
        return

    state.round = state.config.rounds + 1
    _resolve(state)


def _reveal(state: MatchState, action: RevealAction) -> StepResult:
    ps = state.players[action.player]
    idx = state.round_index
    if ps.revealed[idx]:
        return _reject(AlreadyRevealedError(f"Card {idx + 1} is already revealed."))

    state.action_log.append(action)
    ps.revealed[idx] = True
    card = ps.hand[idx]
    _emit(
        state,
        {"type": "CARD_REVEALED", "player": action.player, "round": state.round, "card": card.name},
    )
    if _swap_owed(state, action.player):
        ps.swap_offered = True
        state.awaiting_decision = action.player
        _emit(state, {"type": "SWAP_OFFERED", "player": action.player, "round": state.round})
    else:
        _end_half_round(state)
    return StepResult(ok=True, events=[])


def _keep(state: MatchState, action: KeepAction) -> StepResult:
    if state.awaiting_decision != action.player:
        return _reject(IllegalActionError("No swap decision is owed right now."))

    state.action_log.append(action)
    _emit(state, {"type": "CARD_KEPT", "player": action.player, "round": state.round})
    _end_half_round(state)
    return StepResult(ok=True, events=[])


def _exchange(state: MatchState, action: ExchangeAction) -> StepResult:
    ps = state.players[action.player]
    if ps.swapped:
        return _reject(AlreadySwappedError("The swap for this match has already been used."))
    if state.awaiting_decision != action.player:
        return _reject(IllegalActionError("No swap decision is owed right now."))
    pool = state.catalog.booster_pool()
    if not pool:
        return _reject(IllegalActionError("The booster pool is empty."))

    state.action_log.append(action)
    idx = state.round_index
    old = ps.hand[idx]
    new = state.rng.choice(list(pool))
    ps.hand[idx] = new
    ps.swapped = True
    ps.swaps.append(SwapRecord(round=state.round, old=old, new=new))
    _emit(
        state,
        {
            "type": "CARD_EXCHANGED",
            "player": action.player,
            "round": state.round,
            "old": old.name,
            "new": new.name,
        },
    )
    _end_half_round(state)
    return StepResult(ok=True, events=[])


def step(state: MatchState, action: Action) -> StepResult:
    """Apply a single action to the match state.

    Validation happens before any mutation, so a rejected action leaves the
    state (logs included) exactly as it was. The result is deterministic for
    a given (seed, hands, starting player, action sequence).
    """
    if state.outcome != "in_progress":
        return _reject(MatchAlreadyCompleteError("Match already complete."))
    if action.player != state.current_player:
        return _reject(OutOfTurnError(f"It is {state.current_player}'s turn, not {action.player}'s."))

    mark = len(state.event_log)
    if isinstance(action, RevealAction):
        result = _reveal(state, action)
    elif isinstance(action, KeepAction):
        result = _keep(state, action)
    elif isinstance(action, ExchangeAction):
        result = _exchange(state, action)
    else:
        return _reject(IllegalActionError("Unknown action."))
    if result.ok:
        result.events = state.event_log[mark:]
    return result


def begin_decision(state: MatchState, player: Player) -> StepResult:
    """Mark that a provider is working on ``player``'s swap decision."""
    if state.outcome != "in_progress":
        return _reject(MatchAlreadyCompleteError("Match already complete."))
    if state.awaiting_decision != player:
        return _reject(IllegalActionError("No swap decision is owed right now."))
    state.decision_in_flight = player
    event: Event = {"type": "DECISION_PENDING", "player": player, "round": state.round}
    _emit(state, event)
    return StepResult(ok=True, events=[event])


def cancel_decision(state: MatchState, player: Player) -> None:
    if state.decision_in_flight == player:
        state.decision_in_flight = None
        _emit(state, {"type": "DECISION_CANCELLED", "player": player, "round": state.round})


def phase(state: MatchState) -> Phase:
    if state.outcome != "in_progress":
        return "match_complete"
    if state.decision_in_flight is not None:
        return "decision_pending"
    if state.awaiting_decision is not None:
        return "awaiting_decision"
    return "round_in_progress"


def is_complete(state: MatchState) -> bool:
    return state.outcome != "in_progress"


def legal_actions(state: MatchState) -> list[Action]:
    if is_complete(state):
        return []
    p = state.current_player
    if state.awaiting_decision == p:
        actions: list[Action] = [KeepAction(player=p)]
        if not state.players[p].swapped:
            actions.append(ExchangeAction(player=p))
        return actions
    return [RevealAction(player=p)]


def final_totals(state: MatchState) -> dict[Player, int] | None:
    """Summed points per player; only available once the match is over."""
    if not is_complete(state):
        return None
    return {p: score_hand(state.players[p].hand) for p in PLAYERS}


def winner(state: MatchState) -> Player | None:
    if state.outcome == "a_wins":
        return "A"
    if state.outcome == "b_wins":
        return "B"
    return None


def loot_options(state: MatchState) -> list[Card]:
    """Cards the winner may pick from: the loser's final hand."""
    w = winner(state)
    if w is None:
        return []
    return list(state.players[other(w)].hand)


def claim_loot(state: MatchState, player: Player, index: int) -> StepResult:
    if not is_complete(state):
        return _reject(IllegalActionError("Match still in progress."))
    w = winner(state)
    if w is None:
        return _reject(IllegalActionError("A drawn match has no loot."))
    if player != w:
        return _reject(IllegalActionError("Only the winner may claim loot."))
    if state.loot_claimed is not None:
        return _reject(IllegalActionError("Loot already claimed."))
    options = loot_options(state)
    if index < 0 or index >= len(options):
        return _reject(IllegalActionError("Invalid loot index."))

    card = options[index]
    state.loot_claimed = card
    event: Event = {"type": "LOOT_CLAIMED", "player": player, "card": card.name}
    _emit(state, event)
    return StepResult(ok=True, events=[event])


def _check_hand(catalog: CardCatalog, hand: Sequence[Card], size: int, who: str) -> list[Card]:
    if len(hand) != size:
        raise ValueError(f"Hand {who} must be exactly {size} cards.")
    for c in hand:
        if c.name == catalog.card_back.name:
            raise ValueError(f"Hand {who} contains the card back.")
    return list(hand)


def new_match(
    catalog: CardCatalog,
    hand_a: Sequence[Card],
    hand_b: Sequence[Card],
    seed: int,
    starting_player: Player | None = None,
    config: MatchConfig | None = None,
) -> MatchState:
    cfg = config or MatchConfig()
    if cfg.hand_size != cfg.rounds:
        raise ValueError("One card is revealed per round: hand_size must equal rounds.")
    a = _check_hand(catalog, hand_a, cfg.hand_size, "A")
    b = _check_hand(catalog, hand_b, cfg.hand_size, "B")

    rng = random.Random(seed)
    if starting_player is None:
        starting_player = rng.choice(PLAYERS)
    elif starting_player not in PLAYERS:
        raise ValueError(f"Unknown player: {starting_player!r}")

    players: dict[Player, PlayerState] = {
        "A": PlayerState(hand=a, revealed=[False] * cfg.hand_size),
        "B": PlayerState(hand=b, revealed=[False] * cfg.hand_size),
    }
    state = MatchState(
        catalog=catalog,
        config=cfg,
        seed=seed,
        rng=rng,
        players=players,
        starting_player=starting_player,
        current_player=starting_player,
    )
    _emit(state, {"type": "MATCH_STARTED", "starting_player": starting_player})
    _emit(state, {"type": "ROUND_STARTED", "round": 1, "player": starting_player})
    return state


def replay(
    catalog: CardCatalog,
    hand_a: Sequence[Card],
    hand_b: Sequence[Card],
    seed: int,
    actions: Iterable[Action],
    starting_player: Player | None = None,
    config: MatchConfig | None = None,
) -> MatchState:
    state = new_match(
        catalog=catalog,
        hand_a=hand_a,
        hand_b=hand_b,
        seed=seed,
        starting_player=starting_player,
        config=config,
    )
    for a in actions:
        step(state, a)
        if is_complete(state):
            break
    return state
