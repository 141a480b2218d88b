from __future__ import annotations

from collections.abc import Mapping

from .actions import Action, ExchangeAction, KeepAction, RevealAction
from .match import MatchState, PlayerState, final_totals, phase
from .types import Card, Player, other


def card_to_dict(c: Card) -> dict[str, object]:
    return {
        "name": c.name,
        "label": c.label,
        "artwork_ref": c.artwork_ref,
        "points": c.points,
        "rarity": c.rarity,
        "booster_eligible": c.booster_eligible,
    }


def action_to_dict(a: Action) -> dict[str, object]:
    if isinstance(a, RevealAction):
        return {"type": "reveal", "player": a.player}
    if isinstance(a, KeepAction):
        return {"type": "keep", "player": a.player}
    if isinstance(a, ExchangeAction):
        return {"type": "exchange", "player": a.player}
    # should be unreachable
    return {"type": "unknown"}


def action_from_dict(d: Mapping[str, object]) -> Action:
    player = d.get("player")
    if player not in ("A", "B"):
        raise ValueError(f"Invalid player in action: {player!r}")
    t = d.get("type")
    if t == "reveal":
        return RevealAction(player=player)  # type: ignore[arg-type]
    if t == "keep":
        return KeepAction(player=player)  # type: ignore[arg-type]
    if t == "exchange":
        return ExchangeAction(player=player)  # type: ignore[arg-type]
    raise ValueError(f"Unknown action type: {t!r}")


def _player_to_dict(p: PlayerState) -> dict[str, object]:
    return {
        "hand": [card_to_dict(c) for c in p.hand],
        "revealed": list(p.revealed),
        "swapped": p.swapped,
        "swap_offered": p.swap_offered,
        "swaps": [{"round": s.round, "old": s.old.name, "new": s.new.name} for s in p.swaps],
    }


def snapshot(state: MatchState) -> dict[str, object]:
    """Return a JSON-serializable canonical snapshot of the current match state."""
    return {
        "seed": state.seed,
        "round": state.round,
        "half": state.half,
        "phase": phase(state),
        "starting_player": state.starting_player,
        "current_player": state.current_player,
        "awaiting_decision": state.awaiting_decision,
        "decision_in_flight": state.decision_in_flight,
        "outcome": state.outcome,
        "totals": final_totals(state),
        "players": {k: _player_to_dict(p) for k, p in state.players.items()},
        "action_log": [action_to_dict(a) for a in state.action_log],
        "loot_claimed": state.loot_claimed.name if state.loot_claimed else None,
    }


def public_snapshot(state: MatchState, viewer: Player) -> dict[str, object]:
    """Snapshot for one player's screen.

    The opponent's unrevealed cards are shown as the card back until the match
    is over. The seed is left out: it predicts every later draw.
    """
    snap = snapshot(state)
    del snap["seed"]
    if state.outcome != "in_progress":
        return snap
    back = card_to_dict(state.catalog.card_back)
    opp = other(viewer)
    players = dict(snap["players"])  # type: ignore[arg-type]
    opp_state = dict(players[opp])
    ps = state.players[opp]
    opp_state["hand"] = [
        card_to_dict(c) if ps.revealed[i] else dict(back) for i, c in enumerate(ps.hand)
    ]
    players[opp] = opp_state
    snap["players"] = players
    return snap
