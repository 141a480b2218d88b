from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
from pathlib import Path
from typing import Callable, Sequence

from swapduel.engine.actions import ExchangeAction, KeepAction, RevealAction
from swapduel.engine.ai import AsyncDecisionProvider, BotHeuristic, DecisionConfig
from swapduel.engine.match import (
    MatchState,
    claim_loot,
    final_totals,
    is_complete,
    loot_options,
    new_match,
    step,
    winner,
)
from swapduel.engine.serialize import public_snapshot
from swapduel.engine.types import Player
from swapduel.paths import get_paths
from swapduel.services.content import ContentService, hand_from_assets, random_hand
from swapduel.services.opponents import FallbackDecisionProvider, LocalProvider, OpponentDriver
from swapduel.services.remote_ai import RemoteAIConfig, RemoteAIProvider
from swapduel.services.telemetry import TelemetryService

logger = logging.getLogger(__name__)

HUMAN: Player = "A"
OPPONENT: Player = "B"

InputFn = Callable[[str], str]


def _render(state: MatchState) -> str:
    snap = public_snapshot(state, HUMAN)
    players = snap["players"]
    assert isinstance(players, dict)
    lines = [f"-- Round {min(state.round, state.config.rounds)} --"]
    for who, title in ((OPPONENT, "Opponent"), (HUMAN, "You")):
        cards = []
        for i, c in enumerate(players[who]["hand"]):
            mark = "*" if i == state.round - 1 else " "
            cards.append(f"{mark}{c['label']} ({c['points']})")
        swapped = " (Swapped!)" if state.players[who].swapped else ""
        lines.append(f"{title}{swapped}: " + " | ".join(cards))
    return "\n".join(lines)


def _human_half_round(state: MatchState, ask: InputFn) -> None:
    ask("Press Enter to reveal your card...")
    step(state, RevealAction(player=HUMAN)).raise_for_error()
    card = state.players[HUMAN].hand[state.round - 1]
    print(f"You revealed {card.label} ({card.points} pts).")
    if state.awaiting_decision != HUMAN:
        return
    while True:
        answer = ask("Swap card? [k]eep / [e]xchange: ").strip().lower()
        if answer in ("k", "keep"):
            step(state, KeepAction(player=HUMAN)).raise_for_error()
            return
        if answer in ("e", "exchange"):
            step(state, ExchangeAction(player=HUMAN)).raise_for_error()
            swap = state.players[HUMAN].swaps[-1]
            print(f"Exchanged {swap.old.label} for {swap.new.label} ({swap.new.points} pts).")
            return


async def play(
    state: MatchState,
    driver: OpponentDriver,
    ask: InputFn,
) -> MatchState:
    while not is_complete(state):
        print(_render(state))
        if state.current_player == HUMAN:
            await asyncio.to_thread(_human_half_round, state, ask)
            continue
        print("Opponent is thinking...")
        idx = state.round_index
        decision = await driver.play_half_round(state, OPPONENT)
        card = state.players[OPPONENT].hand[idx]
        if decision is not None:
            print(f'Opponent: "{decision.rationale}"')
        else:
            print(f"Opponent revealed {card.label}.")
    return state


def _report(state: MatchState, ask: InputFn) -> None:
    totals = final_totals(state)
    assert totals is not None
    print(f"Final score: you {totals[HUMAN]} - {totals[OPPONENT]} opponent")
    champion = winner(state)
    if champion is None:
        print("Draw!")
        return
    if champion != HUMAN:
        print("Opponent wins.")
        return
    print("VICTORY! Select your reward:")
    options = loot_options(state)
    for i, c in enumerate(options):
        print(f"  [{i + 1}] {c.label} ({c.points} pts)")
    while True:
        raw = ask("Pick a card: ").strip()
        if raw.isdigit() and claim_loot(state, HUMAN, int(raw) - 1).ok:
            assert state.loot_claimed is not None
            print(f"Claimed {state.loot_claimed.label}!")
            return


def main(argv: Sequence[str] | None = None, ask: InputFn = input) -> int:
    parser = argparse.ArgumentParser(prog="swapduel")
    parser.add_argument("--ai", choices=["bot", "remote"], default="bot")
    parser.add_argument("--difficulty", choices=["easy", "normal", "hard"], default="normal")
    parser.add_argument("--style", default="balanced")
    parser.add_argument("--seed", type=int, default=None, help="Match seed (exchange draws, starter)")
    parser.add_argument("--deal-seed", type=int, default=None, help="Seed for dealing both hands")
    parser.add_argument("--timeout", type=float, default=None, help="Remote AI timeout in seconds")
    parser.add_argument("--assets", type=Path, default=None, help="JSON list of owned cards")
    parser.add_argument("--telemetry", type=Path, default=None)
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.WARNING))

    paths = get_paths()
    content = ContentService(data_dir=paths.data_dir, schema_dir=paths.schema_dir)
    catalog = content.load_catalog()
    seed = args.seed if args.seed is not None else random.randrange(2**31)
    # separate stream; the match seed must not predict either hand
    deal_rng = random.Random(args.deal_seed)

    if args.assets is not None:
        hand_a = hand_from_assets(json.loads(args.assets.read_text(encoding="utf-8")))
    else:
        hand_a = random_hand(catalog, deal_rng)
    hand_b = random_hand(catalog, deal_rng)

    bot = BotHeuristic(catalog)
    if args.ai == "remote":
        remote_cfg = RemoteAIConfig.from_env()
        if args.timeout is not None:
            remote_cfg.timeout = args.timeout
        provider: AsyncDecisionProvider = FallbackDecisionProvider(
            RemoteAIProvider(remote_cfg), bot, timeout=remote_cfg.timeout
        )
    else:
        provider = LocalProvider(bot)

    telemetry = TelemetryService(args.telemetry) if args.telemetry is not None else None
    driver = OpponentDriver(
        provider,
        DecisionConfig(difficulty=args.difficulty, style=args.style),
        telemetry=telemetry,
    )

    state = new_match(catalog, hand_a, hand_b, seed=seed)
    if telemetry is not None:
        telemetry.match_started(state)
    starter = "You go" if state.starting_player == HUMAN else "Opponent goes"
    print(f"{starter} first.")
    logger.debug("Match seed %s, deal seed %s", seed, args.deal_seed)

    asyncio.run(play(state, driver, ask))
    if telemetry is not None:
        telemetry.match_finished(state)
    _report(state, ask)
    return 0
