from __future__ import annotations

import asyncio
import logging
from typing import Literal, Mapping, Optional

from swapduel.engine.actions import KeepAction, RevealAction
from swapduel.engine.ai import (
    AsyncDecisionProvider,
    Decision,
    DecisionConfig,
    DecisionProvider,
    VisibleGameState,
    visible_state,
)
from swapduel.engine.errors import DecisionProviderError, DecisionProviderTimeout
from swapduel.engine.match import MatchState, begin_decision, cancel_decision, is_complete, step
from swapduel.engine.types import Player
from swapduel.services.telemetry import TelemetryService

logger = logging.getLogger(__name__)

DecisionSource = Literal["primary", "fallback"]


class FallbackDecisionProvider:
    """Bounds an async provider with a timeout and falls back to a local one.

    The fallback is taken once per decision; the primary call is not retried.
    """

    def __init__(
        self,
        primary: AsyncDecisionProvider,
        fallback: DecisionProvider,
        timeout: float = 5.0,
    ) -> None:
        self.primary = primary
        self.fallback = fallback
        self.timeout = timeout
        self.last_source: Optional[DecisionSource] = None

    def _use_fallback(self, state: VisibleGameState, config: DecisionConfig) -> Decision:
        self.last_source = "fallback"
        return self.fallback.decide(state, config)

    async def decide(self, state: VisibleGameState, config: DecisionConfig) -> Decision:
        try:
            decision = await asyncio.wait_for(
                self.primary.decide(state, config), timeout=self.timeout
            )
        except (asyncio.TimeoutError, DecisionProviderTimeout):
            logger.warning(
                "Decision provider timed out after %.1fs; using local heuristic", self.timeout
            )
            return self._use_fallback(state, config)
        except DecisionProviderError as e:
            logger.warning("Decision provider failed (%s); using local heuristic", e)
            return self._use_fallback(state, config)
        except Exception:
            logger.warning("Decision provider crashed; using local heuristic", exc_info=True)
            return self._use_fallback(state, config)
        self.last_source = "primary"
        return decision


class OpponentDriver:
    """Plays one side of a match through an async decision provider."""

    def __init__(
        self,
        provider: AsyncDecisionProvider,
        config: Optional[DecisionConfig] = None,
        telemetry: Optional[TelemetryService] = None,
    ) -> None:
        self.provider = provider
        self.config = config or DecisionConfig()
        self.telemetry = telemetry

    async def settle_decision(self, state: MatchState, player: Player) -> Decision:
        """Ask the provider for the owed swap decision and apply it in one step."""
        begin_decision(state, player).raise_for_error()
        try:
            decision = await self.provider.decide(visible_state(state, player), self.config)
        except BaseException:
            cancel_decision(state, player)
            raise

        res = step(state, decision.to_action(player))
        if not res.ok:
            logger.warning("Rejected %s for %s (%s); keeping card", decision.action_type, player, res.error)
            step(state, KeepAction(player=player)).raise_for_error()

        if self.telemetry is not None:
            self.telemetry.log(
                "decision",
                {
                    "player": player,
                    "action_type": decision.action_type,
                    "confidence": decision.confidence,
                    "source": getattr(self.provider, "last_source", None) or "primary",
                },
            )
        return decision

    async def play_half_round(self, state: MatchState, player: Player) -> Optional[Decision]:
        """Reveal ``player``'s card and settle the swap decision if one is owed."""
        if is_complete(state) or state.current_player != player:
            return None
        if state.awaiting_decision != player:
            res = step(state, RevealAction(player=player))
            if not res.ok or state.awaiting_decision != player:
                return None
        return await self.settle_decision(state, player)


async def run_match(state: MatchState, drivers: Mapping[Player, OpponentDriver]) -> MatchState:
    """Drive both sides until the match is over."""
    while not is_complete(state):
        player = state.current_player
        await drivers[player].play_half_round(state, player)
    return state


class LocalProvider:
    """Adapts a synchronous provider to the async contract."""

    def __init__(self, provider: DecisionProvider) -> None:
        self.provider = provider

    async def decide(self, state: VisibleGameState, config: DecisionConfig) -> Decision:
        return self.provider.decide(state, config)
