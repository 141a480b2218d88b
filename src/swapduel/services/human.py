from __future__ import annotations

import asyncio
import logging
from typing import Optional

from swapduel.engine.ai import Decision, DecisionConfig, DecisionType, VisibleGameState
from swapduel.engine.errors import DecisionProviderError

logger = logging.getLogger(__name__)


class HumanRemoteProvider:
    """Waits for a keep/exchange choice made by a remote human.

    Whatever transport carries the choice calls ``submit``; ``cancel`` gives
    up on the pending wait (e.g. the opponent disconnected). Only the wait
    that is open right now can be answered: a choice or cancel that arrives
    when nothing is pending (say, after a timeout) is dropped.
    """

    def __init__(self) -> None:
        self._pending: Optional[asyncio.Future[Decision]] = None

    @property
    def waiting(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def submit(self, action_type: DecisionType, rationale: str = "") -> bool:
        decision = Decision(
            action_type=action_type,
            rationale=rationale or f"Opponent chose to {action_type}.",
            confidence=1.0,
        )
        if not self.waiting:
            logger.warning("Dropping late remote choice %r: no decision pending", action_type)
            return False
        assert self._pending is not None
        self._pending.set_result(decision)
        return True

    def cancel(self) -> bool:
        if not self.waiting:
            return False
        assert self._pending is not None
        self._pending.set_exception(DecisionProviderError("Remote player cancelled the decision."))
        return True

    async def decide(self, state: VisibleGameState, config: DecisionConfig) -> Decision:
        logger.debug("Waiting for remote player %s (round %s)", state.player, state.round)
        waiter: asyncio.Future[Decision] = asyncio.get_running_loop().create_future()
        self._pending = waiter
        try:
            return await waiter
        finally:
            if self._pending is waiter:
                self._pending = None
