from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

from swapduel.engine.match import MatchState, final_totals


@dataclass
class TelemetryService:
    path: Path

    def log(self, event_type: str, payload: Mapping[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        rec = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "type": event_type,
            "payload": dict(payload),
        }
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")

    def match_started(self, state: MatchState) -> None:
        self.log(
            "match_started",
            {
                "seed": state.seed,
                "starting_player": state.starting_player,
                "hands": {p: [c.name for c in ps.hand] for p, ps in state.players.items()},
            },
        )

    def match_finished(self, state: MatchState) -> None:
        self.log(
            "match_finished",
            {
                "seed": state.seed,
                "outcome": state.outcome,
                "totals": final_totals(state),
                "swapped": {p: ps.swapped for p, ps in state.players.items()},
            },
        )
