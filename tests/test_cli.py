from __future__ import annotations

import json

from swapduel.cli import main


def _scripted(prompt: str) -> str:
    if prompt.startswith("Swap"):
        return "e"
    if prompt.startswith("Pick"):
        return "1"
    return ""


def test_practice_match_runs_to_completion(tmp_path, capsys) -> None:
    telemetry = tmp_path / "telemetry.jsonl"
    code = main(["--seed", "3", "--style", "aggro", "--telemetry", str(telemetry)], ask=_scripted)
    assert code == 0

    out = capsys.readouterr().out
    assert "Final score" in out
    types = [json.loads(line)["type"] for line in telemetry.read_text(encoding="utf-8").splitlines()]
    assert types[0] == "match_started"
    assert types[-1] == "match_finished"


def test_practice_match_with_owned_assets(tmp_path, capsys) -> None:
    assets = tmp_path / "owned.json"
    assets.write_text(
        json.dumps(
            [
                {"data": {"content": {"fields": {"name": "Forester", "points": "90"}}}},
                {"data": {"content": {"fields": {"name": "Archivist", "points": "73"}}}},
                {"data": {"content": {"fields": {"name": "Necromancer", "points": "68"}}}},
            ]
        ),
        encoding="utf-8",
    )
    assert main(["--seed", "8", "--assets", str(assets)], ask=_scripted) == 0
    assert "Final score" in capsys.readouterr().out


def _your_hand(out: str) -> str:
    return next(line for line in out.splitlines() if line.startswith("You:"))


def test_match_seed_does_not_deal_the_hands(capsys) -> None:
    assert main(["--seed", "3", "--deal-seed", "11"], ask=_scripted) == 0
    first = capsys.readouterr().out
    assert main(["--seed", "4", "--deal-seed", "11"], ask=_scripted) == 0
    second = capsys.readouterr().out

    # same deal, different match seed: identical opening hand
    assert _your_hand(first) == _your_hand(second)
    assert "Seed" not in first and "seed" not in first
