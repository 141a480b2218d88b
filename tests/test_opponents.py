from __future__ import annotations

import asyncio
import json
import time

import pytest
from aiohttp import web
from aiohttp import test_utils

from swapduel.engine.ai import BotHeuristic, Decision, DecisionConfig, visible_state
from swapduel.engine.errors import DecisionProviderError, DecisionProviderTimeout
from swapduel.engine.match import new_match, phase
from swapduel.engine.types import Card, CardCatalog
from swapduel.paths import get_paths
from swapduel.services.content import ContentService
from swapduel.services.human import HumanRemoteProvider
from swapduel.services.opponents import (
    FallbackDecisionProvider,
    LocalProvider,
    OpponentDriver,
    run_match,
)
from swapduel.services.remote_ai import RemoteAIConfig, RemoteAIProvider, parse_agent_action
from swapduel.services.telemetry import TelemetryService


def _card(name: str, points: int) -> Card:
    return Card(name=name, label=name.title(), artwork_ref="", points=points)


def _schema():
    paths = get_paths()
    return ContentService(paths.data_dir, paths.schema_dir).load_schema("decision.schema.json")


def _match(starting="A"):
    catalog = CardCatalog.from_cards([_card("titan", 50)])
    a = [_card(f"a{i}", 10) for i in range(3)]
    b = [_card(f"b{i}", 5) for i in range(3)]
    return catalog, new_match(catalog, a, b, seed=1, starting_player=starting)


class SlowProvider:
    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.calls = 0

    async def decide(self, state, config) -> Decision:
        self.calls += 1
        await asyncio.sleep(self.delay)
        return Decision(action_type="keep", rationale="slow", confidence=1.0)


class FailingProvider:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    async def decide(self, state, config) -> Decision:
        raise self.exc


def test_scenario_d_timeout_falls_back_and_match_completes() -> None:
    catalog, state = _match()
    slow = SlowProvider(delay=10.0)
    provider = FallbackDecisionProvider(slow, BotHeuristic(catalog), timeout=0.05)
    drivers = {
        "A": OpponentDriver(LocalProvider(BotHeuristic(catalog))),
        "B": OpponentDriver(provider),
    }

    started = time.monotonic()
    asyncio.run(run_match(state, drivers))
    elapsed = time.monotonic() - started

    assert state.outcome != "in_progress"
    assert provider.last_source == "fallback"
    # B's 5-point card is below the pool average, so the bot swaps it.
    assert state.players["B"].swapped
    assert slow.calls == 1
    assert elapsed < 2.0


@pytest.mark.parametrize(
    "exc",
    [DecisionProviderError("boom"), DecisionProviderTimeout("late")],
)
def test_provider_errors_fall_back(exc: Exception) -> None:
    catalog, state = _match()
    provider = FallbackDecisionProvider(FailingProvider(exc), BotHeuristic(catalog), timeout=1.0)
    decision = asyncio.run(provider.decide(visible_state(state, "A"), DecisionConfig()))
    assert provider.last_source == "fallback"
    assert decision == BotHeuristic(catalog).decide(visible_state(state, "A"), DecisionConfig())


def test_primary_answer_is_used_when_in_time() -> None:
    catalog, state = _match()
    provider = FallbackDecisionProvider(SlowProvider(0.0), BotHeuristic(catalog), timeout=1.0)
    decision = asyncio.run(provider.decide(visible_state(state, "A"), DecisionConfig()))
    assert decision.rationale == "slow"
    assert provider.last_source == "primary"


def test_decision_pending_is_visible_while_waiting() -> None:
    catalog, state = _match()
    human = HumanRemoteProvider()
    driver = OpponentDriver(human)
    seen: list[str] = []

    async def scenario() -> None:
        task = asyncio.create_task(driver.play_half_round(state, "A"))
        await asyncio.sleep(0.01)
        seen.append(phase(state))
        assert state.players["A"].hand[0].name == "a0"
        human.submit("exchange")
        decision = await task
        assert decision is not None and decision.action_type == "exchange"

    asyncio.run(scenario())
    assert seen == ["decision_pending"]
    assert state.players["A"].swapped
    assert state.players["A"].hand[0].name == "titan"
    assert state.current_player == "B"
    assert state.decision_in_flight is None


def test_cancelled_human_decision_leaves_state_unapplied() -> None:
    catalog, state = _match()
    human = HumanRemoteProvider()
    driver = OpponentDriver(human)

    async def scenario() -> None:
        task = asyncio.create_task(driver.play_half_round(state, "A"))
        await asyncio.sleep(0.01)
        human.cancel()
        with pytest.raises(DecisionProviderError):
            await task

    asyncio.run(scenario())
    assert state.decision_in_flight is None
    assert state.awaiting_decision == "A"
    assert not state.players["A"].swapped
    assert phase(state) == "awaiting_decision"

    # A fresh provider can still settle the owed decision.
    asyncio.run(OpponentDriver(LocalProvider(BotHeuristic(catalog))).play_half_round(state, "A"))
    assert state.current_player == "B"


def test_driver_logs_decisions(tmp_path) -> None:
    catalog, state = _match()
    telemetry = TelemetryService(tmp_path / "telemetry.jsonl")
    provider = FallbackDecisionProvider(SlowProvider(5.0), BotHeuristic(catalog), timeout=0.01)
    driver = OpponentDriver(provider, DecisionConfig(style="aggro"), telemetry=telemetry)
    telemetry.match_started(state)
    asyncio.run(driver.play_half_round(state, "A"))

    records = [json.loads(line) for line in telemetry.path.read_text(encoding="utf-8").splitlines()]
    assert [r["type"] for r in records] == ["match_started", "decision"]
    assert records[1]["payload"]["source"] == "fallback"
    assert records[1]["payload"]["player"] == "A"


def test_parse_native_and_legacy_agent_actions() -> None:
    schema = _schema()
    cfg = DecisionConfig(confidence_threshold=0.5)

    native = parse_agent_action(
        {"action": {"action_type": "keep", "confidence": 0.7, "rationale": "fine"}}, schema, cfg
    )
    assert (native.action_type, native.confidence, native.rationale) == ("keep", 0.7, "fine")

    played = parse_agent_action(
        {"action": {"action_type": "play_card", "card_id": "forester", "confidence": 0.85}},
        schema,
        cfg,
    )
    assert played.action_type == "exchange"

    unsure = parse_agent_action(
        {"action": {"action_type": "end_turn", "confidence": 0.3, "explanation": "meh"}}, schema, cfg
    )
    assert unsure.action_type == "exchange"
    assert unsure.rationale == "meh"

    sure = parse_agent_action({"action": {"action_type": "end_turn", "confidence": 0.9}}, schema, cfg)
    assert sure.action_type == "keep"

    with pytest.raises(DecisionProviderError):
        parse_agent_action({"action": {"action_type": "dance"}}, schema, cfg)
    with pytest.raises(DecisionProviderError):
        parse_agent_action({"nothing": True}, schema, cfg)


def _agent_app(handler) -> web.Application:
    app = web.Application()
    app.router.add_post("/agents/training-agent-v1/run", handler)
    return app


def _run_remote(handler, timeout: float = 2.0) -> tuple[Decision | Exception, list[dict]]:
    received: list[dict] = []

    async def recording(request: web.Request) -> web.StreamResponse:
        received.append(await request.json())
        return await handler(request)

    async def scenario() -> Decision | Exception:
        async with test_utils.TestServer(_agent_app(recording)) as server:
            cfg = RemoteAIConfig(base_url=str(server.make_url("/agents")), timeout=timeout)
            provider = RemoteAIProvider(cfg, schema=_schema())
            _, state = _match()
            try:
                return await provider.decide(
                    visible_state(state, "A"), DecisionConfig(difficulty="hard", style="aggro")
                )
            except DecisionProviderError as e:
                return e

    return asyncio.run(scenario()), received


def test_remote_provider_round_trip() -> None:
    async def ok(request: web.Request) -> web.Response:
        return web.json_response(
            {"action": {"action_type": "exchange", "confidence": 0.8, "rationale": "go big"}}
        )

    result, received = _run_remote(ok)
    assert isinstance(result, Decision)
    assert result.action_type == "exchange"
    assert received[0]["difficulty"] == "hard"
    assert received[0]["style"] == "aggro"
    assert received[0]["state"]["round"] == 1
    assert received[0]["state"]["player"] == "A"


def test_remote_provider_http_error() -> None:
    async def broken(request: web.Request) -> web.Response:
        return web.Response(status=503, text="overloaded")

    result, _ = _run_remote(broken)
    assert isinstance(result, DecisionProviderError)
    assert "503" in str(result)


def test_remote_provider_bad_json() -> None:
    async def garbage(request: web.Request) -> web.Response:
        return web.Response(status=200, text="not json")

    result, _ = _run_remote(garbage)
    assert isinstance(result, DecisionProviderError)


def test_remote_provider_timeout() -> None:
    async def slow(request: web.Request) -> web.Response:
        await asyncio.sleep(1.0)
        return web.json_response({"action": {"action_type": "keep"}})

    result, _ = _run_remote(slow, timeout=0.1)
    assert isinstance(result, DecisionProviderTimeout)


def test_remote_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("SWAPDUEL_AI_URL", "http://agents.test/v2/")
    monkeypatch.setenv("SWAPDUEL_AI_AGENT", "duelist")
    monkeypatch.setenv("SWAPDUEL_AI_TIMEOUT", "1.5")
    monkeypatch.setenv("SWAPDUEL_AI_API_KEY", "secret")
    cfg = RemoteAIConfig.from_env()
    assert cfg.run_url == "http://agents.test/v2/duelist/run"
    assert cfg.timeout == 1.5
    assert cfg.api_key == "secret"

    monkeypatch.setenv("SWAPDUEL_AI_TIMEOUT", "soon")
    assert RemoteAIConfig.from_env().timeout == RemoteAIConfig().timeout


def test_undecodable_error_body_still_falls_back() -> None:
    async def mangled(request: web.Request) -> web.Response:
        return web.Response(status=500, body=b"\xff\xfe\xfa oops")

    result, _ = _run_remote(mangled)
    assert isinstance(result, DecisionProviderError)
    assert "500" in str(result)

    async def scenario() -> tuple[FallbackDecisionProvider, object]:
        async with test_utils.TestServer(_agent_app(mangled)) as server:
            catalog, state = _match()
            cfg = RemoteAIConfig(base_url=str(server.make_url("/agents")), timeout=2.0)
            provider = FallbackDecisionProvider(
                RemoteAIProvider(cfg, schema=_schema()), BotHeuristic(catalog), timeout=2.0
            )
            drivers = {
                "A": OpponentDriver(LocalProvider(BotHeuristic(catalog))),
                "B": OpponentDriver(provider),
            }
            return provider, await run_match(state, drivers)

    provider, state = asyncio.run(scenario())
    assert state.outcome != "in_progress"
    assert provider.last_source == "fallback"


def test_any_provider_crash_falls_back() -> None:
    catalog, state = _match()
    provider = FallbackDecisionProvider(
        FailingProvider(UnicodeDecodeError("utf-8", b"\xff", 0, 1, "bad")),
        BotHeuristic(catalog),
        timeout=1.0,
    )
    asyncio.run(provider.decide(visible_state(state, "A"), DecisionConfig()))
    assert provider.last_source == "fallback"


def test_late_human_answer_is_not_applied_to_next_decision() -> None:
    catalog, first = _match()
    _, second = _match()
    human = HumanRemoteProvider()
    provider = FallbackDecisionProvider(human, BotHeuristic(catalog), timeout=0.2)
    driver = OpponentDriver(provider)

    async def scenario() -> None:
        await driver.play_half_round(first, "A")
        assert provider.last_source == "fallback"
        assert not human.waiting
        # the human answers the expired question, then disconnects
        assert not human.submit("exchange")
        assert not human.cancel()

        task = asyncio.create_task(driver.play_half_round(second, "A"))
        await asyncio.sleep(0.01)
        assert phase(second) == "decision_pending"
        assert human.submit("keep")
        await task

    asyncio.run(scenario())
    assert provider.last_source == "primary"
    assert not second.players["A"].swapped
    assert second.current_player == "B"
