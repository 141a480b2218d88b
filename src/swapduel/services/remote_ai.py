"""
Remote AI opponent

Asks a hosted agent for the keep/exchange decision over HTTP. Any failure
surfaces as DecisionProviderError / DecisionProviderTimeout so the caller can
fall back to the local bot heuristic.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, cast

import aiohttp
from jsonschema import Draft202012Validator

from swapduel.engine.ai import Decision, DecisionConfig, VisibleGameState
from swapduel.engine.errors import DecisionProviderError, DecisionProviderTimeout
from swapduel.paths import get_paths
from swapduel.services.content import ContentService

logger = logging.getLogger(__name__)

# Agent responses in the older turn-based format use these action types.
LEGACY_SWAP_ACTIONS = ("play_card",)


@dataclass
class RemoteAIConfig:
    """Configuration for the remote agent service."""

    base_url: str = "https://api.nimbus.ai/agents"
    agent_id: str = "training-agent-v1"
    timeout: float = 5.0

    @property
    def api_key(self) -> str:
        """Get the agent API key from environment."""
        return os.environ.get("SWAPDUEL_AI_API_KEY", "")

    @property
    def run_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.agent_id}/run"

    @classmethod
    def from_env(cls) -> "RemoteAIConfig":
        """Create config from SWAPDUEL_AI_* environment variables."""
        defaults = cls()
        raw_timeout = os.environ.get("SWAPDUEL_AI_TIMEOUT")
        try:
            timeout = float(raw_timeout) if raw_timeout else defaults.timeout
        except ValueError:
            logger.warning("Ignoring invalid SWAPDUEL_AI_TIMEOUT=%r", raw_timeout)
            timeout = defaults.timeout
        return cls(
            base_url=os.environ.get("SWAPDUEL_AI_URL", defaults.base_url),
            agent_id=os.environ.get("SWAPDUEL_AI_AGENT", defaults.agent_id),
            timeout=timeout,
        )


def parse_agent_action(
    payload: object, schema: object, config: DecisionConfig
) -> Decision:
    """Turn an agent response body into a Decision.

    Native responses carry ``keep``/``exchange``. Older turn-based responses
    are mapped: ``play_card`` or a confidence below the threshold means
    exchange, anything else means keep.
    """
    validator = Draft202012Validator(schema)
    errors = list(validator.iter_errors(payload))
    if errors:
        raise DecisionProviderError(f"Malformed agent response: {errors[0].message}")

    action = cast(Mapping[str, object], cast(Mapping[str, object], payload)["action"])
    action_type = action["action_type"]
    raw_conf = action.get("confidence")
    confidence = float(raw_conf) if isinstance(raw_conf, (int, float)) else 1.0
    rationale = action.get("rationale") or action.get("explanation") or ""

    if action_type in ("keep", "exchange"):
        decided = action_type
    elif action_type in LEGACY_SWAP_ACTIONS or confidence < config.confidence_threshold:
        decided = "exchange"
    else:
        decided = "keep"

    return Decision(action_type=decided, rationale=str(rationale), confidence=confidence)


class RemoteAIProvider:
    """
    Decision provider backed by the remote agent API.

    Requires SWAPDUEL_AI_API_KEY unless the endpoint is unauthenticated.
    """

    def __init__(
        self,
        config: Optional[RemoteAIConfig] = None,
        schema: Optional[object] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the provider.

        Args:
            config: Service location and timeout
            schema: JSON schema for responses (defaults to the packaged one)
            session: Optional shared aiohttp session; one is opened per call otherwise
        """
        self.config = config or RemoteAIConfig.from_env()
        if schema is None:
            paths = get_paths()
            schema = ContentService(paths.data_dir, paths.schema_dir).load_schema(
                "decision.schema.json"
            )
        self.schema = schema
        self._session = session

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def _post(self, session: aiohttp.ClientSession, body: dict) -> object:
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        async with session.post(
            self.config.run_url, json=body, headers=self._headers(), timeout=timeout
        ) as resp:
            if resp.status != 200:
                error_text = await resp.text(errors="replace")
                raise DecisionProviderError(f"Agent error {resp.status}: {error_text}")
            try:
                return await resp.json(content_type=None)
            except (json.JSONDecodeError, ValueError) as e:
                raise DecisionProviderError(f"Agent returned invalid JSON: {e}") from e

    async def decide(self, state: VisibleGameState, config: DecisionConfig) -> Decision:
        logger.info(
            "Requesting agent decision: round=%s difficulty=%s style=%s",
            state.round,
            config.difficulty,
            config.style,
        )
        body = {
            "state": state.to_dict(),
            "difficulty": config.difficulty,
            "style": config.style,
        }
        try:
            if self._session is not None:
                payload = await self._post(self._session, body)
            else:
                async with aiohttp.ClientSession() as session:
                    payload = await self._post(session, body)
        except asyncio.TimeoutError as e:
            raise DecisionProviderTimeout(
                f"Agent did not answer within {self.config.timeout}s"
            ) from e
        except aiohttp.ClientError as e:
            raise DecisionProviderError(f"Agent request failed: {e}") from e
        except DecisionProviderError:
            raise
        except Exception as e:
            raise DecisionProviderError(f"Agent request failed: {e!r}") from e

        return parse_agent_action(payload, self.schema, config)
