from __future__ import annotations

import json
import logging
import random
from pathlib import Path
from typing import Iterable, Mapping

from jsonschema import Draft202012Validator

from swapduel.engine.types import RARITIES, Card, CardCatalog, Rarity, coerce_points

logger = logging.getLogger(__name__)


class ContentError(RuntimeError):
    pass


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ContentError(f"Missing content file: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentError(f"Invalid JSON in {path}: {e}") from e


def validate_json(instance: object, schema: object, *, context: str) -> None:
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.path))
    if errors:
        lines = [f"Schema validation failed for {context}:"]
        for err in errors[:10]:
            loc = "/".join(str(p) for p in err.absolute_path)
            lines.append(f"- {loc}: {err.message}")
        raise ContentError("\n".join(lines))


def _require_str(obj: Mapping[str, object], key: str) -> str:
    v = obj.get(key)
    if not isinstance(v, str):
        raise ContentError(f"Expected string for {key}")
    return v


def _str_or(obj: Mapping[str, object], key: str, default: str) -> str:
    v = obj.get(key)
    if isinstance(v, str) and v.strip():
        return v
    return default


def _rarity_or_common(raw: object) -> Rarity:
    if isinstance(raw, str) and raw.lower() in RARITIES:
        return raw.lower()  # type: ignore[return-value]
    return "common"


def _asset_fields(raw: Mapping[str, object]) -> Mapping[str, object]:
    # On-chain objects nest their fields under data.content.fields.
    data = raw.get("data")
    if isinstance(data, Mapping):
        content = data.get("content")
        if isinstance(content, Mapping):
            fields = content.get("fields")
            if isinstance(fields, Mapping):
                return fields
    return raw


def card_from_asset(raw: object) -> Card:
    """Normalise an owned asset into a Card.

    Missing or malformed fields fall back to placeholders; this never raises
    on shape problems.
    """
    if not isinstance(raw, Mapping):
        raw = {}
    fields = _asset_fields(raw)
    name = _str_or(fields, "name", "unknown")
    return Card(
        name=name,
        label=_str_or(fields, "label", _str_or(fields, "name", "Unknown Card")),
        artwork_ref=_str_or(fields, "image_url", _str_or(fields, "url", "")),
        points=coerce_points(fields.get("points")),
        rarity=_rarity_or_common(fields.get("type", fields.get("rarity"))),
        booster_eligible=True,
    )


def hand_from_assets(assets: Iterable[object], size: int = 3) -> list[Card]:
    hand: list[Card] = []
    for raw in assets:
        if len(hand) >= size:
            break
        hand.append(card_from_asset(raw))
    if len(hand) < size:
        raise ContentError(f"Need at least {size} owned cards to play, got {len(hand)}.")
    return hand


def random_hand(catalog: CardCatalog, rng: random.Random, size: int = 3) -> list[Card]:
    """Distinct booster-eligible cards, used for the practice opponent."""
    pool = list(catalog.booster_pool())
    if len(pool) < size:
        raise ContentError(f"Booster pool has {len(pool)} cards, need {size}.")
    return rng.sample(pool, size)


class ContentService:
    def __init__(self, data_dir: Path, schema_dir: Path) -> None:
        self._data_dir = data_dir
        self._schema_dir = schema_dir

    def load_schema(self, name: str) -> object:
        return _load_json(self._schema_dir / name)

    def load_catalog(self) -> CardCatalog:
        cards_path = self._data_dir / "cards.json"
        raw = _load_json(cards_path)
        validate_json(raw, self.load_schema("cards.schema.json"), context=str(cards_path))

        if not isinstance(raw, dict):
            raise ContentError("cards.json must be an object")
        raw_cards = raw.get("cards")
        if not isinstance(raw_cards, list):
            raise ContentError("cards.json.cards must be a list")
        back_name = _require_str(raw, "card_back")

        cards: list[Card] = []
        for item in raw_cards:
            if not isinstance(item, dict):
                continue
            cards.append(
                Card(
                    name=_require_str(item, "name"),
                    label=_require_str(item, "label"),
                    artwork_ref=_require_str(item, "artwork_ref"),
                    points=coerce_points(item.get("points")),
                    rarity=_rarity_or_common(item.get("rarity")),
                    booster_eligible=bool(item.get("booster_eligible", True)),
                )
            )

        backs = [c for c in cards if c.name == back_name]
        if not backs:
            raise ContentError(f"Card back {back_name!r} is not in the catalog")
        try:
            catalog = CardCatalog(cards=tuple(cards), card_back=backs[0])
        except ValueError as e:
            raise ContentError(str(e)) from e
        logger.debug("Loaded %d cards from %s", len(cards), cards_path)
        return catalog

    def validate_all(self) -> None:
        # Load is validation (schema + parse)
        _ = self.load_catalog()
        _ = self.load_schema("decision.schema.json")
