from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal

Rarity = Literal["common", "rare", "legendary"]
Player = Literal["A", "B"]
Outcome = Literal["in_progress", "a_wins", "b_wins", "draw"]

PLAYERS: tuple[Player, Player] = ("A", "B")
RARITIES: tuple[Rarity, ...] = ("common", "rare", "legendary")


def other(player: Player) -> Player:
    return "B" if player == "A" else "A"


def coerce_points(value: object) -> int:
    """Normalise a point value that may arrive as int, float or string.

    Anything that cannot be read as a non-negative number scores 0.
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float):
        return max(0, int(value)) if value == value else 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return max(0, int(text))
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            return 0
        return max(0, int(parsed)) if parsed == parsed else 0
    return 0


@dataclass(frozen=True)
class Card:
    name: str
    label: str
    artwork_ref: str
    points: int
    rarity: Rarity = "common"
    booster_eligible: bool = True


@dataclass(frozen=True)
class CardCatalog:
    """Immutable, ordered card catalog injected into the engine and the AI."""

    cards: tuple[Card, ...]
    card_back: Card
    _by_name: dict[str, Card] = field(init=False, repr=False, compare=False)
    _order: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_name: dict[str, Card] = {}
        order: dict[str, int] = {}
        for i, card in enumerate(self.cards):
            if card.name in by_name:
                raise ValueError(f"Duplicate card name in catalog: {card.name}")
            by_name[card.name] = card
            order[card.name] = i
        if self.card_back.booster_eligible or self.card_back.points != 0:
            raise ValueError("Card back must score 0 and be excluded from boosters.")
        object.__setattr__(self, "_by_name", by_name)
        object.__setattr__(self, "_order", order)

    @staticmethod
    def from_cards(cards: Iterable[Card], card_back: Card | None = None) -> "CardCatalog":
        lst = tuple(cards)
        if card_back is None:
            card_back = Card(
                name="dos",
                label="Card Back",
                artwork_ref="",
                points=0,
                rarity="common",
                booster_eligible=False,
            )
        if card_back.name not in {c.name for c in lst}:
            lst = lst + (card_back,)
        return CardCatalog(cards=lst, card_back=card_back)

    def all_cards(self) -> Sequence[Card]:
        return list(self.cards)

    def booster_pool(self) -> Sequence[Card]:
        return [
            c for c in self.cards if c.booster_eligible and c.name != self.card_back.name
        ]

    def get(self, name: str) -> Card:
        return self._by_name[name]

    def index_of(self, name: str) -> int:
        """Catalog position, used for deterministic tie-breaks.

        Cards that are not in the catalog (e.g. owned assets) sort last.
        """
        return self._order.get(name, len(self.cards))
