"""Major Arcana catalog loader + helpers.

- Loads the catalog from tarot_ai/data/major_arcana.json
- Provides: get_deck(), get_cards(), get_card(card_id), cards_for_ids(ids)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .errors import NotFoundError
from .models import Card

DATA_PATH = Path(__file__).resolve().parent / "data" / "major_arcana.json"
CARD_COUNT = 22


class CatalogError(RuntimeError):
    pass


def _load_json() -> Dict[str, Any]:
    try:
        raw = DATA_PATH.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise CatalogError(f"Catalog data file not found at: {DATA_PATH}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CatalogError(f"Invalid JSON in {DATA_PATH}: {e}") from e

    if "cards" not in data or not isinstance(data["cards"], list) or len(data["cards"]) != CARD_COUNT:
        raise CatalogError(f"Catalog must contain exactly {CARD_COUNT} cards.")
    return data


_DECK_CACHE: Optional[Dict[str, Any]] = None
_CARDS_CACHE: Optional[List[Card]] = None


def get_deck() -> Dict[str, Any]:
    global _DECK_CACHE
    if _DECK_CACHE is None:
        _DECK_CACHE = _load_json()
    return _DECK_CACHE


def get_cards() -> List[Card]:
    global _CARDS_CACHE
    if _CARDS_CACHE is None:
        _CARDS_CACHE = [Card(**c) for c in get_deck()["cards"]]
    return list(_CARDS_CACHE)


def get_card(card_id: int) -> Card:
    for c in get_cards():
        if c.id == card_id:
            return c
    raise NotFoundError(f"Unknown card id: {card_id}")


def has_card(card_id: int) -> bool:
    return any(c.id == card_id for c in get_cards())


def cards_for_ids(card_ids: Iterable[int]) -> List[Card]:
    return [get_card(cid) for cid in card_ids]


def validate_deck() -> None:
    ids = [c.id for c in get_cards()]
    if len(ids) != len(set(ids)):
        raise CatalogError("Duplicate card ids detected.")
    if sorted(ids) != list(range(CARD_COUNT)):
        raise CatalogError("Card ids must cover 0..21.")
