"""Spread definitions: how many cards each spread takes and what each position means."""

from typing import Any, Dict, List

UNIVERSAL6_POSITIONS: List[str] = [
    "How you feel about yourself now",
    "What you most want at this moment",
    "Your fears",
    "What is going for you",
    "What is going against you",
    "The outcome according to your current situation",
]

SPREAD_SIZES: Dict[str, int] = {
    "single": 1,
    "universal6": len(UNIVERSAL6_POSITIONS),
}

SPREAD_NAMES: Dict[str, str] = {
    "single": "Single Card Reading",
    "universal6": "Universal 6 Card Spread",
}


def required_cards(spread_type: str) -> int:
    return SPREAD_SIZES[spread_type]


def spreads_for_api() -> List[Dict[str, Any]]:
    return [
        {
            "id": spread_id,
            "name": SPREAD_NAMES[spread_id],
            "cards": size,
            "positions": UNIVERSAL6_POSITIONS if spread_id == "universal6" else ["The card"],
        }
        for spread_id, size in SPREAD_SIZES.items()
    ]
