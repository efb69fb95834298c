"""Reading and catalog endpoints.

Endpoints:
- POST /api/tarot
- GET /api/cards
- GET /api/cards/{card_id}
- GET /api/spreads
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter

from .. import ai
from ..cards import get_card, get_cards
from ..errors import AIServiceError, TarotError
from ..models import StructuredReading, TarotRequest
from ..spreads import spreads_for_api

log = logging.getLogger("tarot_ai.tarot_routes")
router = APIRouter(prefix="/api", tags=["tarot"])


@router.post("/tarot")
async def tarot_reading(req: TarotRequest) -> Dict[str, Any]:
    log.info(
        "tarot reading spread=%s cards=%s single=%s",
        req.spread_type, [c.id for c in req.cards], req.card.id if req.card else None,
    )
    try:
        interpretation = await ai.generate_reading(
            req.cards, req.question, req.user_info, req.spread_type, req.card
        )
    except TarotError:
        raise
    except Exception as e:
        log.exception("General error while generating reading")
        raise AIServiceError("Failed to process message") from e

    if isinstance(interpretation, StructuredReading):
        return {"response": interpretation.model_dump(exclude={"kind"})}
    if interpretation.fallback:
        return {"response": interpretation.text, "structured": False}
    return {"response": interpretation.text}


@router.get("/cards")
def cards() -> Dict[str, Any]:
    return {"cards": [c.model_dump() for c in get_cards()]}


@router.get("/cards/{card_id}")
def card(card_id: int) -> Dict[str, Any]:
    return {"card": get_card(card_id).model_dump()}


@router.get("/spreads")
def spreads() -> Dict[str, Any]:
    return {"spreads": spreads_for_api()}
