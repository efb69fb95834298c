"""FastAPI routes driving the reading wizard one step at a time.

Every endpoint returns the full session state so a front end can render the
current stage without keeping its own copy.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from ..models import CardStep, QuestionStep, ReadingSession, SpreadStep
from ..wizard import WizardRegistry
from .checkout_routes import request_origin

router = APIRouter(prefix="/api/wizard", tags=["wizard"])
registry = WizardRegistry()


@router.post("", response_model=ReadingSession)
def start_wizard() -> ReadingSession:
    return registry.create().state


@router.get("/{session_id}", response_model=ReadingSession)
def wizard_state(session_id: str) -> ReadingSession:
    return registry.get(session_id).state


@router.post("/{session_id}/question", response_model=ReadingSession)
def submit_question(session_id: str, req: QuestionStep) -> ReadingSession:
    return registry.get(session_id).submit_question(req.user_info, req.question)


@router.post("/{session_id}/spread", response_model=ReadingSession)
def choose_spread(session_id: str, req: SpreadStep) -> ReadingSession:
    return registry.get(session_id).choose_spread(req.spread_type, req.is_premium)


@router.post("/{session_id}/continue", response_model=ReadingSession)
def continue_to_cards(session_id: str) -> ReadingSession:
    return registry.get(session_id).continue_to_cards()


@router.post("/{session_id}/cards", response_model=ReadingSession)
def select_card(session_id: str, req: CardStep) -> ReadingSession:
    return registry.get(session_id).select_card(req.card_id)


@router.post("/{session_id}/back", response_model=ReadingSession)
def go_back(session_id: str) -> ReadingSession:
    return registry.get(session_id).go_back()


@router.post("/{session_id}/submit", response_model=ReadingSession)
async def submit(session_id: str, request: Request) -> ReadingSession:
    return await registry.get(session_id).submit(request_origin(request))


@router.post("/{session_id}/new", response_model=ReadingSession)
def new_reading(session_id: str) -> ReadingSession:
    return registry.get(session_id).new_reading()


@router.post("/{session_id}/save", response_model=ReadingSession)
def save_reading(session_id: str) -> ReadingSession:
    return registry.get(session_id).save_reading()


@router.get("/{session_id}/history")
def history(session_id: str) -> Dict[str, Any]:
    w = registry.get(session_id)
    return {"session_id": w.session_id, "readings": [r.model_dump() for r in w.history]}
