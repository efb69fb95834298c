"""Reading wizard: the session controller behind the step-by-step reading flow.

question -> spread -> card -> confirm -> result

Each WizardSession owns one ReadingSession and is the only thing that
mutates it. At most one reading request is in flight per session; while it
runs the session reports is_loading and refuses further submissions.
"""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from typing import Awaitable, Callable, List, Optional

from starlette.concurrency import run_in_threadpool

from . import ai, cards, config, payments, storage
from .errors import BusyError, NotFoundError, StageError, TarotError, ValidationError
from .models import Card, Interpretation, PendingReading, ReadingSession, TarotReading
from .spreads import required_cards

log = logging.getLogger("tarot_ai.wizard")

Reader = Callable[..., Awaitable[Interpretation]]
Checkout = Callable[[str, str, Optional[str]], str]

GENERIC_FAILURE_MESSAGE = "Failed to get reading"


class WizardSession:
    def __init__(
        self,
        session_id: Optional[str] = None,
        reader: Optional[Reader] = None,
        checkout: Optional[Checkout] = None,
    ):
        self.state = ReadingSession(session_id=session_id or str(uuid.uuid4()))
        self.history: List[TarotReading] = []
        self.paid = False
        self._reader = reader
        self._checkout = checkout

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def stage(self) -> str:
        return self.state.stage

    def _require(self, *stages: str) -> None:
        if self.state.stage not in stages:
            raise StageError(
                f"Cannot do that in stage '{self.state.stage}' (expected {' or '.join(stages)})"
            )

    def _require_idle(self) -> None:
        if self.state.is_loading:
            raise BusyError("A reading is already in progress")

    # ---- question / spread ----------------------------------------------

    def submit_question(self, user_info: str, question: str) -> ReadingSession:
        self._require("question")
        user_info = (user_info or "").strip()
        question = (question or "").strip()
        if not user_info or not question:
            raise ValidationError("Please tell us about yourself and enter a question")
        self.state.user_info = user_info
        self.state.question = question
        self.state.stage = "spread"
        return self.state

    def choose_spread(self, spread_type: str, is_premium: bool = False) -> ReadingSession:
        self._require("spread")
        if spread_type not in ("single", "universal6"):
            raise ValidationError(f"Unknown spread type: {spread_type}")
        self.state.spread_type = spread_type
        self.state.is_premium = bool(is_premium)
        return self.state

    def continue_to_cards(self) -> ReadingSession:
        self._require("spread")
        self.state.selected_card_ids = []
        self.state.stage = "card"
        return self.state

    # ---- card selection --------------------------------------------------

    def select_card(self, card_id: int) -> ReadingSession:
        self._require("card")
        if not cards.has_card(card_id):
            raise ValidationError(f"Unknown card id: {card_id}")

        if self.state.spread_type == "single":
            self.state.selected_card_ids = [card_id]
            self.state.stage = "confirm"
            return self.state

        selected = list(self.state.selected_card_ids)
        needed = required_cards(self.state.spread_type)
        if card_id in selected:
            # re-pick: drop this card and everything chosen after it
            selected = selected[:selected.index(card_id)]
        elif len(selected) < needed:
            selected.append(card_id)
        self.state.selected_card_ids = selected

        if len(selected) == needed:
            self.state.stage = "confirm"
        return self.state

    def selected_cards(self) -> List[Card]:
        return cards.cards_for_ids(self.state.selected_card_ids)

    def go_back(self) -> ReadingSession:
        self._require("confirm")
        self._require_idle()
        self.state.selected_card_ids = []
        self.state.error = None
        self.state.checkout_url = None
        self.state.stage = "card"
        return self.state

    # ---- submission ------------------------------------------------------

    def _check_selection(self) -> None:
        needed = required_cards(self.state.spread_type)
        if len(self.state.selected_card_ids) != needed:
            raise ValidationError(
                f"A {self.state.spread_type} reading needs {needed} card(s), "
                f"got {len(self.state.selected_card_ids)}"
            )

    async def submit(self, origin: str = "") -> ReadingSession:
        """Get the reading, or start checkout first for an unpaid premium session."""
        self._require("confirm")
        self._require_idle()
        self._check_selection()

        if self.state.is_premium and not self.paid:
            await self._start_checkout(origin)
            return self.state

        reader = self._reader or ai.generate_reading
        selected = self.selected_cards()
        self.state.is_loading = True
        self.state.error = None
        try:
            interpretation = await reader(
                selected,
                self.state.question,
                self.state.user_info,
                self.state.spread_type,
            )
        except TarotError as e:
            self.state.error = e.message
            log.warning("Reading failed for session %s: %s", self.session_id, e.message)
            return self.state
        except Exception:
            log.exception("Reading failed for session %s", self.session_id)
            self.state.error = GENERIC_FAILURE_MESSAGE
            return self.state
        finally:
            self.state.is_loading = False

        self.state.reading = TarotReading(
            cards=selected,
            spread_type=self.state.spread_type,
            question=self.state.question,
            user_info=self.state.user_info,
            interpretation=interpretation,
        )
        self.state.stage = "result"
        return self.state

    async def _start_checkout(self, origin: str) -> None:
        checkout = self._checkout or payments.create_checkout_session
        resume_id = storage.save_pending(PendingReading(
            question=self.state.question,
            user_info=self.state.user_info,
            spread_type=self.state.spread_type,
            card_ids=self.state.selected_card_ids,
        ))
        self.state.is_loading = True
        self.state.error = None
        try:
            url = await run_in_threadpool(checkout, self.state.spread_type, origin, resume_id)
        except TarotError as e:
            storage.clear_pending(resume_id)
            log.warning("Checkout failed for session %s: %s", self.session_id, e.message)
            self.state.error = "Could not process payment. Please try again."
            return
        finally:
            self.state.is_loading = False
        self.state.checkout_url = url

    # ---- result ----------------------------------------------------------

    def new_reading(self) -> ReadingSession:
        """Reset everything back to the first step. Also the 'try again' path."""
        self._require_idle()
        self.state = ReadingSession(session_id=self.session_id)
        self.paid = False
        return self.state

    def save_reading(self) -> ReadingSession:
        self._require("result")
        if self.state.reading is not None:
            self.history.append(self.state.reading)
        return self.new_reading()

    # ---- resume after checkout ------------------------------------------

    def resume(self, pending: PendingReading, checkout_session_id: str) -> ReadingSession:
        """Restore a paid reading. Without a full, known selection the cards are picked again."""
        self._require_idle()
        needed = required_cards(pending.spread_type)
        card_ids = [i for i in pending.card_ids if cards.has_card(i)][:needed]
        ready = len(card_ids) == needed and len(set(card_ids)) == needed

        self.state = ReadingSession(
            session_id=self.session_id,
            question=pending.question,
            user_info=pending.user_info,
            spread_type=pending.spread_type,
            selected_card_ids=card_ids if ready else [],
            is_premium=True,
            stage="confirm" if ready else "card",
            checkout_session_id=checkout_session_id,
        )
        self.paid = True
        return self.state


class WizardRegistry:
    """Process-lifetime registry of wizard sessions.

    Holds at most max_sessions; creating one more evicts the least recently
    used idle sessions.
    """

    def __init__(
        self,
        reader: Optional[Reader] = None,
        checkout: Optional[Checkout] = None,
        max_sessions: Optional[int] = None,
    ):
        self._sessions: OrderedDict[str, WizardSession] = OrderedDict()
        self._reader = reader
        self._checkout = checkout
        self.max_sessions = max_sessions or config.WIZARD_MAX_SESSIONS

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> WizardSession:
        self._evict(self.max_sessions - 1)
        w = WizardSession(reader=self._reader, checkout=self._checkout)
        self._sessions[w.session_id] = w
        return w

    def get(self, session_id: str) -> WizardSession:
        w = self._sessions.get(session_id)
        if w is None:
            raise NotFoundError(f"Unknown wizard session: {session_id}")
        self._sessions.move_to_end(session_id)
        return w

    def _evict(self, keep: int) -> None:
        for sid in list(self._sessions):
            if len(self._sessions) <= keep:
                return
            if self._sessions[sid].state.is_loading:
                continue
            del self._sessions[sid]
            log.debug("Evicted wizard session %s", sid)
