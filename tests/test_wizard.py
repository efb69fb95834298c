import asyncio

import pytest

from tarot_ai import storage
from tarot_ai.errors import (
    AIServiceError,
    BusyError,
    CheckoutError,
    NotFoundError,
    StageError,
    ValidationError,
)
from tarot_ai.models import Narrative, PendingReading
from tarot_ai.wizard import GENERIC_FAILURE_MESSAGE, WizardRegistry, WizardSession


class FakeReader:
    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result or Narrative(text="A bright path opens.")
        self.error = error

    async def __call__(self, cards, question, user_info, spread_type):
        self.calls.append((list(cards), question, user_info, spread_type))
        if self.error is not None:
            raise self.error
        return self.result


class FakeCheckout:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def __call__(self, reading_type, origin, resume_id):
        self.calls.append((reading_type, origin, resume_id))
        if self.error is not None:
            raise self.error
        return "https://checkout.stripe.test/c/pay_123"


def _at_cards(wizard, spread_type="single", premium=False):
    wizard.submit_question("A night owl", "What should I focus on?")
    wizard.choose_spread(spread_type, premium)
    wizard.continue_to_cards()
    return wizard


def test_question_requires_both_fields():
    w = WizardSession()
    with pytest.raises(ValidationError):
        w.submit_question("   ", "Where am I headed?")
    assert w.stage == "question"
    w.submit_question(" me ", " Where am I headed? ")
    assert w.stage == "spread"
    assert w.state.question == "Where am I headed?"
    assert w.state.user_info == "me"


def test_spread_selection_stays_on_spread_stage():
    w = WizardSession()
    w.submit_question("me", "q")
    w.choose_spread("universal6", True)
    assert w.stage == "spread"
    assert w.state.spread_type == "universal6"
    assert w.state.is_premium is True
    with pytest.raises(ValidationError):
        w.choose_spread("celtic-cross")


def test_out_of_order_step_is_stage_error():
    w = WizardSession()
    with pytest.raises(StageError):
        w.select_card(3)
    with pytest.raises(StageError):
        asyncio.run(w.submit())


def test_single_card_goes_straight_to_confirm():
    w = _at_cards(WizardSession())
    w.select_card(17)
    assert w.stage == "confirm"
    assert w.state.selected_card_ids == [17]


def test_unknown_card_rejected():
    w = _at_cards(WizardSession())
    with pytest.raises(ValidationError):
        w.select_card(22)
    assert w.state.selected_card_ids == []


def test_universal6_fills_in_order():
    w = _at_cards(WizardSession(), "universal6")
    for i, card_id in enumerate([4, 9, 13, 0, 21]):
        w.select_card(card_id)
        assert w.state.selected_card_ids[-1] == card_id
        assert len(w.state.selected_card_ids) == i + 1
        assert w.stage == "card"
    w.select_card(7)
    assert w.stage == "confirm"
    assert w.state.selected_card_ids == [4, 9, 13, 0, 21, 7]


@pytest.mark.parametrize("k", range(5))
def test_repick_truncates_at_position(k):
    picks = [10, 11, 12, 13, 14]
    w = _at_cards(WizardSession(), "universal6")
    for card_id in picks:
        w.select_card(card_id)
    w.select_card(picks[k])
    assert w.state.selected_card_ids == picks[:k]
    assert w.stage == "card"


def test_selection_never_exceeds_spread_size():
    w = _at_cards(WizardSession(), "universal6")
    for card_id in [1, 2, 3, 1, 5, 6, 7, 2, 8, 9, 10, 11, 12]:
        if w.stage != "card":
            break
        w.select_card(card_id)
        assert len(w.state.selected_card_ids) <= 6
        assert len(set(w.state.selected_card_ids)) == len(w.state.selected_card_ids)
    assert w.stage == "confirm"
    assert len(w.state.selected_card_ids) == 6


def test_continue_clears_previous_selection():
    w = _at_cards(WizardSession())
    w.select_card(3)
    w.go_back()
    assert w.stage == "card"
    assert w.state.selected_card_ids == []


def test_submit_reads_and_moves_to_result():
    reader = FakeReader()
    w = _at_cards(WizardSession(reader=reader))
    w.select_card(17)
    state = asyncio.run(w.submit())
    assert state.stage == "result"
    assert state.is_loading is False
    assert state.reading.cards[0].name == "The Star"
    assert state.reading.interpretation.text == "A bright path opens."
    assert reader.calls[0][1:] == ("What should I focus on?", "A night owl", "single")


def test_submit_uses_default_reader(backend):
    w = _at_cards(WizardSession())
    w.select_card(17)
    asyncio.run(w.submit())
    assert w.stage == "result"
    assert len(backend.prompts) == 1
    assert "The Star" in backend.prompts[0]


def test_submit_failure_keeps_confirm_and_sets_error():
    w = _at_cards(WizardSession(reader=FakeReader(error=AIServiceError("Failed to fetch from AI service"))))
    w.select_card(1)
    state = asyncio.run(w.submit())
    assert state.stage == "confirm"
    assert state.error == "Failed to fetch from AI service"
    assert state.is_loading is False


def test_unexpected_failure_uses_generic_message():
    w = _at_cards(WizardSession(reader=FakeReader(error=RuntimeError("boom"))))
    w.select_card(1)
    state = asyncio.run(w.submit())
    assert state.error == GENERIC_FAILURE_MESSAGE
    assert state.stage == "confirm"


def test_busy_session_refuses_second_submit():
    reader = FakeReader()
    w = _at_cards(WizardSession(reader=reader))
    w.select_card(1)
    w.state.is_loading = True
    with pytest.raises(BusyError):
        asyncio.run(w.submit())
    with pytest.raises(BusyError):
        w.go_back()
    assert reader.calls == []


def test_premium_submit_parks_reading_and_starts_checkout(resume_dir):
    reader = FakeReader()
    checkout = FakeCheckout()
    w = _at_cards(WizardSession(reader=reader, checkout=checkout), "universal6", premium=True)
    for card_id in [0, 1, 2, 3, 4, 5]:
        w.select_card(card_id)

    state = asyncio.run(w.submit("http://localhost:3000"))
    assert state.checkout_url == "https://checkout.stripe.test/c/pay_123"
    assert state.stage == "confirm"
    assert reader.calls == []

    reading_type, origin, resume_id = checkout.calls[0]
    assert (reading_type, origin) == ("universal6", "http://localhost:3000")
    assert storage.load_pending(resume_id) == {
        storage.KEY_QUESTION: "What should I focus on?",
        storage.KEY_USER_INFO: "A night owl",
        storage.KEY_CARD_IDS: "0,1,2,3,4,5",
        storage.KEY_READING_TYPE: "universal6",
    }


def test_checkout_failure_clears_parked_reading(resume_dir):
    checkout = FakeCheckout(error=CheckoutError("No such price", 400))
    w = _at_cards(WizardSession(checkout=checkout), premium=True)
    w.select_card(9)
    state = asyncio.run(w.submit("http://localhost:3000"))
    assert state.error == "Could not process payment. Please try again."
    assert state.checkout_url is None
    resume_id = checkout.calls[0][2]
    assert storage.load_pending(resume_id) is None


def test_resume_single_keeps_first_card_only():
    w = WizardSession()
    w.resume(PendingReading(question="q", user_info="u", spread_type="single", card_ids=[3, 7]), "cs_test_1")
    assert w.state.selected_card_ids == [3]
    assert w.stage == "confirm"
    assert w.state.is_premium is True
    assert w.paid is True
    assert w.state.checkout_session_id == "cs_test_1"


@pytest.mark.parametrize(
    "spread_type,card_ids",
    [("universal6", [3, 7]), ("universal6", [0, 1, 2, 3, 4, 4]), ("single", [99]), ("single", [])],
)
def test_resume_without_full_selection_picks_cards_again(spread_type, card_ids):
    w = WizardSession()
    w.resume(PendingReading(question="q", user_info="u", spread_type=spread_type, card_ids=card_ids), "cs_x")
    assert w.stage == "card"
    assert w.state.selected_card_ids == []
    assert w.state.is_premium is True
    assert w.paid is True


def test_resume_universal6_extra_ids_keep_first_six():
    w = WizardSession()
    w.resume(PendingReading(spread_type="universal6", card_ids=[0, 1, 2, 3, 4, 5, 6]), "cs_y")
    assert w.stage == "confirm"
    assert w.state.selected_card_ids == [0, 1, 2, 3, 4, 5]


def test_resumed_premium_session_reads_without_checkout():
    reader = FakeReader()
    checkout = FakeCheckout()
    w = WizardSession(reader=reader, checkout=checkout)
    w.resume(PendingReading(question="q", user_info="u", spread_type="single", card_ids=[3]), "cs_test_2")
    asyncio.run(w.submit())
    assert w.stage == "result"
    assert checkout.calls == []
    assert len(reader.calls) == 1


def test_save_reading_records_history_and_resets():
    w = _at_cards(WizardSession(reader=FakeReader()))
    w.select_card(17)
    asyncio.run(w.submit())
    w.save_reading()
    assert w.stage == "question"
    assert w.state.question == ""
    assert len(w.history) == 1
    assert w.history[0].cards[0].id == 17


def test_new_reading_resets_everything():
    w = _at_cards(WizardSession(), premium=True)
    w.select_card(2)
    w.new_reading()
    assert w.stage == "question"
    assert w.state.selected_card_ids == []
    assert w.state.is_premium is False
    assert w.history == []


def test_registry_lookup():
    reg = WizardRegistry()
    w = reg.create()
    assert reg.get(w.session_id) is w
    with pytest.raises(NotFoundError):
        reg.get("missing")


def test_registry_evicts_least_recently_used():
    reg = WizardRegistry(max_sessions=2)
    first = reg.create()
    second = reg.create()
    reg.get(first.session_id)
    reg.create()
    assert len(reg) == 2
    assert reg.get(first.session_id) is first
    with pytest.raises(NotFoundError):
        reg.get(second.session_id)


def test_registry_keeps_busy_sessions():
    reg = WizardRegistry(max_sessions=1)
    busy = reg.create()
    busy.state.is_loading = True
    reg.create()
    assert reg.get(busy.session_id) is busy
