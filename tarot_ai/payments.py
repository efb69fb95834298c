"""Stripe Checkout for premium readings, plus the return-trip resume logic."""

import logging
from typing import Dict, List, Mapping, Optional
from urllib.parse import urlencode

import stripe

from . import cards, config
from . import storage
from .errors import CheckoutError
from .models import PendingReading
from .spreads import required_cards

log = logging.getLogger("tarot_ai.payments")

READING_PRODUCTS: Dict[str, Dict[str, str]] = {
    "single": {
        "price": config.STRIPE_PRICE_SINGLE,
        "name": "Single Card Tarot Reading",
    },
    "universal6": {
        "price": config.STRIPE_PRICE_UNIVERSAL6,
        "name": "Universal 6 Card Tarot Reading",
    },
}

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"


def get_product(reading_type: str) -> Dict[str, str]:
    return READING_PRODUCTS.get(reading_type) or READING_PRODUCTS["single"]


def normalize_reading_type(reading_type: Optional[str]) -> str:
    return reading_type if reading_type in READING_PRODUCTS else "single"


def success_url(origin: str, reading_type: str, resume_id: Optional[str] = None) -> str:
    # Stripe substitutes the literal {CHECKOUT_SESSION_ID} placeholder
    params = {"readingType": reading_type}
    if resume_id:
        params["resume_id"] = resume_id
    return f"{origin}/success?session_id={{CHECKOUT_SESSION_ID}}&{urlencode(params)}"


def create_checkout_session(reading_type: str, origin: str, resume_id: Optional[str] = None) -> str:
    """Create a one-off payment session and return the hosted checkout URL."""
    reading_type = normalize_reading_type(reading_type)
    product = get_product(reading_type)

    stripe.api_key = config.STRIPE_SECRET_KEY
    try:
        session = stripe.checkout.Session.create(
            line_items=[{
                "price": product["price"],
                "quantity": 1,
                "adjustable_quantity": {"enabled": False},
            }],
            mode="payment",
            success_url=success_url(origin, reading_type, resume_id),
            cancel_url=f"{origin}/canceled",
            metadata={"readingType": reading_type},
        )
    except stripe.StripeError as e:
        log.error("Stripe checkout error: %s", e)
        raise CheckoutError(e.user_message or str(e) or UNKNOWN_ERROR_MESSAGE, e.http_status or 500) from e
    except Exception as e:
        log.exception("Checkout session creation failed")
        raise CheckoutError(UNKNOWN_ERROR_MESSAGE) from e

    if not session.url:
        raise CheckoutError("Could not retrieve checkout URL")
    log.info("Checkout session %s created for %s reading", session.id, reading_type)
    return session.url


# -------------------------------------------------------------------
# RESUME
# -------------------------------------------------------------------

def continue_url(session_id: str, reading_type: str, resume_id: Optional[str] = None) -> str:
    params = {
        "continue": "true",
        "session_id": session_id,
        "readingType": reading_type,
    }
    if resume_id:
        params["resume_id"] = resume_id
    params["premium"] = "true"
    return f"/read?{urlencode(params)}"


def _known_ids(raw: Optional[str]) -> List[int]:
    """Card ids from a comma list, dropping unknown ids and repeats."""
    out: List[int] = []
    for card_id in storage.split_card_ids(raw):
        if cards.has_card(card_id) and card_id not in out:
            out.append(card_id)
    return out


def resolve_resume(params: Mapping[str, str]) -> Optional[PendingReading]:
    """Rebuild a parked reading from the return-trip query string.

    Query parameters win; the stored entry fills whatever they lack. Card
    ids the catalog does not know are dropped, and a query selection too
    short for the spread gives way to the stored one. If neither source
    holds a full selection the reading comes back with no cards so the
    wizard can have them picked again. The stored entry is removed and the
    checkout session marked consumed, so a second call with the same
    parameters yields None.
    """
    if params.get("continue") != "true":
        return None
    checkout_session_id = params.get("session_id")
    if not checkout_session_id:
        return None
    if storage.is_consumed(checkout_session_id):
        log.info("Checkout session %s already resumed", checkout_session_id)
        return None

    stored = storage.take_pending(params.get("resume_id")) or {}

    def pick(param: str, key: str) -> str:
        return params.get(param) or stored.get(key) or ""

    if not pick("cardIds", storage.KEY_CARD_IDS):
        log.info("No resumable reading for checkout session %s", checkout_session_id)
        return None

    spread_type = normalize_reading_type(pick("readingType", storage.KEY_READING_TYPE))
    needed = required_cards(spread_type)
    candidates = (_known_ids(params.get("cardIds")), _known_ids(stored.get(storage.KEY_CARD_IDS)))
    card_ids = next((ids[:needed] for ids in candidates if len(ids) >= needed), [])
    if not card_ids:
        log.warning(
            "Checkout session %s resumed without a usable %s selection", checkout_session_id, spread_type
        )

    storage.mark_consumed(checkout_session_id)
    return PendingReading(
        question=pick("question", storage.KEY_QUESTION),
        user_info=pick("userInfo", storage.KEY_USER_INFO),
        spread_type=spread_type,
        card_ids=card_ids,
    )
