from typing import List, Optional, Tuple
import logging

from openai import APIConnectionError, APIError, AsyncOpenAI

from . import config
from .errors import AIConfigurationError, AIServiceError, ValidationError
from .models import Card, Interpretation, Narrative
from .parsing import ParseSuccess, parse_structured_reading
from .spreads import UNIVERSAL6_POSITIONS

log = logging.getLogger("tarot_ai.ai")

MISSING_KEY_MESSAGE = "API configuration error: Missing API key"
FETCH_FAILED_MESSAGE = "Failed to fetch from AI service"
GENERATION_FAILED_MESSAGE = "Failed to generate content from AI service"
NO_CARDS_MESSAGE = "No cards provided for reading"

_JSON_SHAPE = (
    '{"positions": ['
    '{"position": 1, "card": "<card name>", "description": "<position meaning>", '
    '"interpretation": "<what the card means here for the querent>"}, ... six entries ...], '
    '"overall": "<synthesis of the whole spread>"}'
)


# -------------------------------------------------------------------
# PROMPTS
# -------------------------------------------------------------------

def build_single_prompt(card: Card, question: str, user_info: str) -> str:
    return "\n".join([
        f"You are a tarot card reader. The person asking describes themselves as: {user_info}.",
        f'Their question is: "{question}".',
        f'The card drawn is "{card.name}".',
        "Reply in the same language the question is written in.",
        "Give a detailed interpretation of this card as it relates to the question.",
        "Keep the interpretation insightful and grounded in the person's situation.",
    ])


def build_universal6_prompt(cards: List[Card], question: str, user_info: str) -> str:
    lines = [
        "You are an expert tarot card reader interpreting the Universal 6 Card Spread.",
        f"About the querent: {user_info}",
        f'The querent asks: "{question}"',
        "The Universal 6 Card Spread uses Major Arcana cards to give a snapshot of the querent's current situation.",
        "The six cards drawn, in position order:",
    ]
    for i, card in enumerate(cards):
        lines.append(f"Position {i + 1} ({UNIVERSAL6_POSITIONS[i]}): {card.name}")
    lines.extend([
        "Interpret each card in its position and relate it to the question, then give an overall synthesis.",
        "Reply in the same language the question is written in.",
        "The first reading is the one to accept; do not suggest drawing again.",
        "Return ONLY a JSON object with exactly this shape and no other text:",
        _JSON_SHAPE,
    ])
    return "\n".join(lines)


def build_prompt(
    cards: List[Card],
    question: str,
    user_info: str,
    spread_type: str = "single",
    card: Optional[Card] = None,
) -> Tuple[str, bool]:
    """Return (prompt, expects_structured_reply).

    The six-position prompt is only used when exactly six cards arrive for a
    universal6 spread; anything else is read as a single card.
    """
    if spread_type == "universal6" and len(cards) == len(UNIVERSAL6_POSITIONS):
        return build_universal6_prompt(cards, question, user_info), True

    single = card or (cards[0] if cards else None)
    if single is None:
        raise ValidationError(NO_CARDS_MESSAGE)
    return build_single_prompt(single, question, user_info), False


# -------------------------------------------------------------------
# BACKEND CALL
# -------------------------------------------------------------------

async def generate_text(prompt: str) -> str:
    api_key = config.openai_api_key()
    if not api_key:
        log.error("Missing OPENAI_API_KEY environment variable")
        raise AIConfigurationError(MISSING_KEY_MESSAGE)

    client = AsyncOpenAI(api_key=api_key)
    try:
        response = await client.chat.completions.create(
            model=config.OPENAI_MODEL,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=config.AI_MAX_OUTPUT_TOKENS,
        )
    except APIConnectionError as e:
        log.error("AI backend unreachable: %s", e)
        raise AIServiceError(FETCH_FAILED_MESSAGE) from e
    except APIError as e:
        log.error("AI backend error: %s", e)
        raise AIServiceError(GENERATION_FAILED_MESSAGE) from e

    return (response.choices[0].message.content or "").strip()


async def generate_reading(
    cards: List[Card],
    question: str,
    user_info: str,
    spread_type: str = "single",
    card: Optional[Card] = None,
) -> Interpretation:
    """Ask the backend for a reading and normalise the reply.

    Single card replies come back untouched as a Narrative. Six card replies
    are parsed into a StructuredReading, degrading to a Narrative flagged as
    a fallback when the JSON cannot be recovered.
    """
    prompt, structured = build_prompt(cards, question, user_info, spread_type, card)
    text = await generate_text(prompt)

    if not structured:
        return Narrative(text=text)

    result = parse_structured_reading(text)
    if isinstance(result, ParseSuccess):
        return result.reading
    log.warning("Structured reading not recoverable (%s); returning raw text", result.reason)
    return Narrative(text=text, fallback=True)
