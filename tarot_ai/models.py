from datetime import datetime, timezone
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

SpreadType = Literal["single", "universal6"]
Stage = Literal["question", "spread", "card", "confirm", "result"]


class Card(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=0, le=21)
    name: str
    image: str = ""


class PositionReading(BaseModel):
    position: int = Field(..., ge=1, le=6)
    card: str
    description: str
    interpretation: str


class StructuredReading(BaseModel):
    kind: Literal["structured"] = "structured"
    positions: List[PositionReading]
    overall: str


class Narrative(BaseModel):
    kind: Literal["narrative"] = "narrative"
    text: str
    fallback: bool = False  # set when a structured reply was expected but could not be parsed


Interpretation = Union[Narrative, StructuredReading]


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class TarotReading(BaseModel):
    cards: List[Card]
    spread_type: SpreadType
    question: str
    user_info: str
    interpretation: Interpretation = Field(..., discriminator="kind")
    date: str = Field(default_factory=_utcnow)


class ReadingSession(BaseModel):
    session_id: str
    question: str = ""
    user_info: str = ""
    spread_type: SpreadType = "single"
    selected_card_ids: List[int] = Field(default_factory=list)
    is_premium: bool = False
    stage: Stage = "question"
    is_loading: bool = False
    error: Optional[str] = None
    reading: Optional[TarotReading] = None
    checkout_url: Optional[str] = None
    checkout_session_id: Optional[str] = None


class PendingReading(BaseModel):
    """An in-flight session parked across a checkout redirect."""

    question: str = ""
    user_info: str = ""
    spread_type: SpreadType = "single"
    card_ids: List[int] = Field(default_factory=list)


# ---- HTTP bodies -----------------------------------------------------------

class TarotRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_info: str = Field("", alias="userInfo")
    question: str = ""
    cards: List[Card] = Field(default_factory=list)
    card: Optional[Card] = None
    spread_type: str = Field("single", alias="spreadType")

    @field_validator("cards", mode="before")
    @classmethod
    def _cards_list(cls, v: Any) -> Any:
        # anything but a list means no cards; `card` is read instead
        return v if isinstance(v, list) else []

    @field_validator("spread_type", mode="before")
    @classmethod
    def _spread(cls, v: Any) -> str:
        return "universal6" if v == "universal6" else "single"


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reading_type: str = Field("single", alias="readingType")


class CheckoutResponse(BaseModel):
    url: str


class QuestionStep(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_info: str = Field("", alias="userInfo")
    question: str = ""


class SpreadStep(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    spread_type: SpreadType = Field(..., alias="spreadType")
    is_premium: bool = Field(False, alias="isPremium")


class CardStep(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_id: int = Field(..., alias="cardId")
