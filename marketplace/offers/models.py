"""Input and result models of the offer lifecycle."""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from marketplace.domain.models import Offer, Project

MAX_TEXT_LENGTH = 2000
MAX_ATTACHMENTS = 5


class OfferSubmission(BaseModel):
    """Terms a company submits with a new offer.

    Accepts both snake_case and the camelCase keys of JSON bodies
    (``estimatedDays``).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    price: Decimal = Field(..., ge=0, description="Offered price")
    currency: str = Field("USD", description="ISO 4217 currency code")
    description: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    estimated_days: Optional[int] = Field(None, ge=1, description="Estimated duration")
    attachments: List[str] = Field(default_factory=list, max_length=MAX_ATTACHMENTS)
    message: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError("currency must be a 3-letter code")
        return code


class OfferUpdate(BaseModel):
    """Editable terms of a PENDING offer; omitted fields stay unchanged."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    price: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    estimated_days: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def validate_not_empty(self):
        if self.price is None and self.description is None and self.estimated_days is None:
            raise ValueError("at least one of price, description or estimatedDays is required")
        return self


@dataclass
class AcceptanceResult:
    """Outcome of accepting an offer.

    Attributes:
        offer: The accepted offer
        project: Project created from it
        rejected_count: Competing PENDING offers that were auto-rejected
    """

    offer: Offer
    project: Project
    rejected_count: int = 0
