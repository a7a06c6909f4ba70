"""Request and response models for the HTTP API."""
from typing import Optional

from pydantic import BaseModel, Field

from ..config.settings import MAX_STACKED_DISCOUNTS
from ..engine.models import Discount, ProfitMargin, PERCENTAGE, CASH


class DiscountIn(BaseModel):
    id: int
    label: str
    kind: str = PERCENTAGE
    value: float = Field(default=0, ge=0)
    enabled: bool = True

    def to_domain(self) -> Discount:
        return Discount(id=self.id, label=self.label, kind=self.kind, value=self.value, enabled=self.enabled)


class MarginIn(BaseModel):
    payment_type: str = CASH
    margin_kind: str = PERCENTAGE
    value: float = Field(default=0, ge=0)
    tempo_term_days: Optional[int] = None

    def to_domain(self) -> ProfitMargin:
        return ProfitMargin(
            payment_type=self.payment_type,
            margin_kind=self.margin_kind,
            value=self.value,
            tempo_term_days=self.tempo_term_days,
        )


class CalcRequest(BaseModel):
    """Calculator selections, referenced by id."""
    product_id: Optional[str] = None
    region_id: Optional[str] = None
    customer_id: Optional[str] = None
    tier_id: Optional[str] = None
    discounts: list[DiscountIn] = Field(default_factory=list, max_length=MAX_STACKED_DISCOUNTS)
    margin: MarginIn = Field(default_factory=MarginIn)


class SaveHistoryRequest(CalcRequest):
    notes: Optional[str] = Field(default=None, max_length=1000)


class ChatMessage(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
