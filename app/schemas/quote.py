from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.enums.pricing import AppliesTo, Channel, RuleType
from app.schemas.pricing_version import PricingVersionResponse


class PriceQuoteItemInput(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None
    applies_to: AppliesTo
    base_cost: float = Field(default=0.0, allow_inf_nan=False)
    destination: Optional[str] = None
    supplier: Optional[str] = None
    currency: Optional[str] = None

    @field_validator("applies_to", mode="before")
    @classmethod
    def lower_applies_to(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class PriceQuoteInput(BaseModel):
    base_cost: float = Field(default=0.0, allow_inf_nan=False)
    items: Optional[List[PriceQuoteItemInput]] = None
    destination: Optional[str] = None
    supplier: Optional[str] = None
    channel: Channel = Channel.b2c
    currency: Optional[str] = None
    at: Optional[datetime] = None

    @field_validator("channel", mode="before")
    @classmethod
    def coerce_channel(cls, v):
        # anything that is not explicitly "agent" is priced as b2c
        if isinstance(v, Channel):
            return v
        if isinstance(v, str) and v.strip().lower() == "agent":
            return Channel.agent
        return Channel.b2c


class PriceLine(BaseModel):
    id: str
    title: str
    applies_to: AppliesTo
    base_cost: float
    currency: str
    markup: float
    tax: float
    total: float
    rule_id: Optional[str] = None
    rule_name: Optional[str] = None
    rule_type: Optional[RuleType] = None
    rule_value: Optional[float] = None


class PriceQuoteResult(BaseModel):
    version: Optional[PricingVersionResponse] = None
    subtotal: float
    markup: float
    taxes: float
    total: float
    currency: str
    channel: Channel
    destination: Optional[str] = None
    lines: List[PriceLine]
    warnings: List[str] = []
