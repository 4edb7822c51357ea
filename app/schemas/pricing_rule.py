import math
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.enums.pricing import AppliesTo, RuleType
from app.services.pricing_service.records import to_naive_utc

# fields an update may omit but never set to null
NON_NULLABLE_FIELDS = ("name", "applies_to", "rule_type", "value", "currency", "priority", "active")


class _RuleFields(BaseModel):
    @field_validator("name", check_fields=False)
    @classmethod
    def name_not_blank(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Rule name is required")
        return v

    @field_validator("applies_to", "rule_type", mode="before", check_fields=False)
    @classmethod
    def lower_enum(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("value", check_fields=False)
    @classmethod
    def value_non_negative(cls, v):
        if v is None:
            return v
        if not math.isfinite(v):
            raise ValueError("Rule value must be a finite number")
        if v < 0:
            raise ValueError("Rule value must be >= 0")
        return v

    @field_validator("currency", check_fields=False)
    @classmethod
    def upper_currency(cls, v):
        if v is None:
            return v
        return v.strip().upper() or "INR"

    @field_validator("destination", "supplier", check_fields=False)
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        return v.strip() or None


class PricingRuleCreate(_RuleFields):
    name: str
    applies_to: AppliesTo
    destination: Optional[str] = None
    supplier: Optional[str] = None
    rule_type: RuleType
    value: float
    currency: str = "INR"
    priority: int = 100
    active: bool = True
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None

    @model_validator(mode="after")
    def check_window(self):
        valid_from = to_naive_utc(self.valid_from)
        valid_to = to_naive_utc(self.valid_to)
        if valid_from and valid_to and valid_from > valid_to:
            raise ValueError("valid_to must not be earlier than valid_from")
        return self


class PricingRuleUpdate(_RuleFields):
    """Partial update; only fields present in the payload are written."""
    name: Optional[str] = None
    applies_to: Optional[AppliesTo] = None
    destination: Optional[str] = None
    supplier: Optional[str] = None
    rule_type: Optional[RuleType] = None
    value: Optional[float] = None
    currency: Optional[str] = None
    priority: Optional[int] = None
    active: Optional[bool] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None

    @model_validator(mode="after")
    def check_nulls(self):
        for name in NON_NULLABLE_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class PricingRuleResponse(BaseModel):
    id: str
    name: str
    applies_to: str
    destination: Optional[str] = None
    supplier: Optional[str] = None
    rule_type: str
    value: Optional[float] = None
    currency: str = "INR"
    priority: int = 100
    active: bool = True
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PricingRuleListResponse(BaseModel):
    rows: List[PricingRuleResponse]
    total: int
    limit: int
    offset: int


class RuleFilter(BaseModel):
    applies_to: Optional[AppliesTo] = None
    destination: Optional[str] = None
    active: Optional[bool] = None
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)
