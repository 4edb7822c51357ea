"""
Strict internal records the pricing engine operates on.

Rows read from the store are decoded into ``RuleRecord`` once, at the store
boundary; the matcher and the calculator never see ORM objects.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from app.enums.pricing import AppliesTo, RuleType

CENT = Decimal("0.01")


@dataclass(frozen=True)
class RuleRecord:
    id: str
    name: str
    applies_to: AppliesTo
    destination: Optional[str]
    supplier: Optional[str]
    rule_type: RuleType
    value: float
    currency: str
    priority: int
    active: bool
    valid_from: Optional[datetime]
    valid_to: Optional[datetime]
    created_at: Optional[datetime]


@dataclass(frozen=True)
class QuoteLineInput:
    """A line item after defaults and clamping have been applied."""
    id: str
    title: str
    applies_to: AppliesTo
    base_cost: Decimal
    destination: Optional[str]
    supplier: Optional[str]
    currency: str


@dataclass(frozen=True)
class MatchContext:
    destination: Optional[str]
    supplier: Optional[str]
    at: datetime


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; aware inputs are converted first."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_money(value) -> Decimal:
    return Decimal(str(value))


def round2(value: Decimal) -> Decimal:
    """Round half away from zero to two decimal places."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def normalize_currency(value: Optional[str], default: str = "INR") -> str:
    cleaned = clean_text(value)
    return cleaned.upper() if cleaned else default
