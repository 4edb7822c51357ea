import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import StoreUnavailable
from app.enums.pricing import AppliesTo, RuleType
from app.models.pricing_version import PricingVersion
from app.schemas.pricing_version import PricingVersionResponse
from app.schemas.quote import PriceLine, PriceQuoteInput, PriceQuoteResult
from app.services.pricing_service.records import (
    MatchContext,
    QuoteLineInput,
    RuleRecord,
    clean_text,
    normalize_currency,
    round2,
    to_money,
    to_naive_utc,
)
from app.services.pricing_service.rule_matcher import pick_rule_for_item
from app.services.pricing_service.version_service import get_active_version, load_rule_set_for

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def price_quote(db: Session, data: PriceQuoteInput) -> PriceQuoteResult:
    """
    Price a quote against the active pricing version.

    Pricing sits on the checkout path, so this never fails for missing data:
    - no active version -> every line at raw base cost, version = None
    - store unreachable -> same degraded quote
    - otherwise the version's rule set is loaded once and every line is
      matched against that same snapshot
    """
    currency = normalize_currency(data.currency, settings.DEFAULT_CURRENCY)
    destination = clean_text(data.destination)
    supplier = clean_text(data.supplier)
    at = to_naive_utc(data.at) or datetime.utcnow()

    items = _build_items(data, currency, destination, supplier)
    context = MatchContext(destination=destination, supplier=supplier, at=at)

    try:
        version = get_active_version(db)
        rules = load_rule_set_for(db, version) if version is not None else []
    except StoreUnavailable as e:
        logger.warning("Pricing store unavailable during %s; returning raw-cost quote", e.operation)
        return _assemble(data, currency, destination, items, None, [], context)

    if version is None:
        logger.warning("No active pricing version; returning raw-cost quote")
        return _assemble(data, currency, destination, items, None, [], context)

    return _assemble(data, currency, destination, items, version, rules, context)


# ===================== LINE ITEMS =====================


def _build_items(
    data: PriceQuoteInput,
    currency: str,
    destination: Optional[str],
    supplier: Optional[str],
) -> List[QuoteLineInput]:
    if data.items:
        return [
            QuoteLineInput(
                id=clean_text(item.id) or f"item-{index}",
                title=clean_text(item.title) or f"Line {index}",
                applies_to=item.applies_to,
                base_cost=max(ZERO, to_money(item.base_cost)),
                destination=clean_text(item.destination),
                supplier=clean_text(item.supplier),
                currency=normalize_currency(item.currency, currency),
            )
            for index, item in enumerate(data.items, start=1)
        ]

    return [
        QuoteLineInput(
            id="line-1",
            title="Package",
            applies_to=AppliesTo.package,
            base_cost=max(ZERO, to_money(data.base_cost)),
            destination=destination,
            supplier=supplier,
            currency=currency,
        )
    ]


def _markup_for(rule: Optional[RuleRecord], base_cost: Decimal) -> Decimal:
    if rule is None:
        return ZERO
    value = to_money(rule.value)
    if rule.rule_type == RuleType.percent:
        markup = base_cost * value / Decimal(100)
    else:
        markup = value
    return max(ZERO, round2(markup))


# ===================== AGGREGATION =====================


def _assemble(
    data: PriceQuoteInput,
    currency: str,
    destination: Optional[str],
    items: Sequence[QuoteLineInput],
    version: Optional[PricingVersion],
    rules: Sequence[RuleRecord],
    context: MatchContext,
) -> PriceQuoteResult:
    """Build the quote; with version=None every line is priced at raw cost."""
    lines: List[PriceLine] = []
    warnings: List[str] = []
    subtotal = markup_total = tax_total = ZERO

    for item in items:
        rule = pick_rule_for_item(rules, item, context) if version is not None else None

        base_cost = round2(item.base_cost)
        markup = _markup_for(rule, item.base_cost)
        tax = ZERO
        total = round2(item.base_cost + markup + tax)

        if rule is not None and rule.rule_type == RuleType.fixed and rule.currency != item.currency:
            message = (
                f"Rule {rule.id} carries currency {rule.currency} but line {item.id} "
                f"is priced in {item.currency}; markup applied without conversion"
            )
            logger.warning(message)
            warnings.append(message)

        subtotal += item.base_cost
        markup_total += markup
        tax_total += tax

        lines.append(
            PriceLine(
                id=item.id,
                title=item.title,
                applies_to=item.applies_to,
                base_cost=float(base_cost),
                currency=item.currency,
                markup=float(markup),
                tax=float(tax),
                total=float(total),
                rule_id=rule.id if rule else None,
                rule_name=rule.name if rule else None,
                rule_type=rule.rule_type if rule else None,
                rule_value=rule.value if rule else None,
            )
        )

    subtotal = round2(subtotal)
    markup_total = round2(markup_total)
    tax_total = round2(tax_total)
    total = round2(subtotal + markup_total + tax_total)

    return PriceQuoteResult(
        version=PricingVersionResponse.model_validate(version) if version is not None else None,
        subtotal=float(subtotal),
        markup=float(markup_total),
        taxes=float(tax_total),
        total=float(total),
        currency=currency,
        channel=data.channel,
        destination=destination,
        lines=lines,
        warnings=warnings,
    )
