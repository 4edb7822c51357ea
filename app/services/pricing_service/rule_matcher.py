"""
Rule Matcher: picks the single rule that prices a line item.

First match wins. Candidates arrive pre-sorted by (priority, created_at), and
destination / supplier act as gates only, so a lower priority number always
beats a more specific rule further down the list.
"""
from datetime import datetime
from typing import Iterable, Optional

from app.services.pricing_service.records import MatchContext, QuoteLineInput, RuleRecord


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_rule_valid_at(rule: RuleRecord, at: datetime) -> bool:
    if not rule.active:
        return False
    if rule.valid_from is not None and at < rule.valid_from:
        return False
    if rule.valid_to is not None and at > rule.valid_to:
        return False
    return True


def _gate(rule_value: Optional[str], item_value: Optional[str]) -> bool:
    """A scoped rule needs an equal value to compare against; generic rules pass."""
    wanted = _norm(rule_value)
    if not wanted:
        return True
    return wanted == _norm(item_value)


def pick_rule_for_item(
    rules: Iterable[RuleRecord],
    item: QuoteLineInput,
    context: MatchContext,
) -> Optional[RuleRecord]:
    destination = item.destination or context.destination
    supplier = item.supplier or context.supplier

    for rule in rules:
        if rule.applies_to != item.applies_to:
            continue
        if not is_rule_valid_at(rule, context.at):
            continue
        if not _gate(rule.destination, destination):
            continue
        if not _gate(rule.supplier, supplier):
            continue
        return rule
    return None
