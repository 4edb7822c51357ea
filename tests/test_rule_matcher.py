from datetime import datetime, timedelta
from decimal import Decimal

from app.enums.pricing import AppliesTo, RuleType
from app.services.pricing_service.records import MatchContext, QuoteLineInput, RuleRecord
from app.services.pricing_service.rule_matcher import is_rule_valid_at, pick_rule_for_item

AT = datetime(2026, 6, 15, 12, 0, 0)


def _rule(rule_id, priority=100, **overrides) -> RuleRecord:
    fields = dict(
        id=rule_id,
        name=rule_id,
        applies_to=AppliesTo.package,
        destination=None,
        supplier=None,
        rule_type=RuleType.percent,
        value=10.0,
        currency="INR",
        priority=priority,
        active=True,
        valid_from=None,
        valid_to=None,
        created_at=None,
    )
    fields.update(overrides)
    return RuleRecord(**fields)


def _item(applies_to=AppliesTo.package, destination=None, supplier=None) -> QuoteLineInput:
    return QuoteLineInput(
        id="item-1",
        title="Line 1",
        applies_to=applies_to,
        base_cost=Decimal("1000"),
        destination=destination,
        supplier=supplier,
        currency="INR",
    )


def _ctx(destination=None, supplier=None, at=AT) -> MatchContext:
    return MatchContext(destination=destination, supplier=supplier, at=at)


def test_lower_priority_wins_over_specificity():
    generic = _rule("generic", priority=10)
    dubai = _rule("dubai", priority=50, destination="Dubai")
    picked = pick_rule_for_item([generic, dubai], _item(), _ctx(destination="Dubai"))
    assert picked.id == "generic"


def test_first_surviving_rule_in_given_order_wins():
    rules = [_rule("a", priority=5, applies_to=AppliesTo.hotel), _rule("b", priority=7), _rule("c", priority=9)]
    assert pick_rule_for_item(rules, _item(), _ctx()).id == "b"


def test_applies_to_must_match():
    rules = [_rule("hotel-only", applies_to=AppliesTo.hotel)]
    assert pick_rule_for_item(rules, _item(AppliesTo.visa), _ctx()) is None


def test_destination_is_case_insensitive():
    rules = [_rule("dubai", destination="Dubai")]
    assert pick_rule_for_item(rules, _item(), _ctx(destination="  dUBAI ")).id == "dubai"


def test_destination_scoped_rule_rejected_without_destination():
    rules = [_rule("dubai", destination="Dubai")]
    assert pick_rule_for_item(rules, _item(), _ctx()) is None


def test_destination_mismatch_falls_through_to_generic():
    rules = [_rule("dubai", priority=50, destination="Dubai"), _rule("generic", priority=200)]
    assert pick_rule_for_item(rules, _item(), _ctx(destination="Singapore")).id == "generic"


def test_item_destination_overrides_quote_destination():
    rules = [_rule("bali", destination="Bali")]
    picked = pick_rule_for_item(rules, _item(destination="Bali"), _ctx(destination="Dubai"))
    assert picked.id == "bali"


def test_supplier_gate():
    rules = [_rule("acme", supplier="Acme Tours")]
    assert pick_rule_for_item(rules, _item(), _ctx()) is None
    assert pick_rule_for_item(rules, _item(supplier="acme tours"), _ctx()).id == "acme"
    assert pick_rule_for_item(rules, _item(), _ctx(supplier="Other")) is None


def test_inactive_rule_never_selected():
    rules = [_rule("off", active=False)]
    assert pick_rule_for_item(rules, _item(), _ctx()) is None


def test_validity_window_is_inclusive():
    rule = _rule("window", valid_from=AT, valid_to=AT)
    assert is_rule_valid_at(rule, AT)
    assert not is_rule_valid_at(rule, AT - timedelta(seconds=1))
    assert not is_rule_valid_at(rule, AT + timedelta(seconds=1))


def test_rule_outside_window_skipped_for_next_rule():
    expired = _rule("expired", priority=1, valid_to=AT - timedelta(days=1))
    future = _rule("future", priority=2, valid_from=AT + timedelta(days=1))
    fallback = _rule("fallback", priority=3)
    assert pick_rule_for_item([expired, future, fallback], _item(), _ctx()).id == "fallback"


def test_matching_is_deterministic():
    rules = [_rule("x", priority=100), _rule("y", priority=100)]
    picks = {pick_rule_for_item(rules, _item(), _ctx()).id for _ in range(20)}
    assert picks == {"x"}


def test_no_rules_returns_none():
    assert pick_rule_for_item([], _item(), _ctx()) is None
