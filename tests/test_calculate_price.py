from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from app.schemas.pricing_rule import PricingRuleCreate
from app.schemas.quote import PriceQuoteInput, PriceQuoteItemInput
from app.services.pricing_service import calculate_price
from app.services.pricing_service.calculate_price import price_quote
from app.services.pricing_service.pricing_service import create_pricing_rule
from app.services.pricing_service.records import round2


class BrokenSession:
    """Session stand-in whose every query fails like a dropped connection."""

    def query(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    def rollback(self):
        pass


@pytest.fixture()
def dubai_rules(add_rule, add_version):
    r1 = add_rule(name="Generic package", applies_to="package", rule_type="percent", value=10, priority=200)
    r2 = add_rule(name="Dubai flat", applies_to="package", destination="Dubai", rule_type="fixed", value=2000, priority=50)
    add_version(1, status="active")
    return r1, r2


def test_scenario_lower_priority_destination_rule_wins(db, dubai_rules):
    _, r2 = dubai_rules
    result = price_quote(db, PriceQuoteInput(base_cost=50000, destination="Dubai"))

    assert result.version.version == 1
    line = result.lines[0]
    assert line.rule_id == r2.id
    assert line.rule_type.value == "fixed"
    assert line.markup == 2000
    assert line.total == 52000
    assert result.total == 52000


def test_scenario_destination_mismatch_uses_generic(db, dubai_rules):
    r1, _ = dubai_rules
    result = price_quote(db, PriceQuoteInput(base_cost=50000, destination="Singapore"))

    line = result.lines[0]
    assert line.rule_id == r1.id
    assert line.markup == 5000
    assert line.total == 55000


def test_scenario_no_rule_for_applies_to(db, dubai_rules):
    result = price_quote(db, PriceQuoteInput(items=[PriceQuoteItemInput(applies_to="visa", base_cost=3500)]))

    line = result.lines[0]
    assert line.markup == 0
    assert line.total == 3500
    assert line.rule_id is None
    assert line.rule_name is None
    assert line.rule_type is None
    assert line.rule_value is None
    assert result.version is not None


def test_scenario_no_active_version_degrades(db, add_rule):
    add_rule(value=10)
    result = price_quote(db, PriceQuoteInput(
        items=[
            PriceQuoteItemInput(applies_to="hotel", base_cost=1200),
            PriceQuoteItemInput(applies_to="package", base_cost=800.5),
        ],
    ))

    assert result.version is None
    assert [line.total for line in result.lines] == [1200, 800.5]
    assert all(line.markup == 0 and line.rule_id is None for line in result.lines)
    assert result.total == 2000.5


def test_store_failure_degrades_to_raw_cost():
    result = price_quote(BrokenSession(), PriceQuoteInput(base_cost=999.99, destination="Dubai", channel="agent"))

    assert result.version is None
    assert result.total == 999.99
    assert result.markup == 0
    assert result.channel.value == "agent"
    assert result.destination == "Dubai"
    assert result.lines[0].total == 999.99


def test_unexpected_errors_are_not_masked(db, monkeypatch):
    def boom(_db):
        raise ValueError("bug")

    monkeypatch.setattr(calculate_price, "get_active_version", boom)
    with pytest.raises(ValueError):
        price_quote(db, PriceQuoteInput(base_cost=100))


def test_defaults_and_synthesized_package_line(db):
    result = price_quote(db, PriceQuoteInput(base_cost=-50, currency=" usd ", channel="wholesale"))

    assert result.currency == "USD"
    assert result.channel.value == "b2c"
    line = result.lines[0]
    assert (line.id, line.title, line.applies_to.value) == ("line-1", "Package", "package")
    assert line.base_cost == 0
    assert line.currency == "USD"


def test_items_get_default_ids_titles_and_are_clamped(db, dubai_rules):
    result = price_quote(db, PriceQuoteInput(
        currency="INR",
        items=[
            PriceQuoteItemInput(applies_to="package", base_cost=-10),
            PriceQuoteItemInput(id="h1", title="Hotel", applies_to="hotel", base_cost=100, currency="aed"),
        ],
    ))
    first, second = result.lines
    assert (first.id, first.title, first.base_cost) == ("item-1", "Line 1", 0)
    assert (second.id, second.title, second.currency) == ("h1", "Hotel", "AED")
    assert result.currency == "INR"


def test_item_destination_override(db, dubai_rules):
    _, r2 = dubai_rules
    result = price_quote(db, PriceQuoteInput(
        destination="Singapore",
        items=[PriceQuoteItemInput(applies_to="package", base_cost=10000, destination="dubai")],
    ))
    assert result.lines[0].rule_id == r2.id


def test_version_scoped_rules(db, add_rule, add_version):
    linked = add_rule(value=5, priority=100)
    add_rule(value=50, priority=1)
    add_version(1, status="active", rules=[linked])

    result = price_quote(db, PriceQuoteInput(base_cost=1000))
    assert result.lines[0].rule_id == linked.id
    assert result.markup == 50


def test_rounding_is_half_away_from_zero_per_line(db, add_rule, add_version):
    add_rule(applies_to="hotel", rule_type="percent", value=12.5)
    add_version(1, status="active")

    result = price_quote(db, PriceQuoteInput(items=[
        PriceQuoteItemInput(applies_to="hotel", base_cost=99.99),
        PriceQuoteItemInput(applies_to="hotel", base_cost=10.02),
    ]))
    # 12.49875 -> 12.50, 1.2525 -> 1.25
    assert [line.markup for line in result.lines] == [12.5, 1.25]
    assert [line.total for line in result.lines] == [112.49, 11.27]
    assert result.subtotal == 110.01
    assert result.markup == 13.75
    assert result.total == 123.76


def test_round2_half_up():
    assert round2(Decimal("10.005")) == Decimal("10.01")
    assert round2(Decimal("-10.005")) == Decimal("-10.01")
    assert round2(Decimal("2.675")) == Decimal("2.68")


def test_totals_are_consistent(db, add_rule, add_version):
    add_rule(applies_to="hotel", rule_type="percent", value=7.77)
    add_rule(applies_to="transfer", rule_type="fixed", value=333.33)
    add_version(1, status="active")

    result = price_quote(db, PriceQuoteInput(items=[
        PriceQuoteItemInput(applies_to="hotel", base_cost=1234.56),
        PriceQuoteItemInput(applies_to="transfer", base_cost=45.1),
        PriceQuoteItemInput(applies_to="activity", base_cost=19.99),
    ]))

    for line in result.lines:
        assert line.markup >= 0
        assert Decimal(str(line.total)) == round2(
            Decimal(str(line.base_cost)) + Decimal(str(line.markup)) + Decimal(str(line.tax))
        )
    assert Decimal(str(result.total)) == round2(
        Decimal(str(result.subtotal)) + Decimal(str(result.markup)) + Decimal(str(result.taxes))
    )
    assert result.taxes == 0


def test_what_if_pricing_with_at(db, add_rule, add_version):
    promo = add_rule(value=20, priority=1, valid_from=datetime(2026, 7, 1), valid_to=datetime(2026, 7, 31, 23, 59, 59))
    regular = add_rule(value=10, priority=100)
    add_version(1, status="active")

    in_july = price_quote(db, PriceQuoteInput(base_cost=100, at=datetime(2026, 7, 15, tzinfo=timezone.utc)))
    in_august = price_quote(db, PriceQuoteInput(base_cost=100, at=datetime(2026, 8, 1)))
    # 2026-08-01 03:00 +05:30 is still July 31 in UTC
    india_evening = price_quote(db, PriceQuoteInput(
        base_cost=100, at=datetime(2026, 8, 1, 3, 0, tzinfo=timezone(timedelta(hours=5, minutes=30))),
    ))

    assert in_july.lines[0].rule_id == promo.id
    assert in_august.lines[0].rule_id == regular.id
    assert india_evening.lines[0].rule_id == promo.id


def test_quote_is_repeatable(db, dubai_rules):
    payload = PriceQuoteInput(base_cost=50000, destination="Dubai", at=datetime(2026, 3, 1))
    first = price_quote(db, payload)
    second = price_quote(db, payload)
    assert first.model_dump_json() == second.model_dump_json()


def test_cross_currency_fixed_rule_is_flagged(db, add_rule, add_version):
    rule = add_rule(applies_to="transfer", rule_type="fixed", value=50, currency="USD")
    add_version(1, status="active")

    result = price_quote(db, PriceQuoteInput(items=[PriceQuoteItemInput(applies_to="transfer", base_cost=1000)]))

    assert result.lines[0].rule_id == rule.id
    assert result.lines[0].markup == 50
    assert len(result.warnings) == 1
    assert "USD" in result.warnings[0]


def test_unscoped_version_keeps_pricing_existing_rules_after_create(db, add_rule, add_version):
    existing = add_rule(applies_to="package", rule_type="percent", value=10)
    add_version(1, status="active")
    before = price_quote(db, PriceQuoteInput(base_cost=1000))

    create_pricing_rule(db, PricingRuleCreate(name="Visa fee", applies_to="visa", rule_type="fixed", value=500))
    after = price_quote(db, PriceQuoteInput(base_cost=1000))

    assert before.lines[0].rule_id == existing.id
    assert after.lines[0].rule_id == existing.id
    assert after.markup == 100
