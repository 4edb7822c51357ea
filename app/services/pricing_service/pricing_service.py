"""
Rule Store: persistence and decoding of pricing rules.

Read path (``list_active_rules``) is used by quote pricing and never raises
for bad data: rows that do not decode into a ``RuleRecord`` are dropped.
Write path (create / update / toggle) is administrative and surfaces every
failure to the caller.
"""
import logging
import math
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import exists
from sqlalchemy.orm import Session

from app.core.exceptions import ResourceNotFoundError, RuleValidationError
from app.database.connection import store_call
from app.enums.pricing import AppliesTo, RuleType, VersionStatus
from app.models.pricing_rule import PricingRule
from app.models.pricing_version import PricingRuleVersion, PricingVersion
from app.schemas.pricing_rule import PricingRuleCreate, PricingRuleUpdate, RuleFilter
from app.services.audit_service import write_audit_log

from app.services.pricing_service.records import RuleRecord, clean_text, normalize_currency, to_naive_utc

logger = logging.getLogger(__name__)

APPLIES_TO_VALUES = {a.value for a in AppliesTo}
RULE_TYPE_VALUES = {t.value for t in RuleType}
DEFAULT_PRIORITY = 100


# ===================== DECODING =====================


def _to_float(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_datetime(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, str) and value.strip():
        try:
            return to_naive_utc(datetime.fromisoformat(value.strip()))
        except ValueError:
            return None
    return None


def decode_rule(row) -> Optional[RuleRecord]:
    """
    Decode a stored row into a RuleRecord, or None when the row is unusable.

    Unknown enum values, a missing id and a non-numeric or negative value all
    make the row unusable; they are never replaced with defaults.
    """
    rule_id = clean_text(getattr(row, "id", None))
    applies_to = (clean_text(getattr(row, "applies_to", None)) or "").lower()
    rule_type = (clean_text(getattr(row, "rule_type", None)) or "").lower()
    value = _to_float(getattr(row, "value", None))

    if not rule_id or applies_to not in APPLIES_TO_VALUES or rule_type not in RULE_TYPE_VALUES:
        return None
    if value is None or value < 0:
        return None

    priority = _to_float(getattr(row, "priority", None))
    return RuleRecord(
        id=rule_id,
        name=clean_text(getattr(row, "name", None)) or f"Rule {rule_id[:8]}",
        applies_to=AppliesTo(applies_to),
        destination=clean_text(getattr(row, "destination", None)),
        supplier=clean_text(getattr(row, "supplier", None)),
        rule_type=RuleType(rule_type),
        value=value,
        currency=normalize_currency(getattr(row, "currency", None)),
        priority=math.floor(priority) if priority is not None else DEFAULT_PRIORITY,
        active=getattr(row, "active", True) is not False,
        valid_from=_to_datetime(getattr(row, "valid_from", None)),
        valid_to=_to_datetime(getattr(row, "valid_to", None)),
        created_at=_to_datetime(getattr(row, "created_at", None)),
    )


def decode_rules(rows) -> List[RuleRecord]:
    records = []
    for row in rows:
        record = decode_rule(row)
        if record is None:
            logger.warning("Dropping malformed pricing rule row id=%r", getattr(row, "id", None))
            continue
        records.append(record)
    return records


# ===================== READ PATH =====================


def list_active_rules(db: Session, applies_to: Optional[AppliesTo] = None) -> List[RuleRecord]:
    """Active rules ordered by (priority, created_at), ready for the matcher."""
    with store_call(db, "list_active_rules"):
        query = db.query(PricingRule).filter(PricingRule.active.is_(True))
        if applies_to is not None:
            query = query.filter(PricingRule.applies_to == AppliesTo(applies_to).value)
        rows = (
            query
            .order_by(PricingRule.priority.asc(), PricingRule.created_at.asc(), PricingRule.id.asc())
            .all()
        )
    return decode_rules(rows)


def list_rules(db: Session, filters: RuleFilter) -> Tuple[List[PricingRule], int]:
    with store_call(db, "list_rules"):
        query = db.query(PricingRule)
        if filters.applies_to is not None:
            query = query.filter(PricingRule.applies_to == filters.applies_to.value)
        destination = clean_text(filters.destination)
        if destination:
            pattern = destination.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            query = query.filter(PricingRule.destination.ilike(f"%{pattern}%", escape="\\"))
        if filters.active is not None:
            query = query.filter(PricingRule.active.is_(filters.active))

        total = query.count()
        rows = (
            query
            .order_by(PricingRule.priority.asc(), PricingRule.created_at.desc())
            .offset(filters.offset)
            .limit(filters.limit)
            .all()
        )
    return rows, total


def get_pricing_rule(db: Session, rule_id: str) -> PricingRule:
    with store_call(db, "get_pricing_rule"):
        rule = db.query(PricingRule).filter(PricingRule.id == rule_id).first()
    if not rule:
        raise ResourceNotFoundError("Pricing rule", rule_id)
    return rule


# ===================== WRITE PATH =====================


def _has_links(db: Session, version_id: str) -> bool:
    return db.query(exists().where(PricingRuleVersion.version_id == version_id)).scalar()


def _payload(data) -> dict:
    payload = {}
    for key, value in data.model_dump(exclude_unset=True).items():
        if isinstance(value, (AppliesTo, RuleType)):
            value = value.value
        elif isinstance(value, datetime):
            value = to_naive_utc(value)
        payload[key] = value
    return payload


def create_pricing_rule(db: Session, rule: PricingRuleCreate, actor: Optional[str] = None) -> PricingRule:
    payload = _payload(rule)
    for key in ("currency", "priority", "active"):
        payload.setdefault(key, getattr(rule, key))

    with store_call(db, "create_pricing_rule"):
        db_rule = PricingRule(**payload)
        db.add(db_rule)
        db.flush()

        # new rules join the active version only when it is scoped; an unscoped
        # version already prices every active rule
        active_version = (
            db.query(PricingVersion)
            .filter(PricingVersion.status == VersionStatus.active.value)
            .order_by(PricingVersion.version.desc(), PricingVersion.created_at.desc())
            .first()
        )
        linked_version = None
        if active_version is not None and _has_links(db, active_version.id):
            linked_version = active_version
            db.add(PricingRuleVersion(version_id=linked_version.id, rule_id=db_rule.id))

        write_audit_log(
            db,
            actor=actor,
            action="pricing_rule_created",
            entity_type="pricing_rule",
            entity_id=db_rule.id,
            message="Pricing rule created",
            meta={
                "applies_to": db_rule.applies_to,
                "rule_type": db_rule.rule_type,
                "value": db_rule.value,
                "linked_version_id": linked_version.id if linked_version else None,
            },
        )
        db.commit()
        db.refresh(db_rule)
    return db_rule


def update_pricing_rule(
    db: Session,
    rule_id: str,
    rule_update: PricingRuleUpdate,
    actor: Optional[str] = None,
) -> PricingRule:
    db_rule = get_pricing_rule(db, rule_id)
    payload = _payload(rule_update)

    valid_from = payload.get("valid_from", to_naive_utc(db_rule.valid_from))
    valid_to = payload.get("valid_to", to_naive_utc(db_rule.valid_to))
    if valid_from and valid_to and valid_from > valid_to:
        raise RuleValidationError("valid_to", "must not be earlier than valid_from")

    with store_call(db, "update_pricing_rule"):
        for key, value in payload.items():
            setattr(db_rule, key, value)
        db_rule.updated_at = datetime.utcnow()

        write_audit_log(
            db,
            actor=actor,
            action="pricing_rule_updated",
            entity_type="pricing_rule",
            entity_id=rule_id,
            message="Pricing rule updated",
            meta={"updated_fields": sorted(payload)},
        )
        db.commit()
        db.refresh(db_rule)
    return db_rule


def toggle_pricing_rule(db: Session, rule_id: str, actor: Optional[str] = None) -> PricingRule:
    db_rule = get_pricing_rule(db, rule_id)

    with store_call(db, "toggle_pricing_rule"):
        db_rule.active = not bool(db_rule.active)
        db_rule.updated_at = datetime.utcnow()

        write_audit_log(
            db,
            actor=actor,
            action="pricing_rule_toggled",
            entity_type="pricing_rule",
            entity_id=rule_id,
            message="Pricing rule activated" if db_rule.active else "Pricing rule deactivated",
            meta={"active": db_rule.active},
        )
        db.commit()
        db.refresh(db_rule)
    return db_rule
