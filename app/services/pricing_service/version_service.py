"""
Version Store: pricing versions, their rule links and activation.

Exactly one row may carry ``status = 'active'``. Activation runs as one
transaction (row lock on the target, archive every other active row, mark
the target active) and the post-condition is re-read after commit. Conflicts
with a concurrent writer are retried a bounded number of times.
"""
import logging
from collections import defaultdict
from typing import Callable, List, Optional, TypeVar

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    ConfirmationRequired,
    ResourceNotFoundError,
    StoreUnavailable,
    VersionStateError,
)
from app.database.connection import store_call
from app.enums.pricing import VersionStatus
from app.models.pricing_rule import PricingRule
from app.models.pricing_version import PricingRuleVersion, PricingVersion
from app.services.audit_service import write_audit_log
from app.services.pricing_service.pricing_service import get_pricing_rule, list_active_rules
from app.services.pricing_service.records import RuleRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACTIVE = VersionStatus.active.value
DRAFT = VersionStatus.draft.value
ARCHIVED = VersionStatus.archived.value

RULE_PREVIEW_SIZE = 5


class _WriteConflict(Exception):
    """A concurrent writer invalidated this attempt; it is safe to retry."""


def _with_retries(db: Session, operation: str, attempt: Callable[[], T]) -> T:
    retries = max(1, settings.ACTIVATION_MAX_RETRIES)
    last_error: Optional[Exception] = None

    for n in range(1, retries + 1):
        try:
            return attempt()
        except (IntegrityError, OperationalError, _WriteConflict) as e:
            db.rollback()
            last_error = e
            logger.warning("%s conflicted (attempt %d/%d): %s", operation, n, retries, e)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Pricing store call failed: %s", operation)
            raise StoreUnavailable(operation) from e

    raise StoreUnavailable(operation) from last_error


# ===================== READ PATH =====================


def get_active_version(db: Session) -> Optional[PricingVersion]:
    with store_call(db, "get_active_version"):
        return (
            db.query(PricingVersion)
            .filter(PricingVersion.status == ACTIVE)
            .order_by(PricingVersion.version.desc(), PricingVersion.created_at.desc())
            .first()
        )


def get_version(db: Session, version_id: str) -> PricingVersion:
    with store_call(db, "get_version"):
        version = db.query(PricingVersion).filter(PricingVersion.id == version_id).first()
    if not version:
        raise ResourceNotFoundError("Pricing version", version_id)
    return version


def load_rule_set_for(db: Session, version: Optional[PricingVersion]) -> List[RuleRecord]:
    """
    Active rules for a version.

    A version with linked rules only sees those rules; a version with no
    links at all is unscoped and sees every active rule.
    """
    rules = list_active_rules(db)
    if version is None:
        return rules

    with store_call(db, "load_rule_set_for"):
        linked_ids = {
            rule_id
            for (rule_id,) in db.query(PricingRuleVersion.rule_id)
            .filter(PricingRuleVersion.version_id == version.id)
            .all()
        }
    if not linked_ids:
        return rules
    return [rule for rule in rules if rule.id in linked_ids]


def list_versions(db: Session, limit: int = 200) -> dict:
    with store_call(db, "list_versions"):
        versions = (
            db.query(PricingVersion)
            .order_by(PricingVersion.version.desc(), PricingVersion.created_at.desc())
            .limit(limit)
            .all()
        )
        links = (
            db.query(PricingRuleVersion.version_id, PricingRule.name)
            .join(PricingRule, PricingRule.id == PricingRuleVersion.rule_id)
            .order_by(PricingRuleVersion.created_at.asc(), PricingRule.name.asc())
            .all()
        )

    names_by_version = defaultdict(list)
    for version_id, rule_name in links:
        names_by_version[version_id].append(rule_name)

    rows = []
    active_version_id = None
    for v in versions:
        names = names_by_version.get(v.id, [])
        rows.append({
            "id": v.id,
            "version": v.version,
            "status": v.status,
            "created_at": v.created_at,
            "rule_count": len(names),
            "rule_preview": names[:RULE_PREVIEW_SIZE],
        })
        if v.status == ACTIVE and active_version_id is None:
            active_version_id = v.id

    return {"rows": rows, "total": len(rows), "active_version_id": active_version_id}


# ===================== WRITE PATH =====================


def create_draft_version(
    db: Session,
    actor: Optional[str] = None,
    clone_from_id: Optional[str] = None,
) -> PricingVersion:
    """
    Allocate the next version number as a draft.

    Rule links are copied from ``clone_from_id`` when given, otherwise from
    the active version, so a draft starts as an editable copy of what is live.
    """
    if clone_from_id:
        get_version(db, clone_from_id)

    def attempt() -> PricingVersion:
        max_version = db.query(func.max(PricingVersion.version)).scalar() or 0
        source_id = clone_from_id
        if not source_id:
            active = (
                db.query(PricingVersion.id)
                .filter(PricingVersion.status == ACTIVE)
                .order_by(PricingVersion.version.desc())
                .first()
            )
            source_id = active[0] if active else None

        draft = PricingVersion(version=max_version + 1, status=DRAFT)
        db.add(draft)
        db.flush()

        cloned = 0
        if source_id:
            rule_ids = (
                db.query(PricingRuleVersion.rule_id)
                .filter(PricingRuleVersion.version_id == source_id)
                .all()
            )
            for (rule_id,) in rule_ids:
                db.add(PricingRuleVersion(version_id=draft.id, rule_id=rule_id))
                cloned += 1

        write_audit_log(
            db,
            actor=actor,
            action="pricing_version_created",
            entity_type="pricing_version",
            entity_id=draft.id,
            message="Pricing version created",
            meta={"version": draft.version, "clone_from_id": source_id, "cloned_links": cloned},
        )
        db.commit()
        db.refresh(draft)
        return draft

    draft = _with_retries(db, "create_draft_version", attempt)
    logger.info("Created draft pricing version v%s (%s)", draft.version, draft.id)
    return draft


def _count_active(db: Session) -> int:
    return db.query(func.count(PricingVersion.id)).filter(PricingVersion.status == ACTIVE).scalar() or 0


def activate_version(
    db: Session,
    version_id: str,
    confirm,
    actor: Optional[str] = None,
) -> PricingVersion:
    if confirm is not True:
        raise ConfirmationRequired(version_id)

    def attempt() -> PricingVersion:
        target = (
            db.query(PricingVersion)
            .filter(PricingVersion.id == version_id)
            .with_for_update()
            .first()
        )
        if not target:
            db.rollback()
            raise ResourceNotFoundError("Pricing version", version_id)

        if target.status == ACTIVE:
            db.commit()
            if _count_active(db) != 1:
                raise _WriteConflict("more than one active version after no-op activation")
            return target

        if target.status == ARCHIVED:
            db.rollback()
            raise VersionStateError(
                version_id,
                ARCHIVED,
                "Archived versions cannot be reactivated; create a new draft from it instead",
            )

        previous = [
            vid for (vid,) in db.query(PricingVersion.id).filter(PricingVersion.status == ACTIVE).all()
        ]
        db.execute(
            update(PricingVersion)
            .where(PricingVersion.status == ACTIVE, PricingVersion.id != version_id)
            .values(status=ARCHIVED)
        )
        res = db.execute(
            update(PricingVersion)
            .where(PricingVersion.id == version_id, PricingVersion.status == DRAFT)
            .values(status=ACTIVE)
        )
        if res.rowcount != 1:
            raise _WriteConflict(f"version {version_id} changed status during activation")

        write_audit_log(
            db,
            actor=actor,
            action="pricing_version_activated",
            entity_type="pricing_version",
            entity_id=version_id,
            message="Pricing version activated",
            meta={"version": target.version, "archived_ids": previous},
        )
        db.commit()

        if _count_active(db) != 1:
            raise _WriteConflict("active version count is not exactly one after activation")
        db.refresh(target)
        return target

    activated = _with_retries(db, "activate_version", attempt)
    logger.info("Pricing version v%s (%s) is %s", activated.version, activated.id, activated.status)
    return activated


def _linkable_version(db: Session, version_id: str) -> PricingVersion:
    version = get_version(db, version_id)
    if version.status == ARCHIVED:
        raise VersionStateError(version_id, ARCHIVED, "Archived versions are read-only")
    return version


def link_rule(db: Session, version_id: str, rule_id: str, actor: Optional[str] = None) -> PricingVersion:
    version = _linkable_version(db, version_id)
    get_pricing_rule(db, rule_id)

    with store_call(db, "link_rule"):
        existing = db.get(PricingRuleVersion, (version_id, rule_id))
        if existing is None:
            db.add(PricingRuleVersion(version_id=version_id, rule_id=rule_id))
            write_audit_log(
                db,
                actor=actor,
                action="pricing_version_rule_linked",
                entity_type="pricing_version",
                entity_id=version_id,
                message="Pricing rule linked to version",
                meta={"rule_id": rule_id},
            )
            db.commit()
            db.refresh(version)
    return version


def unlink_rule(db: Session, version_id: str, rule_id: str, actor: Optional[str] = None) -> PricingVersion:
    version = _linkable_version(db, version_id)

    with store_call(db, "unlink_rule"):
        existing = db.get(PricingRuleVersion, (version_id, rule_id))
        if existing is not None:
            db.delete(existing)
            write_audit_log(
                db,
                actor=actor,
                action="pricing_version_rule_unlinked",
                entity_type="pricing_version",
                entity_id=version_id,
                message="Pricing rule unlinked from version",
                meta={"rule_id": rule_id},
            )
            db.commit()
            db.refresh(version)
    return version
