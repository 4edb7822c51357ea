from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database.connection import get_db
from app.dependencies.auth import require_admin
from app.enums.pricing import AppliesTo
from app.schemas.auth import TokenData
from app.schemas.pricing_rule import (
    PricingRuleCreate,
    PricingRuleListResponse,
    PricingRuleResponse,
    PricingRuleUpdate,
    RuleFilter,
)
from app.services.pricing_service.pricing_service import (
    create_pricing_rule,
    get_pricing_rule,
    list_rules,
    toggle_pricing_rule,
    update_pricing_rule,
)


router = APIRouter(prefix="/pricing-rules", tags=["Pricing Rules"])


@router.get("/", response_model=PricingRuleListResponse, dependencies=[Depends(require_admin)])
def list_rules_route(
    applies_to: Optional[AppliesTo] = None,
    destination: Optional[str] = None,
    active: Optional[bool] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    filters = RuleFilter(
        applies_to=applies_to,
        destination=destination,
        active=active,
        limit=min(200, max(1, limit)),
        offset=max(0, offset),
    )
    rows, total = list_rules(db, filters)
    return {"rows": rows, "total": total, "limit": filters.limit, "offset": filters.offset}


@router.get("/{rule_id}", response_model=PricingRuleResponse, dependencies=[Depends(require_admin)])
def get_rule(rule_id: str, db: Session = Depends(get_db)):
    return get_pricing_rule(db, rule_id)


@router.post("/", response_model=PricingRuleResponse, status_code=status.HTTP_201_CREATED)
def create_rule(rule: PricingRuleCreate, db: Session = Depends(get_db), user: TokenData = Depends(require_admin)):
    return create_pricing_rule(db, rule, actor=user.username)


@router.patch("/{rule_id}", response_model=PricingRuleResponse)
def update_rule(
    rule_id: str,
    rule: PricingRuleUpdate,
    db: Session = Depends(get_db),
    user: TokenData = Depends(require_admin),
):
    return update_pricing_rule(db, rule_id, rule, actor=user.username)


@router.post("/{rule_id}/toggle", response_model=PricingRuleResponse)
def toggle_rule(rule_id: str, db: Session = Depends(get_db), user: TokenData = Depends(require_admin)):
    return toggle_pricing_rule(db, rule_id, actor=user.username)
