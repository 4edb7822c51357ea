from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from app.database.connection import get_db
from app.dependencies.auth import require_admin
from app.schemas.auth import TokenData
from app.schemas.pricing_version import (
    ActivateVersionRequest,
    DraftVersionCreate,
    PricingVersionListResponse,
    PricingVersionResponse,
)
from app.services.pricing_service.version_service import (
    activate_version,
    create_draft_version,
    link_rule,
    list_versions,
    unlink_rule,
)


router = APIRouter(prefix="/pricing-versions", tags=["Pricing Versions"])


@router.get("/", response_model=PricingVersionListResponse, dependencies=[Depends(require_admin)])
def list_versions_route(db: Session = Depends(get_db)):
    return list_versions(db)


@router.post("/", response_model=PricingVersionResponse, status_code=status.HTTP_201_CREATED)
def create_version(
    data: DraftVersionCreate = Body(default_factory=DraftVersionCreate),
    db: Session = Depends(get_db),
    user: TokenData = Depends(require_admin),
):
    return create_draft_version(db, actor=user.username, clone_from_id=data.clone_from_id)


@router.post("/{version_id}/activate", response_model=PricingVersionResponse)
def activate_version_route(
    version_id: str,
    data: ActivateVersionRequest = Body(default_factory=ActivateVersionRequest),
    db: Session = Depends(get_db),
    user: TokenData = Depends(require_admin),
):
    """Requires ``{"confirm": true}``; anything else is answered with ERR_CONFIRM_001."""
    return activate_version(db, version_id, confirm=data.confirm, actor=user.username)


@router.put("/{version_id}/rules/{rule_id}", response_model=PricingVersionResponse)
def link_rule_route(
    version_id: str,
    rule_id: str,
    db: Session = Depends(get_db),
    user: TokenData = Depends(require_admin),
):
    return link_rule(db, version_id, rule_id, actor=user.username)


@router.delete("/{version_id}/rules/{rule_id}", response_model=PricingVersionResponse)
def unlink_rule_route(
    version_id: str,
    rule_id: str,
    db: Session = Depends(get_db),
    user: TokenData = Depends(require_admin),
):
    return unlink_rule(db, version_id, rule_id, actor=user.username)
