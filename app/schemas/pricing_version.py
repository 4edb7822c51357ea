from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel


class PricingVersionResponse(BaseModel):
    id: str
    version: int
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PricingVersionSummary(PricingVersionResponse):
    rule_count: int = 0
    rule_preview: List[str] = []


class PricingVersionListResponse(BaseModel):
    rows: List[PricingVersionSummary]
    total: int
    active_version_id: Optional[str] = None


class DraftVersionCreate(BaseModel):
    clone_from_id: Optional[str] = None


class ActivateVersionRequest(BaseModel):
    # only a literal boolean true confirms; checked by the version service
    confirm: Any = None
