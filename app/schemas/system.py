from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime


class HealthCheckResponse(BaseModel):
    status: str
    now: datetime
    uptime_seconds: float
    db_ok: bool
    extra: Optional[Dict[str, Any]] = None


class SystemMetricsResponse(BaseModel):
    uptime_seconds: float
    now: datetime

    # middleware counters
    requests_count: int
    avg_response_ms: Optional[float] = None

    # quote counters (degraded = priced at raw cost, no active version or store down)
    quotes: int = 0
    degraded_quotes: int = 0

    # DB metrics
    active_version: Optional[int] = None
    active_rules: int = 0
    total_rules: int = 0

    # optional arbitrary metrics map
    extra: Optional[Dict[str, Any]] = None
