import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.database.connection import get_db
from app.dependencies.auth import require_admin
from app.models.pricing_rule import PricingRule
from app.models.pricing_version import PricingVersion
from app.schemas.system import HealthCheckResponse, SystemMetricsResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])


@router.get("/health", response_model=HealthCheckResponse)
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Lightweight public health check.
    Returns ok + DB connectivity check (SELECT 1).
    """
    now = datetime.utcnow()
    start_time = getattr(request.app.state, "start_time", now)
    uptime_seconds = (now - start_time).total_seconds()

    db_ok = True
    extra = {}
    try:
        db.execute(select(1))
    except SQLAlchemyError as e:
        logger.warning("Health check could not reach the database: %s", e)
        db_ok = False
        extra["db_error"] = str(e)

    return HealthCheckResponse(
        status="ok" if db_ok else "degraded",
        now=now,
        uptime_seconds=uptime_seconds,
        db_ok=db_ok,
        extra=extra or None,
    )


@router.get("/metrics", response_model=SystemMetricsResponse, dependencies=[Depends(require_admin)])
def system_metrics(request: Request, db: Session = Depends(get_db)):
    """
    Admin-only system metrics in JSON form.
    Uses in-process counters stored on app.state.metrics and DB-derived metrics.
    """
    now = datetime.utcnow()
    start_time = getattr(request.app.state, "start_time", now)
    uptime_seconds = (now - start_time).total_seconds()

    metrics = getattr(request.app.state, "metrics", None) or {}
    requests_count = int(metrics.get("requests", 0))
    total_response_ms = float(metrics.get("total_response_ms", 0.0))
    avg_response_ms = (total_response_ms / requests_count) if requests_count > 0 else None

    active_version = None
    active_rules = 0
    total_rules = 0
    try:
        row = (
            db.query(PricingVersion.version)
            .filter(PricingVersion.status == "active")
            .order_by(PricingVersion.version.desc())
            .first()
        )
        active_version = row[0] if row else None
        total_rules = db.query(func.count(PricingRule.id)).scalar() or 0
        active_rules = (
            db.query(func.count(PricingRule.id))
            .filter(PricingRule.active.is_(True))
            .scalar()
        ) or 0
    except SQLAlchemyError as e:
        logger.warning("Metrics could not read the pricing store: %s", e)

    return SystemMetricsResponse(
        uptime_seconds=uptime_seconds,
        now=now,
        requests_count=requests_count,
        avg_response_ms=avg_response_ms,
        quotes=int(metrics.get("quotes", 0)),
        degraded_quotes=int(metrics.get("degraded_quotes", 0)),
        active_version=active_version,
        active_rules=int(active_rules),
        total_rules=int(total_rules),
    )
