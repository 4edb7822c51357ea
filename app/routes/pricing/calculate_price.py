import logging
from time import perf_counter

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database.connection import get_db
from app.dependencies.auth import require_auth
from app.schemas.quote import PriceQuoteInput, PriceQuoteResult
from app.services.pricing_service.calculate_price import price_quote

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pricing & Calculation"])


@router.post(
    "/pricing/quote",
    response_model=PriceQuoteResult,
    dependencies=[Depends(require_auth)],
)
def quote_price(
    data: PriceQuoteInput,
    request: Request = None,
    db: Session = Depends(get_db),
):
    """
    Price base-cost line items against the active pricing version.

    Always answers with a quote; when no version is active or the store is
    down, lines come back at raw cost with ``version: null``.
    """
    start = perf_counter()
    result = price_quote(db, data)
    duration_ms = (perf_counter() - start) * 1000.0

    if duration_ms > settings.SLOW_QUOTE_MS:
        logger.warning(
            "Quote pricing took %.2f ms (%d lines, destination=%s)",
            duration_ms, len(result.lines), result.destination,
        )

    if request is not None:
        metrics = getattr(request.app.state, "metrics", None)
        if metrics is not None:
            metrics["quotes"] = metrics.get("quotes", 0) + 1
            if result.version is None:
                metrics["degraded_quotes"] = metrics.get("degraded_quotes", 0) + 1

    return result
