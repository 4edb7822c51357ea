import logging
from datetime import datetime

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from app.core.config import settings
from app.core.exceptions import (
    AppException,
    app_exception_handler,
    generic_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.database.connection import Base, engine
from app.middleware.metrics import MetricsMiddleware, new_metrics
from app.models import admin_audit_log, pricing_rule, pricing_version  # noqa: F401  (register tables)
from app.routes import system
from app.routes.pricing.pricing_route import router as pricing_router
from app.routes.pricing.versions_route import router as versions_router
from app.routes.pricing.calculate_price import router as calculate_price_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Travel Pricing Rule Engine")

app.add_middleware(MetricsMiddleware)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(pricing_router)
app.include_router(versions_router)
app.include_router(calculate_price_router)
app.include_router(system.router)

@app.on_event("startup")
async def startup_event():
    app.state.start_time = datetime.utcnow()
    app.state.metrics = new_metrics()
