import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, String

from app.database.connection import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class PricingRule(Base):
    __tablename__ = "pricing_rules"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    applies_to = Column(String, nullable=False)  # hotel, transfer, activity, package, visa, insurance, flight_fee
    destination = Column(String, nullable=True, index=True)
    supplier = Column(String, nullable=True, index=True)
    rule_type = Column(String, nullable=False)  # percent / fixed
    value = Column(Float, nullable=False, default=0.0)
    currency = Column(String, nullable=False, default="INR")
    priority = Column(Integer, nullable=False, default=100)
    active = Column(Boolean, nullable=False, default=True)
    valid_from = Column(DateTime, nullable=True)
    valid_to = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_pricing_rules_applies_to_priority", "applies_to", "priority"),
    )
