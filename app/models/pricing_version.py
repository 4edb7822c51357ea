import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from app.database.connection import Base


class PricingVersion(Base):
    __tablename__ = "pricing_versions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    version = Column(Integer, nullable=False, unique=True)
    status = Column(String, nullable=False, default="draft")  # draft / active / archived
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    rule_links = relationship(
        "PricingRuleVersion",
        back_populates="pricing_version",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        # at most one row may be active
        Index(
            "ux_pricing_versions_single_active",
            "status",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        Index("idx_pricing_versions_status_created", "status", "created_at"),
    )


class PricingRuleVersion(Base):
    __tablename__ = "pricing_rule_versions"

    version_id = Column(String, ForeignKey("pricing_versions.id"), primary_key=True)
    rule_id = Column(String, ForeignKey("pricing_rules.id"), primary_key=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    pricing_version = relationship("PricingVersion", back_populates="rule_links")
