from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String

from app.database.connection import Base


class AdminAuditLog(Base):
    __tablename__ = "admin_audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor = Column(String, nullable=True)
    action = Column(String, nullable=False, index=True)  # e.g. pricing_version_activated
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False, index=True)
    message = Column(String, nullable=True)
    meta = Column(JSON, default={})
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
