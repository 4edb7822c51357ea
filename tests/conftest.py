import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import uuid
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database.connection import Base
from app.models.admin_audit_log import AdminAuditLog  # noqa: F401
from app.models.pricing_rule import PricingRule
from app.models.pricing_version import PricingRuleVersion, PricingVersion

TEST_DB_URL = "sqlite:///:memory:"

# rules created by the factory get increasing created_at values from here
T0 = datetime(2026, 1, 1, 9, 0, 0)


@pytest.fixture()
def db():
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def add_rule(db):
    counter = {"n": 0}

    def _add_rule(**overrides) -> PricingRule:
        counter["n"] += 1
        fields = dict(
            id=f"rule-{uuid.uuid4().hex[:8]}",
            name=f"Rule {counter['n']}",
            applies_to="package",
            rule_type="percent",
            value=10.0,
            currency="INR",
            priority=100,
            active=True,
            created_at=T0 + timedelta(minutes=counter["n"]),
        )
        fields.update(overrides)
        rule = PricingRule(**fields)
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule

    return _add_rule


@pytest.fixture()
def add_version(db):
    def _add_version(version: int, status: str = "draft", rules=()) -> PricingVersion:
        row = PricingVersion(id=f"ver-{version}", version=version, status=status)
        db.add(row)
        db.flush()
        for rule in rules:
            db.add(PricingRuleVersion(version_id=row.id, rule_id=rule.id))
        db.commit()
        db.refresh(row)
        return row

    return _add_version
