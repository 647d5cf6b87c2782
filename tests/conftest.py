"""Pytest fixtures for testing"""

import os

# Must be set before merchant_gateway modules build the engine and settings
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

import time
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from merchant_gateway.api.main import create_app
from merchant_gateway.api.dependencies import get_rate_limiter
from merchant_gateway.domain.models import (
    Address,
    AdminMetadata,
    BankDetails,
    ContactInfo,
    Financials,
    KYCInfo,
    Merchant,
)
from merchant_gateway.domain.rate_limiter import RateLimiter
from merchant_gateway.infrastructure.database.models import Base
from merchant_gateway.infrastructure.database.session import get_db
from merchant_gateway.infrastructure.rate_limit_store.in_memory import InMemoryRateLimitStore
from merchant_gateway.infrastructure.rate_limit_store.sql import SqlRateLimitStore


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable time source returning UNIX seconds, stepped in whole milliseconds"""

    def __init__(self, start: float):
        self.now_ms = int(start * 1000)

    def __call__(self) -> float:
        return self.now_ms / 1000

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start=time.time())


@pytest.fixture
def memory_store(clock: FakeClock) -> InMemoryRateLimitStore:
    return InMemoryRateLimitStore(clock=clock)


@pytest.fixture
def limiter(memory_store: InMemoryRateLimitStore) -> RateLimiter:
    return RateLimiter(memory_store, timeout_seconds=2.0, retention_hours=24, sweep_batch_size=500, enabled=True)


@pytest.fixture
def sql_session_factory(tmp_path):
    """Isolated file-backed SQLite database per test"""
    sql_engine = create_engine(f"sqlite:///{tmp_path / 'rate_limits.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=sql_engine)
    yield sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=sql_engine)
    sql_engine.dispose()


@pytest.fixture
def sql_store(sql_session_factory, clock: FakeClock) -> SqlRateLimitStore:
    return SqlRateLimitStore(sql_session_factory, max_retries=3, use_server_time=False, clock=clock)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session, limiter: RateLimiter) -> TestClient:
    """Create FastAPI test client with test database and in-memory rate limiter"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    return TestClient(app)


@pytest.fixture
def low_risk_merchant() -> Merchant:
    """Established, fully verified merchant with healthy volume"""
    return Merchant(
        merchant_id="m_accra_fabrics",
        business_name="Accra Fabrics",
        business_type="Retail",
        registration_number="CS123456789",
        tax_id="P0012345678",
        status="active",
        contact_info=ContactInfo(email="owner@accrafabrics.com", phone="+233241234567"),
        address=Address(street="12 Oxford St", city="Accra", region="Greater Accra", country="Ghana"),
        kyc=KYCInfo(status="approved", documents_submitted=6, documents_verified=6, submitted_at=NOW - timedelta(days=10)),
        financials=Financials(total_transactions=200, total_revenue=400000, monthly_volume=60000),
        bank_details=BankDetails(account_number="0123456789", bank_name="GCB Bank", account_name="Accra Fabrics Ltd"),
        admin_metadata=AdminMetadata(flags=[]),
        created_at=NOW - timedelta(days=365),
    )


@pytest.fixture
def low_risk_document() -> Dict[str, Any]:
    """The low risk merchant as the dashboard stores it"""
    return {
        "businessName": "Accra Fabrics",
        "businessType": "Retail",
        "registrationNumber": "CS123456789",
        "taxId": "P0012345678",
        "status": "active",
        "contactInfo": {"email": "owner@accrafabrics.com", "phone": "+233241234567"},
        "address": {"street": "12 Oxford St", "city": "Accra", "country": "Ghana"},
        "kyc": {
            "status": "approved",
            "documentsSubmitted": 6,
            "documentsVerified": 6,
            "submittedAt": (datetime.now(timezone.utc) - timedelta(days=10)).isoformat(),
        },
        "financials": {"totalTransactions": 200, "totalRevenue": 400000, "monthlyVolume": 60000},
        "bankDetails": {"accountNumber": "0123456789", "bankName": "GCB Bank"},
        "adminMetadata": {"flags": []},
        "createdAt": {"seconds": int(time.time()) - 365 * 86400, "nanoseconds": 0},
    }
