"""Pytest fixtures for testing"""

import jwt
import pytest
from datetime import date
from decimal import Decimal
from typing import Callable, Generator, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from audit_gateway.api.main import create_app
from audit_gateway.config import settings
from audit_gateway.api.dependencies import get_analysis_limiter, get_narrative_generator, get_report_limiter
from audit_gateway.domain.models import Transaction
from audit_gateway.domain.rate_limit import FixedWindowRateLimiter
from audit_gateway.infrastructure.database.models import Base
from audit_gateway.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeNarrativeGenerator:
    """Scripted generator: returns `content`, or raises `error` when set"""

    def __init__(self, content: str = "[]", error: Optional[Exception] = None):
        self.content = content
        self.error = error
        self.calls: List[dict] = []

    async def generate(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        self.calls.append(
            {"system_prompt": system_prompt, "user_prompt": user_prompt, "temperature": temperature}
        )
        if self.error is not None:
            raise self.error
        return self.content


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
def narrative() -> FakeNarrativeGenerator:
    return FakeNarrativeGenerator()


@pytest.fixture
def client(db: Session, narrative: FakeNarrativeGenerator) -> TestClient:
    """Create FastAPI test client with test database, fake narrative and fresh limiters"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    analysis_limiter = FixedWindowRateLimiter(max_requests=100, window_seconds=3600)
    report_limiter = FixedWindowRateLimiter(max_requests=100, window_seconds=86400)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_narrative_generator] = lambda: narrative
    app.dependency_overrides[get_analysis_limiter] = lambda: analysis_limiter
    app.dependency_overrides[get_report_limiter] = lambda: report_limiter
    return TestClient(app)


def issue_token(caller_id: str, secret: str = settings.jwt_secret, **claims) -> str:
    return jwt.encode({"sub": caller_id, **claims}, secret, algorithm=settings.jwt_algorithm)


@pytest.fixture
def bearer() -> Callable[..., dict]:
    """Authorization headers for a signed caller token"""

    def _headers(caller_id: str, **kwargs) -> dict:
        return {"Authorization": f"Bearer {issue_token(caller_id, **kwargs)}"}

    return _headers


@pytest.fixture
def auth_headers(bearer) -> dict:
    return bearer("auditor-1")


@pytest.fixture
def make_txn() -> Callable[..., Transaction]:
    """Factory for domain transactions with unremarkable defaults"""

    def _make(
        txn_id: str,
        vendor: str = "Acme Supplies",
        day: date = date(2024, 3, 1),
        amount: str = "1200.00",
        country: str = "India",
        department: str = "Finance",
    ) -> Transaction:
        return Transaction(
            id=txn_id,
            transaction_id=f"EXT-{txn_id}",
            transaction_date=day,
            amount=Decimal(amount),
            vendor_name=vendor,
            vendor_country=country,
            payment_method="Bank Transfer",
            department=department,
            description="Test payment",
        )

    return _make
