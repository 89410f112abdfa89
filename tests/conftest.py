"""Pytest fixtures for testing"""

import itertools
import pytest
from datetime import datetime, timedelta, timezone
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from carmarket_engine.api.main import create_app
from carmarket_engine.infrastructure.database.models import Base
from carmarket_engine.infrastructure.database.session import get_db
from carmarket_engine.domain.models import (
    BankPartner,
    CreditApplication,
    ApplicationStatus,
    EmergencyContact,
    EmploymentInfo,
    FinancialInfo,
    Listing,
    ListingStatus,
    PersonalInfo,
    Prospect,
    ProspectSource,
    ProspectStatus,
)


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_ids = itertools.count(1)


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
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant for domain tests"""
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_listing(now: datetime):
    """Listing builder; created_at defaults to `now`"""

    def build(**overrides) -> Listing:
        n = next(_ids)
        fields = dict(
            id=f"listing-{n}",
            user_id="seller-1",
            title=f"Sedan {n}",
            brand="Toyota",
            model="Corolla",
            year=2020,
            price=250000.0,
            status=ListingStatus.ACTIVE,
            created_at=now,
        )
        fields.update(overrides)
        return Listing(**fields)

    return build


@pytest.fixture
def make_partner():
    """Bank partner builder accepting 6-60 month terms"""

    def build(**overrides) -> BankPartner:
        n = next(_ids)
        fields = dict(
            id=f"partner-{n}",
            name=f"Bank {n}",
            credit_rate=12.0,
            min_term=6,
            max_term=60,
            processing_time=3,
        )
        fields.update(overrides)
        return BankPartner(**fields)

    return build


@pytest.fixture
def make_application(now: datetime):
    """Valid pending credit application builder"""

    def build(**overrides) -> CreditApplication:
        n = next(_ids)
        fields = dict(
            id=f"application-{n}",
            user_id="buyer-1",
            personal_info=PersonalInfo(name="Ana López", email="ana@example.com", phone="+52 55 1234 5678"),
            employment_info=EmploymentInfo(employment_type="employee", company_name="ACME"),
            financial_info=FinancialInfo(monthly_income=35000.0, requested_amount=200000.0),
            emergency_contact=EmergencyContact(name="Luis López", relationship="brother", phone="5511112222"),
            status=ApplicationStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        fields.update(overrides)
        return CreditApplication(**fields)

    return build


@pytest.fixture
def make_prospect(now: datetime):
    """Prospect builder; created and last active at `now` unless overridden"""

    def build(**overrides) -> Prospect:
        n = next(_ids)
        fields = dict(
            id=f"prospect-{n}",
            name=f"Lead {n}",
            phone="5512345678",
            source=ProspectSource.WEBSITE,
            status=ProspectStatus.NEW,
            created_by="agent-1",
            created_at=now,
            updated_at=now,
            last_activity_at=now,
        )
        fields.update(overrides)
        return Prospect(**fields)

    return build


@pytest.fixture
def recent() -> datetime:
    """Wall-clock instant for data exercised through the API (which reads the real clock)"""
    return datetime.now(timezone.utc) - timedelta(minutes=5)
