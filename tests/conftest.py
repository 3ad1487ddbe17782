"""Pytest configuration and fixtures."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["TAZAPAY_WEBHOOK_SECRET"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth.utils import create_access_token, get_password_hash
from core.exceptions import MetricsUnavailableError
from core.social_metrics import get_social_metrics_service
from core.tazapay_service import get_tazapay_service
from database.config import get_db
from database.models import Base, User, UserType
from database.marketplace_models import Campaign, Collaboration, CollaborationStatusDB
from server import app
from services.escrow_service import EscrowService

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "password123"
PASSWORD_HASH = get_password_hash(PASSWORD)


class FakeTazapay:
    """In-memory stand-in for the Tazapay checkout API."""

    is_configured = True

    def __init__(self) -> None:
        self.checkouts: dict[str, dict] = {}
        self.states: dict[str, str] = {}

    def create_checkout(self, amount: int, reference_id: str, **kwargs) -> dict:
        checkout_id = f"chk_{len(self.checkouts) + 1}"
        self.checkouts[checkout_id] = {"amount": amount, "reference_id": reference_id, **kwargs}
        return {"id": checkout_id, "url": f"https://checkout.test/{checkout_id}", "raw": {}}

    def get_checkout_status(self, checkout_id: str) -> dict:
        state = self.states.get(checkout_id, "pending")
        payment_status = {"paid": "paid", "failed": "expired"}.get(state, "unpaid")
        return {"state": state, "payment_status": payment_status, "raw": {"id": checkout_id}}


class FakeMetrics:
    """Returns canned stats, or raises the configured verification error."""

    def __init__(self) -> None:
        self.stats = {"views": 12000, "likes": 900, "comments": 120, "shares": 0}
        self.error: str | None = None
        self.calls: list[tuple] = []

    def fetch(self, db, creator_id, platform, video_id, submission_url) -> dict:
        self.calls.append((creator_id, platform, video_id, submission_url))
        if self.error:
            raise MetricsUnavailableError(self.error)
        return dict(self.stats)


@pytest.fixture
def db():
    """Fresh in-memory schema per test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def gateway() -> FakeTazapay:
    return FakeTazapay()


@pytest.fixture
def metrics() -> FakeMetrics:
    return FakeMetrics()


@pytest.fixture
def client(db, gateway, metrics):
    """TestClient bound to the test session and fake external services."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_tazapay_service] = lambda: gateway
    app.dependency_overrides[get_social_metrics_service] = lambda: metrics
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(user_type: UserType = UserType.BRAND, name: str | None = None) -> User:
        counter["n"] += 1
        user = User(
            email=f"{user_type.value}{counter['n']}@example.com",
            password_hash=PASSWORD_HASH,
            name=name or f"{user_type.value.title()} {counter['n']}",
            user_type=user_type,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def brand(make_user) -> User:
    return make_user(UserType.BRAND, "Acme Brand")


@pytest.fixture
def creator(make_user) -> User:
    return make_user(UserType.CREATOR, "Casey Creator")


@pytest.fixture
def admin(make_user) -> User:
    return make_user(UserType.ADMIN, "Campaign Manager")


@pytest.fixture
def auth_headers():
    """Bearer header for a user, as the frontend sends it."""

    def _headers(user: User) -> dict:
        token = create_access_token(data={"sub": user.email, "user_id": user.id})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def make_campaign(db):
    def _make(brand: User, target_budget: int = 100_000, funded: int = 0, **fields) -> Campaign:
        campaign = Campaign(brand_id=brand.id, title=fields.pop("title", "Summer Launch"), target_budget=target_budget, **fields)
        db.add(campaign)
        db.flush()
        if funded:
            EscrowService(db).credit_campaign_escrow(campaign, funded, "Test funding")
        db.commit()
        return campaign

    return _make


@pytest.fixture
def make_collaboration(db):
    def _make(
        campaign: Campaign,
        creator: User,
        agreed_price: int = 40_000,
        status: CollaborationStatusDB = CollaborationStatusDB.ACTIVE,
        **fields,
    ) -> Collaboration:
        collab = Collaboration(
            campaign_id=campaign.id,
            creator_id=creator.id,
            agreed_price=agreed_price,
            status=status,
            **fields,
        )
        db.add(collab)
        db.commit()
        return collab

    return _make
