"""
Test configuration and fixtures for Fashion Studio.

Provides shared fixtures for unit and integration tests.
"""

import os

# Settings are read once at import time; pin test values before the app loads
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-at-least-32-bytes!!")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("GOOGLE_API_KEY", "test-google-api-key")

import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock, AsyncMock

from fastapi.testclient import TestClient

from app.domain.subscription import PlanInterval, Subscription, SubscriptionPlan
from app.infrastructure.db.database import DatabaseManager
from app.infrastructure.db.repositories.plan_repository import PlanRepository
from app.infrastructure.db.repositories.subscription_repository import SubscriptionRepository
from app.infrastructure.db.repositories.token_repository import TokenRepository
from app.infrastructure.services.subscription_reconciler import SubscriptionReconciler
from app.infrastructure.services.token_ledger_service import TokenLedgerService


TEST_USER_ID = "00000000-0000-0000-0000-000000000001"
TEST_USER_EMAIL = "stylist@example.com"


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app():
    """Get the FastAPI application."""
    from app.main import app
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Get synchronous test client."""
    return TestClient(app)


@pytest.fixture
def user_id():
    return TEST_USER_ID


@pytest.fixture
def authenticated(app, user_id):
    """Skip JWT verification and act as ``user_id``."""
    from app.api.dependencies import CurrentUser, get_current_user, get_current_user_id

    app.dependency_overrides[get_current_user] = lambda: CurrentUser(id=user_id, email=TEST_USER_EMAIL)
    app.dependency_overrides[get_current_user_id] = lambda: user_id
    return user_id


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
async def db(tmp_path):
    """Throwaway SQLite database with all tables created."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'fashion_studio.db'}")
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
def subscription_repo(db):
    return SubscriptionRepository(db)


@pytest.fixture
def token_repo(db):
    return TokenRepository(db)


@pytest.fixture
def plan_repo(db):
    return PlanRepository(db)


@pytest.fixture
def ledger(token_repo, subscription_repo):
    return TokenLedgerService(token_repo, subscription_repo)


@pytest.fixture
def mock_stripe_service():
    """Stripe service double for reconciler tests."""
    mock = MagicMock()
    mock.get_subscription_price_id = AsyncMock(return_value="price_from_stripe")
    return mock


@pytest.fixture
def fixed_now():
    return datetime(2026, 1, 31, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def reconciler(subscription_repo, plan_repo, ledger, mock_stripe_service, fixed_now):
    return SubscriptionReconciler(
        subscription_repo=subscription_repo,
        plan_repo=plan_repo,
        ledger=ledger,
        stripe_service=mock_stripe_service,
        clock=lambda: fixed_now,
    )


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
async def plans(plan_repo):
    """Seeded plan catalog."""
    catalog = [
        SubscriptionPlan(
            id="starter",
            name="Starter",
            tokens_per_period=20,
            interval=PlanInterval.MONTH,
            price_cents=900,
            stripe_price_id="price_starter",
        ),
        SubscriptionPlan(
            id="pro",
            name="Pro",
            tokens_per_period=100,
            interval=PlanInterval.MONTH,
            price_cents=2900,
            stripe_price_id="price_pro",
        ),
        SubscriptionPlan(
            id="semester",
            name="Semester",
            tokens_per_period=500,
            interval=PlanInterval.SIX_MONTHS,
            price_cents=14900,
            stripe_price_id="price_semester",
        ),
        SubscriptionPlan(
            id="studio",
            name="Studio",
            tokens_per_period=1200,
            interval=PlanInterval.YEAR,
            price_cents=29900,
            stripe_price_id=None,
        ),
    ]
    return {plan.id: await plan_repo.save(plan) for plan in catalog}


@pytest.fixture
def make_account(subscription_repo, ledger):
    """Create an account row for a user with a starting balance."""

    async def _make(user_id: str = TEST_USER_ID, balance: int = 0, **fields) -> Subscription:
        await subscription_repo.upsert(Subscription(user_id=user_id, **fields))
        if balance:
            await ledger.grant(user_id, balance, "Test balance")
        return await subscription_repo.get_by_user_id(user_id)

    return _make
