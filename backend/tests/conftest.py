import os
import random

# Keep app startup off the on-disk database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from bracket_pool.database import get_session  # noqa: E402
from bracket_pool.main import app  # noqa: E402
from bracket_pool.models.pool import Pool  # noqa: E402
from bracket_pool.services.demo_service import seed_demo_pool  # noqa: E402
from bracket_pool.services.draw_service import run_draw  # noqa: E402
from bracket_pool.services.pool_setup import create_pool  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Tables dropped and recreated per test (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

DEFAULT_PAYOUTS = {
    "sweet16_payout_pct": 16.0,
    "elite8_payout_pct": 16.0,
    "final4_payout_pct": 14.0,
    "runnerup_payout_pct": 14.0,
    "champion_payout_pct": 40.0,
}


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Fresh schema per test on the shared in-memory database"""
    from bracket_pool.models.entry import Entry  # noqa: F401
    from bracket_pool.models.game import Game  # noqa: F401
    from bracket_pool.models.pool_team import PoolTeam  # noqa: F401

    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Test client with the database dependency overridden BEFORE TestClient() starts"""
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def pool(session: Session) -> Pool:
    """Empty pool with a split payout table (S16/E8/F4/runner-up/champion)"""
    return create_pool(
        session,
        {"name": "Office Pool", "tournament_year": 2026, "push_rule": "favorite_advances", **DEFAULT_PAYOUTS},
    )


@pytest.fixture
def full_pool(session: Session, pool: Pool) -> Pool:
    """64 teams (4 regions x seeds 1-16) and 64 approved entries, not drawn"""
    seed_demo_pool(session, pool.id)
    return pool


@pytest.fixture
def drawn_pool(session: Session, full_pool: Pool) -> Pool:
    """full_pool after a seeded draw: 63 games, R64 populated with suggested spreads"""
    run_draw(session, full_pool.id, rng=random.Random(2026))
    session.refresh(full_pool)
    return full_pool


@pytest.fixture
def other_session(session: Session):
    """Second session on the same database, for writes that race the test's session"""
    with Session(test_engine) as other:
        yield other
