import os

os.environ.setdefault("LOYALTY_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("LOYALTY_SCHEDULER_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from loyalty.core.database import Base, get_db, run_in_transaction
from loyalty.main import create_app
from loyalty.models import PointsEntryType, Reward
from loyalty.services import points_ledger


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(session_factory):
    app = create_app()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_reward(session_factory):
    def _make(*, name="Coffee mug", points_cost=100, stock=10, is_active=True) -> int:
        with session_factory() as db:
            reward = Reward(name=name, points_cost=points_cost, stock=stock, is_active=is_active)
            db.add(reward)
            db.commit()
            return reward.id

    return _make


@pytest.fixture
def grant_points(session_factory):
    def _grant(user_id: str, points: int) -> None:
        with session_factory() as db:
            run_in_transaction(
                db,
                lambda s: points_ledger.record_adjustment(
                    s,
                    user_id=user_id,
                    points=points,
                    entry_type=PointsEntryType.EARN,
                ),
            )

    return _grant


@pytest.fixture
def balance_of(session_factory):
    def _balance(user_id: str) -> int:
        with session_factory() as db:
            return points_ledger.get_balance(db, user_id)

    return _balance


@pytest.fixture
def stock_of(session_factory):
    def _stock(reward_id: int):
        with session_factory() as db:
            return db.get(Reward, reward_id).stock

    return _stock
