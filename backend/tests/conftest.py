from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401  (register tables on Base.metadata)
from app.database import Base, get_store
from app.main import app
from app.schemas import BudgetCreate, TransactionCreate
from app.security import require_user_id
from app.services.budgets import create_budget
from app.services.ledger import create_transaction
from app.store.memory import MemoryBudgetStore
from app.store.sql import SqlBudgetStore

USER = "user-1"


def at(day: str, hour: int = 12) -> datetime:
    """``"2024-03-10"`` → 2024-03-10 ``hour``:00 UTC."""
    d = date.fromisoformat(day)
    return datetime(d.year, d.month, d.day, hour, tzinfo=timezone.utc)


@pytest.fixture
def memory_store():
    return MemoryBudgetStore()


@pytest.fixture
def sql_store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield SqlBudgetStore(session)
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Every engine test runs against both store implementations."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def make_budget(store):
    def _make(start="2024-03-01", period="monthly", end=None, total=100000, space="personal",
              name="Budget", categories=None, user_id=USER):
        payload = BudgetCreate(
            space=space,
            name=name,
            total_budget=total,
            period=period,
            start_date=date.fromisoformat(start),
            end_date=date.fromisoformat(end) if end else None,
            categories=categories or {},
        )
        return create_budget(store, user_id, payload)

    return _make


@pytest.fixture
def make_tx(store):
    def _make(day="2024-03-10", amount=1000, type="expense", category="Groceries", space="personal",
              user_id=USER, **extra):
        payload = TransactionCreate(
            space=space,
            type=type,
            amount=amount,
            category=category,
            occurred_at=at(day),
            **extra,
        )
        return create_transaction(store, user_id, payload)

    return _make


@pytest.fixture
def client(memory_store):
    # No context manager: the lifespan would open the on-disk database.
    app.dependency_overrides[get_store] = lambda: memory_store
    app.dependency_overrides[require_user_id] = lambda: USER
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
