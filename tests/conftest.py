from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session

from mediatech import db_models  # noqa: F401  (registers tables)
from mediatech import store
from mediatech.db import build_engine
from mediatech.db_models import Customer, Equipment

TEST_DATABASE_URL = "sqlite://"

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine, expire_on_commit=False) as s:
        yield s


@pytest.fixture
def make_equipment(session):
    def _make(name="Camera", daily_rate="50", **fields) -> Equipment:
        return store.add_equipment(session, name=name, daily_rate=daily_rate, **fields)
    return _make


@pytest.fixture
def make_customer(session):
    def _make(first_name="Erika", last_name="Muster", **fields) -> Customer:
        return store.add_customer(session, first_name=first_name, last_name=last_name, **fields)
    return _make


def unit(name="Camera", daily_rate="50", number="INV-00001", **fields) -> Equipment:
    """Detached equipment for lifecycle tests that never touch a database."""
    rate = Decimal(daily_rate) if daily_rate is not None else None
    return Equipment(name=name, daily_rate=rate, inventory_number=number, **fields)
