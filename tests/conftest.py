"""Pytest fixtures for testing"""

from decimal import Decimal

import pytest

from cache import QueryCache
from db import SqliteTableClient, TableClient
from models import Payment, PlanRef, UserRef
from queries import Repository


@pytest.fixture
def client(tmp_path) -> SqliteTableClient:
    """Fresh SQLite store with the default plans seeded"""
    c = SqliteTableClient(tmp_path / "test.db")
    c.init_schema()
    return c


@pytest.fixture
def cache() -> QueryCache:
    return QueryCache()


@pytest.fixture
def repo(client, cache) -> Repository:
    return Repository(client, cache)


@pytest.fixture
def plans(repo) -> dict:
    """Seeded plans by name"""
    return {p.name: p for p in repo.list_plans()}


@pytest.fixture
def jane(repo):
    return repo.create_user({"full_name": "Jane Doe", "phone_number": "555-0100", "email": "jane@example.com"})


class SpyClient(TableClient):
    """Records every call; returns no rows"""

    def __init__(self):
        self.calls = []

    def select(self, table, **kwargs):
        self.calls.append(("select", table, kwargs))
        return []

    def insert(self, table, values):
        self.calls.append(("insert", table, values))
        return {"id": "new", **values}

    def update(self, table, row_id, values):
        self.calls.append(("update", table, row_id, values))
        return {"id": row_id, **values}

    def delete(self, table, row_id):
        self.calls.append(("delete", table, row_id))


@pytest.fixture
def spy() -> SpyClient:
    return SpyClient()


def make_payment(payment_id: str, status: str, user_id: str = "u1", **overrides) -> Payment:
    fields = dict(
        id=payment_id,
        user_id=user_id,
        plan_id="p1",
        amount_paid=Decimal("0.00"),
        amount_remaining=Decimal("50.00"),
        status=status,
        user=UserRef(id=user_id, full_name="Jane Doe", phone_number="555-0100"),
        plan=PlanRef(id="p1", name="Monthly", amount=Decimal("50.00")),
    )
    fields.update(overrides)
    return Payment(**fields)
