"""
queries.py
Typed reads/writes for users, payment plans and payments on top of a TableClient.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from cache import QueryCache
from config import Settings
from db import SqliteTableClient, TableClient
from models import PAID, PARTIAL, UNPAID, Payment, PaymentPlan, User
from remote import RestTableClient

logger = logging.getLogger(__name__)

USERS = "users"
PLANS = "payment_plans"
PAYMENTS = "payments"

USER_FIELDS = ("full_name", "phone_number", "email", "gender", "address")
PAYMENT_FIELDS = ("user_id", "plan_id", "amount_paid", "amount_remaining", "status", "payment_date")

SEARCH_COLUMNS = ("full_name", "phone_number", "email")

PAYMENT_EMBED = {
    USERS: ("user_id", ("id", "full_name", "phone_number", "email")),
    PLANS: ("plan_id", ("id", "name", "amount")),
}


def _pick(fields: Mapping[str, Any], allowed: tuple[str, ...]) -> dict:
    unknown = set(fields) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")
    return dict(fields)


class Repository:
    """
    Domain query layer. The store client is passed in; reads go through the
    optional QueryCache and every write invalidates its collection tag.
    """

    def __init__(self, client: TableClient, cache: QueryCache | None = None):
        self.client = client
        self.cache = cache

    def _read(self, key: tuple, tag: str, loader: Callable[[], Any]) -> Any:
        if self.cache is None:
            return loader()
        return self.cache.get_or_load(key, tag, loader)

    def _invalidate(self, *tags: str) -> None:
        if self.cache is None:
            return
        for tag in tags:
            self.cache.invalidate(tag)

    # ---------- users ----------

    def list_users(self) -> list[User]:
        return self._read(
            (USERS, "all"),
            USERS,
            lambda: [User.from_row(r) for r in self.client.select(USERS, order="created_at", descending=True)],
        )

    def get_user(self, user_id: str) -> User | None:
        def load():
            row = self.client.maybe_single(USERS, eq={"id": user_id})
            return User.from_row(row) if row else None

        return self._read((USERS, "one", user_id), USERS, load)

    def search_users(self, term: str) -> list[User]:
        term = (term or "").strip()
        if not term:
            return []
        return self._read(
            (USERS, "search", term),
            USERS,
            lambda: [
                User.from_row(r)
                for r in self.client.select(
                    USERS, ilike_any=(SEARCH_COLUMNS, term), order="created_at", descending=True
                )
            ],
        )

    def create_user(self, fields: Mapping[str, Any]) -> User:
        row = self.client.insert(USERS, _pick(fields, USER_FIELDS))
        logger.info("Created user id=%s", row["id"])
        self._invalidate(USERS)
        return User.from_row(row)

    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> User:
        row = self.client.update(USERS, user_id, _pick(fields, USER_FIELDS))
        logger.info("Updated user id=%s fields=%s", user_id, sorted(fields))
        self._invalidate(USERS)
        return User.from_row(row)

    def delete_user(self, user_id: str) -> None:
        self.client.delete(USERS, user_id)
        logger.info("Deleted user id=%s", user_id)
        # the store cascades the user's payment rows
        self._invalidate(USERS, PAYMENTS)

    # ---------- plans ----------

    def list_plans(self) -> list[PaymentPlan]:
        return self._read(
            (PLANS, "all"),
            PLANS,
            lambda: [PaymentPlan.from_row(r) for r in self.client.select(PLANS, order="duration_months")],
        )

    # ---------- payments ----------

    def list_payments(self) -> list[Payment]:
        return self._read(
            (PAYMENTS, "all"),
            PAYMENTS,
            lambda: [
                Payment.from_row(r)
                for r in self.client.select(
                    PAYMENTS, embed=PAYMENT_EMBED, order="created_at", descending=True
                )
            ],
        )

    def list_user_payments(self, user_id: str) -> list[Payment]:
        return self._read(
            (PAYMENTS, "user", user_id),
            PAYMENTS,
            lambda: [
                Payment.from_row(r)
                for r in self.client.select(
                    PAYMENTS,
                    eq={"user_id": user_id},
                    embed=PAYMENT_EMBED,
                    order="created_at",
                    descending=True,
                )
            ],
        )

    def payment_stats(self) -> dict[str, int]:
        def load():
            rows = self.client.select(PAYMENTS, columns=("status",))
            counts = {PAID: 0, UNPAID: 0, PARTIAL: 0}
            for r in rows:
                counts[r["status"]] = counts.get(r["status"], 0) + 1
            return {"total": len(rows), **counts}

        return self._read((PAYMENTS, "stats"), PAYMENTS, load)

    def create_payment(self, fields: Mapping[str, Any]) -> Payment:
        row = self.client.insert(PAYMENTS, _pick(fields, PAYMENT_FIELDS))
        logger.info("Recorded payment id=%s user=%s status=%s", row["id"], row["user_id"], row["status"])
        self._invalidate(PAYMENTS)
        return Payment.from_row(row)

    def update_payment(self, payment_id: str, fields: Mapping[str, Any]) -> Payment:
        row = self.client.update(PAYMENTS, payment_id, _pick(fields, PAYMENT_FIELDS))
        logger.info("Updated payment id=%s status=%s", payment_id, row["status"])
        self._invalidate(PAYMENTS)
        return Payment.from_row(row)


def build_client(settings: Settings) -> TableClient:
    if settings.backend == "rest":
        return RestTableClient(settings.rest_url, settings.rest_api_key, timeout=settings.http_timeout_seconds)

    client = SqliteTableClient(settings.sqlite_path)
    client.init_schema()
    return client


def build_repository(settings: Settings, cache: QueryCache | None = None) -> Repository:
    return Repository(build_client(settings), cache)
