"""
db.py
Table-query client interface + the local SQLite implementation
(creates the DB/tables, seeds the default payment plans, etc.)
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping, Sequence

from errors import DataError, NotFoundError

logger = logging.getLogger(__name__)

# relation name -> (foreign key column on the selected table, embedded columns)
Embed = Mapping[str, tuple[str, Sequence[str]]]

SCHEMA: dict[str, tuple[str, ...]] = {
    "users": (
        "id", "full_name", "phone_number", "email", "gender", "address", "created_at", "updated_at",
    ),
    "payment_plans": ("id", "name", "amount", "duration_months", "created_at"),
    "payments": (
        "id", "user_id", "plan_id", "amount_paid", "amount_remaining", "status",
        "payment_date", "created_at", "updated_at",
    ),
}

# name, amount, duration_months
DEFAULT_PLANS = [
    ("Monthly", 50, 1),
    ("Quarterly", 140, 3),
    ("Half-Yearly", 270, 6),
    ("Annual", 500, 12),
]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class TableClient:
    """
    Table-scoped queries and single-row mutations against a relational store.
    Every method either returns rows (plain dicts) or raises DataError.
    """

    def select(
        self,
        table: str,
        *,
        columns: Sequence[str] | None = None,
        eq: Mapping[str, Any] | None = None,
        ilike_any: tuple[Sequence[str], str] | None = None,
        order: str | None = None,
        descending: bool = False,
        embed: Embed | None = None,
    ) -> list[dict]:
        raise NotImplementedError

    def maybe_single(
        self, table: str, *, eq: Mapping[str, Any], columns: Sequence[str] | None = None
    ) -> dict | None:
        rows = self.select(table, columns=columns, eq=eq)
        if len(rows) > 1:
            raise DataError(f"Expected at most one row from {table}, got {len(rows)}")
        return rows[0] if rows else None

    def insert(self, table: str, values: Mapping[str, Any]) -> dict:
        raise NotImplementedError

    def update(self, table: str, row_id: str, values: Mapping[str, Any]) -> dict:
        raise NotImplementedError

    def delete(self, table: str, row_id: str) -> None:
        raise NotImplementedError


def _check_columns(table: str, columns) -> None:
    known = SCHEMA.get(table)
    if known is None:
        raise DataError(f'relation "{table}" does not exist')
    for col in columns:
        if col not in known:
            raise DataError(f"column {table}.{col} does not exist")


def _to_sql_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqliteTableClient(TableClient):
    """Single-file SQLite store with the same table layout as the hosted backend."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    @contextmanager
    def get_conn(self):
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        try:
            with self.get_conn() as conn:
                cur = conn.execute(sql, tuple(_to_sql_value(p) for p in params))
                return cur.rowcount
        except sqlite3.Error as e:
            logger.warning("SQLite statement failed: %s", e)
            raise DataError(str(e)) from e

    def _fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict]:
        try:
            with self.get_conn() as conn:
                cur = conn.execute(sql, tuple(_to_sql_value(p) for p in params))
                return [dict(r) for r in cur.fetchall()]
        except sqlite3.Error as e:
            logger.warning("SQLite query failed: %s", e)
            raise DataError(str(e)) from e

    # ---------- schema ----------

    def init_schema(self) -> None:
        """
        Initialize the database.
        - Create tables
        - Seed the default payment plans if none exist
        """
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                full_name TEXT NOT NULL,
                phone_number TEXT NOT NULL,
                email TEXT,
                gender TEXT,
                address TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS payment_plans (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                amount REAL NOT NULL CHECK(amount > 0),
                duration_months INTEGER NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS payments (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                plan_id TEXT NOT NULL,
                amount_paid REAL NOT NULL DEFAULT 0,
                amount_remaining REAL NOT NULL DEFAULT 0,
                status TEXT NOT NULL CHECK(status IN ('paid','unpaid','partial')),
                payment_date TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY(plan_id) REFERENCES payment_plans(id)
            )
            """
        )

        if not self._fetch_all("SELECT id FROM payment_plans LIMIT 1"):
            for name, amount, months in DEFAULT_PLANS:
                self.insert("payment_plans", {"name": name, "amount": amount, "duration_months": months})
            logger.info("Seeded %d default payment plans", len(DEFAULT_PLANS))

    # ---------- reads ----------

    def select(
        self,
        table: str,
        *,
        columns: Sequence[str] | None = None,
        eq: Mapping[str, Any] | None = None,
        ilike_any: tuple[Sequence[str], str] | None = None,
        order: str | None = None,
        descending: bool = False,
        embed: Embed | None = None,
    ) -> list[dict]:
        cols = list(columns) if columns else list(SCHEMA.get(table, ()))
        _check_columns(table, cols)

        sql = f"SELECT {', '.join(cols)} FROM {table} WHERE 1=1"
        params: list[Any] = []

        for col, value in (eq or {}).items():
            _check_columns(table, [col])
            if value is None:
                sql += f" AND {col} IS NULL"
            else:
                sql += f" AND {col} = ?"
                params.append(value)

        if ilike_any:
            search_cols, term = ilike_any
            _check_columns(table, search_cols)
            like = f"%{_escape_like(term.lower())}%"
            clauses = [f"lower({col}) LIKE ? ESCAPE '\\'" for col in search_cols]
            sql += f" AND ({' OR '.join(clauses)})"
            params.extend([like] * len(search_cols))

        if order:
            _check_columns(table, [order])
            direction = "DESC" if descending else "ASC"
            sql += f" ORDER BY {order} {direction}, rowid {direction}"

        rows = self._fetch_all(sql, params)
        for relation, (fk, rel_cols) in (embed or {}).items():
            self._embed(rows, relation, fk, rel_cols)
        return rows

    def _embed(self, rows: list[dict], relation: str, fk: str, rel_cols: Sequence[str]) -> None:
        cols = list(rel_cols)
        _check_columns(relation, cols)
        ids = sorted({r[fk] for r in rows if r.get(fk) is not None})
        by_id: dict[Any, dict] = {}
        if ids:
            select_cols = cols if "id" in cols else ["id", *cols]
            placeholders = ",".join("?" for _ in ids)
            for r in self._fetch_all(
                f"SELECT {', '.join(select_cols)} FROM {relation} WHERE id IN ({placeholders})", ids
            ):
                by_id[r["id"]] = {c: r[c] for c in cols}
        for r in rows:
            r[relation] = by_id.get(r.get(fk))

    # ---------- writes ----------

    def insert(self, table: str, values: Mapping[str, Any]) -> dict:
        row = dict(values)
        row.setdefault("id", str(uuid.uuid4()))
        now = utc_now_iso()
        for col in ("created_at", "updated_at"):
            if col in SCHEMA.get(table, ()):
                row.setdefault(col, now)
        _check_columns(table, row)

        cols = list(row)
        self._execute(
            f"INSERT INTO {table}({', '.join(cols)}) VALUES({', '.join('?' for _ in cols)})",
            [row[c] for c in cols],
        )
        return self._get(table, row["id"])

    def update(self, table: str, row_id: str, values: Mapping[str, Any]) -> dict:
        row = {k: v for k, v in values.items() if k != "id"}
        if "updated_at" in SCHEMA.get(table, ()):
            row["updated_at"] = utc_now_iso()
        _check_columns(table, row)

        if row:
            assignments = ", ".join(f"{c} = ?" for c in row)
            count = self._execute(
                f"UPDATE {table} SET {assignments} WHERE id = ?", [*row.values(), row_id]
            )
            if count == 0:
                raise NotFoundError(f"No row in {table} with id {row_id}")
        return self._get(table, row_id)

    def delete(self, table: str, row_id: str) -> None:
        _check_columns(table, ["id"])
        self._execute(f"DELETE FROM {table} WHERE id = ?", [row_id])

    def _get(self, table: str, row_id: str) -> dict:
        row = self.maybe_single(table, eq={"id": row_id})
        if row is None:
            raise NotFoundError(f"No row in {table} with id {row_id}")
        return row
