"""
reports.py
Status filters, summary numbers and CSV exports for payments and users.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import tzinfo
from decimal import Decimal
from typing import Any, Callable, Iterable, Sequence

import pandas as pd

from models import ALL, PAID, PARTIAL, STATUSES, UNPAID, Payment, User
from utils import format_timestamp

BOM = "\ufeff"

PAYMENT_HEADERS = [
    "User Name",
    "Phone Number",
    "Email",
    "Payment Plan",
    "Plan Amount",
    "Amount Paid",
    "Amount Remaining",
    "Status",
    "Payment Date",
    "Created Date",
]

USER_HEADERS = ["Name", "Phone Number", "Email", "Gender", "Address", "Registration Date"]


@dataclass(frozen=True)
class CsvExport:
    filename: str
    data: bytes

    mime: str = "text/csv"


def filter_by_status(payments: Sequence[Payment], status: str) -> list[Payment]:
    if status == ALL:
        return list(payments)
    if status not in STATUSES:
        raise ValueError(f"Unknown status filter: {status!r}")
    return [p for p in payments if p.status == status]


def summarize_payments(payments: Sequence[Payment]) -> dict[str, Any]:
    total = len(payments)
    paid = sum(1 for p in payments if p.status == PAID)
    return {
        "total": total,
        "paid": paid,
        "unpaid": sum(1 for p in payments if p.status == UNPAID),
        "partial": sum(1 for p in payments if p.status == PARTIAL),
        "total_amount": sum((p.amount_paid for p in payments), Decimal("0.00")),
        "completion_rate": round(paid / total * 100) if total else 0,
    }


def to_csv(rows: Iterable[Any], extractor: Callable[[Any], Sequence[Any]], headers: Sequence[str]) -> str:
    """
    BOM + header line + one line per row.
    Text is double-quoted (embedded quotes doubled), numbers are bare,
    missing values are empty fields.
    """
    records = [list(extractor(row)) for row in rows]
    frame = pd.DataFrame(records, columns=list(headers), dtype=object)
    body = frame.to_csv(index=False, header=False, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    return BOM + ",".join(headers) + "\n" + body


def _payment_record(p: Payment, tz: tzinfo | None) -> list[Any]:
    user = p.user
    plan = p.plan
    return [
        user.full_name if user else "",
        user.phone_number if user else "",
        (user.email or "") if user else "",
        plan.name if plan else "",
        plan.amount if plan else None,
        p.amount_paid,
        p.amount_remaining,
        p.status,
        format_timestamp(p.payment_date, tz) or None,
        format_timestamp(p.created_at, tz),
    ]


def _user_record(u: User, tz: tzinfo | None) -> list[Any]:
    return [
        u.full_name,
        u.phone_number,
        u.email or "",
        u.gender or "",
        u.address or "",
        format_timestamp(u.created_at, tz),
    ]


def payments_csv(payments: Sequence[Payment], tz: tzinfo | None = None) -> str:
    return to_csv(payments, lambda p: _payment_record(p, tz), PAYMENT_HEADERS)


def users_csv(users: Sequence[User], tz: tzinfo | None = None) -> str:
    return to_csv(users, lambda u: _user_record(u, tz), USER_HEADERS)


def export_filename(report_type: str, kind: str = "payments") -> str:
    return f"{report_type}_{kind}.csv"


def export_payments(
    payments: Sequence[Payment], report_type: str = ALL, tz: tzinfo | None = None
) -> CsvExport | None:
    """CSV of the payments matching `report_type`, or None when there is nothing to export."""
    rows = filter_by_status(payments, report_type)
    if not rows:
        return None
    return CsvExport(export_filename(report_type), payments_csv(rows, tz).encode("utf-8"))


def export_users(users: Sequence[User], tz: tzinfo | None = None) -> CsvExport | None:
    if not users:
        return None
    return CsvExport(export_filename(ALL, "users"), users_csv(users, tz).encode("utf-8"))
