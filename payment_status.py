"""
payment_status.py
Derive a payment's status/remaining balance from its plan, and summarize
a user's payment rows into one status.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from models import PAID, PARTIAL, STATUSES, UNPAID, Payment, to_money

_PRIORITY = {status: rank for rank, status in enumerate(STATUSES)}


@dataclass(frozen=True)
class DerivedStatus:
    remaining: Decimal
    status: str


def derive(plan_amount, amount_paid) -> DerivedStatus:
    """
    remaining = max(0, plan_amount - amount_paid)
    status    = paid if amount_paid >= plan_amount, partial if 0 < amount_paid, else unpaid

    Callers reject amount_paid > plan_amount at the form boundary; passing it here
    still yields (0, paid).
    """
    plan = to_money(plan_amount)
    paid = to_money(amount_paid)
    if plan <= 0:
        raise ValueError(f"Plan amount must be positive, got {plan}")
    if paid < 0:
        raise ValueError(f"Amount paid cannot be negative, got {paid}")

    remaining = max(Decimal("0.00"), plan - paid)
    if paid >= plan:
        status = PAID
    elif paid > 0:
        status = PARTIAL
    else:
        status = UNPAID
    return DerivedStatus(remaining=remaining, status=status)


def aggregate_user_status(statuses: Iterable[str]) -> str:
    """paid > partial > unpaid; no rows means unpaid."""
    best = UNPAID
    for status in statuses:
        if _PRIORITY.get(status, _PRIORITY[UNPAID]) < _PRIORITY[best]:
            best = status
    return best


def user_statuses(payments: Iterable[Payment]) -> dict[str, str]:
    grouped: dict[str, list[str]] = {}
    for p in payments:
        grouped.setdefault(p.user_id, []).append(p.status)
    return {user_id: aggregate_user_status(rows) for user_id, rows in grouped.items()}
