"""
models.py
Domain types (users, plans, payments) and money helpers.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping

PAID = "paid"
PARTIAL = "partial"
UNPAID = "unpaid"

# Highest priority first (used when summarizing a user's payment rows)
STATUSES = (PAID, PARTIAL, UNPAID)

ALL = "all"

GENDERS = ("male", "female")

CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """
    Convert a store/form value into a Decimal rounded to cents.
    Floats go through str() so 0.1 stays 0.10 instead of 0.1000000000000000055...
    """
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(str(value))
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Not a valid amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Not a valid amount: {value!r}")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        # more digits than the decimal context's precision
        raise ValueError(f"Amount is too large: {value!r}") from e


@dataclass(frozen=True)
class User:
    id: str
    full_name: str
    phone_number: str
    email: str | None = None
    gender: str | None = None
    address: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "User":
        return cls(
            id=str(row["id"]),
            full_name=row["full_name"],
            phone_number=row["phone_number"],
            email=row.get("email"),
            gender=row.get("gender"),
            address=row.get("address"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


@dataclass(frozen=True)
class PaymentPlan:
    id: str
    name: str
    amount: Decimal
    duration_months: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PaymentPlan":
        return cls(
            id=str(row["id"]),
            name=row["name"],
            amount=to_money(row["amount"]),
            duration_months=int(row.get("duration_months") or 0),
        )

    @property
    def label(self) -> str:
        return f"{self.name} - ${self.amount}"


@dataclass(frozen=True)
class UserRef:
    """The slice of a user embedded in a payment row."""

    id: str
    full_name: str
    phone_number: str
    email: str | None = None


@dataclass(frozen=True)
class PlanRef:
    """The slice of a plan embedded in a payment row."""

    id: str
    name: str
    amount: Decimal


@dataclass(frozen=True)
class Payment:
    id: str
    user_id: str
    plan_id: str
    amount_paid: Decimal
    amount_remaining: Decimal
    status: str  # paid / partial / unpaid
    payment_date: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    user: UserRef | None = None
    plan: PlanRef | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Payment":
        user = row.get("users")
        plan = row.get("payment_plans")
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            plan_id=str(row["plan_id"]),
            amount_paid=to_money(row["amount_paid"]),
            amount_remaining=to_money(row["amount_remaining"]),
            status=row["status"],
            payment_date=row.get("payment_date"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            user=(
                UserRef(
                    id=str(user["id"]),
                    full_name=user["full_name"],
                    phone_number=user["phone_number"],
                    email=user.get("email"),
                )
                if user
                else None
            ),
            plan=(
                PlanRef(id=str(plan["id"]), name=plan["name"], amount=to_money(plan["amount"]))
                if plan
                else None
            ),
        )
