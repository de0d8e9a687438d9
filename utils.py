"""
utils.py
Validation, dates, money formatting, payment form helpers.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from typing import Any, Callable, MutableMapping

from models import GENDERS, UNPAID, PaymentPlan, to_money
from payment_status import derive

TIMESTAMP_FORMAT = "%m/%d/%Y, %H:%M:%S"
DATE_FORMAT = "%m/%d/%Y"


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _localize(dt: datetime, tz: tzinfo | None) -> datetime:
    if tz is not None and dt.tzinfo is not None:
        return dt.astimezone(tz)
    return dt


def format_timestamp(value: Any, tz: tzinfo | None = None) -> str:
    """MM/DD/YYYY, HH:MM:SS, or "" when there is no timestamp."""
    dt = parse_timestamp(value)
    if dt is None:
        return ""
    return _localize(dt, tz).strftime(TIMESTAMP_FORMAT)


def format_date(value: Any, tz: tzinfo | None = None) -> str:
    dt = parse_timestamp(value)
    if dt is None:
        return "-"
    return _localize(dt, tz).strftime(DATE_FORMAT)


def format_money(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def parse_amount(text: str) -> Decimal:
    return to_money(text)


def clean_user_fields(
    full_name: str, phone_number: str, email: str = "", gender: str = "", address: str = ""
) -> dict:
    """Strip inputs; optional fields left blank are stored as NULL."""
    return {
        "full_name": full_name.strip(),
        "phone_number": phone_number.strip(),
        "email": email.strip() or None,
        "gender": gender.strip() or None,
        "address": address.strip() or None,
    }


def validate_user_inputs(full_name: str, phone_number: str, email: str = "", gender: str = "") -> list[str]:
    errors: list[str] = []
    if not full_name.strip() or not phone_number.strip():
        errors.append("Full name and phone number are required.")
    if email.strip() and "@" not in email:
        errors.append("Email address is not valid.")
    if gender.strip() and gender.strip() not in GENDERS:
        errors.append(f"Gender must be one of: {', '.join(GENDERS)}.")
    return errors


def validate_payment_inputs(user_id: str | None, plan: PaymentPlan | None, amount_text: str) -> list[str]:
    """
    Checks done before anything is sent to the store:
    - user, plan and amount are all present
    - amount is numeric and not negative
    - amount does not exceed the plan amount
    """
    if not user_id or plan is None or not amount_text.strip():
        return ["Please fill in all required fields."]
    try:
        amount = parse_amount(amount_text)
    except ValueError:
        return ["Amount paid must be numeric."]
    if amount < 0:
        return ["Amount paid cannot be negative."]
    if amount > plan.amount:
        return [f"Amount paid (${amount}) cannot exceed plan amount (${plan.amount})."]
    return []


def payment_fields(user_id: str, plan: PaymentPlan, amount_paid: Decimal, now: datetime | None = None) -> dict:
    """Row values for a new or edited payment, with remaining/status derived from the plan."""
    derived = derive(plan.amount, amount_paid)
    paid_at = now or datetime.now(timezone.utc)
    return {
        "user_id": user_id,
        "plan_id": plan.id,
        "amount_paid": to_money(amount_paid),
        "amount_remaining": derived.remaining,
        "status": derived.status,
        "payment_date": paid_at.isoformat() if derived.status != UNPAID else None,
    }


# ---------- session helpers ----------

FLASH_KEY = "flash"

# collection tag -> session key of the row open in an edit form
EDIT_KEYS = {"users": "edit_user_id", "payments": "edit_payment_id"}


def push_flash(state: MutableMapping[str, Any], message: str) -> None:
    """Keep a success message for the next script run (st.rerun drops this run's output)."""
    state[FLASH_KEY] = message


def pop_flash(state: MutableMapping[str, Any]) -> str | None:
    return state.pop(FLASH_KEY, None)


def close_edit_forms(state: MutableMapping[str, Any]) -> Callable[[str], None]:
    """Cache listener: a write to a collection closes that collection's edit form."""

    def listener(tag: str) -> None:
        key = EDIT_KEYS.get(tag)
        if key:
            state[key] = None

    return listener
