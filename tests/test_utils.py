"""Unit tests for form validation, payment field building and formatting"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from cache import QueryCache
from models import PaymentPlan, to_money
from utils import (
    clean_user_fields,
    close_edit_forms,
    format_date,
    format_money,
    format_timestamp,
    payment_fields,
    pop_flash,
    push_flash,
    validate_payment_inputs,
    validate_user_inputs,
)

MONTHLY = PaymentPlan(id="p1", name="Monthly", amount=Decimal("50.00"), duration_months=1)


def test_format_timestamp():
    assert format_timestamp("2024-03-07T09:05:01+00:00") == "03/07/2024, 09:05:01"
    assert format_timestamp("2024-03-07T09:05:01.123456+00:00") == "03/07/2024, 09:05:01"
    assert format_timestamp(None) == ""
    assert format_timestamp("") == ""


def test_format_timestamp_converts_timezone():
    tz = timezone(timedelta(hours=2))
    assert format_timestamp("2024-12-31T23:30:00+00:00", tz) == "01/01/2025, 01:30:00"


def test_format_date_and_money():
    assert format_date("2024-03-07T09:05:01+00:00") == "03/07/2024"
    assert format_date(None) == "-"
    assert format_money(Decimal("1234.5")) == "$1,234.50"


def test_validate_user_inputs():
    assert validate_user_inputs("Jane", "555") == []
    assert validate_user_inputs(" ", "555") == ["Full name and phone number are required."]
    assert validate_user_inputs("Jane", "") == ["Full name and phone number are required."]
    assert validate_user_inputs("Jane", "555", email="not-an-email") == ["Email address is not valid."]
    assert len(validate_user_inputs("Jane", "555", gender="other")) == 1


def test_clean_user_fields_blanks_become_null():
    assert clean_user_fields(" Jane ", " 555 ", "", " female ", "  ") == {
        "full_name": "Jane",
        "phone_number": "555",
        "email": None,
        "gender": "female",
        "address": None,
    }


@pytest.mark.parametrize(
    "user_id, plan, amount, expected",
    [
        ("u1", MONTHLY, "20", []),
        ("u1", MONTHLY, "50", []),
        ("u1", MONTHLY, "0", []),
        ("", MONTHLY, "20", ["Please fill in all required fields."]),
        ("u1", None, "20", ["Please fill in all required fields."]),
        ("u1", MONTHLY, " ", ["Please fill in all required fields."]),
        ("u1", MONTHLY, "abc", ["Amount paid must be numeric."]),
        ("u1", MONTHLY, "-1", ["Amount paid cannot be negative."]),
        ("u1", MONTHLY, "50.01", ["Amount paid ($50.01) cannot exceed plan amount ($50.00)."]),
    ],
)
def test_validate_payment_inputs(user_id, plan, amount, expected):
    assert validate_payment_inputs(user_id, plan, amount) == expected


def test_payment_fields_partial_sets_payment_date():
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    fields = payment_fields("u1", MONTHLY, Decimal("20"), now=now)
    assert fields == {
        "user_id": "u1",
        "plan_id": "p1",
        "amount_paid": Decimal("20.00"),
        "amount_remaining": Decimal("30.00"),
        "status": "partial",
        "payment_date": "2024-05-01T12:00:00+00:00",
    }


def test_payment_fields_unpaid_has_no_payment_date():
    fields = payment_fields("u1", MONTHLY, Decimal("0"))
    assert fields["status"] == "unpaid"
    assert fields["amount_remaining"] == Decimal("50.00")
    assert fields["payment_date"] is None


def test_to_money():
    assert to_money(0.1) == Decimal("0.10")
    assert to_money("19.999") == Decimal("20.00")
    assert to_money(7) == Decimal("7.00")
    for bad in ("abc", "nan", "inf", None):
        with pytest.raises(ValueError):
            to_money(bad)


def test_amount_beyond_decimal_precision_is_a_validation_message():
    plan = PaymentPlan(id="p2", name="Annual", amount=Decimal("500.00"), duration_months=12)
    assert validate_payment_inputs("u1", plan, "1" + "0" * 29) == ["Amount paid must be numeric."]
    with pytest.raises(ValueError):
        to_money("1" + "0" * 29)


def test_flash_message_survives_until_read_once():
    state = {}
    assert pop_flash(state) is None
    push_flash(state, "User registered successfully.")
    assert pop_flash(state) == "User registered successfully."
    assert pop_flash(state) is None


def test_writes_close_the_matching_edit_form():
    state = {"edit_user_id": "u1", "edit_payment_id": "pay-1"}
    cache = QueryCache()
    cache.subscribe(close_edit_forms(state))

    cache.invalidate("payments")
    assert state == {"edit_user_id": "u1", "edit_payment_id": None}

    cache.invalidate("users")
    assert state["edit_user_id"] is None

    cache.invalidate("payment_plans")
