"""Unit tests for status filters, summaries and CSV exports"""

from datetime import timedelta, timezone
from decimal import Decimal

import pytest

from conftest import make_payment
from models import User
from reports import (
    BOM,
    PAYMENT_HEADERS,
    USER_HEADERS,
    export_payments,
    export_users,
    filter_by_status,
    payments_csv,
    summarize_payments,
    to_csv,
    users_csv,
)


@pytest.fixture
def mixed():
    return [
        make_payment("1", "paid", amount_paid=Decimal("50.00"), amount_remaining=Decimal("0.00")),
        make_payment("2", "unpaid"),
        make_payment("3", "partial", amount_paid=Decimal("20.00"), amount_remaining=Decimal("30.00")),
        make_payment("4", "paid", amount_paid=Decimal("50.00"), amount_remaining=Decimal("0.00")),
    ]


def test_filter_all_is_identity(mixed):
    assert filter_by_status(mixed, "all") == mixed


def test_filter_keeps_order(mixed):
    assert [p.id for p in filter_by_status(mixed, "paid")] == ["1", "4"]
    assert [p.id for p in filter_by_status(mixed, "partial")] == ["3"]
    assert [p.id for p in filter_by_status(mixed, "unpaid")] == ["2"]


def test_filter_unknown_status(mixed):
    with pytest.raises(ValueError):
        filter_by_status(mixed, "refunded")


def test_summarize_payments(mixed):
    summary = summarize_payments(mixed)
    assert summary["total"] == 4
    assert summary["paid"] == 2
    assert summary["unpaid"] == 1
    assert summary["partial"] == 1
    assert summary["total_amount"] == Decimal("120.00")
    assert summary["completion_rate"] == 50


def test_summarize_no_payments():
    summary = summarize_payments([])
    assert summary["total"] == 0
    assert summary["completion_rate"] == 0
    assert summary["total_amount"] == Decimal("0")


def test_to_csv_quotes_text_and_leaves_numbers_bare():
    text = to_csv([("Jane", 3, Decimal("1.50"))], lambda r: r, ["Name", "Count", "Amount"])
    assert text == BOM + "Name,Count,Amount\n" + '"Jane",3,1.50\n'


def test_to_csv_doubles_embedded_quotes():
    text = to_csv([('Jo "JJ" Smith, Jr.',)], lambda r: r, ["Name"])
    assert text.splitlines()[1] == '"Jo ""JJ"" Smith, Jr."'


def test_payments_csv_single_row():
    payment = make_payment(
        "1",
        "partial",
        amount_paid=Decimal("20.00"),
        amount_remaining=Decimal("30.00"),
        payment_date=None,
        created_at="2024-01-05T14:03:09+00:00",
    )
    text = payments_csv([payment])

    assert text.startswith(BOM)
    lines = text[len(BOM):].splitlines()
    assert len(lines) == 2
    assert lines[0] == ",".join(PAYMENT_HEADERS)
    assert lines[1] == (
        '"Jane Doe","555-0100","","Monthly",50.00,20.00,30.00,"partial","","01/05/2024, 14:03:09"'
    )


def test_payments_csv_formats_payment_date_in_timezone():
    payment = make_payment(
        "1",
        "paid",
        amount_paid=Decimal("50.00"),
        amount_remaining=Decimal("0.00"),
        payment_date="2024-03-07T09:05:01+00:00",
        created_at="2024-03-07T09:05:01+00:00",
    )
    tz = timezone(timedelta(hours=-5))
    line = payments_csv([payment], tz).splitlines()[1]
    assert line.endswith('"03/07/2024, 04:05:01","03/07/2024, 04:05:01"')


def test_users_csv():
    user = User(
        id="u1",
        full_name="Sam Lee",
        phone_number="555-0199",
        gender="male",
        address="1 Main St",
        created_at="2023-12-31T23:59:59+00:00",
    )
    lines = users_csv([user]).lstrip(BOM).splitlines()
    assert lines == [
        ",".join(USER_HEADERS),
        '"Sam Lee","555-0199","","male","1 Main St","12/31/2023, 23:59:59"',
    ]


def test_export_with_no_rows_produces_nothing(mixed):
    assert export_payments([], "all") is None
    assert export_payments([m for m in mixed if m.status != "partial"], "partial") is None
    assert export_users([]) is None


def test_export_filenames(mixed):
    assert export_payments(mixed, "all").filename == "all_payments.csv"
    assert export_payments(mixed, "paid").filename == "paid_payments.csv"
    user = User(id="u1", full_name="Sam", phone_number="1", created_at="2024-01-01T00:00:00+00:00")
    assert export_users([user]).filename == "all_users.csv"


def test_export_bytes_are_utf8_with_bom(mixed):
    export = export_payments(mixed, "unpaid")
    assert export.data.startswith(b"\xef\xbb\xbf")
    assert export.data.decode("utf-8").count("\n") == 2
