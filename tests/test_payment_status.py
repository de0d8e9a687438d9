"""Unit tests for payment status derivation and per-user aggregation"""

from decimal import Decimal
from itertools import permutations

import pytest

from conftest import make_payment
from payment_status import aggregate_user_status, derive, user_statuses


@pytest.mark.parametrize(
    "paid, remaining, status",
    [
        (500, Decimal("0.00"), "paid"),
        (200, Decimal("300.00"), "partial"),
        (0, Decimal("500.00"), "unpaid"),
    ],
)
def test_derive_examples(paid, remaining, status):
    result = derive(500, paid)
    assert result.remaining == remaining
    assert result.status == status


def test_derive_boundaries():
    """Paid exactly at the plan amount, partial one cent below, unpaid at zero"""
    assert derive(Decimal("140.00"), Decimal("140.00")).status == "paid"
    assert derive(Decimal("140.00"), Decimal("139.99")).status == "partial"
    assert derive(Decimal("140.00"), Decimal("0.01")).status == "partial"
    assert derive(Decimal("140.00"), Decimal("0")).status == "unpaid"


def test_derive_remaining_is_plan_minus_paid():
    for paid in ("0", "0.01", "12.34", "49.99", "50"):
        assert derive("50", paid).remaining == Decimal("50.00") - Decimal(paid)


def test_derive_rounds_to_cents_before_comparing():
    """499.999 becomes 500.00, so it counts as paid in full"""
    result = derive(500, 499.999)
    assert result.status == "paid"
    assert result.remaining == Decimal("0.00")


def test_derive_overpayment_never_goes_negative():
    result = derive(50, 80)
    assert result.remaining == Decimal("0.00")
    assert result.status == "paid"


def test_derive_is_idempotent():
    assert derive(270, 100) == derive(270, 100)


@pytest.mark.parametrize("plan, paid", [(0, 0), (-5, 0), (50, -1)])
def test_derive_rejects_out_of_domain_input(plan, paid):
    with pytest.raises(ValueError):
        derive(plan, paid)


def test_aggregate_empty_is_unpaid():
    assert aggregate_user_status([]) == "unpaid"


def test_aggregate_priority():
    assert aggregate_user_status(["partial", "unpaid"]) == "partial"
    assert aggregate_user_status(["unpaid", "paid", "partial"]) == "paid"
    assert aggregate_user_status(["unpaid", "unpaid"]) == "unpaid"


def test_aggregate_ignores_order():
    for rows in permutations(["unpaid", "partial", "paid"]):
        assert aggregate_user_status(rows) == "paid"
    for rows in permutations(["unpaid", "partial", "unpaid"]):
        assert aggregate_user_status(rows) == "partial"


def test_user_statuses_groups_by_owner():
    payments = [
        make_payment("a", "unpaid", user_id="u1"),
        make_payment("b", "partial", user_id="u1"),
        make_payment("c", "unpaid", user_id="u2"),
        make_payment("d", "paid", user_id="u3"),
        make_payment("e", "partial", user_id="u3"),
    ]
    assert user_statuses(payments) == {"u1": "partial", "u2": "unpaid", "u3": "paid"}


def test_user_statuses_leaves_users_without_rows_out():
    """Callers fall back to unpaid for users missing from the map"""
    assert user_statuses([]) == {}
