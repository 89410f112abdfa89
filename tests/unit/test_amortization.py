"""Unit tests for monthly payment and amortization schedule generation"""

import pytest
from datetime import date
from carmarket_engine.domain.amortization import (
    calculate_monthly_payment,
    generate_amortization_schedule,
)
from carmarket_engine.utils.date_utils import add_months


def test_monthly_payment_standard_loan():
    """Test French-system payment: 100,000 at 12% over 12 months"""
    assert calculate_monthly_payment(100000, 12.0, 12) == 8884.88


def test_monthly_payment_zero_rate_splits_evenly():
    assert calculate_monthly_payment(1200, 0.0, 3) == 400.0


def test_monthly_payment_rejects_non_positive_term():
    with pytest.raises(ValueError):
        calculate_monthly_payment(1000, 10.0, 0)


def test_schedule_zero_rate_example():
    rows = generate_amortization_schedule(1200, 0.0, 3, start_date=date(2024, 1, 15))

    assert [r.payment for r in rows] == [400.0, 400.0, 400.0]
    assert [r.balance for r in rows] == [800.0, 400.0, 0.0]
    assert [r.due_date for r in rows] == [date(2024, 1, 15), date(2024, 2, 15), date(2024, 3, 15)]


def test_schedule_principal_sums_to_amount():
    """Test last row absorbs rounding so the loan closes at exactly zero"""
    rows = generate_amortization_schedule(100000, 12.0, 12, start_date=date(2024, 1, 1))

    assert len(rows) == 12
    assert [r.number for r in rows] == list(range(1, 13))
    assert round(sum(r.principal for r in rows), 2) == 100000.0
    assert rows[-1].balance == 0.0
    assert rows[0].interest == 1000.0
    assert all(r.payment == 8884.88 for r in rows[:-1])
    assert rows[-1].payment == pytest.approx(8884.88, abs=0.05)


def test_schedule_interest_decreases_over_time():
    rows = generate_amortization_schedule(50000, 18.0, 24, start_date=date(2024, 1, 1))

    interests = [r.interest for r in rows]
    assert interests == sorted(interests, reverse=True)


@pytest.mark.parametrize("amount, term", [(0, 12), (-100, 12), (1000, 0)])
def test_schedule_empty_for_non_positive_inputs(amount, term):
    assert generate_amortization_schedule(amount, 10.0, term) == []


def test_add_months_clamps_to_month_end():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)
