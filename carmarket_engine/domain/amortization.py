"""Credit simulation - monthly payments and amortization schedules"""

from datetime import date
from typing import List, Optional

from carmarket_engine.domain.models import AmortizationRow
from carmarket_engine.utils.date_utils import add_months


def _to_cents(amount: float) -> int:
    return int(round(amount * 100))


def _monthly_payment_cents(amount_cents: int, annual_rate: float, term: int) -> int:
    monthly_rate = annual_rate / 100 / 12
    if monthly_rate == 0:
        return int(round(amount_cents / term))
    growth = (1 + monthly_rate) ** term
    return int(round(amount_cents * monthly_rate * growth / (growth - 1)))


def calculate_monthly_payment(amount: float, annual_rate: float, term: int) -> float:
    """
    Fixed monthly payment for a fully amortizing loan (French system).

    Args:
        amount: Financed principal
        annual_rate: Annual interest rate as a percentage (e.g. 12.5)
        term: Number of monthly payments

    Returns:
        Payment rounded to cents; a zero rate spreads the principal evenly.
    """
    if term <= 0:
        raise ValueError("term must be positive")
    return _monthly_payment_cents(_to_cents(amount), annual_rate, term) / 100


def generate_amortization_schedule(
    amount: float,
    annual_rate: float,
    term: int,
    start_date: Optional[date] = None,
) -> List[AmortizationRow]:
    """
    Month-by-month breakdown of a fixed-payment loan.

    Requirements:
    - One row per month, due dates one calendar month apart
    - Interest accrues on the outstanding balance
    - Last payment absorbs rounding so principal sums exactly to the amount

    Args:
        amount: Financed principal
        annual_rate: Annual interest rate as a percentage
        term: Number of monthly payments
        start_date: First due date (default: one month from today)

    Example:
        1200.00 at 0% over 3 months -> 3 x 400.00, balance 800.00, 400.00, 0.00
    """
    if amount <= 0 or term <= 0:
        return []

    if start_date is None:
        start_date = add_months(date.today(), 1)

    monthly_rate = annual_rate / 100 / 12
    balance = _to_cents(amount)
    payment = _monthly_payment_cents(balance, annual_rate, term)

    rows = []
    for i in range(term):
        interest = int(round(balance * monthly_rate))

        if i == term - 1:
            principal = balance
        else:
            principal = min(payment - interest, balance)

        balance -= principal

        rows.append(
            AmortizationRow(
                number=i + 1,
                due_date=add_months(start_date, i),
                payment=(principal + interest) / 100,
                principal=principal / 100,
                interest=interest / 100,
                balance=balance / 100,
            )
        )

    return rows
