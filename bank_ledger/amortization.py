"""
Amortization Module

Pure functions for equal-installment (annuity) loans: the fixed monthly
payment and the full payment schedule. No shared state; safe to call from any
thread.

All intermediate math runs at full Decimal working precision. Amounts are
rounded half-even to cents only where they become part of the schedule.
"""

from datetime import date
from decimal import Decimal
from typing import List
import calendar

from .currency import Money
from .models import SchedulePayment

MONTHS_PER_YEAR = Decimal('12')
PERCENT = Decimal('100')


def monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    """Convert an annual percentage (e.g. 15) into a monthly fraction (0.0125)"""
    return Decimal(annual_rate_percent) / MONTHS_PER_YEAR / PERCENT


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, clamping the day to the end of the target month"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calculate_monthly_payment(principal: Money, annual_rate_percent: Decimal,
                              term_months: int) -> Money:
    """
    Fixed monthly installment for an annuity loan.

    Standard formula: P * r(1+r)^n / ((1+r)^n - 1), r = monthly rate,
    n = number of months. A zero rate falls back to straight-line repayment.

    Args:
        principal: Amount borrowed
        annual_rate_percent: Yearly rate as a percentage
        term_months: Number of monthly installments

    Returns:
        Installment rounded half-even to cents; zero when term_months <= 0
    """
    if term_months <= 0:
        return Money.zero()

    rate = monthly_rate(annual_rate_percent)
    if rate == 0:
        return (principal / term_months).round_half_even()

    factor = (Decimal('1') + rate) ** term_months
    denominator = factor - Decimal('1')
    if denominator == 0:
        return Money.zero()

    return (principal * (rate * factor / denominator)).round_half_even()


def generate_payment_schedule(principal: Money, annual_rate_percent: Decimal,
                              term_months: int, start_date: date) -> List[SchedulePayment]:
    """
    Month-by-month repayment plan.

    Each month pays interest on the remaining principal (rounded half-even)
    and the rest of the installment goes to principal. On the last month, or
    whenever the installment would overshoot what is left, the entry pays
    exactly the remaining principal and its amount is recomputed; that entry
    absorbs the accumulated rounding so the principal parts add up to the
    original principal exactly. The schedule ends early once nothing is left.

    The first payment is due one month after start_date.
    """
    schedule: List[SchedulePayment] = []
    if term_months <= 0:
        return schedule

    payment = calculate_monthly_payment(principal, annual_rate_percent, term_months)
    rate = monthly_rate(annual_rate_percent)
    remaining = principal

    for month in range(term_months):
        interest_part = (remaining * rate).round_half_even()
        principal_part = payment - interest_part
        amount = payment

        is_last = month == term_months - 1
        if is_last or (remaining - principal_part) <= Money.zero():
            principal_part = remaining
            amount = (principal_part + interest_part).round_half_even()

        schedule.append(SchedulePayment(
            due_date=add_months(start_date, month + 1),
            amount=amount,
            principal_part=principal_part,
            interest_part=interest_part,
        ))

        remaining = remaining - principal_part
        if remaining <= Money.zero():
            break

    return schedule
