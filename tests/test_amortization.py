"""
Test suite for amortization module

Tests the annuity payment formula, schedule generation and the final-month
rounding reconciliation.
"""

import pytest
from datetime import date
from decimal import Decimal, ROUND_HALF_EVEN

from bank_ledger.amortization import (
    add_months, calculate_monthly_payment, generate_payment_schedule, monthly_rate
)
from bank_ledger.currency import Money


def _sum(values):
    return sum(values, Money.zero())


class TestMonthlyPayment:
    """Test calculate_monthly_payment"""

    def test_monthly_rate(self):
        assert monthly_rate(Decimal('15')) == Decimal('0.0125')
        assert monthly_rate(Decimal('0')) == Decimal('0')

    def test_standard_annuity(self):
        # r = 0.01, n = 2: 1000 * 0.01 * 1.0201 / 0.0201 = 507.5124...
        payment = calculate_monthly_payment(Money(Decimal('1000.00')), Decimal('12'), 2)
        assert payment == Money(Decimal('507.51'))

    def test_reference_loan(self):
        principal = Money(Decimal('120000.00'))
        payment = calculate_monthly_payment(principal, Decimal('15'), 12)

        r = Decimal('0.0125')
        factor = (1 + r) ** 12
        expected = (Decimal('120000.00') * (r * factor / (factor - 1))).quantize(
            Decimal('0.01'), rounding=ROUND_HALF_EVEN
        )
        assert payment.amount == expected
        assert Decimal('10830') < payment.amount < Decimal('10832')

    def test_zero_rate_is_straight_line(self):
        payment = calculate_monthly_payment(Money(Decimal('1200.00')), Decimal('0'), 12)
        assert payment == Money(Decimal('100.00'))

        payment = calculate_monthly_payment(Money(Decimal('1000.00')), Decimal('0'), 3)
        assert payment == Money(Decimal('333.33'))

    @pytest.mark.parametrize("term", [0, -1, -12])
    def test_non_positive_term_is_zero(self, term):
        payment = calculate_monthly_payment(Money(Decimal('1000.00')), Decimal('15'), term)
        assert payment.is_zero()

    def test_payment_is_rounded_to_cents(self):
        payment = calculate_monthly_payment(Money(Decimal('9999.99')), Decimal('17.3'), 37)
        assert payment.fits_scale(2)


class TestPaymentSchedule:
    """Test generate_payment_schedule"""

    def test_two_month_schedule(self):
        schedule = generate_payment_schedule(
            Money(Decimal('1000.00')), Decimal('12'), 2, date(2024, 1, 15)
        )

        assert len(schedule) == 2

        first, last = schedule
        assert first.interest_part == Money(Decimal('10.00'))
        assert first.principal_part == Money(Decimal('497.51'))
        assert first.amount == Money(Decimal('507.51'))
        assert first.due_date == date(2024, 2, 15)

        # 502.49 left; 502.49 * 0.01 = 5.0249 -> 5.02
        assert last.interest_part == Money(Decimal('5.02'))
        assert last.principal_part == Money(Decimal('502.49'))
        assert last.amount == Money(Decimal('507.51'))
        assert last.due_date == date(2024, 3, 15)
        assert not first.paid and not last.paid

    def test_reference_loan_schedule(self):
        principal = Money(Decimal('120000.00'))
        schedule = generate_payment_schedule(principal, Decimal('15'), 12, date(2024, 1, 1))
        payment = calculate_monthly_payment(principal, Decimal('15'), 12)

        assert len(schedule) == 12
        for entry in schedule[:-1]:
            assert entry.amount == payment

        # The last entry pays exactly what is left after eleven regular ones
        left = principal - _sum(entry.principal_part for entry in schedule[:-1])
        assert schedule[-1].principal_part == left
        assert schedule[-1].amount == schedule[-1].principal_part + schedule[-1].interest_part
        assert _sum(entry.principal_part for entry in schedule) == principal

    @pytest.mark.parametrize("principal,rate,term", [
        ("120000.00", "15", 12),
        ("1000.00", "0", 3),
        ("5000.00", "10", 7),
        ("250000.00", "21.5", 360),
        ("0.01", "15", 1),
        ("777.77", "3.3", 24),
    ])
    def test_schedule_reconciles(self, principal, rate, term):
        principal = Money(Decimal(principal))
        schedule = generate_payment_schedule(principal, Decimal(rate), term, date(2024, 1, 31))

        assert 1 <= len(schedule) <= term
        assert _sum(e.principal_part for e in schedule) == principal
        assert (_sum(e.interest_part for e in schedule) + _sum(e.principal_part for e in schedule)
                == _sum(e.amount for e in schedule))
        for entry in schedule:
            assert entry.amount.fits_scale(2)
            assert entry.interest_part.fits_scale(2)

        due_dates = [entry.due_date for entry in schedule]
        assert due_dates == sorted(due_dates)
        assert len(set(due_dates)) == len(due_dates)

    def test_zero_rate_schedule(self):
        schedule = generate_payment_schedule(
            Money(Decimal('1000.00')), Decimal('0'), 3, date(2024, 1, 1)
        )
        assert [e.amount for e in schedule] == [
            Money(Decimal('333.33')), Money(Decimal('333.33')), Money(Decimal('333.34'))
        ]
        assert all(e.interest_part.is_zero() for e in schedule)

    def test_non_positive_term_gives_empty_schedule(self):
        assert generate_payment_schedule(
            Money(Decimal('1000.00')), Decimal('15'), 0, date(2024, 1, 1)
        ) == []


class TestAddMonths:
    """Test due date arithmetic"""

    def test_regular(self):
        assert add_months(date(2024, 1, 15), 1) == date(2024, 2, 15)
        assert add_months(date(2024, 12, 15), 1) == date(2025, 1, 15)
        assert add_months(date(2024, 1, 15), 24) == date(2026, 1, 15)

    def test_clamps_to_month_end(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert add_months(date(2024, 1, 31), 3) == date(2024, 4, 30)
