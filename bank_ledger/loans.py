"""
Loan Management Module

Loan approval and disbursement, plus loan reads. The base rate comes from a
RateSource; if it cannot be obtained the configured fallback rate is used.
The loan insert, the account credit and the disbursement record form one
atomic section: either all three happen or none do.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from .amortization import generate_payment_schedule
from .config import LedgerConfig, get_config
from .exceptions import (
    InternalError, LedgerError, NotFoundError, RateSourceError, ValidationError
)
from .identifiers import generate_id
from .logging_config import get_logger, log_action
from .models import Loan, SchedulePayment, Transaction, TransactionType
from .rates import RateSource, build_rate_source
from .storage import LedgerStore
from .transactions import AmountInput, validate_amount


class LoanManager:
    """
    Manages loan approval, disbursement and loan reads
    """

    def __init__(
        self,
        store: LedgerStore,
        rate_source: Optional[RateSource] = None,
        config: Optional[LedgerConfig] = None
    ):
        self.store = store
        self.config = config or get_config()
        self.rate_source = rate_source or build_rate_source(self.config)
        self.logger = get_logger("bank_ledger.loans")

    def current_loan_rate(self) -> Decimal:
        """Base rate plus the bank's margin, annual percent"""
        try:
            base_rate = self.rate_source.get_base_rate()
        except RateSourceError as e:
            base_rate = self.config.fallback_base_rate
            self.logger.warning(
                f"Failed to get base rate, using default {base_rate}%: {e.message}"
            )
        return base_rate + self.config.loan_rate_margin

    def apply_for_loan(
        self,
        user_id: str,
        account_id: str,
        amount: AmountInput,
        term_months: int,
        start_date: Optional[date] = None
    ) -> Loan:
        """
        Approve a loan and credit its principal to the borrower's account

        Args:
            user_id: Borrower
            account_id: Account receiving the funds
            amount: Principal
            term_months: Number of monthly installments
            start_date: Disbursement date (defaults to today); the first
                installment is due one month later

        Returns:
            The created Loan with its full payment schedule

        Raises:
            ValidationError: If amount or term_months is not positive
            NotFoundError: If the user or the account does not exist
            InternalError: If disbursement fails for any other reason
        """
        try:
            if isinstance(term_months, bool) or not isinstance(term_months, int) or term_months <= 0:
                raise ValidationError("Loan amount and term must be positive", field="term_months")
            principal = validate_amount(amount, "Loan")

            if not self.store.user_exists(user_id):
                raise NotFoundError("user", user_id)
            if self.store.get_account(account_id) is None:
                raise NotFoundError("account", account_id)

            # Outside the exclusive section: may block on network I/O
            annual_rate = self.current_loan_rate()

            start_date = start_date or self.store.now().date()
            schedule = generate_payment_schedule(principal, annual_rate, term_months, start_date)

            loan = Loan(
                id=generate_id(),
                created_at=self.store.now(),
                user_id=user_id,
                account_id=account_id,
                principal=principal,
                annual_rate=annual_rate,
                term_months=term_months,
                start_date=start_date,
                schedule=schedule,
            )

            with self.store.atomic():
                loan = self.store.add_loan(loan)
                self.store.mutate_balance(account_id, principal)
                self.store.append_transaction(Transaction(
                    id=generate_id(),
                    amount=principal,
                    timestamp=self.store.now(),
                    transaction_type=TransactionType.LOAN_DISBURSEMENT,
                    description=f"Loan disbursement (ID: {loan.id})",
                    to_account_id=account_id,
                ))
        except LedgerError as e:
            log_action(
                self.logger, "error" if isinstance(e, InternalError) else "info",
                f"Loan application rejected: {e.message}",
                user_id=user_id, action="apply_for_loan", extra={"code": e.code}
            )
            raise
        except Exception as e:
            self.logger.exception("Unexpected failure in apply_for_loan")
            raise InternalError() from e

        log_action(
            self.logger, "info",
            f"Loan {loan.id} approved, amount {principal}, rate {annual_rate}%, "
            f"term {term_months} months. Funds disbursed to account {account_id}",
            user_id=user_id, action="apply_for_loan", resource=f"loan:{loan.id}",
            extra={
                "amount": str(principal),
                "annual_rate": str(annual_rate),
                "term_months": term_months,
                "monthly_payment": str(loan.monthly_payment),
            }
        )
        return loan

    def get_loan(self, loan_id: str) -> Loan:
        """
        Raises:
            NotFoundError: If the loan does not exist
        """
        loan = self.store.get_loan(loan_id)
        if loan is None:
            raise NotFoundError("loan", loan_id)
        return loan

    def get_loan_schedule(self, loan_id: str) -> List[SchedulePayment]:
        return self.get_loan(loan_id).schedule

    def get_user_loans(self, user_id: str) -> List[Loan]:
        return self.store.get_user_loans(user_id)
