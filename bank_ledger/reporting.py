"""
Reporting Module

Read-only views over the ledger: an account's transaction statement and a
user's financial summary.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from .currency import Money
from .exceptions import NotFoundError
from .logging_config import get_logger
from .models import Transaction, serialize_value
from .storage import LedgerStore


@dataclass
class FinancialSummary:
    """Balances and loan debt of one user"""
    user_id: str
    total_account_balance: Money
    number_of_accounts: int
    total_loan_debt: Money
    active_loans: int

    def to_dict(self) -> Dict[str, Any]:
        return serialize_value(self)


class ReportingService:
    """
    Builds statements and summaries from store reads
    """

    def __init__(self, store: LedgerStore):
        self.store = store
        self.logger = get_logger("bank_ledger.reporting")

    def get_account_statement(self, account_id: str) -> List[Transaction]:
        """
        Transactions touching an account, newest first

        Raises:
            NotFoundError: If the account does not exist
        """
        if self.store.get_account(account_id) is None:
            raise NotFoundError("account", account_id)

        # Log order is chronological; reversing keeps same-timestamp entries newest first
        transactions = list(reversed(self.store.get_account_transactions(account_id)))
        transactions.sort(key=lambda tx: tx.timestamp, reverse=True)

        self.logger.debug(f"Fetched {len(transactions)} transactions for account {account_id}")
        return transactions

    def get_financial_summary(self, user_id: str) -> FinancialSummary:
        """
        Total balance across a user's accounts and total outstanding loan debt.

        A loan counts as active while its remaining amount is above zero.
        """
        accounts = self.store.get_user_accounts(user_id)
        loans = self.store.get_user_loans(user_id)

        total_balance = sum((account.balance for account in accounts), Money.zero())
        total_debt = sum((loan.remaining_amount for loan in loans), Money.zero())
        active_loans = sum(1 for loan in loans if loan.remaining_amount.is_positive())

        self.logger.debug(f"Generated financial summary for user {user_id}")
        return FinancialSummary(
            user_id=user_id,
            total_account_balance=total_balance,
            number_of_accounts=len(accounts),
            total_loan_debt=total_debt,
            active_loans=active_loans,
        )
