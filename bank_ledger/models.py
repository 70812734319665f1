"""
Ledger entities

Plain dataclasses for everything the ledger store owns. The store hands out
deep copies of these, so nothing a caller does to a returned object reaches
stored state.
"""

from dataclasses import dataclass, field, fields, is_dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .currency import Money


def serialize_value(value: Any) -> Any:
    if isinstance(value, Money):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value):
        return {f.name: serialize_value(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize_value(v) for v in value]
    return value


@dataclass
class LedgerRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dictionary; Decimal and Money become strings"""
        return serialize_value(self)


@dataclass
class User(LedgerRecord):
    username: str
    email: str


@dataclass
class Account(LedgerRecord):
    owner_id: str
    number: str
    balance: Money = field(default_factory=Money.zero)


@dataclass
class Card(LedgerRecord):
    account_id: str
    number: str
    expiry_month: int
    expiry_year: int
    cvv: str

    def masked(self) -> 'Card':
        """Copy safe to show outside the ledger"""
        return replace(self, cvv="***")


class TransactionType(Enum):
    """Balance-affecting event kinds"""
    PAYMENT = "payment"                      # card charge, money leaves the bank
    TRANSFER = "transfer"                    # internal movement
    DEPOSIT = "deposit"                      # money enters the bank
    LOAN_DISBURSEMENT = "loan_disbursement"  # loan principal credited


@dataclass(frozen=True)
class Transaction:
    """Immutable audit record of one balance change"""
    id: str
    amount: Money
    timestamp: datetime
    transaction_type: TransactionType
    description: str = ""
    from_account_id: Optional[str] = None
    to_account_id: Optional[str] = None

    def __post_init__(self):
        if not self.amount.is_positive():
            raise ValueError("Transaction amount must be positive")

        if self.transaction_type == TransactionType.TRANSFER:
            if not (self.from_account_id and self.to_account_id):
                raise ValueError("Transfer must reference both accounts")
        elif bool(self.from_account_id) == bool(self.to_account_id):
            raise ValueError(
                f"{self.transaction_type.value} must reference exactly one account"
            )

    def involves(self, account_id: str) -> bool:
        return account_id in (self.from_account_id, self.to_account_id)

    def to_dict(self) -> Dict[str, Any]:
        return serialize_value(self)


@dataclass
class SchedulePayment:
    """Single installment in a loan payment schedule"""
    due_date: date
    amount: Money
    principal_part: Money
    interest_part: Money
    paid: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return serialize_value(self)


@dataclass
class Loan(LedgerRecord):
    """
    Installment loan, fixed at approval.

    annual_rate is a plain Decimal percentage, not Money (15 means 15% a
    year). remaining_amount starts equal to principal and is not decremented
    by anything in the ledger.
    """
    user_id: str
    account_id: str
    principal: Money
    annual_rate: Decimal
    term_months: int
    start_date: date
    schedule: List[SchedulePayment] = field(default_factory=list)
    remaining_amount: Optional[Money] = None

    def __post_init__(self):
        if self.remaining_amount is None:
            self.remaining_amount = self.principal

    @property
    def monthly_payment(self) -> Money:
        """Regular installment (first schedule entry)"""
        if not self.schedule:
            return Money.zero()
        return self.schedule[0].amount

    @property
    def total_interest(self) -> Money:
        return sum((p.interest_part for p in self.schedule), Money.zero())

    @property
    def total_repayment(self) -> Money:
        return sum((p.amount for p in self.schedule), Money.zero())
