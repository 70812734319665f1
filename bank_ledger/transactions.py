"""
Transaction Processing Module

Card payments, transfers and deposits. Each operation validates its input,
then runs its checks, balance changes and the transaction record inside one
LedgerStore.atomic() section, so no concurrent operation can act on a stale
balance or observe a half-applied change.
"""

from decimal import Decimal
from typing import Optional, Union

from .accounts import is_card_expired
from .currency import Money, decimal_from_string
from .exceptions import (
    ExpiredInstrumentError, InsufficientFundsError, InternalError,
    LedgerError, NotFoundError, ValidationError
)
from .identifiers import generate_id
from .logging_config import get_logger, log_action
from .models import Transaction, TransactionType
from .storage import LedgerStore

AmountInput = Union[Money, Decimal, int, str]

# Largest amount a single operation may move
MAX_AMOUNT = Money(Decimal('999999999999999.99'))


def validate_amount(amount: AmountInput, label: str) -> Money:
    """
    Parse a caller-supplied amount and require it to be positive whole cents

    Raises:
        ValidationError: If the amount is not a number, is not positive,
            exceeds MAX_AMOUNT or has more than two fractional digits
    """
    try:
        if isinstance(amount, str):
            amount = decimal_from_string(amount)
        money = Money.of(amount)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} amount must be a decimal number", field="amount")

    if not money.is_positive():
        raise ValidationError(f"{label} amount must be positive", field="amount")
    if money > MAX_AMOUNT:
        raise ValidationError(f"{label} amount cannot exceed {MAX_AMOUNT.to_string()}", field="amount")
    if not money.fits_scale():
        raise ValidationError(f"{label} amount cannot have fractional cents", field="amount")
    return money


class TransactionProcessor:
    """
    Processes balance-changing operations against the ledger store
    """

    def __init__(self, store: LedgerStore):
        self.store = store
        self.logger = get_logger("bank_ledger.transactions")

    def _record(
        self,
        transaction_type: TransactionType,
        amount: Money,
        description: str,
        from_account_id: Optional[str] = None,
        to_account_id: Optional[str] = None
    ) -> Transaction:
        transaction = Transaction(
            id=generate_id(),
            amount=amount,
            timestamp=self.store.now(),
            transaction_type=transaction_type,
            description=description,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
        )
        self.store.append_transaction(transaction)
        return transaction

    def _log_rejection(self, action: str, error: LedgerError) -> None:
        level = "error" if isinstance(error, InternalError) else "info"
        log_action(
            self.logger, level, f"{action} rejected: {error.message}",
            action=action, extra={"code": error.code}
        )

    def pay_with_card(self, card_number: str, amount: AmountInput, merchant: str = "") -> Transaction:
        """
        Charge a card; money leaves the bank

        Args:
            card_number: Number of the card to charge
            amount: Payment amount
            merchant: Payee shown in the description

        Returns:
            The recorded payment transaction

        Raises:
            ValidationError: Non-positive amount
            NotFoundError: Unknown card
            ExpiredInstrumentError: Card past its expiry month
            InternalError: Card's account is missing, or any unexpected failure
            InsufficientFundsError: Balance lower than amount
        """
        try:
            amount = validate_amount(amount, "Payment")

            with self.store.atomic():
                card = self.store.get_card_by_number(card_number)
                if card is None:
                    raise NotFoundError("card", (card_number or "")[:4] + "...", "Card not found")

                if is_card_expired(card, self.store.now()):
                    raise ExpiredInstrumentError(card.id)

                account = self.store.get_account(card.account_id)
                if account is None:
                    self.logger.error(
                        f"Card {card.id} references missing account {card.account_id}"
                    )
                    raise InternalError()

                if account.balance < amount:
                    raise InsufficientFundsError(account.id)

                self.store.mutate_balance(account.id, -amount)
                transaction = self._record(
                    TransactionType.PAYMENT, amount,
                    f"Payment to {merchant}" if merchant else "Card payment",
                    from_account_id=account.id,
                )
        except LedgerError as e:
            self._log_rejection("card_payment", e)
            raise
        except Exception as e:
            self.logger.exception("Unexpected failure in card_payment")
            raise InternalError() from e

        log_action(
            self.logger, "info", f"Payment of {amount} processed",
            action="card_payment", resource=f"transaction:{transaction.id}",
            extra={
                "account_id": account.id,
                "card": card.number[:4] + "...",
                "merchant": merchant,
                "amount": str(amount),
            }
        )
        return transaction

    def transfer(self, from_account_id: str, to_account_id: str, amount: AmountInput) -> Transaction:
        """
        Move money between two ledger accounts

        Both balances are read and written inside one exclusive section.

        Raises:
            ValidationError: Same account on both sides or non-positive amount
            NotFoundError: Unknown source or destination account
            InsufficientFundsError: Source balance lower than amount
        """
        try:
            if from_account_id == to_account_id:
                raise ValidationError("Cannot transfer to the same account")
            amount = validate_amount(amount, "Transfer")

            with self.store.atomic():
                source = self.store.get_account(from_account_id)
                if source is None:
                    raise NotFoundError("account", from_account_id,
                                        f"Source account {from_account_id} not found")
                destination = self.store.get_account(to_account_id)
                if destination is None:
                    raise NotFoundError("account", to_account_id,
                                        f"Destination account {to_account_id} not found")

                if source.balance < amount:
                    raise InsufficientFundsError(source.id, "Insufficient funds in source account")

                self.store.mutate_balance(source.id, -amount)
                self.store.mutate_balance(destination.id, amount)
                transaction = self._record(
                    TransactionType.TRANSFER, amount,
                    f"Transfer from {source.number} to {destination.number}",
                    from_account_id=source.id,
                    to_account_id=destination.id,
                )
        except LedgerError as e:
            self._log_rejection("transfer", e)
            raise
        except Exception as e:
            self.logger.exception("Unexpected failure in transfer")
            raise InternalError() from e

        log_action(
            self.logger, "info", f"Transfer of {amount} successful",
            action="transfer", resource=f"transaction:{transaction.id}",
            extra={"from_account": from_account_id, "to_account": to_account_id,
                   "amount": str(amount)}
        )
        return transaction

    def deposit(self, to_account_id: str, amount: AmountInput) -> Transaction:
        """
        Credit external money to an account

        Raises:
            ValidationError: Non-positive amount
            NotFoundError: Unknown account
        """
        try:
            amount = validate_amount(amount, "Deposit")

            with self.store.atomic():
                account = self.store.get_account(to_account_id)
                if account is None:
                    raise NotFoundError("account", to_account_id)

                self.store.mutate_balance(account.id, amount)
                transaction = self._record(
                    TransactionType.DEPOSIT, amount,
                    f"Deposit to account {account.number}",
                    to_account_id=account.id,
                )
        except LedgerError as e:
            self._log_rejection("deposit", e)
            raise
        except Exception as e:
            self.logger.exception("Unexpected failure in deposit")
            raise InternalError() from e

        log_action(
            self.logger, "info", f"Deposit of {amount} successful",
            action="deposit", resource=f"transaction:{transaction.id}",
            extra={"to_account": to_account_id, "amount": str(amount)}
        )
        return transaction
