"""
Ledger Store Module

In-memory source of truth for users, accounts, cards, loans and the
transaction log, with the secondary indexes kept in step with every insert.

All access goes through one readers-writer lock: lookups share it, inserts and
balance changes take it exclusively. Mutation protocols wrap their whole
check-mutate-record sequence in ``atomic()``, which holds the exclusive side
once and rolls back every change made inside the block if it raises.
Everything returned to callers is a deep copy.
"""

from contextlib import contextmanager
from copy import deepcopy
from decimal import Inexact, Rounded
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional
import threading

from .audit import TransactionLog
from .currency import Money
from .exceptions import ConflictError, InternalError, NotFoundError
from .identifiers import generate_account_number, generate_id
from .logging_config import get_logger
from .models import Account, Card, Loan, Transaction, User


class ReadWriteLock:
    """
    Readers-writer lock with writer preference.

    The writing thread may re-enter the lock (read or write) while it holds the
    exclusive side. Upgrading a shared hold to an exclusive one is not
    supported and raises RuntimeError instead of deadlocking.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer: Optional[int] = None
        self._writer_depth = 0
        self._writers_waiting = 0
        self._local = threading.local()

    def _read_depth(self) -> int:
        return getattr(self._local, 'read_depth', 0)

    def acquire_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._writer_depth += 1
                return
            if self._read_depth() == 0:
                while self._writer is not None or self._writers_waiting:
                    self._cond.wait()
                self._readers += 1
            self._local.read_depth = self._read_depth() + 1

    def release_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._writer_depth -= 1
                return
            depth = self._read_depth() - 1
            if depth < 0:
                raise RuntimeError("release_read() without matching acquire_read()")
            self._local.read_depth = depth
            if depth == 0:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    def acquire_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._writer_depth += 1
                return
            if self._read_depth():
                raise RuntimeError("Cannot upgrade a read lock to a write lock")
            self._writers_waiting += 1
            try:
                while self._writer is not None or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = me
            self._writer_depth = 1

    def release_write(self) -> None:
        with self._cond:
            if self._writer != threading.get_ident():
                raise RuntimeError("release_write() by a thread that does not hold the lock")
            self._writer_depth -= 1
            if self._writer_depth == 0:
                self._writer = None
                self._cond.notify_all()

    @property
    def write_held(self) -> bool:
        """True when the calling thread holds the exclusive side"""
        return self._writer == threading.get_ident()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class LedgerStore:
    """
    Repository for every ledger entity.

    Constructed explicitly by the process entry point and handed to the
    managers that need it; there is no module-level instance.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._lock = ReadWriteLock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = get_logger("bank_ledger.storage")

        self._users: Dict[str, User] = {}
        self._accounts: Dict[str, Account] = {}
        self._cards: Dict[str, Card] = {}
        self._loans: Dict[str, Loan] = {}
        self._transactions = TransactionLog()

        # Secondary indexes
        self._username_index: Dict[str, str] = {}
        self._email_index: Dict[str, str] = {}
        self._user_accounts: Dict[str, List[str]] = {}
        self._account_cards: Dict[str, List[str]] = {}
        self._card_numbers: Dict[str, str] = {}
        self._user_loans: Dict[str, List[str]] = {}

        # Undo journal of the running atomic() block, None outside one
        self._undo_log: Optional[List[Callable[[], None]]] = None

    # ------------------------------------------------------------------
    # Exclusion
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator['LedgerStore']:
        """
        Hold exclusive access for a whole operation.

        Nested blocks join the outermost one. If the outermost block raises,
        every mutation made inside it is undone in reverse order before the
        lock is released, so no other thread ever sees a partial result.
        """
        with self._lock.write_locked():
            outermost = self._undo_log is None
            if outermost:
                self._undo_log = []
            try:
                yield self
            except Exception:
                if outermost:
                    self._rollback()
                raise
            finally:
                if outermost:
                    self._undo_log = None

    def _rollback(self) -> None:
        undo_log = self._undo_log or []
        if undo_log:
            self.logger.warning(f"Rolling back {len(undo_log)} ledger change(s)")
        for undo in reversed(undo_log):
            undo()

    def _record_undo(self, undo: Callable[[], None]) -> None:
        if self._undo_log is not None:
            self._undo_log.append(undo)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, username: str, email: str, user_id: Optional[str] = None) -> User:
        """
        Insert a user; username and email must both be unused.

        Raises:
            ConflictError: If the username or email is already registered
        """
        with self.atomic():
            if username in self._username_index:
                raise ConflictError("username", username, f"Username '{username}' already taken")
            if email in self._email_index:
                raise ConflictError("email", email, f"Email '{email}' already registered")

            user = User(id=user_id or generate_id(), created_at=self._clock(),
                        username=username, email=email)
            self._users[user.id] = user
            self._username_index[username] = user.id
            self._email_index[email] = user.id

            def undo():
                del self._users[user.id]
                del self._username_index[username]
                del self._email_index[email]
            self._record_undo(undo)

            return deepcopy(user)

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock.read_locked():
            return deepcopy(self._users.get(user_id))

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock.read_locked():
            user_id = self._username_index.get(username)
            return deepcopy(self._users.get(user_id)) if user_id else None

    def user_exists(self, user_id: str) -> bool:
        with self._lock.read_locked():
            return user_id in self._users

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(self, user_id: str, number: Optional[str] = None) -> Account:
        """
        Open a zero-balance account for an existing user.

        Raises:
            NotFoundError: If the user does not exist
        """
        with self.atomic():
            if user_id not in self._users:
                raise NotFoundError("user", user_id)

            account = Account(
                id=generate_id(),
                created_at=self._clock(),
                owner_id=user_id,
                number=number or generate_account_number(),
            )
            self._accounts[account.id] = account
            self._user_accounts.setdefault(user_id, []).append(account.id)

            def undo():
                del self._accounts[account.id]
                self._user_accounts[user_id].remove(account.id)
            self._record_undo(undo)

            return deepcopy(account)

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._lock.read_locked():
            return deepcopy(self._accounts.get(account_id))

    def get_user_accounts(self, user_id: str) -> List[Account]:
        with self._lock.read_locked():
            return [deepcopy(self._accounts[account_id])
                    for account_id in self._user_accounts.get(user_id, [])
                    if account_id in self._accounts]

    def mutate_balance(self, account_id: str, delta: Money) -> Money:
        """
        Apply ``balance += delta`` under exclusive access.

        Does not check for a negative result: the calling protocol checks its
        funds precondition inside the same atomic() block before calling.

        Returns:
            The new balance

        Raises:
            NotFoundError: If the account does not exist
            InternalError: If the new balance cannot be held exactly
        """
        with self.atomic():
            account = self._accounts.get(account_id)
            if account is None:
                raise NotFoundError("account", account_id)

            previous = account.balance
            try:
                account.balance = previous.add_exact(delta)
            except (Inexact, Rounded):
                self.logger.error(f"Balance overflow on account {account_id}")
                raise InternalError()

            def undo():
                account.balance = previous
            self._record_undo(undo)

            return account.balance

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    def add_card(self, card: Card) -> Card:
        """
        Raises:
            NotFoundError: If the card's account does not exist
            ConflictError: If the card number is already issued
        """
        with self.atomic():
            if card.account_id not in self._accounts:
                raise NotFoundError("account", card.account_id)
            if card.number in self._card_numbers:
                raise ConflictError("card_number", card.number[:4] + "...",
                                    "Card number already issued")

            stored = deepcopy(card)
            self._cards[stored.id] = stored
            self._account_cards.setdefault(stored.account_id, []).append(stored.id)
            self._card_numbers[stored.number] = stored.id

            def undo():
                del self._cards[stored.id]
                self._account_cards[stored.account_id].remove(stored.id)
                del self._card_numbers[stored.number]
            self._record_undo(undo)

            return deepcopy(stored)

    def get_account_cards(self, account_id: str) -> List[Card]:
        with self._lock.read_locked():
            return [deepcopy(self._cards[card_id])
                    for card_id in self._account_cards.get(account_id, [])
                    if card_id in self._cards]

    def get_card_by_number(self, number: str) -> Optional[Card]:
        with self._lock.read_locked():
            card_id = self._card_numbers.get(number)
            return deepcopy(self._cards.get(card_id)) if card_id else None

    # ------------------------------------------------------------------
    # Loans
    # ------------------------------------------------------------------

    def add_loan(self, loan: Loan) -> Loan:
        """
        Raises:
            NotFoundError: If the borrower or the loan's account does not exist
        """
        with self.atomic():
            if loan.user_id not in self._users:
                raise NotFoundError("user", loan.user_id)
            if loan.account_id not in self._accounts:
                raise NotFoundError("account", loan.account_id)

            stored = deepcopy(loan)
            self._loans[stored.id] = stored
            self._user_loans.setdefault(stored.user_id, []).append(stored.id)

            def undo():
                del self._loans[stored.id]
                self._user_loans[stored.user_id].remove(stored.id)
            self._record_undo(undo)

            return deepcopy(stored)

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        with self._lock.read_locked():
            return deepcopy(self._loans.get(loan_id))

    def get_user_loans(self, user_id: str) -> List[Loan]:
        with self._lock.read_locked():
            return [deepcopy(self._loans[loan_id])
                    for loan_id in self._user_loans.get(user_id, [])
                    if loan_id in self._loans]

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def append_transaction(self, transaction: Transaction) -> None:
        """Append to the transaction log (O(1))"""
        with self.atomic():
            self._transactions.append(transaction)
            self._record_undo(lambda: self._transactions.discard_last(transaction.id))

    def get_account_transactions(self, account_id: str) -> List[Transaction]:
        """Transactions touching the account, in the order they were recorded"""
        with self._lock.read_locked():
            # Transaction is frozen; the list itself is the only thing to copy
            return self._transactions.for_account(account_id)

    def count_transactions(self) -> int:
        with self._lock.read_locked():
            return len(self._transactions)

    def verify_transaction_log(self) -> Dict:
        with self._lock.read_locked():
            return self._transactions.verify_integrity()

    def now(self) -> datetime:
        """Current time from the store's clock"""
        return self._clock()
