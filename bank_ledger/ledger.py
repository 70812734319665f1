"""
Bank Ledger Composition Module

BankLedger owns one LedgerStore and wires it into every manager. The process
entry point constructs it; nothing in the package keeps a global store.
"""

from datetime import datetime
from typing import Callable, Optional

from .accounts import AccountManager
from .config import LedgerConfig, get_config
from .loans import LoanManager
from .logging_config import get_logger, setup_logging
from .notifications import (
    LogNotificationSender, NotificationSender, SMTPNotificationSender
)
from .rates import RateSource, build_rate_source
from .reporting import ReportingService
from .storage import LedgerStore
from .transactions import TransactionProcessor


class BankLedger:
    """
    Facade over the ledger components

    Example:
        ledger = BankLedger()
        user = ledger.accounts.register_user("alice", "alice@example.com")
        account = ledger.accounts.open_account(user.id)
        ledger.transactions.deposit(account.id, "1000.00")
    """

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        store: Optional[LedgerStore] = None,
        rate_source: Optional[RateSource] = None,
        notifier: Optional[NotificationSender] = None,
        clock: Optional[Callable[[], datetime]] = None,
        configure_logging: bool = False
    ):
        self.config = config or get_config()
        if configure_logging:
            setup_logging(self.config.log_level, log_format=self.config.log_format)
        self.logger = get_logger("bank_ledger.ledger")

        self.store = store or LedgerStore(clock=clock)
        self.rate_source = rate_source or build_rate_source(self.config)
        if notifier is None:
            if self.config.smtp_configured:
                notifier = SMTPNotificationSender.from_config(self.config)
            else:
                notifier = LogNotificationSender()
        self.notifier = notifier

        self.accounts = AccountManager(self.store, self.notifier, self.config)
        self.transactions = TransactionProcessor(self.store)
        self.loans = LoanManager(self.store, self.rate_source, self.config)
        self.reporting = ReportingService(self.store)

        self.logger.info("Bank ledger initialized")
