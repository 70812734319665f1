"""
Test suite for accounts module

Tests user registration, account opening and card issuance.
"""

import threading
import pytest
from datetime import datetime, timezone
from unittest.mock import ANY, Mock, patch

from bank_ledger.accounts import AccountManager
from bank_ledger.config import LedgerConfig
from bank_ledger.exceptions import ConflictError, NotFoundError, ValidationError
from bank_ledger.notifications import NotificationSender
from bank_ledger.storage import LedgerStore

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class RecordingSender(NotificationSender):
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail
        self.delivered = threading.Event()

    def send(self, to, subject, body):
        try:
            if self.fail:
                raise ConnectionError("SMTP down")
            self.sent.append((to, subject, body))
            return True
        finally:
            self.delivered.set()


class TestAccountManager:
    """Test AccountManager functionality"""

    def setup_method(self):
        self.store = LedgerStore(clock=lambda: NOW)
        self.sender = RecordingSender()
        self.manager = AccountManager(self.store, self.sender, LedgerConfig())

    def test_register_user(self):
        user = self.manager.register_user("alice", "alice@example.com")

        assert user.username == "alice"
        assert user.email == "alice@example.com"
        assert self.store.get_user(user.id) == user

    def test_welcome_notification(self):
        user = self.manager.register_user("alice", "alice@example.com")

        assert self.sender.delivered.wait(5)
        to, subject, body = self.sender.sent[0]
        assert to == user.email
        assert subject == "Welcome to Simple Bank!"
        assert "alice" in body

    def test_notification_failure_does_not_fail_registration(self):
        sender = RecordingSender(fail=True)
        manager = AccountManager(self.store, sender, LedgerConfig())

        user = manager.register_user("bob", "bob@example.com")

        assert sender.delivered.wait(5)
        assert self.store.user_exists(user.id)

    def test_notification_is_dispatched_in_background(self):
        with patch("bank_ledger.accounts.dispatch_notification") as dispatch:
            self.manager.register_user("alice", "alice@example.com")
        dispatch.assert_called_once_with(
            self.sender, to="alice@example.com", subject=ANY, body=ANY
        )

    def test_no_notifier(self):
        manager = AccountManager(self.store, None, LedgerConfig())
        with patch("bank_ledger.accounts.dispatch_notification") as dispatch:
            manager.register_user("alice", "alice@example.com")
        dispatch.assert_not_called()

    @pytest.mark.parametrize("username,email", [
        ("", "alice@example.com"),
        ("alice", ""),
        ("alice", "not-an-email"),
        (None, "alice@example.com"),
    ])
    def test_register_user_validation(self, username, email):
        with pytest.raises(ValidationError):
            self.manager.register_user(username, email)

    def test_register_duplicate(self):
        self.manager.register_user("alice", "alice@example.com")
        with pytest.raises(ConflictError):
            self.manager.register_user("alice", "alice2@example.com")

    def test_open_account(self):
        user = self.manager.register_user("alice", "alice@example.com")
        account = self.manager.open_account(user.id)

        assert account.owner_id == user.id
        assert account.balance.is_zero()
        assert len(account.number) == 20
        assert account.number.isdigit()
        assert self.manager.get_account(account.id) == account
        assert self.manager.get_user_accounts(user.id) == [account]

    def test_open_account_unknown_user(self):
        with pytest.raises(NotFoundError):
            self.manager.open_account("missing")
        with pytest.raises(ValidationError):
            self.manager.open_account("")

    def test_get_account_unknown(self):
        with pytest.raises(NotFoundError):
            self.manager.get_account("missing")

    def test_issue_card(self):
        user = self.manager.register_user("alice", "alice@example.com")
        account = self.manager.open_account(user.id)

        card = self.manager.issue_card(account.id)

        assert card.account_id == account.id
        assert len(card.number) == 16
        assert card.number.startswith("4")
        assert card.number.isdigit()
        assert (card.expiry_month, card.expiry_year) == (6, 2028)
        assert card.cvv == "***"

        # The real CVV is stored but never handed out
        stored = self.store.get_card_by_number(card.number)
        assert stored.cvv.isdigit() and len(stored.cvv) == 3

        cards = self.manager.get_account_cards(account.id)
        assert [c.id for c in cards] == [card.id]
        assert all(c.cvv == "***" for c in cards)

    def test_issue_card_unknown_account(self):
        with pytest.raises(NotFoundError):
            self.manager.issue_card("missing")
        with pytest.raises(NotFoundError):
            self.manager.get_account_cards("missing")

    def test_uses_store_clock_for_expiry(self):
        store = LedgerStore(clock=lambda: datetime(2030, 12, 31, tzinfo=timezone.utc))
        manager = AccountManager(store, Mock(spec=NotificationSender),
                                 LedgerConfig(card_validity_years=3))
        with patch("bank_ledger.accounts.dispatch_notification"):
            user = manager.register_user("alice", "alice@example.com")
        account = manager.open_account(user.id)
        card = manager.issue_card(account.id)
        assert (card.expiry_month, card.expiry_year) == (12, 2033)
