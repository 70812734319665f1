"""
Account Management Module

User registration, account opening and card issuance on top of the ledger
store, plus the card expiry rule used by card payments. Reads return copies;
card reads never expose the CVV.
"""

from datetime import datetime, timezone
from typing import List, Optional
import calendar
import re

from .config import LedgerConfig, get_config
from .exceptions import NotFoundError, ValidationError
from .identifiers import (
    generate_card_number, generate_cvv, generate_expiry, generate_id
)
from .logging_config import get_logger, log_action
from .models import Account, Card, User
from .notifications import NotificationSender, dispatch_notification
from .storage import LedgerStore

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def card_expires_at(card: Card) -> datetime:
    """End of the last day of the card's expiry month, UTC"""
    last_day = calendar.monthrange(card.expiry_year, card.expiry_month)[1]
    return datetime(card.expiry_year, card.expiry_month, last_day, 23, 59, 59,
                    tzinfo=timezone.utc)


def is_card_expired(card: Card, now: datetime) -> bool:
    return now > card_expires_at(card)


class AccountManager:
    """
    Manages users, their accounts and cards
    """

    def __init__(
        self,
        store: LedgerStore,
        notifier: Optional[NotificationSender] = None,
        config: Optional[LedgerConfig] = None
    ):
        self.store = store
        self.notifier = notifier
        self.config = config or get_config()
        self.logger = get_logger("bank_ledger.accounts")

    def register_user(self, username: str, email: str) -> User:
        """
        Register a new user and send a welcome message in the background

        Args:
            username: Unique login name
            email: Unique email address

        Returns:
            Created User

        Raises:
            ValidationError: If username or email is missing or malformed
            ConflictError: If username or email is already registered
        """
        username = (username or "").strip()
        email = (email or "").strip()
        if not username or not email:
            raise ValidationError("Username and email are required")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format", field="email")

        user = self.store.create_user(username, email)

        log_action(
            self.logger, "info", f"User registered: {user.username}",
            user_id=user.id, action="register_user", resource=f"user:{user.id}"
        )

        if self.notifier:
            dispatch_notification(
                self.notifier,
                to=user.email,
                subject="Welcome to Simple Bank!",
                body=f"Hello {user.username},\n\nThank you for registering at Simple Bank.",
            )

        return user

    def open_account(self, user_id: str) -> Account:
        """
        Open a zero-balance account for a user

        Raises:
            ValidationError: If user_id is empty
            NotFoundError: If the user does not exist
        """
        if not user_id:
            raise ValidationError("User ID is required", field="user_id")

        account = self.store.create_account(user_id)

        log_action(
            self.logger, "info", f"Account created: {account.number}",
            user_id=user_id, action="open_account", resource=f"account:{account.id}"
        )
        return account

    def issue_card(self, account_id: str) -> Card:
        """
        Issue a new card for an account

        Returns:
            The issued card with the CVV masked

        Raises:
            NotFoundError: If the account does not exist
        """
        month, year = generate_expiry(self.config.card_validity_years,
                                      today=self.store.now().date())
        card = Card(
            id=generate_id(),
            created_at=self.store.now(),
            account_id=account_id,
            number=generate_card_number(),
            expiry_month=month,
            expiry_year=year,
            cvv=generate_cvv(),
        )
        card = self.store.add_card(card)

        log_action(
            self.logger, "info", f"Card issued for account {account_id}",
            action="issue_card", resource=f"card:{card.id}",
            extra={"card": card.number[:4] + "...", "expires": f"{month:02d}/{year}"}
        )
        return card.masked()

    def get_account(self, account_id: str) -> Account:
        """
        Raises:
            NotFoundError: If the account does not exist
        """
        account = self.store.get_account(account_id)
        if account is None:
            raise NotFoundError("account", account_id)
        return account

    def get_user_accounts(self, user_id: str) -> List[Account]:
        return self.store.get_user_accounts(user_id)

    def get_account_cards(self, account_id: str) -> List[Card]:
        """
        Cards of an account with CVVs masked

        Raises:
            NotFoundError: If the account does not exist
        """
        self.get_account(account_id)
        return [card.masked() for card in self.store.get_account_cards(account_id)]
