"""
Notification Module

Senders for customer-facing messages (welcome emails and the like).
Notifications never take part in a ledger operation's outcome: they are
dispatched on a background thread and a failed delivery is only logged.
"""

from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional
import smtplib
import threading

from .logging_config import get_logger, log_action

logger = get_logger("bank_ledger.notifications")


class NotificationSender(ABC):
    """Abstract base class for notification channels"""

    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> bool:
        """Deliver a message. Returns True if it was handed off."""


class LogNotificationSender(NotificationSender):
    """Logs notifications instead of delivering them; for development"""

    def send(self, to: str, subject: str, body: str) -> bool:
        log_action(
            logger, "info", f"EMAIL to {to}: {subject} | {body[:100]}",
            action="notify", resource=f"email:{to}"
        )
        return True


class SMTPNotificationSender(NotificationSender):
    """
    Email delivery over SMTP with STARTTLS.

    With no usable host configured, messages are logged and skipped.
    """

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "bankapp@example.com",
        enabled: bool = True,
        timeout: float = 10.0
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.enabled = enabled and bool(host)
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> 'SMTPNotificationSender':
        return cls(
            host=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_username,
            password=config.smtp_password,
            sender=config.smtp_sender,
            enabled=config.smtp_configured,
        )

    def send(self, to: str, subject: str, body: str) -> bool:
        if not self.enabled:
            logger.warning(f"SMTP not configured, skipping email to {to}: {subject}")
            return False

        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)

        logger.info(f"Email sent to {to}: {subject}")
        return True


def _deliver(sender: NotificationSender, to: str, subject: str, body: str) -> None:
    try:
        sender.send(to, subject, body)
    except Exception as e:
        logger.error(f"Notification to {to} failed: {e}")


def dispatch_notification(sender: NotificationSender, to: str, subject: str,
                          body: str) -> threading.Thread:
    """
    Send a notification on a daemon thread; the caller never waits for it.

    Returns:
        The started thread (tests join it)
    """
    thread = threading.Thread(
        target=_deliver, args=(sender, to, subject, body),
        name="notification-sender", daemon=True
    )
    thread.start()
    return thread
