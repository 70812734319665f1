"""
Typed exceptions for the ledger.

Every error a ledger operation can report has its own class with a
machine-readable ``code`` class attribute and structured attributes, so the
boundary layer maps errors by type, never by parsing messages.

    LedgerError (base)
    +-- ValidationError          VALIDATION_ERROR
    +-- NotFoundError            NOT_FOUND
    +-- ConflictError            CONFLICT
    +-- InsufficientFundsError   INSUFFICIENT_FUNDS
    +-- ExpiredInstrumentError   EXPIRED_INSTRUMENT
    +-- InternalError            INTERNAL_ERROR
    +-- RateSourceError          RATE_SOURCE_UNAVAILABLE
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger errors"""

    code: str = "LEDGER_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(LedgerError):
    """Caller input is malformed or out of range"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class NotFoundError(LedgerError):
    """A referenced user, account, card or loan does not exist"""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str, message: Optional[str] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message or f"{entity_type.capitalize()} {entity_id} not found")


class ConflictError(LedgerError):
    """A uniqueness constraint would be violated"""

    code = "CONFLICT"

    def __init__(self, field: str, value: str, message: Optional[str] = None):
        self.field = field
        self.value = value
        super().__init__(message or f"{field} '{value}' already registered")


class InsufficientFundsError(LedgerError):
    """The balance precondition of a debit failed"""

    code = "INSUFFICIENT_FUNDS"

    def __init__(self, account_id: str, message: str = "Insufficient funds"):
        self.account_id = account_id
        super().__init__(message)


class ExpiredInstrumentError(LedgerError):
    """The card used for a payment is past its expiry"""

    code = "EXPIRED_INSTRUMENT"

    def __init__(self, card_id: str, message: str = "Card expired"):
        self.card_id = card_id
        super().__init__(message)


class InternalError(LedgerError):
    """
    Store-level invariant violation.

    The detail goes to the log; the message carried to the caller stays generic.
    """

    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal ledger error"):
        super().__init__(message)


class RateSourceError(LedgerError):
    """The external base-rate source could not provide a rate"""

    code = "RATE_SOURCE_UNAVAILABLE"
