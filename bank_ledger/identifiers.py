"""
Identifier and number generation for ledger entities.

IDs only need to be unique; account and card numbers follow the bank's
display formats. Random parts come from `secrets` (CSPRNG).
"""

from datetime import date
from typing import Optional, Tuple
import secrets
import uuid

ACCOUNT_NUMBER_PREFIX = "40817810"
CARD_NUMBER_PREFIX = "4"


def generate_id() -> str:
    """Globally unique identifier string"""
    return str(uuid.uuid4())


def generate_account_number() -> str:
    """20-digit account number: fixed bank prefix + 12 random digits"""
    suffix = secrets.randbelow(900_000_000_000) + 100_000_000_000
    return f"{ACCOUNT_NUMBER_PREFIX}{suffix:012d}"


def generate_card_number() -> str:
    """16-digit card number starting with 4"""
    first = secrets.randbelow(900) + 100
    groups = [secrets.randbelow(10000) for _ in range(3)]
    return CARD_NUMBER_PREFIX + f"{first:03d}" + "".join(f"{g:04d}" for g in groups)


def generate_cvv() -> str:
    """3-digit card verification value (100-999)"""
    return f"{secrets.randbelow(900) + 100:03d}"


def generate_expiry(validity_years: int = 4, today: Optional[date] = None) -> Tuple[int, int]:
    """Return (month, year) of a card issued today"""
    today = today or date.today()
    return today.month, today.year + validity_years
