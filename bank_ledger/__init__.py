"""
Bank Ledger

In-process ledger for a small bank: accounts, cards, transfers, card payments,
deposits and installment loans, with exact Decimal money math and a single
readers-writer exclusion protecting every balance mutation.
"""

__version__ = "1.0.0"
